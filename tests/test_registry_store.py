from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from roster_plugin import registry_store
from roster_plugin.registry_store import Registry, load_registry, normalize_registry, save_registry


def _write_json(path: Path, payload) -> None:
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def test_missing_file_yields_empty_registry(tmp_path):
    registry = load_registry(tmp_path / "headsets.config")
    assert registry == Registry()


@pytest.mark.parametrize(
    "content",
    ["", "   \n", "{not json", "[1, 2, 3]", '"text"', json.dumps({"unrelated": 1})],
)
def test_unreadable_file_yields_empty_registry_with_warning(tmp_path, caplog, content):
    path = tmp_path / "headsets.config"
    path.write_text(content, encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        registry = load_registry(path)

    assert registry == Registry()
    assert any(record.levelno == logging.WARNING for record in caplog.records)


def test_flat_encoding_is_loaded(tmp_path):
    path = tmp_path / "headsets.config"
    _write_json(
        path,
        {"ids": ["A", "B"], "names": ["Alice", "Bob"], "familyIds": ["7", "3"], "active": ["B"]},
    )

    registry = load_registry(path)

    assert registry.ids == ["A", "B"]
    assert registry.names == ["Alice", "Bob"]
    assert registry.family_ids == ["7", "3"]
    assert registry.active == ["B"]


def test_entries_encoding_with_legacy_keys_is_loaded(tmp_path):
    path = tmp_path / "headsets.config"
    _write_json(
        path,
        {
            "Entries": [
                {"Key": "UUIDs", "Values": ["4567", "8910"]},
                {"Key": "Names", "Values": ["Aaron Here"]},
                {"Key": "FamIds", "Values": ["12", "4"]},
                {"Key": "Active", "Values": ["8910", "ghost"]},
                {"Key": "Languages", "Values": ["EN", "FR"]},
            ]
        },
    )

    registry = load_registry(path)

    assert registry.ids == ["4567", "8910"]
    assert registry.names == ["Aaron Here", ""]
    assert registry.family_ids == ["12", "4"]
    assert registry.active == ["8910"]
    assert registry.extras == {"Languages": ["EN", "FR"]}


def test_normalize_deduplicates_and_keeps_first_metadata():
    raw = Registry(
        ids=["A", "B", "A", " ", "C"],
        names=["Alice", "Bob", "Alias", "Blank", "Carol", "Overflow"],
        family_ids=["1", "2"],
        active=["C", "A", "C", "Z", ""],
    )

    registry = normalize_registry(raw)

    assert registry.ids == ["A", "B", "C"]
    assert registry.names == ["Alice", "Bob", "Carol"]
    assert registry.family_ids == ["1", "2", ""]
    assert registry.active == ["C", "A"]


def test_normalize_is_idempotent():
    raw = Registry(ids=["B", "A", "B"], names=["b"], family_ids=[], active=["A", "A"])
    once = normalize_registry(raw)
    assert normalize_registry(once) == once


def test_normalize_trims_values_and_keeps_case():
    raw = Registry(ids=[" a ", "A"], names=[" lower ", "Upper "], family_ids=[" 3", ""], active=["A "])
    registry = normalize_registry(raw)
    assert registry.ids == ["a", "A"]
    assert registry.names == ["lower", "Upper"]
    assert registry.family_ids == ["3", ""]
    assert registry.active == ["A"]


def test_save_then_load_round_trips(tmp_path):
    path = tmp_path / "nested" / "dir" / "headsets.config"
    registry = Registry(
        ids=["A", "B", "C"],
        names=["Alice", "Bob", "C"],
        family_ids=["7", "", "FAM-2"],
        active=["C", "A"],
        extras={"Languages": ["EN", "IL"]},
    )

    assert save_registry(path, registry) is True

    loaded = load_registry(path)
    assert loaded == registry
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert list(raw.keys()) == ["ids", "names", "familyIds", "active", "Languages"]
    assert not path.with_suffix(path.suffix + ".tmp").exists()


def test_save_failure_returns_false(tmp_path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        ok = save_registry(blocker / "headsets.config", Registry(ids=["A"], names=["A"], family_ids=[""]))

    assert ok is False
    assert any("Failed to write roster file" in record.getMessage() for record in caplog.records)


@pytest.mark.parametrize(
    "name, expected",
    [
        (None, "headsets.config"),
        ("   ", "headsets.config"),
        ("clients.json", "clients.json"),
        ("../evil/name?.json", ".._evil_name_.json"),
    ],
)
def test_safe_file_name(name, expected):
    assert registry_store.safe_file_name(name) == expected


def test_resolve_registry_path_uses_root(tmp_path):
    assert registry_store.resolve_registry_path(tmp_path) == tmp_path / "headsets.config"
    assert registry_store.resolve_registry_path(tmp_path, "a/b.json") == tmp_path / "a_b.json"


def test_flat_file_with_entries_field_keeps_roster(tmp_path, caplog):
    path = tmp_path / "headsets.config"
    _write_json(
        path,
        {"ids": ["A"], "names": ["Alice"], "familyIds": ["7"], "active": ["A"], "Entries": ["x"]},
    )

    with caplog.at_level(logging.WARNING):
        registry = load_registry(path)

    assert registry.ids == ["A"]
    assert registry.active == ["A"]
    assert "Entries" not in registry.extras
    assert any("reserved" in record.getMessage() for record in caplog.records)


def test_entries_list_without_mappings_is_not_a_roster(tmp_path):
    path = tmp_path / "headsets.config"
    _write_json(path, {"Entries": ["x", 1]})
    assert load_registry(path) == Registry()


def test_reserved_extra_is_never_written(tmp_path):
    path = tmp_path / "headsets.config"
    registry = Registry(ids=["A"], names=["A"], family_ids=[""], active=["A"], extras={"Entries": ["x"]})

    assert save_registry(path, registry) is True

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert "Entries" not in stored
    assert load_registry(path).ids == ["A"]
