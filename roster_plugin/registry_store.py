"""Persistent storage for the client roster registry.

The registry is kept as a single JSON document that is rewritten in full on
every save. Two on-disk shapes are understood when reading:

* the flat form written by this module::

      {"ids": [...], "names": [...], "familyIds": [...], "active": [...]}

* the generic key/values form used by older builds::

      {"Entries": [{"Key": "UUIDs", "Values": [...]}, ...]}

Whatever is found is normalised so the structural rules (unique ids, aligned
metadata, ``active`` contained in ``ids``) hold before any caller sees it.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

REGISTRY_FILENAME = "headsets.config"

FIELD_IDS = "ids"
FIELD_NAMES = "names"
FIELD_FAMILY_IDS = "familyIds"
FIELD_ACTIVE = "active"
CANONICAL_FIELDS = (FIELD_IDS, FIELD_NAMES, FIELD_FAMILY_IDS, FIELD_ACTIVE)

FIELD_ALIASES: Dict[str, str] = {
    "UUIDs": FIELD_IDS,
    "Names": FIELD_NAMES,
    "FamIds": FIELD_FAMILY_IDS,
    "FamilyIds": FIELD_FAMILY_IDS,
    "Active": FIELD_ACTIVE,
}

# Marks the key/values document form, so it can never be stored as a field.
ENTRIES_KEY = "Entries"
_RESERVED_FIELDS = frozenset(CANONICAL_FIELDS) | {ENTRIES_KEY}
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

LOGGER = logging.getLogger("ClientRoster.Store")


@dataclass
class Registry:
    """In-memory shape of the persisted roster."""

    ids: List[str] = field(default_factory=list)
    names: List[str] = field(default_factory=list)
    family_ids: List[str] = field(default_factory=list)
    active: List[str] = field(default_factory=list)
    extras: Dict[str, List[str]] = field(default_factory=dict)

    def index_of(self, client_id: str) -> int:
        try:
            return self.ids.index(client_id)
        except ValueError:
            return -1

    def is_active(self, client_id: str) -> bool:
        return client_id in self.active

    def copy(self) -> "Registry":
        return Registry(
            ids=list(self.ids),
            names=list(self.names),
            family_ids=list(self.family_ids),
            active=list(self.active),
            extras={key: list(values) for key, values in self.extras.items()},
        )

    def to_fields(self) -> Dict[str, List[str]]:
        """Return the canonical field mapping, extras last."""

        fields: Dict[str, List[str]] = {
            FIELD_IDS: list(self.ids),
            FIELD_NAMES: list(self.names),
            FIELD_FAMILY_IDS: list(self.family_ids),
            FIELD_ACTIVE: list(self.active),
        }
        for key, values in self.extras.items():
            if key not in _RESERVED_FIELDS:
                fields[key] = list(values)
        return fields


def canonical_field_name(name: str) -> str:
    """Map a legacy field alias onto its canonical name (exact match)."""

    return FIELD_ALIASES.get(name, name)


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return ["" if item is None else str(item) for item in value]


def _pad(values: List[str], length: int) -> List[str]:
    if len(values) >= length:
        return values[:length]
    return values + [""] * (length - len(values))


def _distinct_in_order(values: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


def registry_from_fields(fields: Mapping[str, Any]) -> Registry:
    """Build a raw (not yet normalised) registry from a field mapping."""

    raw = Registry()
    for key, value in fields.items():
        if not isinstance(key, str):
            continue
        name = canonical_field_name(key)
        values = _string_list(value)
        if name == FIELD_IDS:
            raw.ids = values
        elif name == FIELD_NAMES:
            raw.names = values
        elif name == FIELD_FAMILY_IDS:
            raw.family_ids = values
        elif name == FIELD_ACTIVE:
            raw.active = values
        elif name == ENTRIES_KEY:
            LOGGER.warning("Dropping roster field %r; the name is reserved", name)
        else:
            raw.extras[name] = values
    return raw


def normalize_registry(raw: Registry) -> Registry:
    """Return a copy of ``raw`` with every structural rule applied.

    Blank ids are dropped along with the metadata at the same position, the
    first occurrence of a duplicated id wins (keeping its own name and
    family id), ``names``/``family_ids`` end up exactly ``len(ids)`` long and
    ``active`` only keeps known ids, once each, in their original order.
    """

    names = _pad(list(raw.names), len(raw.ids))
    family_ids = _pad(list(raw.family_ids), len(raw.ids))

    ids: List[str] = []
    kept_names: List[str] = []
    kept_family_ids: List[str] = []
    seen: set[str] = set()
    for index, value in enumerate(raw.ids):
        client_id = (value or "").strip()
        if not client_id or client_id in seen:
            continue
        seen.add(client_id)
        ids.append(client_id)
        kept_names.append((names[index] or "").strip())
        kept_family_ids.append((family_ids[index] or "").strip())

    active = [client_id for client_id in _distinct_in_order((value or "").strip() for value in raw.active) if client_id in seen]
    extras = {key: list(values) for key, values in raw.extras.items() if key not in _RESERVED_FIELDS}
    return Registry(ids=ids, names=kept_names, family_ids=kept_family_ids, active=active, extras=extras)


def _fields_from_document(document: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    known = [key for key in document if isinstance(key, str) and canonical_field_name(key) in CANONICAL_FIELDS]
    if known:
        return {
            key: value
            for key, value in document.items()
            if isinstance(key, str) and (canonical_field_name(key) in CANONICAL_FIELDS or isinstance(value, list))
        }
    entries = document.get(ENTRIES_KEY)
    if not isinstance(entries, list) or not any(isinstance(entry, Mapping) for entry in entries):
        return None
    fields: Dict[str, Any] = {}
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        key = entry.get("Key")
        if not isinstance(key, str) or not key.strip():
            continue
        # First entry for a key wins, matching lookup-by-key semantics.
        fields.setdefault(key.strip(), entry.get("Values"))
    return fields


def load_registry(path: Path) -> Registry:
    """Read the registry at ``path``; any problem yields an empty registry."""

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        LOGGER.debug("No roster file at %s; starting empty", path)
        return Registry()
    except (OSError, UnicodeDecodeError) as exc:
        LOGGER.warning("Unable to read roster file %s: %s", path, exc)
        return Registry()
    if not text.strip():
        LOGGER.warning("Roster file %s is empty; starting empty", path)
        return Registry()
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        LOGGER.warning("Invalid JSON in roster file %s: %s", path, exc)
        return Registry()
    if not isinstance(document, dict):
        LOGGER.warning("Roster file %s must contain a JSON object at the root", path)
        return Registry()
    fields = _fields_from_document(document)
    if fields is None:
        LOGGER.warning("Roster file %s has no recognised roster fields; starting empty", path)
        return Registry()
    return normalize_registry(registry_from_fields(fields))


def save_registry(path: Path, registry: Registry) -> bool:
    """Rewrite ``path`` with the canonical encoding of ``registry``.

    Returns ``False`` (after logging) when the write fails.
    """

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(registry.to_fields(), indent=2, ensure_ascii=False)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(payload + "\n", encoding="utf-8")
        tmp_path.replace(path)
        return True
    except (OSError, TypeError, ValueError) as exc:
        LOGGER.warning("Failed to write roster file %s: %s", path, exc)
        return False


def safe_file_name(name: Optional[str], default: str = REGISTRY_FILENAME) -> str:
    """Return ``name`` with characters that are invalid in file names replaced."""

    text = (name or "").strip()
    if not text:
        return default
    return _INVALID_FILENAME_CHARS.sub("_", text)


def resolve_registry_path(root: Optional[Path] = None, file_name: Optional[str] = None) -> Path:
    """Return the registry path rooted at the given folder."""

    base = root if root is not None else Path(__file__).resolve().parent
    return base / safe_file_name(file_name)
