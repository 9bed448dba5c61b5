from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from roster_plugin.registry_store import REGISTRY_FILENAME, resolve_registry_path
from version import parse_flag

SETTINGS_FILE = "roster_settings.json"

DEFAULT_ROSTER_SETTINGS: dict[str, Any] = {
    "file_name": REGISTRY_FILENAME,
    "data_dir": None,
    "save_enabled": True,
    "log_registry": False,
}

LOGGER = logging.getLogger("ClientRoster.Settings")


@dataclass(frozen=True)
class RosterSettings:
    file_name: str
    data_dir: Path
    save_enabled: bool
    log_registry: bool

    @property
    def registry_path(self) -> Path:
        return resolve_registry_path(self.data_dir, self.file_name)


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    flag = parse_flag(value)
    return default if flag is None else flag


def _coerce_text(value: Any, fallback: str) -> str:
    if value is None:
        return fallback
    text = str(value).strip()
    return text or fallback


def _coerce_dir(value: Any, base_dir: Path) -> Path:
    if value is None:
        return base_dir
    text = str(value).strip()
    if not text:
        return base_dir
    candidate = Path(text).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return candidate


def parse_roster_settings(raw: Any, defaults: Mapping[str, Any], *, base_dir: Path) -> RosterSettings:
    default_file = _coerce_text(defaults.get("file_name"), REGISTRY_FILENAME)
    default_dir = _coerce_dir(defaults.get("data_dir"), base_dir)
    default_save = _coerce_bool(defaults.get("save_enabled"), True)
    default_log = _coerce_bool(defaults.get("log_registry"), False)

    if not isinstance(raw, Mapping):
        return RosterSettings(
            file_name=default_file,
            data_dir=default_dir,
            save_enabled=default_save,
            log_registry=default_log,
        )

    return RosterSettings(
        file_name=_coerce_text(raw.get("file_name"), default_file),
        data_dir=_coerce_dir(raw.get("data_dir"), base_dir) if raw.get("data_dir") else default_dir,
        save_enabled=_coerce_bool(raw.get("save_enabled"), default_save),
        log_registry=_coerce_bool(raw.get("log_registry"), default_log),
    )


def load_roster_settings(
    path: Path,
    *,
    base_dir: Path,
    defaults: Optional[Mapping[str, Any]] = None,
) -> RosterSettings:
    """Read ``roster_settings.json``; a missing or broken file falls back to defaults."""

    effective_defaults = defaults if defaults is not None else DEFAULT_ROSTER_SETTINGS
    raw: Any = None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        LOGGER.debug("No settings file at %s; using defaults", path)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        LOGGER.warning("Ignoring unreadable settings file %s: %s", path, exc)
    if raw is not None and not isinstance(raw, Mapping):
        LOGGER.warning("Settings file %s must contain a JSON object; using defaults", path)
        raw = None
    return parse_roster_settings(raw, effective_defaults, base_dir=base_dir)
