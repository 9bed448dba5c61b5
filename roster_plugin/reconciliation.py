"""Connect/disconnect bookkeeping for the persisted client roster."""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

from roster_plugin.registry_store import (
    CANONICAL_FIELDS,
    ENTRIES_KEY,
    FIELD_ACTIVE,
    FIELD_FAMILY_IDS,
    FIELD_IDS,
    FIELD_NAMES,
    Registry,
    canonical_field_name,
    load_registry,
    normalize_registry,
    save_registry,
)

LOGGER = logging.getLogger("ClientRoster.Engine")


def _clean(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _ordered_live_ids(live_ids: Iterable[str]) -> List[str]:
    if isinstance(live_ids, (set, frozenset)):
        candidates: Iterable[Any] = sorted(str(item) for item in live_ids if item is not None)
    else:
        candidates = live_ids
    ordered: List[str] = []
    seen: set[str] = set()
    for item in candidates:
        client_id = _clean(item)
        if not client_id or client_id in seen:
            continue
        seen.add(client_id)
        ordered.append(client_id)
    return ordered


class RosterReconciler:
    """Apply lifecycle events to the roster file.

    Every public mutation reloads the file, applies its change, re-normalises
    and writes the result back while holding one lock, so calls coming from
    different notification sources cannot interleave inside this process.
    While saving is disabled, or after a failed write, the latest registry
    is kept in memory and read in place of the stale file.
    """

    def __init__(
        self,
        path: Path,
        *,
        save_enabled: bool = True,
        log_registry: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._path = Path(path)
        self._save_enabled = bool(save_enabled)
        self._log_registry = bool(log_registry)
        self._logger = logger or LOGGER
        self._lock = threading.RLock()
        self._last_save_ok = True
        # Latest registry that is not on disk (saving disabled or failed).
        self._unsaved: Optional[Registry] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def last_save_ok(self) -> bool:
        """False when the most recent write attempt failed."""

        return self._last_save_ok

    # Public API ---------------------------------------------------------

    def snapshot(self) -> Registry:
        """Return the current registry without writing anything."""

        with self._lock:
            return self._load()

    def connect(
        self,
        client_id: Optional[str],
        display_name: Optional[str] = None,
        family_id: Optional[str] = None,
    ) -> Registry:
        """Record ``client_id`` as known and active; other clients are untouched."""

        key = _clean(client_id)
        if not key:
            self._logger.warning("Ignoring connect with empty client id")
            return self.snapshot()
        with self._lock:
            registry = self._load()
            self._upsert(registry, key, _clean(display_name), _clean(family_id))
            if key not in registry.active:
                registry.active.append(key)
            self._logger.debug("Client connected: id=%s name=%r family=%r", key, display_name, family_id)
            return self._commit(registry)

    def disconnect(self, client_id: Optional[str]) -> Registry:
        """Drop ``client_id`` from the active set while keeping its history."""

        key = _clean(client_id)
        if not key:
            self._logger.warning("Ignoring disconnect with empty client id")
            return self.snapshot()
        with self._lock:
            registry = self._load()
            registry.active = [value for value in registry.active if value != key]
            self._logger.debug("Client disconnected: id=%s", key)
            return self._commit(registry)

    def reconcile_live_roster(self, live_ids: Iterable[str]) -> Registry:
        """Make the active set match ``live_ids`` exactly.

        Live ids that are not active are connected (created with their id as
        display name when unknown); active ids missing from the snapshot are
        disconnected.
        """

        live = _ordered_live_ids(live_ids)
        live_set = set(live)
        with self._lock:
            registry = self._load()
            current = set(registry.active)
            to_connect = [client_id for client_id in live if client_id not in current]
            to_disconnect = [client_id for client_id in registry.active if client_id not in live_set]
            for client_id in to_connect:
                self._upsert(registry, client_id, "", "")
            registry.active = [client_id for client_id in registry.active if client_id in live_set] + to_connect
            if to_connect or to_disconnect:
                self._logger.debug(
                    "Live roster reconciled: +%d -%d (connected=%s disconnected=%s)",
                    len(to_connect),
                    len(to_disconnect),
                    ", ".join(to_connect) or "-",
                    ", ".join(to_disconnect) or "-",
                )
            return self._commit(registry)

    def apply_field_overrides(
        self,
        fields: Mapping[str, Iterable[Any]],
        disconnect_id: Optional[str] = None,
    ) -> Registry:
        """Replace whole fields from ``fields`` and optionally drop one active id.

        Field names may be canonical (``ids``, ``names`` ...) or the legacy
        aliases (``UUIDs``, ``Active`` ...). Unknown names are stored as
        extra fields. The result is normalised, so ``active`` is clamped to
        the known ids afterwards.
        """

        with self._lock:
            registry = self._load()
            for raw_name, values in fields.items():
                name = canonical_field_name(_clean(raw_name))
                if not name:
                    self._logger.warning("Skipping field override with empty name")
                    continue
                if values is None:
                    self._logger.warning("Skipping field override %s without values", name)
                    continue
                items = ["" if item is None else str(item) for item in values]
                if name == FIELD_IDS:
                    registry.ids = items
                elif name == FIELD_NAMES:
                    registry.names = items
                elif name == FIELD_FAMILY_IDS:
                    registry.family_ids = items
                elif name == FIELD_ACTIVE:
                    registry.active = items
                elif name == ENTRIES_KEY:
                    self._logger.warning("Skipping field override %s; the name is reserved", name)
                else:
                    registry.extras[name] = items
            registry = normalize_registry(registry)
            drop = _clean(disconnect_id)
            if drop:
                registry.active = [value for value in registry.active if value != drop]
            return self._commit(registry)

    # Internal helpers ---------------------------------------------------

    @staticmethod
    def _upsert(registry: Registry, client_id: str, display_name: str, family_id: str) -> None:
        index = registry.index_of(client_id)
        if index < 0:
            registry.ids.append(client_id)
            registry.names.append(display_name or client_id)
            registry.family_ids.append(family_id)
            return
        if display_name:
            registry.names[index] = display_name
        if family_id:
            registry.family_ids[index] = family_id

    def _load(self) -> Registry:
        if self._unsaved is not None:
            return self._unsaved.copy()
        return load_registry(self._path)

    def _commit(self, registry: Registry) -> Registry:
        normalised = normalize_registry(registry)
        if self._log_registry:
            fields = normalised.to_fields()
            for name in CANONICAL_FIELDS:
                self._logger.debug("%s: %s", name, ", ".join(fields[name]))
        if not self._save_enabled:
            self._logger.debug("Roster saving disabled; not writing %s", self._path)
            self._unsaved = normalised.copy()
            return normalised
        self._last_save_ok = save_registry(self._path, normalised)
        if self._last_save_ok:
            self._unsaved = None
        else:
            self._logger.warning("Roster changes kept in memory only; %s is stale", self._path)
            self._unsaved = normalised.copy()
        return normalised
