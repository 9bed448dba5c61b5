"""Event-facing facade that keeps presentation listeners in sync with the roster."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, List, Optional

from roster_plugin.announce import AnnounceParseError, parse_announce
from roster_plugin.projection import RosterRow, active_count, project_rows, rows_changed
from roster_plugin.reconciliation import RosterReconciler
from roster_plugin.registry_store import Registry

RowsListener = Callable[[List[RosterRow]], None]

LOGGER = logging.getLogger("ClientRoster.Service")


class RosterService:
    """Route connection notifications into the reconciler and publish rows.

    Notification sources call the ``on_*`` methods; presentation layers
    either poll :meth:`get_ordered_rows` or register a listener that receives
    the new rows whenever a mutation changes them.
    """

    def __init__(self, reconciler: RosterReconciler, *, logger: Optional[logging.Logger] = None) -> None:
        self._reconciler = reconciler
        self._logger = logger or LOGGER
        self._listeners: list[RowsListener] = []
        self._listener_lock = threading.Lock()
        self._last_rows: Optional[List[RosterRow]] = None

    @property
    def reconciler(self) -> RosterReconciler:
        return self._reconciler

    # Inbound events -----------------------------------------------------

    def on_connect(self, client_id: Optional[str], display_name: Optional[str] = None, family_id: Optional[str] = None) -> None:
        self._publish(self._reconciler.connect(client_id, display_name, family_id))

    def on_disconnect(self, client_id: Optional[str]) -> None:
        self._publish(self._reconciler.disconnect(client_id))

    def on_live_roster_snapshot(self, client_ids: Iterable[str]) -> None:
        self._publish(self._reconciler.reconcile_live_roster(client_ids))

    def on_announce(self, text: Optional[str], *, includes_log_prefix: bool = True) -> bool:
        """Treat an announce payload as a connect; returns False when it is unusable."""

        try:
            announcement = parse_announce(text, includes_log_prefix=includes_log_prefix)
        except AnnounceParseError as exc:
            self._logger.warning("Ignoring announce payload: %s", exc)
            return False
        if not announcement.client_id:
            self._logger.warning("Ignoring announce payload without a client id: %s", announcement.raw_json)
            return False
        self.on_connect(announcement.client_id, announcement.display_name, announcement.family_id)
        return True

    # Outbound projection ------------------------------------------------

    def get_ordered_rows(self) -> List[RosterRow]:
        return project_rows(self._reconciler.snapshot())

    def active_count(self) -> int:
        return active_count(self._reconciler.snapshot())

    def register_listener(self, listener: RowsListener) -> None:
        with self._listener_lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unregister_listener(self, listener: RowsListener) -> None:
        with self._listener_lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    # Internal helpers ---------------------------------------------------

    def _publish(self, registry: Registry) -> None:
        rows = project_rows(registry)
        with self._listener_lock:
            if not rows_changed(self._last_rows, rows):
                return
            self._last_rows = list(rows)
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(list(rows))
            except Exception as exc:
                self._logger.warning("Roster listener %r raised error: %s", listener, exc)
