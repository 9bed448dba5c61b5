"""Primary entry point for the client roster plugin.

The host application loads this module and calls :func:`plugin_start3` once,
then forwards connection notifications through the module-level hooks below.
Every hook is a safe no-op while the plugin is not running.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

if __package__:  # pragma: no cover - imported as part of a package
    from .version import __version__ as ROSTER_VERSION, DEV_MODE_ENV_VAR, is_dev_build
    from .roster_plugin.projection import RosterRow
    from .roster_plugin.reconciliation import RosterReconciler
    from .roster_plugin.roster_service import RosterService, RowsListener
    from .roster_plugin.roster_settings import SETTINGS_FILE, RosterSettings, load_roster_settings
else:  # host loads as top-level module
    from version import __version__ as ROSTER_VERSION, DEV_MODE_ENV_VAR, is_dev_build
    from roster_plugin.projection import RosterRow
    from roster_plugin.reconciliation import RosterReconciler
    from roster_plugin.roster_service import RosterService, RowsListener
    from roster_plugin.roster_settings import SETTINGS_FILE, RosterSettings, load_roster_settings

PLUGIN_NAME = "ClientRoster"
PLUGIN_VERSION = ROSTER_VERSION
DEV_BUILD = is_dev_build(ROSTER_VERSION)
LOGGER_NAME = PLUGIN_NAME
LOG_TAG = PLUGIN_NAME

DEFAULT_LOG_LEVEL = logging.DEBUG if DEV_BUILD else logging.INFO


def _configure_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(DEFAULT_LOG_LEVEL)
    if not any(getattr(handler, "_roster_handler", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler._roster_handler = True  # type: ignore[attr-defined]
        formatter = logging.Formatter(f"[%(asctime)s] [{LOG_TAG}] %(message)s", "%H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False
    return logger


LOGGER = _configure_logger()
if DEV_BUILD:
    LOGGER.info(
        "Running client roster dev build (%s); override via %s=0 to force release behaviour.",
        ROSTER_VERSION,
        DEV_MODE_ENV_VAR,
    )


class _PluginRuntime:
    """Owns the roster service for one plugin session."""

    def __init__(self, plugin_dir: str, settings: RosterSettings) -> None:
        self.plugin_dir = Path(plugin_dir)
        self.settings = settings
        self.reconciler = RosterReconciler(
            settings.registry_path,
            save_enabled=settings.save_enabled,
            log_registry=settings.log_registry,
        )
        self.service = RosterService(self.reconciler)
        self._running = False

    def start(self) -> str:
        self._running = True
        registry = self.reconciler.snapshot()
        LOGGER.info(
            "Client roster ready: %d known, %d active (file=%s)",
            len(registry.ids),
            len(registry.active),
            self.settings.registry_path,
        )
        return PLUGIN_NAME

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        LOGGER.info("Client roster stopped")

    @property
    def running(self) -> bool:
        return self._running


# Host hook functions ------------------------------------------------------

_plugin: Optional[_PluginRuntime] = None


def plugin_start3(plugin_dir: str) -> str:
    """Host entrypoint: load settings and start the roster once."""
    global _plugin
    LOGGER.info("Initialising client roster plugin from %s", plugin_dir)
    base_dir = Path(plugin_dir)
    settings = load_roster_settings(base_dir / SETTINGS_FILE, base_dir=base_dir)
    _plugin = _PluginRuntime(plugin_dir, settings)
    return _plugin.start()


def plugin_stop() -> None:
    """Host entrypoint: stop the roster; idempotent if not running."""
    global _plugin
    if _plugin:
        try:
            _plugin.stop()
        finally:
            _plugin = None


def _service() -> Optional[RosterService]:
    if _plugin is None or not _plugin.running:
        LOGGER.debug("Roster hook called while plugin is not running")
        return None
    return _plugin.service


def client_connected(client_id: str, display_name: Optional[str] = None, family_id: Optional[str] = None) -> None:
    service = _service()
    if service is not None:
        service.on_connect(client_id, display_name, family_id)


def client_disconnected(client_id: str) -> None:
    service = _service()
    if service is not None:
        service.on_disconnect(client_id)


def live_roster(client_ids: Iterable[str]) -> None:
    service = _service()
    if service is not None:
        service.on_live_roster_snapshot(client_ids)


def announce_received(text: str, includes_log_prefix: bool = True) -> bool:
    service = _service()
    if service is None:
        return False
    return service.on_announce(text, includes_log_prefix=includes_log_prefix)


def roster_rows() -> List[RosterRow]:
    service = _service()
    if service is None:
        return []
    return service.get_ordered_rows()


def roster_active_count() -> int:
    service = _service()
    if service is None:
        return 0
    return service.active_count()


def register_roster_listener(listener: RowsListener) -> bool:
    service = _service()
    if service is None:
        return False
    service.register_listener(listener)
    return True


def unregister_roster_listener(listener: RowsListener) -> None:
    service = _service()
    if service is not None:
        service.unregister_listener(listener)


# Metadata expected by some plugin loaders
name = PLUGIN_NAME
plugin_name = PLUGIN_NAME
version = PLUGIN_VERSION
