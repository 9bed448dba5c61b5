from __future__ import annotations

import logging

import pytest


@pytest.fixture(autouse=True)
def _propagate_roster_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    # load.py stops propagation at the plugin logger; caplog listens on root.
    monkeypatch.setattr(logging.getLogger("ClientRoster"), "propagate", True)
