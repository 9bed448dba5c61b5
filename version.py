"""Release identifier and dev-build detection for the client roster plugin."""
from __future__ import annotations

import os
import re
from typing import Any, Optional

__all__ = ["__version__", "is_dev_build", "parse_flag", "DEV_MODE_ENV_VAR"]

__version__ = "0.3.0"
DEV_MODE_ENV_VAR = "CLIENT_ROSTER_DEV_MODE"

_FLAG_TOKENS = {
    "1": True,
    "true": True,
    "yes": True,
    "on": True,
    "0": False,
    "false": False,
    "no": False,
    "off": False,
}
# "1.0-dev", "1.0.dev2", "dev-1.0"
_DEV_MARKER = re.compile(r"(?:^|[.-])dev[0-9]*(?:$|[.-])")


def parse_flag(value: Any) -> Optional[bool]:
    """Map an on/off word such as ``"yes"`` or ``"0"`` to a bool, else None."""

    if not isinstance(value, str):
        return None
    return _FLAG_TOKENS.get(value.strip().lower())


def is_dev_build(version: Optional[str] = None) -> bool:
    """Return True when the build should log at DEBUG by default.

    ``CLIENT_ROSTER_DEV_MODE`` wins when it holds a recognised flag word.
    """

    env_override = parse_flag(os.getenv(DEV_MODE_ENV_VAR))
    if env_override is not None:
        return env_override
    identifier = (version or __version__ or "").strip().lower()
    return bool(identifier) and _DEV_MARKER.search(identifier) is not None
