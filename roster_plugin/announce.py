"""Parse client announce payloads into connect arguments.

Clients introduce themselves with a small JSON object such as::

    {"ip": "192.168.68.115", "uuid": "4567", "headsetName": "Aaron Here"}

Transports frequently hand that object over wrapped in a log line
(``[Announce] Sent key='' payload={...}``), so by default the parser carves
out everything between the first ``{`` and the last ``}`` before decoding.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence


_LOGGER = logging.getLogger("ClientRoster.Announce")

_ID_KEYS = ("uuid", "id", "clientId")
_NAME_KEYS = ("headsetName", "name", "displayName")
_FAMILY_KEYS = ("familyId", "famId", "FamId")


class AnnounceParseError(ValueError):
    """Raised when an announce payload cannot be decoded."""


@dataclass(frozen=True)
class ClientAnnouncement:
    client_id: str
    display_name: str = ""
    family_id: str = ""
    ip: str = ""
    raw_json: str = ""


def _first_text(payload: Mapping[str, Any], keys: Sequence[str]) -> str:
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def extract_json_fragment(text: str) -> Optional[str]:
    open_index = text.find("{")
    close_index = text.rfind("}")
    if open_index < 0 or close_index <= open_index:
        return None
    return text[open_index : close_index + 1]


def parse_announce(text: Optional[str], *, includes_log_prefix: bool = True) -> ClientAnnouncement:
    """Decode an announce payload, raising :class:`AnnounceParseError` on failure."""

    source = text or ""
    if not source.strip():
        raise AnnounceParseError("Empty input.")
    fragment: Optional[str] = source
    if includes_log_prefix:
        fragment = extract_json_fragment(source)
        if fragment is None:
            raise AnnounceParseError("Could not locate JSON braces in input.")
    # Log lines sometimes quote with single quotes.
    candidate = fragment.strip().replace("'", '"')
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise AnnounceParseError(f"Malformed JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise AnnounceParseError("Announce payload must be a JSON object.")
    announcement = ClientAnnouncement(
        client_id=_first_text(payload, _ID_KEYS),
        display_name=_first_text(payload, _NAME_KEYS),
        family_id=_first_text(payload, _FAMILY_KEYS),
        ip=_first_text(payload, ("ip",)),
        raw_json=candidate,
    )
    _LOGGER.debug(
        "Parsed announce: id=%s name=%r family=%r ip=%s",
        announcement.client_id,
        announcement.display_name,
        announcement.family_id,
        announcement.ip,
    )
    return announcement
