"""Sorted, read-only view of the roster for presentation layers."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from roster_plugin.registry_store import Registry

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")
_DIGIT_PATTERN = re.compile(r"[0-9]")


@dataclass(frozen=True)
class RosterRow:
    id: str
    display_name: str
    family_id: str
    active: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "familyId": self.family_id,
            "active": self.active,
        }


def family_sort_value(family_id: Optional[str]) -> Optional[int]:
    """Return the numeric ordering value for a family code.

    ``"7"`` sorts as 7 and ``"FAM-12b"`` as 12 (its digits joined). Codes
    without any digit have no value and return None.
    """

    text = (family_id or "").strip()
    if _INTEGER_PATTERN.fullmatch(text):
        return int(text)
    digits = "".join(_DIGIT_PATTERN.findall(text))
    if digits:
        return int(digits)
    return None


def _row_sort_key(row: RosterRow) -> Tuple[bool, bool, int, str]:
    value = family_sort_value(row.family_id)
    # Codes without a value sort after every numeric one, however large.
    return (not row.active, value is None, value or 0, row.id)


def project_rows(registry: Registry, active: Optional[Iterable[str]] = None) -> List[RosterRow]:
    """Return one row per known client: active first, then family code, then id."""

    active_set = set(registry.active if active is None else active)
    rows = []
    for index, client_id in enumerate(registry.ids):
        name = registry.names[index] if index < len(registry.names) else ""
        family = registry.family_ids[index] if index < len(registry.family_ids) else ""
        rows.append(
            RosterRow(
                id=client_id,
                display_name=name or client_id,
                family_id=family,
                active=client_id in active_set,
            )
        )
    rows.sort(key=_row_sort_key)
    return rows


def active_count(registry: Registry) -> int:
    return len(registry.active)


def rows_changed(previous: Optional[Sequence[RosterRow]], current: Sequence[RosterRow]) -> bool:
    if previous is None:
        return True
    return list(previous) != list(current)
