"""
Three-state field updates.

An edit to an optional field can mean "leave it", "clear it" or "set it to
X".  ``None`` cannot express all three, so edits are expressed as one of:

    UNCHANGED        -- field untouched (the default)
    CLEAR            -- stored value removed
    Set(value)       -- stored value replaced

Usage:
    LedgerEntryChanges(note=Set("rent"), supplier=CLEAR)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class _Marker(Enum):
    UNCHANGED = "unchanged"
    CLEAR = "clear"

    def __repr__(self) -> str:
        return self.name


UNCHANGED = _Marker.UNCHANGED
CLEAR = _Marker.CLEAR


@dataclass(frozen=True)
class Set(Generic[T]):
    value: T


FieldUpdate = Union[Set[T], _Marker]


def is_unchanged(update: Any) -> bool:
    return update is UNCHANGED


def as_update(value: Any) -> FieldUpdate:
    """Lift a loose value into a FieldUpdate.

    Existing updates pass through; ``None`` means unchanged.  Anything else
    is wrapped in ``Set``.
    """
    if isinstance(value, (Set, _Marker)):
        return value
    if value is None:
        return UNCHANGED
    return Set(value)
