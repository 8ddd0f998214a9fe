"""Multi-key sort specifications over records."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Sequence

from typed_records.schema import get_field

Sorter = Callable[[Iterable[Any]], list[Any]]


@dataclass(frozen=True)
class SortKey:
    """One (field, direction) pair of a sort specification."""

    field: str
    descending: bool = False

    @classmethod
    def from_direction(cls, field: str, direction: str) -> SortKey:
        """Build a key from an editor direction, ``ASC`` or ``DESC``."""
        d = direction.strip().upper()
        if d not in ("ASC", "DESC"):
            raise ValueError(f"Unknown sort direction '{direction}'")
        return cls(field=field, descending=d == "DESC")


def _sort_value(value: Any) -> tuple:
    """Make a raw field value sortable; None sorts before everything."""
    if value is None:
        return (0, 0)
    if isinstance(value, Enum):
        return (1, value.value)
    return (1, value)


def build_sorter(record_type: type, keys: Sequence[SortKey]) -> Sorter:
    """Build a stable multi-key sort over records of ``record_type``.

    The first key is primary; each later key only orders records that are
    equal under all earlier keys. An empty specification keeps input order.
    Relationship and enumeration fields sort by their stored value.

    Raises:
        SchemaError: If a key names a field the type does not have.
    """
    for key in keys:
        get_field(record_type, key.field)

    if not keys:
        return lambda records: list(records)

    def sort(records: Iterable[Any]) -> list[Any]:
        result = list(records)
        # least significant key first
        for key in reversed(keys):
            result.sort(
                key=lambda r, name=key.field: _sort_value(getattr(r, name, None)),
                reverse=key.descending,
            )
        return result

    return sort
