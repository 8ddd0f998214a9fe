"""Single-field search across all stored records of a type."""

from __future__ import annotations

import logging
from typing import Any, Callable

from typed_records.errors import CoercionError
from typed_records.mutation import coerce_edit
from typed_records.schema import get_field
from typed_records.storage import DataStore
from typed_records.types import FieldDescriptor, ValueKind, display_string

logger = logging.getLogger(__name__)

NUMBER_TOLERANCE = 0.0001


def _foreign_id(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if hasattr(value, "id"):
        return value.id
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _predicate(descriptor: FieldDescriptor, value: Any) -> Callable[[Any], bool] | None:
    """Return the match test for a search, or None to leave results unfiltered."""
    name = descriptor.name
    kind = descriptor.kind

    if kind is ValueKind.FOREIGN:
        target = _foreign_id(value)
        if target is None:
            return None
        return lambda r: getattr(r, name) == target

    if descriptor.python_type is str:
        needle = display_string(value).casefold()
        return lambda r: needle in display_string(getattr(r, name)).casefold()

    if kind.is_numeric:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None

        def near(r: Any) -> bool:
            v = getattr(r, name)
            return v is not None and abs(float(v) - number) < NUMBER_TOLERANCE

        return near

    if kind in (ValueKind.BOOLEAN, ValueKind.ENUMERATION):
        try:
            expected = coerce_edit(descriptor, value)
        except CoercionError:
            return None
        return lambda r: getattr(r, name) == expected

    return None


def search_records(store: DataStore, record_type: type, field_name: str, value: Any) -> list[Any]:
    """Return the stored records of a type whose field matches a value.

    Text fields match by case-insensitive substring, numbers within
    ``NUMBER_TOLERANCE``, booleans and enumerations by equality and foreign
    fields by the chosen record or its id. A value that does not parse for
    the field, or a field kind without a search rule, returns every record.

    Raises:
        SchemaError: If the type has no such field.
    """
    descriptor = get_field(record_type, field_name)
    records = store.scan(record_type)
    predicate = _predicate(descriptor, value)
    if predicate is None:
        logger.debug("Search on %s=%r is unconstrained", field_name, value)
        return records
    return [r for r in records if predicate(r)]
