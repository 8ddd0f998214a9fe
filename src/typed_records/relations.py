"""Resolution of foreign and many-to-many references."""

from __future__ import annotations

from typing import Any, Callable, Iterable

from typed_records.errors import SchemaError
from typed_records.types import FieldDescriptor, ValueKind, display_string, type_name

LookupFn = Callable[[], list[Any]]


class LookupRegistry:
    """Maps record type names to "fetch all records of this type" callables."""

    def __init__(self) -> None:
        self._lookups: dict[str, LookupFn] = {}

    def register(self, record_type: type | str, lookup: LookupFn) -> None:
        """Register the lookup for a record type, replacing any previous one."""
        self._lookups[type_name(record_type)] = lookup

    def lookup_all(self, record_type: type | str) -> list[Any]:
        """Return every record of a type.

        Raises:
            SchemaError: If no lookup is registered for the type.
        """
        name = type_name(record_type)
        lookup = self._lookups.get(name)
        if lookup is None:
            raise SchemaError(f"Schema not registered: no lookup for type '{name}'")
        return list(lookup())

    def memoized(self) -> LookupRegistry:
        """Return a registry that calls each lookup at most once.

        Meant for the duration of one export or import pass.
        """
        cached = LookupRegistry()
        for name, lookup in self._lookups.items():
            cached.register(name, _once(lookup))
        return cached

    def __contains__(self, record_type: object) -> bool:
        if isinstance(record_type, (str, type)):
            return type_name(record_type) in self._lookups
        return False


def _once(lookup: LookupFn) -> LookupFn:
    result: list[list[Any]] = []

    def call() -> list[Any]:
        if not result:
            result.append(list(lookup()))
        return result[0]

    return call


def parse_id_list(encoded: str | None) -> list[int]:
    """Parse a comma-encoded id list, keeping positive integers only.

    Order and duplicates are preserved.
    """
    ids: list[int] = []
    for token in (encoded or "").split(","):
        token = token.strip()
        if not token:
            continue
        try:
            value = int(token)
        except ValueError:
            continue
        if value > 0:
            ids.append(value)
    return ids


def encode_many_to_many(records: Iterable[Any]) -> str:
    """Join record ids with commas, in the given order."""
    return ",".join(str(r.id) for r in records)


def encode_foreign(record: Any | None) -> int | None:
    """Return the id of the chosen record, or None if nothing was chosen."""
    if record is None:
        return None
    return record.id


class RelationshipResolver:
    """Resolves relationship fields to and from records via lookups."""

    def __init__(self, lookups: LookupRegistry) -> None:
        self.lookups = lookups

    encode_many_to_many = staticmethod(encode_many_to_many)
    encode_foreign = staticmethod(encode_foreign)
    parse_id_list = staticmethod(parse_id_list)

    def _targets(self, descriptor: FieldDescriptor, kind: ValueKind) -> list[Any]:
        if descriptor.kind is not kind or descriptor.target is None:
            raise SchemaError(f"Field '{descriptor.name}' is not a {kind.value} reference")
        return self.lookups.lookup_all(descriptor.target)

    def resolve_foreign(self, descriptor: FieldDescriptor, value: Any) -> Any | None:
        """Return the record a foreign id points at, or None."""
        targets = self._targets(descriptor, ValueKind.FOREIGN)
        if not value:
            return None
        for record in targets:
            if record.id == value:
                return record
        return None

    def resolve_many_to_many(self, descriptor: FieldDescriptor, encoded: str | None) -> list[Any]:
        """Return the records an encoded id list points at, in encoded order.

        Unknown ids are dropped; duplicated ids yield the record again.
        """
        targets = self._targets(descriptor, ValueKind.MANY_TO_MANY)
        by_id: dict[int, Any] = {}
        for record in targets:
            by_id.setdefault(record.id, record)
        return [by_id[i] for i in parse_id_list(encoded) if i in by_id]

    def foreign_by_name(self, descriptor: FieldDescriptor, name: str) -> Any | None:
        """Return the first target record whose name is exactly ``name``."""
        for record in self._targets(descriptor, ValueKind.FOREIGN):
            if record.name == name:
                return record
        return None

    def many_to_many_by_names(self, descriptor: FieldDescriptor, names: str) -> str:
        """Encode a comma-separated list of names as an id list.

        Names are matched exactly after trimming; unmatched names are omitted.
        """
        targets = self._targets(descriptor, ValueKind.MANY_TO_MANY)
        by_name: dict[str, Any] = {}
        for record in targets:
            by_name.setdefault(record.name, record)
        chosen = []
        for n in names.split(","):
            n = n.strip()
            if n and n in by_name:
                chosen.append(by_name[n])
        return encode_many_to_many(chosen)

    def display_value(self, descriptor: FieldDescriptor, value: Any) -> str:
        """Return the display text of a field value, names for relationships."""
        if descriptor.kind is ValueKind.FOREIGN:
            record = self.resolve_foreign(descriptor, value)
            return record.name if record is not None else ""
        if descriptor.kind is ValueKind.MANY_TO_MANY:
            return ",".join(r.name for r in self.resolve_many_to_many(descriptor, value))
        return display_string(value)
