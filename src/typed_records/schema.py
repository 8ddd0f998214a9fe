"""Field schema derivation and the record type registry."""

from __future__ import annotations

import dataclasses
from enum import Enum
from functools import lru_cache
from types import UnionType
from typing import Any, Union, get_args, get_origin, get_type_hints

from typed_records.errors import SchemaError
from typed_records.types import (
    MARKER_KEY,
    AuditEntry,
    FieldDescriptor,
    FieldMarker,
    ValueKind,
    type_name,
)

_NO_MARKER = FieldMarker()


def _unwrap_optional(python_type: Any) -> Any:
    """Return X for Optional[X] / X | None, otherwise the type unchanged."""
    origin = get_origin(python_type)
    if origin is Union or origin is UnionType:
        args = [a for a in get_args(python_type) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return python_type


def classify(python_type: Any, marker: FieldMarker = _NO_MARKER) -> ValueKind:
    """Classify a field by its markers and declared type.

    Markers win over the declared type, in the order identifier/frozen,
    many-to-many, foreign, file. Then text, number, enumeration, boolean.
    """
    if marker.primary_key:
        return ValueKind.IDENTIFIER
    if marker.frozen:
        return ValueKind.FROZEN_TEXT
    if marker.many_to_many is not None:
        return ValueKind.MANY_TO_MANY
    if marker.foreign is not None:
        return ValueKind.FOREIGN
    if marker.file:
        return ValueKind.FILE

    base = _unwrap_optional(python_type)
    if base is str:
        return ValueKind.TEXT
    # bool subclasses int, so compare by identity
    if base is float or base is int:
        return ValueKind.NUMBER
    if isinstance(base, type) and issubclass(base, Enum):
        return ValueKind.ENUMERATION
    if base is bool:
        return ValueKind.BOOLEAN
    return ValueKind.UNCLASSIFIED


def describe(name: str, python_type: Any, marker: FieldMarker = _NO_MARKER, writable: bool = True) -> FieldDescriptor:
    """Build the descriptor for one field."""
    kind = classify(python_type, marker)
    base = _unwrap_optional(python_type)
    return FieldDescriptor(
        name=name,
        kind=kind,
        python_type=base,
        frozen=marker.frozen,
        identifier=marker.primary_key,
        unique=marker.unique,
        target=marker.many_to_many or marker.foreign,
        choices=base if kind is ValueKind.ENUMERATION else None,
        writable=writable,
    )


@lru_cache(maxsize=None)
def derive(record_type: type) -> tuple[FieldDescriptor, ...]:
    """Derive the editable field schema of a record type.

    A class may declare its schema explicitly through a ``__record_fields__``
    sequence of FieldDescriptor; otherwise it must be a dataclass and one
    descriptor is derived per public field, in declaration order.

    Raises:
        SchemaError: If the type is not a dataclass or its annotations
            cannot be resolved.
    """
    explicit = getattr(record_type, "__record_fields__", None)
    if explicit is not None:
        descriptors = tuple(explicit)
        for d in descriptors:
            if not isinstance(d, FieldDescriptor):
                raise SchemaError(
                    f"__record_fields__ of '{type_name(record_type)}' must contain FieldDescriptor items"
                )
        return descriptors

    if not (isinstance(record_type, type) and dataclasses.is_dataclass(record_type)):
        raise SchemaError(f"Record type '{record_type!r}' is not a dataclass")

    try:
        hints = get_type_hints(record_type)
    except (NameError, TypeError) as e:
        raise SchemaError(f"Cannot resolve annotations of '{type_name(record_type)}': {e}") from e

    descriptors_list: list[FieldDescriptor] = []
    for f in dataclasses.fields(record_type):
        if f.name.startswith("_"):
            continue
        marker = f.metadata.get(MARKER_KEY, _NO_MARKER)
        descriptors_list.append(describe(f.name, hints.get(f.name, Any), marker))
    return tuple(descriptors_list)


def _property_type(prop: property) -> Any:
    try:
        return get_type_hints(prop.fget).get("return", Any)
    except (NameError, TypeError):
        return Any


@lru_cache(maxsize=None)
def export_fields(record_type: type) -> tuple[FieldDescriptor, ...]:
    """Return the editable schema plus public read-only properties.

    Read-only properties never take part in editing or import but are
    written by export and may be sorted on.
    """
    descriptors = list(derive(record_type))
    seen = {d.name for d in descriptors}
    for klass in reversed(record_type.__mro__):
        for attr_name, attr in vars(klass).items():
            if attr_name.startswith("_") or attr_name in seen:
                continue
            if isinstance(attr, property) and attr.fset is None:
                descriptors.append(describe(attr_name, _property_type(attr), writable=False))
                seen.add(attr_name)
    return tuple(descriptors)


def field_map(record_type: type) -> dict[str, FieldDescriptor]:
    """Map field names to descriptors, read-only properties included."""
    return {d.name: d for d in export_fields(record_type)}


def get_field(record_type: type, name: str) -> FieldDescriptor:
    """Get a field descriptor by name.

    Raises:
        SchemaError: If the type has no such field.
    """
    descriptor = field_map(record_type).get(name)
    if descriptor is None:
        raise SchemaError(f"Field '{name}' not found in type '{type_name(record_type)}'")
    return descriptor


class TypeRegistry:
    """Registry of all record types known to an application."""

    def __init__(self) -> None:
        self._types: dict[str, type] = {}
        self._register_builtins()

    def _register_builtins(self) -> None:
        """Register the record types the engine itself writes."""
        self.register(AuditEntry)

    def register(self, record_type: type) -> type:
        """Register a record type; usable as a class decorator.

        The schema is derived immediately so that a malformed type fails at
        registration rather than on first use.
        """
        name = type_name(record_type)
        existing = self._types.get(name)
        if existing is not None and existing is not record_type:
            raise ValueError(f"Type '{name}' is already defined")
        derive(record_type)
        self._types[name] = record_type
        return record_type

    def get(self, name: str) -> type | None:
        """Get a record type by name."""
        return self._types.get(name)

    def get_or_raise(self, name: str) -> type:
        """Get a record type by name, raising if not found."""
        record_type = self._types.get(name)
        if record_type is None:
            raise SchemaError(f"Type '{name}' not found")
        return record_type

    def resolve(self, record_type: type | str) -> type:
        """Return the registered class for a class or a type name."""
        return self.get_or_raise(type_name(record_type))

    def fields(self, record_type: type | str) -> tuple[FieldDescriptor, ...]:
        """Return the editable schema of a registered type."""
        return derive(self.resolve(record_type))

    def list_types(self) -> list[str]:
        """List all registered type names."""
        return list(self._types.keys())

    def validate(self) -> None:
        """Check that every relationship targets a registered type.

        Raises:
            SchemaError: Naming the first dangling relationship.
        """
        for name, record_type in self._types.items():
            for d in derive(record_type):
                if d.target is not None and d.target not in self._types:
                    raise SchemaError(
                        f"Field '{name}.{d.name}' references unregistered type '{d.target}'"
                    )

    def __contains__(self, record_type: object) -> bool:
        if isinstance(record_type, (str, type)):
            return type_name(record_type) in self._types
        return False
