"""Type definitions for the typed_records library."""

from __future__ import annotations

import uuid
from dataclasses import MISSING, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable

# Key under which field markers are stored in dataclass field metadata
MARKER_KEY = "typed_records"

CREATED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"


class ValueKind(Enum):
    """Closed set of field kinds the engine knows how to handle."""

    IDENTIFIER = "identifier"
    FROZEN_TEXT = "frozen_text"
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUMERATION = "enumeration"
    FOREIGN = "foreign"
    MANY_TO_MANY = "many_to_many"
    FILE = "file"
    UNCLASSIFIED = "unclassified"

    @property
    def is_relationship(self) -> bool:
        """Return whether values of this kind point at other records."""
        return self in (ValueKind.FOREIGN, ValueKind.MANY_TO_MANY)

    @property
    def is_numeric(self) -> bool:
        """Return whether values of this kind compare as numbers."""
        return self in (ValueKind.NUMBER, ValueKind.IDENTIFIER, ValueKind.FOREIGN)

    @property
    def is_textual(self) -> bool:
        """Return whether values of this kind compare as text."""
        return self in (
            ValueKind.TEXT,
            ValueKind.FROZEN_TEXT,
            ValueKind.FILE,
            ValueKind.MANY_TO_MANY,
        )


def type_name(record_type: type | str) -> str:
    """Return the registry name of a record class (or pass a name through)."""
    if isinstance(record_type, str):
        return record_type
    return record_type.__name__


def display_string(value: Any) -> str:
    """Return the display form of a raw field value."""
    if value is None:
        return ""
    if isinstance(value, Enum):
        return value.name
    return str(value)


@dataclass(frozen=True)
class FieldMarker:
    """Relationship/behavior flags declared on a record field."""

    primary_key: bool = False
    frozen: bool = False
    unique: bool = False
    file: bool = False
    foreign: str | None = None
    many_to_many: str | None = None


def column(
    default: Any = MISSING,
    *,
    default_factory: Callable[[], Any] | Any = MISSING,
    primary_key: bool = False,
    frozen: bool = False,
    unique: bool = False,
    file: bool = False,
    foreign: type | str | None = None,
    many_to_many: type | str | None = None,
) -> Any:
    """Declare a dataclass field carrying engine markers.

    Args:
        default: Default value for the field.
        default_factory: Zero-argument callable producing the default.
        primary_key: Field is the record identifier (never written).
        frozen: Field is set at creation and shown read-only afterwards.
        unique: Field is not copied when a record is duplicated.
        file: Field holds a path/handle rather than ordinary text.
        foreign: Target record type of a single-record reference.
        many_to_many: Target record type of a comma-encoded id list.

    Returns:
        A dataclasses.Field to assign in the class body.
    """
    marker = FieldMarker(
        primary_key=primary_key,
        frozen=frozen,
        unique=unique,
        file=file,
        foreign=type_name(foreign) if foreign is not None else None,
        many_to_many=type_name(many_to_many) if many_to_many is not None else None,
    )
    kwargs: dict[str, Any] = {"metadata": {MARKER_KEY: marker}}
    if default is not MISSING:
        kwargs["default"] = default
    if default_factory is not MISSING:
        kwargs["default_factory"] = default_factory
    return field(**kwargs)


def primary_key(default: int = 0) -> Any:
    """Declare the identifier field."""
    return column(default, primary_key=True)


def frozen(default: Any = MISSING, *, default_factory: Any = MISSING) -> Any:
    """Declare a field that is only set at creation."""
    return column(default, default_factory=default_factory, frozen=True)


def unique(default: Any = MISSING, *, default_factory: Any = MISSING) -> Any:
    """Declare a field that duplication must not copy."""
    return column(default, default_factory=default_factory, unique=True)


def file_path(default: str = "") -> Any:
    """Declare a field holding a file path or handle."""
    return column(default, file=True)


def foreign(target: type | str, default: int | None = None) -> Any:
    """Declare a reference to exactly one record of ``target``."""
    return column(default, foreign=target)


def many_to_many(target: type | str, default: str = "") -> Any:
    """Declare a comma-encoded id list of ``target`` records."""
    return column(default, many_to_many=target)


@dataclass(frozen=True)
class FieldDescriptor:
    """Derived metadata for a single record field."""

    name: str
    kind: ValueKind
    python_type: Any = None
    frozen: bool = False
    identifier: bool = False
    unique: bool = False
    target: str | None = None  # relationship target type name
    choices: type[Enum] | None = None  # enum class for ENUMERATION fields
    writable: bool = True  # False for read-only properties (export only)

    @property
    def editable(self) -> bool:
        """Return whether an editor may assign this field."""
        return self.writable and self.kind not in (
            ValueKind.IDENTIFIER,
            ValueKind.FROZEN_TEXT,
            ValueKind.UNCLASSIFIED,
        )

    @property
    def is_relationship(self) -> bool:
        """Return whether this field points at records of another type."""
        return self.kind.is_relationship


def _now() -> str:
    return datetime.now().strftime(CREATED_AT_FORMAT)


def _new_name() -> str:
    return str(uuid.uuid4())


@dataclass
class Record:
    """Base class for every record type managed by the engine.

    Subclasses are dataclasses whose fields all carry defaults, so that a
    record can always be instantiated without arguments.
    """

    id: int = primary_key()
    name: str = field(default_factory=_new_name)
    description: str = "Default Description"
    created_at: str = frozen(default_factory=_now)


@dataclass
class AuditEntry(Record):
    """Immutable log row recording who did what to which record type."""

    actor: str = frozen("Unknown")
    action: str = frozen("")
    record_type: str = frozen("")

    @classmethod
    def for_action(cls, actor: str | None, action: str, record_type: type | str) -> AuditEntry:
        """Build an entry for ``action`` performed by ``actor`` on ``record_type``."""
        actor = actor or "Unknown"
        name = type_name(record_type)
        return cls(
            name=f"{actor} - {action}",
            description=name,
            actor=actor,
            action=action,
            record_type=name,
        )
