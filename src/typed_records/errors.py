"""Error types raised by the record engine."""

from __future__ import annotations

from typing import Any


class RecordEngineError(Exception):
    """Base class for all record engine errors."""


class SchemaError(RecordEngineError, KeyError):
    """A field, record type or lookup is not known to the engine."""

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0]) if self.args else ""


class CoercionError(RecordEngineError, ValueError):
    """An edited value could not be converted to its field's kind."""

    def __init__(self, field_name: str, value: Any, reason: str = "") -> None:
        self.field_name = field_name
        self.value = value
        message = f"Cannot convert {value!r} for field '{field_name}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ExportError(RecordEngineError):
    """Export was requested for a record type with no stored records."""


class CsvImportError(RecordEngineError, ValueError):
    """Import text is empty or has no data rows."""
