"""Create/update/delete/duplicate/clear-all operations with audit logging."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from typed_records.errors import CoercionError
from typed_records.relations import RelationshipResolver, encode_foreign, encode_many_to_many
from typed_records.schema import derive, get_field
from typed_records.storage import DataStore
from typed_records.types import AuditEntry, FieldDescriptor, ValueKind, type_name

logger = logging.getLogger(__name__)


def coerce_edit(descriptor: FieldDescriptor, value: Any) -> Any:
    """Convert an editor value to the stored form of a field.

    Raises:
        CoercionError: If the value does not fit the field's kind.
    """
    kind = descriptor.kind
    name = descriptor.name

    if kind in (ValueKind.TEXT, ValueKind.FILE):
        return "" if value is None else str(value)

    if kind is ValueKind.NUMBER:
        if isinstance(value, bool):
            raise CoercionError(name, value, "expected a number")
        if descriptor.python_type is int:
            # exact for values beyond float precision
            if isinstance(value, int):
                return value
            try:
                return int(str(value).strip())
            except ValueError:
                pass
        if isinstance(value, (int, float)):
            number = float(value)
        else:
            try:
                number = float(str(value).strip())
            except ValueError:
                raise CoercionError(name, value, "not a number") from None
        if descriptor.python_type is int:
            if not number.is_integer():
                raise CoercionError(name, value, "expected a whole number")
            return int(number)
        return number

    if kind is ValueKind.BOOLEAN:
        if isinstance(value, str):
            text = value.strip().lower()
            if text not in ("true", "false"):
                raise CoercionError(name, value, "expected true or false")
            return text == "true"
        return bool(value)

    if kind is ValueKind.ENUMERATION:
        choices = descriptor.choices
        if choices is not None:
            if isinstance(value, choices):
                return value
            if isinstance(value, str) and value in choices.__members__:
                return choices[value]
        raise CoercionError(name, value, "not one of the permitted choices")

    if kind is ValueKind.FOREIGN:
        if value is None or isinstance(value, int):
            return value
        return encode_foreign(value)

    if kind is ValueKind.MANY_TO_MANY:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return encode_many_to_many(value)

    raise CoercionError(name, value, f"{kind.value} fields are not editable")


class RecordMutator:
    """Runs mutations against a data store and records audit entries.

    Every operation except ``duplicate`` inserts one AuditEntry naming the
    acting user after the mutation succeeds.
    """

    def __init__(
        self,
        store: DataStore,
        resolver: RelationshipResolver,
        actor: str | None = None,
    ) -> None:
        """Initialize a mutator.

        Args:
            store: Data store to mutate.
            resolver: Relationship resolver (used by callers that edit
                relationship fields through this mutator).
            actor: Name of the acting user; None records "Unknown".
        """
        self.store = store
        self.resolver = resolver
        self.actor = actor

    def _audit(self, action: str, record_type: type | str) -> AuditEntry:
        entry = AuditEntry.for_action(self.actor, action, record_type)
        self.store.insert(entry)
        logger.info("%s on %s", entry.name, entry.record_type)
        return entry

    def create(self, record_type: type) -> Any:
        """Insert a new default-valued record and return it."""
        record = record_type()
        self.store.insert(record)
        self._audit(f"Add {record.name}", record_type)
        return record

    def update(self, record: Any, edits: Mapping[str, Any]) -> None:
        """Apply edited field values to a record and persist it.

        All values are converted before any is assigned, so a bad value
        leaves the record untouched. Identifier, frozen, read-only and
        unclassified fields are ignored even when present in ``edits``.

        Raises:
            SchemaError: If ``edits`` names a field the type does not have.
            CoercionError: If a value does not fit its field.
        """
        record_type = type(record)
        staged: dict[str, Any] = {}
        for name, value in edits.items():
            descriptor = get_field(record_type, name)
            if not descriptor.editable:
                continue
            staged[name] = coerce_edit(descriptor, value)

        previous = {name: getattr(record, name) for name in staged}
        for name, value in staged.items():
            setattr(record, name, value)
        try:
            self.store.update(record)
        except Exception:
            for name, value in previous.items():
                setattr(record, name, value)
            raise
        self._audit(f"Save {record.name}", record_type)

    def delete(self, record: Any) -> None:
        """Remove a record. Confirmation is the caller's responsibility."""
        self.store.delete(record)
        self._audit(f"Delete {record.name}", type(record))

    def clear_all(self, record_type: type | str) -> None:
        """Remove every record of a type, logging a single audit entry."""
        self.store.delete_all(record_type)
        self._audit("ClearAll", record_type)

    def duplicate(self, record: Any) -> Any:
        """Insert a copy of a record and return it.

        Identifier and unique fields keep the new record's defaults; all
        other writable fields, frozen ones included, are copied. No audit
        entry is written.
        """
        record_type = type(record)
        copy_ = record_type()
        for d in derive(record_type):
            if d.identifier or d.unique:
                continue
            setattr(copy_, d.name, getattr(record, d.name))
        self.store.insert(copy_)
        logger.info("Duplicated %s %s as id %s", type_name(record_type), record.id, copy_.id)
        return copy_
