"""Data stores for records."""

from __future__ import annotations

import copy
import json
import logging
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from typed_records.schema import derive
from typed_records.types import ValueKind, type_name

if TYPE_CHECKING:
    from typed_records.schema import TypeRegistry

logger = logging.getLogger(__name__)


@runtime_checkable
class DataStore(Protocol):
    """Typed table operations the engine needs from a storage backend.

    The store assigns identifiers on insert and serializes its own
    operations; the engine issues no transaction boundaries wider than one
    record.
    """

    def scan(self, record_type: type | str) -> list[Any]:
        """Return every stored record of a type."""
        ...

    def insert(self, record: Any) -> None:
        """Store a new record, assigning its ``id``."""
        ...

    def update(self, record: Any) -> None:
        """Overwrite the stored record with the same ``id``."""
        ...

    def delete(self, record: Any) -> None:
        """Remove the stored record with the same ``id``."""
        ...

    def delete_all(self, record_type: type | str) -> None:
        """Remove every stored record of a type."""
        ...


class _Table:
    """Records of one type keyed by id."""

    def __init__(self) -> None:
        self.rows: dict[int, Any] = {}
        self.next_id = 1


class MemoryStore:
    """In-process store keeping private copies of records.

    Records handed out by ``scan`` are copies, so changes made to them are
    only visible to other readers after ``update``.
    """

    def __init__(self) -> None:
        self._tables: dict[str, _Table] = {}

    def _table(self, name: str) -> _Table:
        table = self._tables.get(name)
        if table is None:
            table = self._load_table(name)
            self._tables[name] = table
        return table

    def _load_table(self, name: str) -> _Table:
        return _Table()

    def _commit(self, name: str) -> None:
        """Persist a table after a change. No-op in memory."""

    def scan(self, record_type: type | str) -> list[Any]:
        table = self._table(type_name(record_type))
        return [copy.copy(r) for _, r in sorted(table.rows.items())]

    def insert(self, record: Any) -> None:
        name = type_name(type(record))
        table = self._table(name)
        if not record.id or record.id in table.rows:
            record.id = table.next_id
        table.next_id = max(table.next_id, record.id + 1)
        table.rows[record.id] = copy.copy(record)
        self._commit(name)

    def update(self, record: Any) -> None:
        name = type_name(type(record))
        table = self._table(name)
        if record.id not in table.rows:
            raise KeyError(f"No {name} record with id {record.id}")
        table.rows[record.id] = copy.copy(record)
        self._commit(name)

    def delete(self, record: Any) -> None:
        name = type_name(type(record))
        table = self._table(name)
        if table.rows.pop(record.id, None) is not None:
            self._commit(name)

    def delete_all(self, record_type: type | str) -> None:
        name = type_name(record_type)
        self._table(name).rows.clear()
        self._commit(name)

    def close(self) -> None:
        """Drop all cached tables."""
        self._tables.clear()

    def __enter__(self) -> MemoryStore:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class JsonStore(MemoryStore):
    """Store persisting one JSON file per record type in a directory.

    Each ``<Type>.json`` holds ``{"next_id": n, "records": [...]}``; the
    directory also gets a ``_metadata.json`` describing the registered
    schemas. Every change rewrites the affected type's file.
    """

    METADATA_FILE = "_metadata.json"

    def __init__(self, data_dir: Path | str, registry: TypeRegistry) -> None:
        """Initialize the store.

        Args:
            data_dir: Directory holding the table files; created if missing.
            registry: Registry used to rebuild records from their files.
        """
        super().__init__()
        self.data_dir = Path(data_dir)
        self.registry = registry
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._save_metadata()

    def _save_metadata(self) -> None:
        """Save schema metadata to disk."""
        types: dict[str, Any] = {}
        for name in self.registry.list_types():
            fields = []
            for d in derive(self.registry.get_or_raise(name)):
                entry: dict[str, Any] = {"name": d.name, "kind": d.kind.value}
                if d.target is not None:
                    entry["target"] = d.target
                if d.choices is not None:
                    entry["choices"] = [m.name for m in d.choices]
                fields.append(entry)
            types[name] = {"fields": fields}
        with open(self.data_dir / self.METADATA_FILE, "w") as f:
            json.dump({"types": types}, f, indent=2)

    def _path(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"

    def _load_table(self, name: str) -> _Table:
        table = _Table()
        path = self._path(name)
        if not path.exists():
            return table
        record_type = self.registry.get_or_raise(name)
        with open(path) as f:
            data = json.load(f)
        for row in data.get("records", []):
            record = self._deserialize(record_type, row)
            table.rows[record.id] = record
        table.next_id = max([data.get("next_id", 1), *(i + 1 for i in table.rows)])
        logger.debug("Loaded %d %s records from %s", len(table.rows), name, path)
        return table

    def _commit(self, name: str) -> None:
        table = self._tables[name]
        record_type = self.registry.get_or_raise(name)
        data = {
            "next_id": table.next_id,
            "records": [self._serialize(record_type, r) for _, r in sorted(table.rows.items())],
        }
        with open(self._path(name), "w") as f:
            json.dump(data, f, indent=2)

    def _serialize(self, record_type: type, record: Any) -> dict[str, Any]:
        """Serialize a record to a JSON-compatible dict."""
        row: dict[str, Any] = {}
        for d in derive(record_type):
            value = getattr(record, d.name)
            if isinstance(value, Enum):
                value = value.name
            row[d.name] = value
        return row

    def _deserialize(self, record_type: type, row: dict[str, Any]) -> Any:
        """Rebuild a record from its stored dict; unknown keys are ignored."""
        record = record_type()
        for d in derive(record_type):
            if d.name not in row:
                continue
            value = row[d.name]
            if d.kind is ValueKind.ENUMERATION and d.choices is not None and value is not None:
                value = d.choices[value]
            setattr(record, d.name, value)
        return record
