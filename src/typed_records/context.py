"""Explicit assembly of the engine's collaborators."""

from __future__ import annotations

import logging
from typing import Any

from typed_records.access import AccessPolicy, AllowAll, available_actions
from typed_records.csv_codec import CsvCodec
from typed_records.filters import build_filter
from typed_records.mutation import RecordMutator
from typed_records.parsing.filter_parser import FilterParser
from typed_records.relations import LookupRegistry, RelationshipResolver
from typed_records.schema import TypeRegistry
from typed_records.search import search_records
from typed_records.sorting import build_sorter
from typed_records.storage import DataStore
from typed_records.types import type_name

logger = logging.getLogger(__name__)


class RecordContext:
    """Owns the registry, store, lookups, access policy and acting user.

    Every registered type gets a lookup reading all of its records from the
    store, unless ``lookups`` already has one for it.

    Example::

        registry = TypeRegistry()
        registry.register(Item)
        with RecordContext(registry, MemoryStore(), current_user="alice") as ctx:
            item = ctx.mutator.create(Item)
            ctx.mutator.update(item, {"price": "9.5"})
            cheap = ctx.query(Item, "price < 10 sort by name")
    """

    def __init__(
        self,
        registry: TypeRegistry,
        store: DataStore,
        lookups: LookupRegistry | None = None,
        access: AccessPolicy | None = None,
        current_user: str | None = None,
        memoize: bool = False,
    ) -> None:
        self.registry = registry
        self.store = store
        self.lookups = lookups if lookups is not None else LookupRegistry()
        self.access: AccessPolicy = access if access is not None else AllowAll()
        self.current_user = current_user

        for name in registry.list_types():
            self._register_lookup(name)
        registry.validate()

        self.resolver = RelationshipResolver(self.lookups)
        self.mutator = RecordMutator(store, self.resolver, actor=current_user)
        self.codec = CsvCodec(store, self.resolver, memoize=memoize)
        self._parser = FilterParser()

    def _register_lookup(self, name: str) -> None:
        if name not in self.lookups:
            self.lookups.register(name, lambda: self.store.scan(name))

    def register(self, record_type: type) -> type:
        """Register a record type and its store-backed lookup."""
        self.registry.register(record_type)
        self._register_lookup(type_name(record_type))
        return record_type

    def records(self, record_type: type | str) -> list[Any]:
        """Return every stored record of a registered type."""
        return self.store.scan(self.registry.resolve(record_type))

    def get(self, record_type: type | str, record_id: int) -> Any | None:
        """Return the stored record with an id, or None."""
        for record in self.records(record_type):
            if record.id == record_id:
                return record
        return None

    def query(self, record_type: type | str, text: str) -> list[Any]:
        """Filter and sort stored records with a query string.

        Raises:
            SyntaxError: If the query does not parse.
            SchemaError: If it names a field the type does not have.
        """
        cls = self.registry.resolve(record_type)
        parsed = self._parser.parse(text)
        predicate = build_filter(cls, parsed.condition)
        sorter = build_sorter(cls, parsed.sort)
        return sorter(predicate.filter(self.store.scan(cls)))

    def search(self, record_type: type | str, field_name: str, value: Any) -> list[Any]:
        """Single-field search; see ``search_records``."""
        return search_records(self.store, self.registry.resolve(record_type), field_name, value)

    def actions(self, record_type: type | str) -> set[str]:
        """Return the list actions the access policy allows for a type."""
        return available_actions(self.access, self.registry.resolve(record_type))

    def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> RecordContext:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
