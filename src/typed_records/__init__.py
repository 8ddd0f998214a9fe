"""Typed Records - Metadata-driven CRUD over typed record classes."""

from typed_records.access import AccessPolicy, AllowAll, ReadOnly, available_actions
from typed_records.context import RecordContext
from typed_records.csv_codec import CsvCodec
from typed_records.errors import (
    CoercionError,
    CsvImportError,
    ExportError,
    RecordEngineError,
    SchemaError,
)
from typed_records.filters import (
    BooleanFilter,
    EnumFilter,
    FilterExpression,
    FilterGroup,
    FilterRow,
    Logic,
    NumberRangeFilter,
    StringFilter,
    StringMode,
    build_filter,
    build_record_predicate,
)
from typed_records.mutation import RecordMutator
from typed_records.parsing import FilterParser, FilterQuery, parse_query
from typed_records.relations import LookupRegistry, RelationshipResolver
from typed_records.schema import TypeRegistry, derive, export_fields, get_field
from typed_records.search import search_records
from typed_records.sorting import SortKey, build_sorter
from typed_records.storage import DataStore, JsonStore, MemoryStore
from typed_records.types import (
    AuditEntry,
    FieldDescriptor,
    Record,
    ValueKind,
    column,
    file_path,
    foreign,
    frozen,
    many_to_many,
    primary_key,
    unique,
)

__all__ = [
    # Main API
    "RecordContext",
    "TypeRegistry",
    "Record",
    "AuditEntry",
    # Field markers
    "column",
    "primary_key",
    "frozen",
    "unique",
    "file_path",
    "foreign",
    "many_to_many",
    # Schema
    "ValueKind",
    "FieldDescriptor",
    "derive",
    "export_fields",
    "get_field",
    # Filtering and sorting
    "FilterExpression",
    "StringFilter",
    "StringMode",
    "NumberRangeFilter",
    "EnumFilter",
    "BooleanFilter",
    "FilterGroup",
    "Logic",
    "FilterRow",
    "build_filter",
    "build_record_predicate",
    "SortKey",
    "build_sorter",
    "FilterParser",
    "FilterQuery",
    "parse_query",
    "search_records",
    # Relationships and mutation
    "LookupRegistry",
    "RelationshipResolver",
    "RecordMutator",
    "CsvCodec",
    # Storage
    "DataStore",
    "MemoryStore",
    "JsonStore",
    # Access
    "AccessPolicy",
    "AllowAll",
    "ReadOnly",
    "available_actions",
    # Errors
    "RecordEngineError",
    "SchemaError",
    "CoercionError",
    "ExportError",
    "CsvImportError",
]

__version__ = "0.1.0"
