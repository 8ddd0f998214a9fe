"""Tests for field schema derivation and the type registry."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import pytest

from typed_records.errors import SchemaError
from typed_records.schema import TypeRegistry, classify, derive, export_fields, get_field
from typed_records.types import (
    AuditEntry,
    FieldDescriptor,
    FieldMarker,
    Record,
    ValueKind,
    file_path,
    foreign,
    frozen,
    many_to_many,
    unique,
)


class Color(Enum):
    RED = 1
    GREEN = 2


@dataclass
class Category(Record):
    pass


@dataclass
class Tag(Record):
    pass


@dataclass
class Item(Record):
    price: float = 0.0
    quantity: int = 0
    in_stock: bool = False
    color: Color = Color.RED
    category: int | None = foreign(Category)
    tags: str = many_to_many(Tag)
    manual: str = file_path()
    sku: str = unique("")
    batch: str = frozen("B1")
    notes: list | None = None
    _cache: str = ""

    @property
    def total(self) -> float:
        return self.price * self.quantity


@dataclass
class Dangling(Record):
    owner: int | None = foreign("Nobody")


class Explicit:
    __record_fields__ = (
        FieldDescriptor(name="id", kind=ValueKind.IDENTIFIER, python_type=int, identifier=True),
        FieldDescriptor(name="title", kind=ValueKind.TEXT, python_type=str),
    )


class NotADataclass:
    name: str = ""


class TestClassify:
    """Tests for classification precedence."""

    def test_basic_types(self):
        """Test classification of plain declared types."""
        assert classify(str) is ValueKind.TEXT
        assert classify(float) is ValueKind.NUMBER
        assert classify(int) is ValueKind.NUMBER
        assert classify(bool) is ValueKind.BOOLEAN
        assert classify(Color) is ValueKind.ENUMERATION
        assert classify(list) is ValueKind.UNCLASSIFIED

    def test_optional_is_unwrapped(self):
        """Test that X | None classifies as X."""
        assert classify(float | None) is ValueKind.NUMBER
        assert classify(str | None) is ValueKind.TEXT

    def test_markers_win_over_type(self):
        """Test that markers take precedence over the declared type."""
        assert classify(int, FieldMarker(primary_key=True)) is ValueKind.IDENTIFIER
        assert classify(str, FieldMarker(frozen=True)) is ValueKind.FROZEN_TEXT
        assert classify(str, FieldMarker(many_to_many="Tag", foreign="Tag")) is ValueKind.MANY_TO_MANY
        assert classify(int, FieldMarker(foreign="Category")) is ValueKind.FOREIGN
        assert classify(str, FieldMarker(file=True)) is ValueKind.FILE


class TestDerive:
    """Tests for derive()."""

    def test_order_and_kinds(self):
        """Test that fields come out in declaration order with the right kinds."""
        kinds = {d.name: d.kind for d in derive(Item)}
        assert list(kinds) == [
            "id", "name", "description", "created_at",
            "price", "quantity", "in_stock", "color", "category",
            "tags", "manual", "sku", "batch", "notes",
        ]
        assert kinds["id"] is ValueKind.IDENTIFIER
        assert kinds["created_at"] is ValueKind.FROZEN_TEXT
        assert kinds["price"] is ValueKind.NUMBER
        assert kinds["in_stock"] is ValueKind.BOOLEAN
        assert kinds["color"] is ValueKind.ENUMERATION
        assert kinds["category"] is ValueKind.FOREIGN
        assert kinds["tags"] is ValueKind.MANY_TO_MANY
        assert kinds["manual"] is ValueKind.FILE
        assert kinds["sku"] is ValueKind.TEXT
        assert kinds["batch"] is ValueKind.FROZEN_TEXT
        assert kinds["notes"] is ValueKind.UNCLASSIFIED

    def test_private_fields_skipped(self):
        """Test that underscore fields are not part of the schema."""
        assert "_cache" not in {d.name for d in derive(Item)}

    def test_idempotent(self):
        """Test that repeated derivation yields equal results."""
        assert derive(Item) == derive(Item)
        assert [d.name for d in derive(Item)] == [d.name for d in derive(Item)]

    def test_descriptor_details(self):
        """Test relationship targets, choices and flags."""
        fields = {d.name: d for d in derive(Item)}
        assert fields["category"].target == "Category"
        assert fields["tags"].target == "Tag"
        assert fields["color"].choices is Color
        assert fields["sku"].unique
        assert fields["id"].identifier
        assert fields["batch"].frozen

    def test_editable(self):
        """Test which fields an editor may assign."""
        fields = {d.name: d for d in derive(Item)}
        assert fields["price"].editable
        assert fields["category"].editable
        assert not fields["id"].editable
        assert not fields["created_at"].editable
        assert not fields["notes"].editable

    def test_explicit_schema(self):
        """Test that __record_fields__ overrides dataclass derivation."""
        assert [d.name for d in derive(Explicit)] == ["id", "title"]

    def test_not_a_dataclass(self):
        """Test that a plain class without an explicit schema is rejected."""
        with pytest.raises(SchemaError, match="not a dataclass"):
            derive(NotADataclass)


class TestExportFields:
    """Tests for export_fields() and get_field()."""

    def test_read_only_property_included(self):
        """Test that read-only properties follow the writable fields."""
        fields = export_fields(Item)
        assert fields[-1].name == "total"
        assert fields[-1].kind is ValueKind.NUMBER
        assert not fields[-1].writable
        assert not fields[-1].editable

    def test_property_not_in_derive(self):
        """Test that derive() does not include properties."""
        assert "total" not in {d.name for d in derive(Item)}

    def test_get_field(self):
        """Test looking up a field by name."""
        assert get_field(Item, "price").kind is ValueKind.NUMBER
        assert get_field(Item, "total").writable is False

    def test_get_unknown_field(self):
        """Test that an unknown field raises SchemaError."""
        with pytest.raises(SchemaError, match="Field 'nope' not found in type 'Item'"):
            get_field(Item, "nope")

    def test_schema_error_is_key_error(self):
        """Test that SchemaError can be caught as KeyError."""
        with pytest.raises(KeyError):
            get_field(Item, "nope")


class TestTypeRegistry:
    """Tests for TypeRegistry."""

    def test_audit_entry_builtin(self):
        """Test that the audit entry type is always registered."""
        registry = TypeRegistry()
        assert "AuditEntry" in registry
        assert registry.get("AuditEntry") is AuditEntry

    def test_register_and_resolve(self):
        """Test registering and resolving by class and name."""
        registry = TypeRegistry()
        registry.register(Category)
        assert registry.resolve("Category") is Category
        assert registry.resolve(Category) is Category
        assert Category in registry
        assert "Category" in registry.list_types()

    def test_register_as_decorator(self):
        """Test that register returns the class unchanged."""
        registry = TypeRegistry()
        assert registry.register(Tag) is Tag

    def test_register_same_class_twice(self):
        """Test that re-registering the same class is allowed."""
        registry = TypeRegistry()
        registry.register(Tag)
        registry.register(Tag)
        assert registry.list_types().count("Tag") == 1

    def test_register_name_clash(self):
        """Test that a different class with a taken name is rejected."""
        registry = TypeRegistry()
        registry.register(Tag)

        @dataclass
        class Tag2(Record):
            pass

        Tag2.__name__ = "Tag"
        with pytest.raises(ValueError, match="already defined"):
            registry.register(Tag2)

    def test_get_or_raise(self):
        """Test that an unknown type name raises SchemaError."""
        registry = TypeRegistry()
        assert registry.get("Missing") is None
        with pytest.raises(SchemaError, match="Type 'Missing' not found"):
            registry.get_or_raise("Missing")

    def test_validate(self):
        """Test that dangling relationship targets are reported."""
        registry = TypeRegistry()
        registry.register(Item)
        with pytest.raises(SchemaError, match="Category"):
            registry.validate()
        registry.register(Category)
        registry.register(Tag)
        registry.validate()

    def test_validate_dangling_name(self):
        """Test validation with a string target that never gets registered."""
        registry = TypeRegistry()
        registry.register(Dangling)
        with pytest.raises(SchemaError, match="Nobody"):
            registry.validate()
