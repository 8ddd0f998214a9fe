"""Tests for universal search and record rendering."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import pytest

from typed_records.errors import SchemaError
from typed_records.relations import LookupRegistry, RelationshipResolver
from typed_records.render import field_label, format_cell, format_row, format_table, to_markdown
from typed_records.search import search_records
from typed_records.storage import MemoryStore
from typed_records.types import Record, foreign, many_to_many


class Level(Enum):
    JUNIOR = 1
    SENIOR = 2


@dataclass
class Team(Record):
    pass


@dataclass
class Skill(Record):
    pass


@dataclass
class Person(Record):
    salary: float = 0.0
    remote: bool = False
    level: Level = Level.JUNIOR
    team: int | None = foreign(Team)
    skills: str = many_to_many(Skill)
    tags: list | None = None


@pytest.fixture
def store() -> MemoryStore:
    store = MemoryStore()
    store.insert(Team(name="Core"))
    store.insert(Team(name="Web"))
    store.insert(Skill(name="Python"))
    store.insert(Skill(name="SQL"))
    store.insert(Person(name="Ada Lovelace", salary=100.0, remote=True, level=Level.SENIOR, team=1, skills="2,1"))
    store.insert(Person(name="Alan Turing", salary=90.00005, remote=False, team=2))
    store.insert(Person(name="Grace Hopper", salary=120.0, remote=True, level=Level.SENIOR))
    return store


@pytest.fixture
def resolver(store) -> RelationshipResolver:
    lookups = LookupRegistry()
    lookups.register(Team, lambda: store.scan(Team))
    lookups.register(Skill, lambda: store.scan(Skill))
    return RelationshipResolver(lookups)


def names(records) -> list[str]:
    return [r.name for r in records]


class TestSearch:
    """Tests for search_records()."""

    def test_text_contains(self, store):
        """Test case-insensitive substring search."""
        assert names(search_records(store, Person, "name", "CE")) == ["Ada Lovelace", "Grace Hopper"]

    def test_number_tolerance(self, store):
        """Test that numbers match within a small tolerance."""
        assert names(search_records(store, Person, "salary", "90")) == ["Alan Turing"]
        assert names(search_records(store, Person, "salary", 100)) == ["Ada Lovelace"]

    def test_number_unparseable(self, store):
        """Test that an unparseable number leaves results unfiltered."""
        assert len(search_records(store, Person, "salary", "lots")) == 3

    def test_boolean(self, store):
        """Test boolean equality."""
        assert names(search_records(store, Person, "remote", False)) == ["Alan Turing"]
        assert names(search_records(store, Person, "remote", "true")) == ["Ada Lovelace", "Grace Hopper"]

    def test_enumeration(self, store):
        """Test enumeration equality by member or name."""
        assert names(search_records(store, Person, "level", Level.JUNIOR)) == ["Alan Turing"]
        assert len(search_records(store, Person, "level", "SENIOR")) == 2

    def test_foreign(self, store):
        """Test foreign search by record or id."""
        core = store.scan(Team)[0]
        assert names(search_records(store, Person, "team", core)) == ["Ada Lovelace"]
        assert names(search_records(store, Person, "team", 2)) == ["Alan Turing"]
        assert len(search_records(store, Person, "team", None)) == 3

    def test_unsupported_kind(self, store):
        """Test that unclassified fields return everything."""
        assert len(search_records(store, Person, "tags", "x")) == 3

    def test_unknown_field(self, store):
        """Test that an unknown field is a schema error."""
        with pytest.raises(SchemaError):
            search_records(store, Person, "age", 3)


class TestRender:
    """Tests for Markdown and list row rendering."""

    def test_field_label(self):
        """Test turning field names into labels."""
        assert field_label("created_at") == "Created At"
        assert field_label("name") == "Name"
        assert field_label("createdAt") == "Created At"

    def test_markdown(self, store, resolver):
        """Test the Markdown detail rendering."""
        ada = store.scan(Person)[0]
        text = to_markdown(ada, resolver)
        lines = text.splitlines()
        assert lines[0] == "# Person Details"
        assert "**name**: Ada Lovelace" in lines
        assert "**salary**: 100.0" in lines
        assert "**level**: SENIOR" in lines
        assert "**team**: Core" in lines
        assert "**skills**: SQL,Python" in lines
        assert "**tags**: —" in lines

    def test_markdown_without_resolver(self, store):
        """Test that relationship ids are shown without a resolver."""
        ada = store.scan(Person)[0]
        assert "**team**: 1" in to_markdown(ada).splitlines()

    def test_markdown_none(self):
        """Test rendering nothing."""
        assert to_markdown(None).startswith("# Null Record")

    def test_format_row(self, store, resolver):
        """Test list rows with resolved and missing references."""
        ada, _, grace = store.scan(Person)
        row = format_row(ada, resolver, fields=["name", "team", "skills"])
        assert row.splitlines() == ["name: Ada Lovelace", "team: Core", "skills: SQL,Python"]
        assert "team: --" in format_row(grace, resolver).splitlines()
        assert "team: --" in format_row(ada).splitlines()

    def test_format_cell(self):
        """Test table cell formatting."""
        assert format_cell(None) == ""
        assert format_cell(True) == "true"
        assert format_cell(0.1 + 0.2) == "0.3"
        assert format_cell(Level.SENIOR) == "SENIOR"
        assert format_cell("x" * 50, max_width=10) == "xxxxxxx..."

    def test_format_table(self, store, resolver):
        """Test the aligned table rendering."""
        text = format_table(store.scan(Person), resolver)
        lines = text.splitlines()
        assert lines[0].startswith("id | name")
        assert set(lines[1]) == {"-"}
        assert "Core" in lines[2]
        assert lines[-1] == "(3 rows)"
        assert format_table([]) == "(no results)"

    def test_format_table_labels(self, store):
        """Test that labels replace field names in the header."""
        header = format_table(store.scan(Person), labels=True).splitlines()[0]
        assert header.startswith("Id | Name")
        assert "Created At" in header
