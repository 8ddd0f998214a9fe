"""Tests for the filter query lexer and parser."""

import pytest

from typed_records.parsing.filter_lexer import FilterLexer
from typed_records.parsing.filter_parser import (
    CompoundCondition,
    Condition,
    FilterParser,
    FilterQuery,
    parse_query,
)
from typed_records.sorting import SortKey


class TestFilterLexer:
    """Tests for the filter lexer."""

    def test_tokenize_comparison(self):
        """Test tokenizing a simple comparison."""
        lexer = FilterLexer()
        lexer.build()

        tokens = lexer.tokenize("where price >= 10.5")
        assert [t.type for t in tokens] == ["WHERE", "IDENTIFIER", "GTE", "NUMBER"]
        assert tokens[-1].value == 10.5

    def test_keywords_case_insensitive(self):
        """Test that keywords match regardless of case."""
        lexer = FilterLexer()
        lexer.build()

        tokens = lexer.tokenize("Name STARTS With 'a' Sort By name DESC")
        assert [t.type for t in tokens] == [
            "IDENTIFIER", "STARTS", "WITH", "STRING", "SORT", "BY", "IDENTIFIER", "DESC",
        ]

    def test_backtick_identifier(self):
        """Test that backticks turn keywords into identifiers."""
        lexer = FilterLexer()
        lexer.build()

        tokens = lexer.tokenize("`desc` = 'x'")
        assert tokens[0].type == "IDENTIFIER"
        assert tokens[0].value == "desc"

    def test_strings_and_numbers(self):
        """Test string quoting, escapes and integer values."""
        lexer = FilterLexer()
        lexer.build()

        tokens = lexer.tokenize("\"say \\\"hi\\\"\" 'it''s' -3")
        assert tokens[0].value == 'say "hi"'
        assert tokens[-1].value == -3
        assert isinstance(tokens[-1].value, int)

    def test_illegal_character(self):
        """Test that unknown characters are syntax errors."""
        lexer = FilterLexer()
        lexer.build()

        with pytest.raises(SyntaxError, match="Illegal character"):
            lexer.tokenize("price ~ 3")


class TestFilterParser:
    """Tests for the filter parser."""

    def test_blank(self):
        """Test that blank input is an empty query."""
        assert FilterParser().parse("   ") == FilterQuery()

    def test_comparison(self):
        """Test a single comparison with and without WHERE."""
        expected = FilterQuery(condition=Condition("price", "<", 10))
        assert parse_query("where price < 10") == expected
        assert parse_query("price < 10") == expected

    def test_double_equals(self):
        """Test that == is the same as =."""
        assert parse_query("a == 1").condition == Condition("a", "=", 1)

    def test_word_operators(self):
        """Test contains, starts with, ends with and in."""
        assert parse_query("name contains 'ab'").condition == Condition("name", "contains", "ab")
        assert parse_query("name starts with x").condition == Condition("name", "starts_with", "x")
        assert parse_query("name ends with 'z'").condition == Condition("name", "ends_with", "z")
        assert parse_query("status in (OPEN, CLOSED)").condition == Condition(
            "status", "in", ["OPEN", "CLOSED"]
        )

    def test_booleans(self):
        """Test true/false literals."""
        assert parse_query("done = TRUE").condition == Condition("done", "=", True)
        assert parse_query("done != false").condition == Condition("done", "!=", False)

    def test_and_binds_tighter_than_or(self):
        """Test operator precedence."""
        cond = parse_query("a = 1 or b = 2 and c = 3").condition
        assert isinstance(cond, CompoundCondition)
        assert cond.operator == "or"
        assert cond.left == Condition("a", "=", 1)
        assert cond.right == CompoundCondition(Condition("b", "=", 2), "and", Condition("c", "=", 3))

    def test_parentheses(self):
        """Test grouping overrides precedence."""
        cond = parse_query("(a = 1 or b = 2) and c = 3").condition
        assert cond.operator == "and"
        assert cond.left.operator == "or"

    def test_sort(self):
        """Test sort clauses with directions."""
        query = parse_query("where price > 0 sort by category, price desc, name asc")
        assert query.sort == [
            SortKey("category"),
            SortKey("price", descending=True),
            SortKey("name"),
        ]

    def test_sort_only(self):
        """Test a query with only a sort clause."""
        query = parse_query("sort by name")
        assert query.condition is None
        assert query.sort == [SortKey("name")]

    def test_parser_reusable(self):
        """Test that one parser instance parses several queries."""
        parser = FilterParser()
        assert parser.parse("a = 1").condition == Condition("a", "=", 1)
        assert parser.parse("b = 2").condition == Condition("b", "=", 2)

    def test_syntax_errors(self):
        """Test malformed queries."""
        with pytest.raises(SyntaxError, match="end of input"):
            parse_query("price <")
        with pytest.raises(SyntaxError, match="Syntax error at"):
            parse_query("price < 3 4")
        with pytest.raises(SyntaxError):
            parse_query("sort name")
