"""Parser for the record filter query language.

Grammar, informally::

    query     : [WHERE] condition [SORT BY sort_item, ...]
              | SORT BY sort_item, ...
    condition : condition AND condition
              | condition OR condition
              | ( condition )
              | field op value
              | field CONTAINS value
              | field STARTS WITH value
              | field ENDS WITH value
              | field IN ( value, ... )
    sort_item : field [ASC | DESC]

AND binds tighter than OR.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import ply.yacc as yacc

from typed_records.parsing.filter_lexer import FilterLexer
from typed_records.sorting import SortKey


@dataclass
class Condition:
    """A single field comparison."""

    field: str
    operator: str  # =, !=, <, <=, >, >=, contains, starts_with, ends_with, in
    value: Any


@dataclass
class CompoundCondition:
    """A compound condition (AND/OR)."""

    left: Condition | CompoundCondition
    operator: str  # and, or
    right: Condition | CompoundCondition


@dataclass
class FilterQuery:
    """A parsed query: an optional condition and a sort specification."""

    condition: Condition | CompoundCondition | None = None
    sort: list[SortKey] = field(default_factory=list)


class FilterParser:
    """Parser for filter queries."""

    tokens = FilterLexer.tokens

    # Operator precedence
    precedence = (
        ("left", "OR"),
        ("left", "AND"),
    )

    def __init__(self) -> None:
        self.lexer = FilterLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_query_full(self, p: yacc.YaccProduction) -> None:
        """query : where_clause sort_clause"""
        p[0] = FilterQuery(condition=p[1], sort=p[2])

    def p_query_where(self, p: yacc.YaccProduction) -> None:
        """query : where_clause"""
        p[0] = FilterQuery(condition=p[1])

    def p_query_sort(self, p: yacc.YaccProduction) -> None:
        """query : sort_clause"""
        p[0] = FilterQuery(sort=p[1])

    def p_where_clause(self, p: yacc.YaccProduction) -> None:
        """where_clause : WHERE condition
                        | condition"""
        p[0] = p[2] if len(p) == 3 else p[1]

    def p_condition_and(self, p: yacc.YaccProduction) -> None:
        """condition : condition AND condition"""
        p[0] = CompoundCondition(left=p[1], operator="and", right=p[3])

    def p_condition_or(self, p: yacc.YaccProduction) -> None:
        """condition : condition OR condition"""
        p[0] = CompoundCondition(left=p[1], operator="or", right=p[3])

    def p_condition_group(self, p: yacc.YaccProduction) -> None:
        """condition : LPAREN condition RPAREN"""
        p[0] = p[2]

    def p_condition_compare(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER compare_op value"""
        p[0] = Condition(field=p[1], operator=p[2], value=p[3])

    def p_compare_op(self, p: yacc.YaccProduction) -> None:
        """compare_op : EQ
                      | NEQ
                      | LT
                      | LTE
                      | GT
                      | GTE"""
        p[0] = "=" if p[1] == "==" else p[1]

    def p_condition_contains(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER CONTAINS value"""
        p[0] = Condition(field=p[1], operator="contains", value=p[3])

    def p_condition_starts_with(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER STARTS WITH value"""
        p[0] = Condition(field=p[1], operator="starts_with", value=p[4])

    def p_condition_ends_with(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER ENDS WITH value"""
        p[0] = Condition(field=p[1], operator="ends_with", value=p[4])

    def p_condition_in(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER IN LPAREN value_list RPAREN"""
        p[0] = Condition(field=p[1], operator="in", value=p[4])

    def p_value_list_single(self, p: yacc.YaccProduction) -> None:
        """value_list : value"""
        p[0] = [p[1]]

    def p_value_list_multiple(self, p: yacc.YaccProduction) -> None:
        """value_list : value_list COMMA value"""
        p[0] = p[1] + [p[3]]

    def p_value(self, p: yacc.YaccProduction) -> None:
        """value : NUMBER
                 | STRING
                 | IDENTIFIER"""
        p[0] = p[1]

    def p_value_true(self, p: yacc.YaccProduction) -> None:
        """value : TRUE"""
        p[0] = True

    def p_value_false(self, p: yacc.YaccProduction) -> None:
        """value : FALSE"""
        p[0] = False

    def p_sort_clause(self, p: yacc.YaccProduction) -> None:
        """sort_clause : SORT BY sort_list"""
        p[0] = p[3]

    def p_sort_list_single(self, p: yacc.YaccProduction) -> None:
        """sort_list : sort_item"""
        p[0] = [p[1]]

    def p_sort_list_multiple(self, p: yacc.YaccProduction) -> None:
        """sort_list : sort_list COMMA sort_item"""
        p[0] = p[1] + [p[3]]

    def p_sort_item(self, p: yacc.YaccProduction) -> None:
        """sort_item : IDENTIFIER
                     | IDENTIFIER ASC
                     | IDENTIFIER DESC"""
        descending = len(p) == 3 and p[2].lower() == "desc"
        p[0] = SortKey(field=p[1], descending=descending)

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (position {p.lexpos})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="query", **kwargs)

    def parse(self, data: str) -> FilterQuery:
        """Parse a query string. Blank input yields an empty query."""
        if not data.strip():
            return FilterQuery()
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        return self.parser.parse(data, lexer=self.lexer.lexer)


def parse_query(data: str) -> FilterQuery:
    """Parse a query string with a fresh parser."""
    return FilterParser().parse(data)
