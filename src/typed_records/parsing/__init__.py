"""Parsing module for the filter query language."""

from typed_records.parsing.filter_parser import (
    CompoundCondition,
    Condition,
    FilterParser,
    FilterQuery,
    parse_query,
)

__all__ = [
    "CompoundCondition",
    "Condition",
    "FilterParser",
    "FilterQuery",
    "parse_query",
]
