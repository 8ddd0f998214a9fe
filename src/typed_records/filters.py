"""Composable filter expressions over record field values."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable

from typed_records.schema import get_field
from typed_records.types import FieldDescriptor, ValueKind, display_string

if TYPE_CHECKING:
    from typed_records.parsing.filter_parser import CompoundCondition, Condition

logger = logging.getLogger(__name__)


class StringMode(Enum):
    """Match modes for StringFilter."""

    CONTAINS = "contains"
    EQUALS = "equals"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


class Logic(Enum):
    """Combination logic for FilterGroup."""

    AND = "and"
    OR = "or"


@dataclass
class FilterExpression(ABC):
    """Base class for all filter nodes.

    ``check`` tests a single raw value; ``matches`` tests a record by reading
    the node's field from it.
    """

    field_name: str | None = field(default=None, kw_only=True)

    @abstractmethod
    def check(self, value: Any) -> bool:
        """Return whether a single raw value passes this node."""

    def matches(self, record: Any) -> bool:
        if self.field_name is None:
            raise ValueError(f"{type(self).__name__} is not bound to a field")
        return self.check(getattr(record, self.field_name, None))


@dataclass
class StringFilter(FilterExpression):
    """Case-insensitive match on the display form of a value."""

    value: str = ""
    mode: StringMode = StringMode.CONTAINS

    def check(self, value: Any) -> bool:
        s = display_string(value).casefold()
        needle = display_string(self.value).casefold()
        if self.mode is StringMode.CONTAINS:
            return needle in s
        elif self.mode is StringMode.EQUALS:
            return s == needle
        elif self.mode is StringMode.STARTS_WITH:
            return s.startswith(needle)
        elif self.mode is StringMode.ENDS_WITH:
            return s.endswith(needle)
        return False


@dataclass
class NumberRangeFilter(FilterExpression):
    """Inclusive numeric range; either bound may be open."""

    min: float | None = None
    max: float | None = None

    def check(self, value: Any) -> bool:
        if value is None:
            return False
        try:
            v = float(value)
        except (TypeError, ValueError):
            return False
        if self.min is not None and v < self.min:
            return False
        if self.max is not None and v > self.max:
            return False
        return True


@dataclass
class EnumFilter(FilterExpression):
    """Membership in a fixed set of permitted values."""

    selected: frozenset[Any] = frozenset()

    def check(self, value: Any) -> bool:
        return value in self.selected


@dataclass
class BooleanFilter(FilterExpression):
    """Equality against a boolean; absent values never match."""

    expected: bool = True

    def check(self, value: Any) -> bool:
        if value is None:
            return False
        return bool(value) == self.expected


@dataclass
class FilterGroup(FilterExpression):
    """AND/OR combination of child expressions.

    An empty AND group is true and an empty OR group is false.
    """

    logic: Logic = Logic.AND
    children: list[FilterExpression] = field(default_factory=list)

    def check(self, value: Any) -> bool:
        if self.logic is Logic.AND:
            return all(child.check(value) for child in self.children)
        return any(child.check(value) for child in self.children)

    def matches(self, record: Any) -> bool:
        if self.logic is Logic.AND:
            return all(child.matches(record) for child in self.children)
        return any(child.matches(record) for child in self.children)

    def filter(self, records: Iterable[Any]) -> list[Any]:
        """Return the records this group matches, in input order."""
        return [r for r in records if self.matches(r)]


# Editor and query operators, normalized
_OPERATOR_ALIASES = {
    "=": "eq",
    "==": "eq",
    "eq": "eq",
    "!": "neq",
    "!=": "neq",
    "neq": "neq",
    "<": "lt",
    "lt": "lt",
    "<=": "lte",
    "lte": "lte",
    ">": "gt",
    "gt": "gt",
    ">=": "gte",
    "gte": "gte",
    "contains": "contains",
    "starts with": "starts_with",
    "starts_with": "starts_with",
    "ends with": "ends_with",
    "ends_with": "ends_with",
    "in": "in",
}

_STRING_MODES = {
    "eq": StringMode.EQUALS,
    "contains": StringMode.CONTAINS,
    "starts_with": StringMode.STARTS_WITH,
    "ends_with": StringMode.ENDS_WITH,
}


def normalize_operator(operator: str) -> str | None:
    """Map an editor/query operator to its canonical name, or None."""
    return _OPERATOR_ALIASES.get(" ".join(operator.lower().split()))


def _parse_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text == "true":
        return True
    if text == "false":
        return False
    return None


def _parse_member(choices: type[Enum], value: Any) -> Enum | None:
    if isinstance(value, choices):
        return value
    try:
        return choices[str(value).strip()]
    except KeyError:
        return None


def _number_leaf(name: str, op: str, value: Any) -> FilterExpression | None:
    v = _parse_number(value)
    if v is None:
        return None
    if op == "eq":
        return NumberRangeFilter(min=v, max=v, field_name=name)
    elif op == "lt":
        return NumberRangeFilter(max=math.nextafter(v, -math.inf), field_name=name)
    elif op == "lte":
        return NumberRangeFilter(max=v, field_name=name)
    elif op == "gt":
        return NumberRangeFilter(min=math.nextafter(v, math.inf), field_name=name)
    elif op == "gte":
        return NumberRangeFilter(min=v, field_name=name)
    return None


def _enum_leaf(descriptor: FieldDescriptor, op: str, value: Any) -> FilterExpression | None:
    choices = descriptor.choices
    if choices is None:
        return None
    raw_values = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    members = [_parse_member(choices, v) for v in raw_values]
    if not members or any(m is None for m in members):
        return None
    if op in ("eq", "in"):
        return EnumFilter(selected=frozenset(members), field_name=descriptor.name)
    if op == "neq" and len(members) == 1:
        rest = frozenset(m for m in choices if m is not members[0])
        return EnumFilter(selected=rest, field_name=descriptor.name)
    return None


def leaf_for(descriptor: FieldDescriptor, operator: str, value: Any) -> FilterExpression | None:
    """Build the leaf filter for one (field, operator, value) condition.

    The concrete leaf type follows the field's value kind. Returns None when
    the operator does not apply to the kind or the operand does not parse;
    such a condition contributes no constraint.
    """
    op = normalize_operator(operator)
    kind = descriptor.kind
    if op is None:
        return None

    if kind.is_textual:
        mode = _STRING_MODES.get(op)
        if mode is None or isinstance(value, (list, tuple)):
            return None
        return StringFilter(value=display_string(value), mode=mode, field_name=descriptor.name)

    if kind.is_numeric:
        return _number_leaf(descriptor.name, op, value)

    if kind is ValueKind.BOOLEAN:
        b = _parse_bool(value)
        if b is None or op not in ("eq", "neq"):
            return None
        return BooleanFilter(expected=b if op == "eq" else not b, field_name=descriptor.name)

    if kind is ValueKind.ENUMERATION:
        return _enum_leaf(descriptor, op, value)

    return None


@dataclass
class FilterRow:
    """One condition row from a filter editor."""

    field: str | None
    operator: str | None
    value: Any = ""


def build_record_predicate(record_type: type, rows: Iterable[FilterRow]) -> FilterGroup:
    """Combine editor rows into an AND group of per-field leaf checks.

    Rows without a field or operator are skipped. Rows whose operator does
    not apply to the field's kind are dropped.

    Raises:
        SchemaError: If a row names a field the type does not have.
    """
    group = FilterGroup(logic=Logic.AND)
    for row in rows:
        if not row.field or not row.field.strip() or not row.operator or not row.operator.strip():
            continue
        descriptor = get_field(record_type, row.field.strip())
        leaf = leaf_for(descriptor, row.operator, row.value)
        if leaf is None:
            logger.debug(
                "Dropping filter row %s %s %r: unsupported for %s field",
                row.field, row.operator, row.value, descriptor.kind.value,
            )
            continue
        group.children.append(leaf)
    return group


def build_filter(record_type: type, condition: Condition | CompoundCondition | None) -> FilterGroup:
    """Convert a parsed query condition into a filter tree.

    A condition that cannot be expressed is dropped; an OR with a dropped
    branch is unconstrained.
    """
    node = _build_node(record_type, condition) if condition is not None else None
    if node is None:
        return FilterGroup(logic=Logic.AND)
    if isinstance(node, FilterGroup):
        return node
    return FilterGroup(logic=Logic.AND, children=[node])


def _build_node(record_type: type, condition: Condition | CompoundCondition) -> FilterExpression | None:
    from typed_records.parsing.filter_parser import CompoundCondition

    if isinstance(condition, CompoundCondition):
        left = _build_node(record_type, condition.left)
        right = _build_node(record_type, condition.right)
        if condition.operator == "or":
            if left is None or right is None:
                return None
            return FilterGroup(logic=Logic.OR, children=[left, right])
        children = [c for c in (left, right) if c is not None]
        if not children:
            return None
        if len(children) == 1:
            return children[0]
        return FilterGroup(logic=Logic.AND, children=children)

    descriptor = get_field(record_type, condition.field)
    leaf = leaf_for(descriptor, condition.operator, condition.value)
    if leaf is None:
        logger.debug(
            "Dropping condition %s %s %r: unsupported for %s field",
            condition.field, condition.operator, condition.value, descriptor.kind.value,
        )
    return leaf
