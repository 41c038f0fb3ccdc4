"""
Core domain models for compound filter representation.

This module contains the recursive filter tree (rules and groups), the
fixed operator catalog per property category, and conversion of the tree
to and from plain dictionaries. These models are immutable and GUI-agnostic.
"""

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any, Optional, Sequence, Union

from .errors import InvalidStructureError


class PropertyCategory(StrEnum):
    """Property types that can be filtered on."""

    CHECKBOX = "checkbox"
    DATE = "date"
    MULTI_SELECT = "multi_select"
    NUMBER = "number"
    RICH_TEXT = "rich_text"
    TITLE = "title"
    SELECT = "select"
    STATUS = "status"
    CREATED_TIME = "created_time"
    LAST_EDITED_TIME = "last_edited_time"


class FilterOperator(StrEnum):
    """All operators exposed by the remote filter API."""

    EQUALS = "equals"
    DOES_NOT_EQUAL = "does_not_equal"
    CONTAINS = "contains"
    DOES_NOT_CONTAIN = "does_not_contain"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL_TO = "greater_than_or_equal_to"
    LESS_THAN_OR_EQUAL_TO = "less_than_or_equal_to"
    BEFORE = "before"
    AFTER = "after"
    ON_OR_BEFORE = "on_or_before"
    ON_OR_AFTER = "on_or_after"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    PAST_WEEK = "past_week"
    PAST_MONTH = "past_month"
    PAST_YEAR = "past_year"
    NEXT_WEEK = "next_week"
    NEXT_MONTH = "next_month"
    NEXT_YEAR = "next_year"


class GroupOperator(StrEnum):
    """Logical operator of a filter group."""

    AND = "and"
    OR = "or"

    def flipped(self) -> "GroupOperator":
        return GroupOperator.OR if self is GroupOperator.AND else GroupOperator.AND


TIMESTAMP_CATEGORIES = frozenset({
    PropertyCategory.CREATED_TIME,
    PropertyCategory.LAST_EDITED_TIME,
})

DATE_CATEGORIES = frozenset({PropertyCategory.DATE}) | TIMESTAMP_CATEGORIES

EMPTINESS_OPERATORS = frozenset({
    FilterOperator.IS_EMPTY,
    FilterOperator.IS_NOT_EMPTY,
})

RELATIVE_DATE_OPERATORS = frozenset({
    FilterOperator.PAST_WEEK,
    FilterOperator.PAST_MONTH,
    FilterOperator.PAST_YEAR,
    FilterOperator.NEXT_WEEK,
    FilterOperator.NEXT_MONTH,
    FilterOperator.NEXT_YEAR,
})

# Operators that carry no user-supplied value.
VALUELESS_OPERATORS = EMPTINESS_OPERATORS | RELATIVE_DATE_OPERATORS

_DATE_OPERATORS = (
    FilterOperator.EQUALS,
    FilterOperator.BEFORE,
    FilterOperator.AFTER,
    FilterOperator.ON_OR_BEFORE,
    FilterOperator.ON_OR_AFTER,
    FilterOperator.IS_EMPTY,
    FilterOperator.IS_NOT_EMPTY,
    FilterOperator.PAST_WEEK,
    FilterOperator.PAST_MONTH,
    FilterOperator.PAST_YEAR,
    FilterOperator.NEXT_WEEK,
    FilterOperator.NEXT_MONTH,
    FilterOperator.NEXT_YEAR,
)

_TEXT_OPERATORS = (
    FilterOperator.EQUALS,
    FilterOperator.DOES_NOT_EQUAL,
    FilterOperator.CONTAINS,
    FilterOperator.DOES_NOT_CONTAIN,
    FilterOperator.STARTS_WITH,
    FilterOperator.ENDS_WITH,
    FilterOperator.IS_EMPTY,
    FilterOperator.IS_NOT_EMPTY,
)

_CHOICE_OPERATORS = (
    FilterOperator.EQUALS,
    FilterOperator.DOES_NOT_EQUAL,
    FilterOperator.IS_EMPTY,
    FilterOperator.IS_NOT_EMPTY,
)

OPERATORS_BY_CATEGORY: dict[PropertyCategory, tuple[FilterOperator, ...]] = {
    PropertyCategory.CHECKBOX: (
        FilterOperator.EQUALS,
        FilterOperator.DOES_NOT_EQUAL,
    ),
    PropertyCategory.DATE: _DATE_OPERATORS,
    PropertyCategory.CREATED_TIME: _DATE_OPERATORS,
    PropertyCategory.LAST_EDITED_TIME: _DATE_OPERATORS,
    PropertyCategory.MULTI_SELECT: (
        FilterOperator.CONTAINS,
        FilterOperator.DOES_NOT_CONTAIN,
        FilterOperator.IS_EMPTY,
        FilterOperator.IS_NOT_EMPTY,
    ),
    PropertyCategory.NUMBER: (
        FilterOperator.EQUALS,
        FilterOperator.DOES_NOT_EQUAL,
        FilterOperator.GREATER_THAN,
        FilterOperator.LESS_THAN,
        FilterOperator.GREATER_THAN_OR_EQUAL_TO,
        FilterOperator.LESS_THAN_OR_EQUAL_TO,
        FilterOperator.IS_EMPTY,
        FilterOperator.IS_NOT_EMPTY,
    ),
    PropertyCategory.RICH_TEXT: _TEXT_OPERATORS,
    PropertyCategory.TITLE: _TEXT_OPERATORS,
    PropertyCategory.SELECT: _CHOICE_OPERATORS,
    PropertyCategory.STATUS: _CHOICE_OPERATORS,
}

_OPERATOR_LABELS: dict[FilterOperator, str] = {
    FilterOperator.EQUALS: "=",
    FilterOperator.DOES_NOT_EQUAL: "≠",
    FilterOperator.GREATER_THAN: ">",
    FilterOperator.LESS_THAN: "<",
    FilterOperator.GREATER_THAN_OR_EQUAL_TO: "≥",
    FilterOperator.LESS_THAN_OR_EQUAL_TO: "≤",
}


def available_operators(category: Optional[PropertyCategory | str]) -> list[FilterOperator]:
    """
    Get the operators offered for a property category.

    Args:
        category: The property category. Unknown or empty categories have no operators.

    Returns:
        Operators in display order.
    """
    if not category:
        return []
    try:
        category = PropertyCategory(category)
    except ValueError:
        return []
    return list(OPERATORS_BY_CATEGORY[category])


def format_operator_label(operator: FilterOperator | str) -> str:
    """Format an operator for display (symbols for comparisons, words otherwise)."""
    try:
        operator = FilterOperator(operator)
    except ValueError:
        return str(operator)
    return _OPERATOR_LABELS.get(operator, operator.value.replace("_", " "))


@dataclass(frozen=True)
class DateRange:
    """Date value with an optional end, as accepted by date filters."""

    start: str
    """ISO 8601 start date."""

    end: Optional[str] = None
    """ISO 8601 end date, if the value is a range."""

    def to_dict(self) -> dict:
        return {'start': self.start, 'end': self.end}


FilterValue = Union[bool, str, int, float, None, DateRange]


@dataclass(frozen=True)
class FilterRule:
    """
    Leaf predicate over one property and one operator.

    A rule whose property or property type is None is incomplete: it is a
    placeholder created by the editor while the user has not picked a
    property yet, and must never reach wire conversion.
    """

    property: Optional[str] = None
    """Name of the property (or timestamp) being filtered."""

    property_type: Optional[PropertyCategory] = None
    """Category of the property, which determines the valid operators."""

    operator: FilterOperator = FilterOperator.EQUALS
    """Comparison operator."""

    value: FilterValue = None
    """Value to compare against."""

    def __post_init__(self):
        # Accept plain strings from callers and serialized data
        if self.property == '':
            object.__setattr__(self, 'property', None)
        if self.property_type is not None and not isinstance(self.property_type, PropertyCategory):
            if self.property_type == '':
                object.__setattr__(self, 'property_type', None)
            else:
                object.__setattr__(self, 'property_type', PropertyCategory(self.property_type))
        if not isinstance(self.operator, FilterOperator):
            object.__setattr__(self, 'operator', FilterOperator(self.operator))
        if isinstance(self.value, dict):
            object.__setattr__(self, 'value', DateRange(self.value['start'], self.value.get('end')))

    @classmethod
    def incomplete(cls) -> 'FilterRule':
        """Create the empty placeholder rule used to seed new groups."""
        return cls()

    # The field name shadows the builtin decorator inside this class body
    def is_complete(self) -> bool:
        """Check whether both the property and its type have been chosen."""
        return self.property is not None and self.property_type is not None

    def with_fields(self, **fields: Any) -> 'FilterRule':
        return replace(self, **fields)


@dataclass(frozen=True)
class FilterGroup:
    """AND/OR combination of child nodes, optionally negated."""

    operator: GroupOperator = GroupOperator.AND
    """Logical operator combining the children."""

    children: tuple['FilterNode', ...] = field(default_factory=tuple)
    """Ordered child rules or nested groups."""

    negated: bool = False
    """Whether the whole group is logically negated (removed by normalization)."""

    def __post_init__(self):
        if not isinstance(self.operator, GroupOperator):
            object.__setattr__(self, 'operator', GroupOperator(str(self.operator).lower()))
        if not isinstance(self.children, tuple):
            object.__setattr__(self, 'children', tuple(self.children))


FilterNode = Union[FilterRule, FilterGroup]
CompoundFilter = Optional[FilterNode]
Path = Sequence[int]


def and_group(*children: FilterNode) -> FilterGroup:
    """Shorthand for building an AND group."""
    return FilterGroup(GroupOperator.AND, children)


def or_group(*children: FilterNode) -> FilterGroup:
    """Shorthand for building an OR group."""
    return FilterGroup(GroupOperator.OR, children)


def _value_to_dict(value: FilterValue) -> Any:
    if isinstance(value, DateRange):
        return value.to_dict()
    return value


def node_to_dict(node: CompoundFilter) -> Optional[dict]:
    """
    Serialize a filter tree to a JSON-compatible dictionary.

    Args:
        node: Root of the tree, or None for no filter.

    Returns:
        Dictionary representation, or None for an empty tree.
    """
    if node is None:
        return None

    if isinstance(node, FilterRule):
        return {
            'type': 'property',
            'property': node.property or '',
            'propertyType': node.property_type.value if node.property_type else '',
            'operator': node.operator.value,
            'value': _value_to_dict(node.value),
        }

    data = {
        'type': 'group',
        'operator': node.operator.value,
        'nodes': [node_to_dict(child) for child in node.children],
    }
    if node.negated:
        data['not'] = True
    return data


def node_from_dict(data: Optional[dict]) -> CompoundFilter:
    """
    Deserialize a filter tree from a dictionary.

    Args:
        data: Dictionary produced by node_to_dict() or the editing layer.

    Returns:
        The filter tree, or None when data is None.

    Raises:
        InvalidStructureError: If the dictionary does not describe a filter node.
    """
    if data is None:
        return None
    if not isinstance(data, dict):
        raise InvalidStructureError(f"Filter node must be an object, got {type(data).__name__}")

    node_type = data.get('type')
    try:
        if node_type == 'property':
            return FilterRule(
                property=data.get('property') or None,
                property_type=data.get('propertyType') or None,
                operator=data.get('operator', FilterOperator.EQUALS),
                value=data.get('value'),
            )
        if node_type == 'group':
            return FilterGroup(
                operator=data.get('operator', GroupOperator.AND),
                children=tuple(node_from_dict(child) for child in data.get('nodes', [])),
                negated=bool(data.get('not', False)),
            )
    except (ValueError, KeyError, TypeError) as e:
        if isinstance(e, InvalidStructureError):
            raise
        raise InvalidStructureError(f"Invalid filter node: {e}")

    raise InvalidStructureError(f"Unknown filter node type: {node_type!r}")
