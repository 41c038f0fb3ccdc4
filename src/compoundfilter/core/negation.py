"""
Logical negation for compound filters.

The remote API has no NOT for groups, so negated groups are removed before
conversion: De Morgan's laws flip each group operator and every rule is
replaced by its complementary operator. Only operator pairs the API exposes
directly are used; anything else (starts_with, relative date windows, date
equality) makes the negation unsupported.
"""

from dataclasses import dataclass, field, replace
from typing import Optional

from .errors import UnsupportedNegationError
from .models import (
    CompoundFilter,
    FilterGroup,
    FilterNode,
    FilterOperator,
    FilterRule,
    PropertyCategory,
)
from ..infrastructure.logging_config import get_logger


logger = get_logger(__name__)

Op = FilterOperator

_EMPTINESS_PAIRS = {
    Op.IS_EMPTY: Op.IS_NOT_EMPTY,
    Op.IS_NOT_EMPTY: Op.IS_EMPTY,
}

_EQUALITY_PAIRS = {
    Op.EQUALS: Op.DOES_NOT_EQUAL,
    Op.DOES_NOT_EQUAL: Op.EQUALS,
}

_CONTAINS_PAIRS = {
    Op.CONTAINS: Op.DOES_NOT_CONTAIN,
    Op.DOES_NOT_CONTAIN: Op.CONTAINS,
}

_DATE_PAIRS = {
    Op.BEFORE: Op.ON_OR_AFTER,
    Op.ON_OR_AFTER: Op.BEFORE,
    Op.AFTER: Op.ON_OR_BEFORE,
    Op.ON_OR_BEFORE: Op.AFTER,
    **_EMPTINESS_PAIRS,
}

NEGATIONS: dict[PropertyCategory, dict[FilterOperator, FilterOperator]] = {
    PropertyCategory.CHECKBOX: dict(_EQUALITY_PAIRS),
    PropertyCategory.NUMBER: {
        **_EQUALITY_PAIRS,
        Op.GREATER_THAN: Op.LESS_THAN_OR_EQUAL_TO,
        Op.LESS_THAN: Op.GREATER_THAN_OR_EQUAL_TO,
        Op.GREATER_THAN_OR_EQUAL_TO: Op.LESS_THAN,
        Op.LESS_THAN_OR_EQUAL_TO: Op.GREATER_THAN,
        **_EMPTINESS_PAIRS,
    },
    PropertyCategory.MULTI_SELECT: {**_CONTAINS_PAIRS, **_EMPTINESS_PAIRS},
    PropertyCategory.SELECT: {**_EQUALITY_PAIRS, **_EMPTINESS_PAIRS},
    PropertyCategory.STATUS: {**_EQUALITY_PAIRS, **_EMPTINESS_PAIRS},
    # starts_with / ends_with have no complement in the API
    PropertyCategory.RICH_TEXT: {**_EQUALITY_PAIRS, **_CONTAINS_PAIRS, **_EMPTINESS_PAIRS},
    PropertyCategory.TITLE: {**_EQUALITY_PAIRS, **_CONTAINS_PAIRS, **_EMPTINESS_PAIRS},
    # Dates expose no does_not_equal and relative windows have no complement
    PropertyCategory.DATE: _DATE_PAIRS,
    PropertyCategory.CREATED_TIME: _DATE_PAIRS,
    PropertyCategory.LAST_EDITED_TIME: _DATE_PAIRS,
}


@dataclass
class NegationReport:
    """Result of checking a tree for negations the API cannot express."""

    unsupported_operators: set[str] = field(default_factory=set)
    """Operators found under a negated group that have no complement."""

    @property
    def supported(self) -> bool:
        return not self.unsupported_operators


def negated_operator(
    operator: FilterOperator | str,
    category: Optional[PropertyCategory | str]
) -> Optional[FilterOperator]:
    """
    Get the complementary operator for an operator/category pair.

    Args:
        operator: Operator to negate.
        category: Property category of the rule.

    Returns:
        The negated operator, or None if the API offers no direct complement.
    """
    try:
        operator = FilterOperator(operator)
        category = PropertyCategory(category)
    except ValueError:
        return None
    return NEGATIONS[category].get(operator)


def is_operator_negatable(
    operator: FilterOperator | str,
    category: Optional[PropertyCategory | str]
) -> bool:
    return negated_operator(operator, category) is not None


def negate_rule(rule: FilterRule) -> Optional[FilterRule]:
    """Negate a single rule, or return None when negation is unsupported."""
    if rule.property_type is None:
        return None
    negated = negated_operator(rule.operator, rule.property_type)
    if negated is None:
        return None
    return replace(rule, operator=negated)


def _collect_unsupported(node: FilterNode, unsupported: set[str]) -> None:
    """Collect operators without complement in every rule beneath node."""
    if isinstance(node, FilterRule):
        # Incomplete rules are reported later by conversion
        if node.property_type is not None and not is_operator_negatable(node.operator, node.property_type):
            unsupported.add(node.operator.value)
        return
    for child in node.children:
        _collect_unsupported(child, unsupported)


def validate_for_negation(root: CompoundFilter) -> NegationReport:
    """
    Check that every rule under a negated group can be negated.

    A tree without negated groups is trivially supported.
    """
    report = NegationReport()

    def visit(node: FilterNode) -> None:
        if not isinstance(node, FilterGroup):
            return
        if node.negated:
            _collect_unsupported(node, report.unsupported_operators)
            return
        for child in node.children:
            visit(child)

    if root is not None:
        visit(root)
    return report


def _negate_node(node: FilterNode) -> FilterNode:
    """
    Return the logical negation of a negation-free node.

    NOT (A AND B) -> (NOT A) OR (NOT B), recursively down to the rules.
    """
    if isinstance(node, FilterRule):
        negated = negate_rule(node)
        if negated is None:
            # validate_for_negation() runs first, so this is an internal error
            raise UnsupportedNegationError([node.operator.value])
        return negated

    return replace(
        node,
        operator=node.operator.flipped(),
        children=tuple(_negate_node(child) for child in node.children),
        negated=False,
    )


def _normalize_node(node: FilterNode) -> FilterNode:
    if isinstance(node, FilterRule):
        return node

    # Normalize children first so negated descendants are already resolved;
    # a negated group inside a negated group cancels out this way.
    normalized = replace(node, children=tuple(_normalize_node(child) for child in node.children))
    if normalized.negated:
        return _negate_node(replace(normalized, negated=False))
    return normalized


def normalize(root: CompoundFilter) -> CompoundFilter:
    """
    Remove every negated group from the tree.

    Args:
        root: Root of the filter tree.

    Returns:
        An equivalent tree without negated groups.

    Raises:
        UnsupportedNegationError: If any rule under a negated group uses an
            operator without a complement. Raised before any rewriting.
    """
    if root is None:
        return None

    report = validate_for_negation(root)
    if not report.supported:
        logger.info(f"Negation not supported for operators: {sorted(report.unsupported_operators)}")
        raise UnsupportedNegationError(report.unsupported_operators)

    return _normalize_node(root)
