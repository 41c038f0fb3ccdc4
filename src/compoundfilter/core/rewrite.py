"""
Conversion of compound filters to the remote API's wire format.

The API accepts property-keyed leaf predicates combined by ``{"and": [...]}``
and ``{"or": [...]}`` objects, but only allows compound filters to be nested
a fixed number of levels deep. Client trees can be deeper, so conversion
rewrites them into a logically equivalent tree that fits:

1. Children are converted first, bottom-up, with their depth from the root.
2. Child compounds sharing their parent's operator are spliced into the
   parent: (A OR B) OR C == A OR B OR C.
3. At the depth boundary (``max_depth - 1``), a node that still holds
   compound members is expanded into a two-level normal form with the
   distributive law: A AND (B OR C) == (A AND B) OR (A AND C), and
   A OR (B AND C) == (A OR B) AND (A OR C). The AND case takes the
   Cartesian product across all OR branches, so several sibling OR groups
   are handled in one pass.
4. The emitted object is checked against the depth ceiling.
"""

import copy
from dataclasses import dataclass
from itertools import product
from typing import Any, Optional, Union

from .errors import ExpansionLimitError, IncompleteRuleError, InvalidStructureError
from .models import (
    OPERATORS_BY_CATEGORY,
    EMPTINESS_OPERATORS,
    RELATIVE_DATE_OPERATORS,
    TIMESTAMP_CATEGORIES,
    CompoundFilter,
    DateRange,
    FilterNode,
    FilterOperator,
    FilterRule,
    FilterValue,
    GroupOperator,
)
from .negation import normalize
from .validation import assert_wire_output
from ..infrastructure.logging_config import get_logger


logger = get_logger(__name__)

API_MAX_DEPTH = 2
"""Levels of compound nesting accepted by the remote API."""

DEFAULT_MAX_LEAVES = 1000
"""Upper bound on leaf predicates produced by distributive expansion."""

WireFilter = dict[str, Any]


@dataclass
class _Compound:
    """Compound filter under construction."""

    operator: GroupOperator
    members: list['_Term']


_Term = Union[WireFilter, _Compound]

# Normal form: a list of clauses, each clause a flat list of leaves
_Clauses = list[list[WireFilter]]


# ============================================================================
# Leaf conversion
# ============================================================================

def _condition_payload(operator: FilterOperator, value: FilterValue) -> Any:
    if operator in EMPTINESS_OPERATORS:
        return True
    if operator in RELATIVE_DATE_OPERATORS:
        return {}
    if isinstance(value, DateRange):
        return value.to_dict()
    return value


def rule_to_wire(rule: FilterRule, path: tuple[int, ...] = ()) -> WireFilter:
    """
    Convert a single rule to its wire predicate.

    Args:
        rule: The rule to convert.
        path: Path of the rule in its tree, used in error reports.

    Returns:
        ``{"property": name, <category>: {<operator>: value}}``, or
        ``{"timestamp": <category>, <category>: {...}}`` for timestamps.

    Raises:
        IncompleteRuleError: If the rule has no property or property type.
        InvalidStructureError: If the operator does not apply to the category.
    """
    if not rule.is_complete():
        raise IncompleteRuleError(path)

    category = rule.property_type
    if rule.operator not in OPERATORS_BY_CATEGORY[category]:
        raise InvalidStructureError(
            f"Operator {rule.operator.value} is not valid for {category.value} properties",
            path,
        )

    condition = {rule.operator.value: _condition_payload(rule.operator, rule.value)}

    if category in TIMESTAMP_CATEGORIES:
        return {'timestamp': category.value, category.value: condition}
    return {'property': rule.property, category.value: condition}


# ============================================================================
# Term helpers
# ============================================================================

def _splice_same_operator(members: list[_Term], operator: GroupOperator) -> list[_Term]:
    """Merge members that are compounds with the same operator into the list."""
    spliced: list[_Term] = []
    for member in members:
        if isinstance(member, _Compound) and member.operator is operator:
            spliced.extend(member.members)
        else:
            spliced.append(member)
    return spliced


def _wrap(members: list[_Term], operator: GroupOperator) -> _Term:
    """Wrap members in a compound, collapsing the single-member case."""
    if len(members) == 1:
        return members[0]
    return _Compound(operator, members)


def _count_leaves(clauses: _Clauses) -> int:
    return sum(len(clause) for clause in clauses)


def _clauses(term: _Term, outer: GroupOperator, max_leaves: int) -> _Clauses:
    """
    Expand a term into normal form.

    With outer=OR this is disjunctive normal form (an OR of AND clauses);
    with outer=AND it is conjunctive normal form (an AND of OR clauses).
    """
    if not isinstance(term, _Compound):
        return [[term]]

    if term.operator is outer:
        result: _Clauses = []
        for member in term.members:
            result.extend(_clauses(member, outer, max_leaves))
        return result

    # Inner operator: one clause per combination of member clauses
    result = [[]]
    for member in term.members:
        member_clauses = _clauses(member, outer, max_leaves)
        required = len(result) * len(member_clauses)
        if required > max_leaves:
            raise ExpansionLimitError(max_leaves, required)
        result = [
            left + right
            for left, right in product(result, member_clauses)
        ]
        leaf_count = _count_leaves(result)
        if leaf_count > max_leaves:
            raise ExpansionLimitError(max_leaves, leaf_count)
    return result


def _distribute(operator: GroupOperator, members: list[_Term], max_leaves: int) -> _Term:
    """
    Rewrite ``operator(members)`` into a two-level equivalent.

    An AND node becomes an OR of AND clauses; an OR node becomes an AND of
    OR clauses. Every clause is a flat list of leaves.
    """
    inner = operator
    outer = operator.flipped()
    clauses = _clauses(_Compound(inner, members), outer, max_leaves)
    logger.debug(
        f"Distributed {inner.value.upper()} node into {len(clauses)} "
        f"{inner.value.upper()} clauses ({_count_leaves(clauses)} conditions)"
    )
    return _wrap([_wrap(list(clause), inner) for clause in clauses], outer)


# ============================================================================
# Node conversion
# ============================================================================

def _convert(
    node: FilterNode,
    depth: int,
    max_depth: int,
    max_leaves: int,
    path: tuple[int, ...]
) -> _Term:
    if isinstance(node, FilterRule):
        return rule_to_wire(node, path)

    if node.negated:
        raise InvalidStructureError("Negated group must be normalized before conversion", path)
    if not node.children:
        raise InvalidStructureError("Filter group cannot be empty", path)

    converted = [
        _convert(child, depth + 1, max_depth, max_leaves, path + (index,))
        for index, child in enumerate(node.children)
    ]
    members = _splice_same_operator(converted, node.operator)

    # Below the boundary only flattening happens; the boundary ancestor
    # expands the whole subtree at once
    if depth == max_depth - 1 and any(isinstance(m, _Compound) for m in members):
        return _distribute(node.operator, members, max_leaves)

    return _wrap(members, node.operator)


def _emit(term: _Term) -> WireFilter:
    if isinstance(term, _Compound):
        return {term.operator.value: [_emit(member) for member in term.members]}
    # Expansion repeats leaves across clauses
    return copy.deepcopy(term)


def rewrite(
    root: CompoundFilter,
    max_depth: int = API_MAX_DEPTH,
    max_leaves: int = DEFAULT_MAX_LEAVES
) -> Optional[WireFilter]:
    """
    Rewrite a negation-free tree into a depth-bounded wire filter.

    Args:
        root: Root of a tree that contains no negated groups.
        max_depth: How many levels of compound nesting the output may use.
        max_leaves: Limit on conditions produced by distributive expansion.

    Returns:
        The wire filter, or None for an empty tree.

    Raises:
        ValueError: If max_depth is lower than 1.
        IncompleteRuleError: If the tree contains an incomplete rule.
        InvalidStructureError: If the tree contains an empty or negated group.
        ExpansionLimitError: If expansion would exceed max_leaves.
    """
    if max_depth < 1:
        raise ValueError(f"max_depth must be at least 1, got {max_depth}")
    if root is None:
        return None

    wire = _emit(_convert(root, 0, max_depth, max_leaves, ()))
    assert_wire_output(wire, max_depth)
    return wire


def convert_to_wire(
    root: CompoundFilter,
    max_depth: int = API_MAX_DEPTH,
    max_leaves: int = DEFAULT_MAX_LEAVES
) -> Optional[WireFilter]:
    """
    Convert a client filter tree to the remote API's filter object.

    Negated groups are normalized away first, then the tree is rewritten to
    fit max_depth, and the result is validated before being returned.

    Raises:
        UnsupportedNegationError: If a negated group uses operators without complement.
        IncompleteRuleError: If the tree contains an incomplete rule.
        InvalidStructureError: If the tree or the output is structurally invalid.
        ExpansionLimitError: If expansion would exceed max_leaves.
    """
    if root is None:
        return None
    return rewrite(normalize(root), max_depth=max_depth, max_leaves=max_leaves)
