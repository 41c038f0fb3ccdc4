"""
Structural validation of filter trees and of emitted wire filters.
"""

from dataclasses import dataclass
from typing import Any, Optional

from .errors import IncompleteRuleError, InvalidStructureError
from .models import (
    OPERATORS_BY_CATEGORY,
    TIMESTAMP_CATEGORIES,
    VALUELESS_OPERATORS,
    CompoundFilter,
    FilterNode,
    FilterRule,
)


@dataclass
class ValidationResult:
    """Outcome of a structural check."""

    valid: bool
    """Whether the structure passed the check."""

    error: Optional[str] = None
    """Description of the first problem found."""

    path: Optional[tuple[int, ...]] = None
    """Path of the offending node in a client tree, when known."""

    incomplete: bool = False
    """True when the problem is a rule without property or property type."""


_VALID = ValidationResult(valid=True)

_COMPOUND_KEYS = ('and', 'or')


# ============================================================================
# Client tree validation
# ============================================================================

def _validate_rule(rule: FilterRule, path: tuple[int, ...]) -> ValidationResult:
    if not rule.property:
        return ValidationResult(False, "Property name is required", path, incomplete=True)
    if rule.property_type is None:
        return ValidationResult(False, "Property type is required", path, incomplete=True)
    if not rule.operator:
        return ValidationResult(False, "Operator is required", path)
    if rule.operator not in OPERATORS_BY_CATEGORY[rule.property_type]:
        return ValidationResult(
            False,
            f"Operator {rule.operator.value} is not available for {rule.property_type.value} properties",
            path,
        )
    if rule.operator not in VALUELESS_OPERATORS and rule.value is None:
        return ValidationResult(False, "Value is required for this operator", path)
    return _VALID


def _validate_node(node: FilterNode, path: tuple[int, ...]) -> ValidationResult:
    if isinstance(node, FilterRule):
        return _validate_rule(node, path)

    if not node.children:
        return ValidationResult(False, "Filter group cannot be empty", path)

    for index, child in enumerate(node.children):
        result = _validate_node(child, path + (index,))
        if not result.valid:
            return result
    return _VALID


def validate_structure(root: CompoundFilter) -> ValidationResult:
    """
    Validate a client filter tree.

    An empty tree is valid. Otherwise every group must have children and
    every rule needs a property, a property type, an operator from its
    category, and a value unless the operator takes none.

    Returns:
        ValidationResult describing the first problem in depth-first order.
    """
    if root is None:
        return _VALID
    return _validate_node(root, ())


def is_valid_rule(rule: FilterRule) -> bool:
    """Check a single rule."""
    return _validate_rule(rule, ()).valid


def assert_valid_structure(root: CompoundFilter) -> None:
    """
    Raise if the client tree is not ready for conversion.

    Raises:
        IncompleteRuleError: If a rule has no property or property type.
        InvalidStructureError: For any other structural problem.
    """
    result = validate_structure(root)
    if result.valid:
        return
    if result.incomplete:
        raise IncompleteRuleError(result.path or ())
    raise InvalidStructureError(result.error, result.path)


# ============================================================================
# Wire output validation
# ============================================================================

def _is_compound(node: Any) -> bool:
    return isinstance(node, dict) and any(key in node for key in _COMPOUND_KEYS)


def _compound_members(node: dict) -> list:
    key = 'and' if 'and' in node else 'or'
    return node[key]


def wire_depth(node: Any) -> int:
    """
    Count how deeply compound filters are nested inside other compounds.

    A predicate, or a compound holding only predicates, has depth 0.
    """
    if not _is_compound(node):
        return 0
    members = _compound_members(node)
    if not isinstance(members, list):
        return 0
    nested = [member for member in members if _is_compound(member)]
    if not nested:
        return 0
    return 1 + max(wire_depth(member) for member in nested)


def _validate_wire_node(node: Any) -> ValidationResult:
    if not isinstance(node, dict):
        return ValidationResult(False, "Filter must be an object")

    if _is_compound(node):
        operator = 'and' if 'and' in node else 'or'
        conditions = node[operator]

        if not isinstance(conditions, list):
            return ValidationResult(False, f"Compound filter {operator} must contain an array")
        if not conditions:
            return ValidationResult(False, f"Compound filter {operator} cannot be empty")

        for condition in conditions:
            result = _validate_wire_node(condition)
            if not result.valid:
                return result
        return _VALID

    if 'timestamp' in node:
        timestamp = node['timestamp']
        if not isinstance(timestamp, str) or timestamp not in {c.value for c in TIMESTAMP_CATEGORIES}:
            return ValidationResult(False, f"Invalid timestamp type: {timestamp}")
        if not isinstance(node.get(timestamp), dict):
            return ValidationResult(False, f"Timestamp filter must contain {timestamp} condition")
        return _VALID

    if 'property' in node:
        if not isinstance(node['property'], str):
            return ValidationResult(False, "Property name must be a string")
        has_type_filter = any(
            key != 'property' and isinstance(value, dict)
            for key, value in node.items()
        )
        if not has_type_filter:
            return ValidationResult(False, "Property filter must contain a type-specific condition")
        return _VALID

    return ValidationResult(False, "Unknown filter structure")


def validate_wire_output(node: Any, max_depth: Optional[int] = None) -> ValidationResult:
    """
    Validate a filter object produced for the remote API.

    Args:
        node: The wire filter.
        max_depth: If given, the maximum compound nesting allowed.

    Returns:
        ValidationResult for the object.
    """
    result = _validate_wire_node(node)
    if not result.valid:
        return result

    if max_depth is not None:
        depth = wire_depth(node)
        if depth > max_depth:
            return ValidationResult(False, f"Filter exceeds max depth of {max_depth} (found {depth})")

    return _VALID


def assert_wire_output(node: Any, max_depth: Optional[int] = None) -> None:
    """
    Raise if the wire filter is not fit for the transport layer.

    Raises:
        InvalidStructureError: If validation fails.
    """
    result = validate_wire_output(node, max_depth)
    if not result.valid:
        raise InvalidStructureError(result.error)
