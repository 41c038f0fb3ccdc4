"""
Path-addressed editing of compound filters.

Every function here is pure and total: it takes a filter tree, returns a new
tree, and never mutates its input or raises. A path is a sequence of
zero-based child indices from the root; the empty path is the root itself.
A path that does not resolve to a suitable node turns the operation into a
no-op so that interactive editing never fails.

Only the ancestor chain of the edited node is rebuilt; untouched subtrees
are shared between the old and the new tree, which is safe because nodes
are immutable.
"""

import copy
from dataclasses import fields, replace
from typing import Any, Callable, Mapping

from .models import (
    CompoundFilter,
    FilterGroup,
    FilterNode,
    FilterRule,
    GroupOperator,
    Path,
)
from ..infrastructure.logging_config import get_logger


logger = get_logger(__name__)

_RULE_FIELDS = frozenset(f.name for f in fields(FilterRule))


def _create_group(operator: GroupOperator = GroupOperator.AND) -> FilterGroup:
    """Create a new group seeded with one incomplete rule."""
    return FilterGroup(operator=GroupOperator(operator), children=(FilterRule.incomplete(),))


def _with_children(group: FilterGroup, children: list[FilterNode]) -> FilterGroup:
    return replace(group, children=tuple(children))


def _is_valid_index(group: FilterGroup, index: int) -> bool:
    return 0 <= index < len(group.children)


def _update_at(
    node: FilterNode,
    path: Path,
    transform: Callable[[FilterNode], FilterNode]
) -> FilterNode:
    """
    Rebuild the ancestor chain of the node at path with transform applied.

    Returns the same node object when the path does not resolve or when
    transform leaves the target unchanged.
    """
    if not path:
        return transform(node)

    if not isinstance(node, FilterGroup):
        return node

    index, rest = path[0], path[1:]
    if not _is_valid_index(node, index):
        return node

    child = node.children[index]
    updated = _update_at(child, rest, transform)
    if updated is child:
        return node

    children = list(node.children)
    children[index] = updated
    return _with_children(node, children)


def get_node(root: CompoundFilter, path: Path) -> CompoundFilter:
    """
    Resolve a path to a node.

    Args:
        root: Root of the filter tree.
        path: Child indices from the root.

    Returns:
        The node at path, or None if the path does not resolve.
    """
    node = root
    for index in path:
        if not isinstance(node, FilterGroup) or not _is_valid_index(node, index):
            return None
        node = node.children[index]
    return node


def reset_filters() -> CompoundFilter:
    """Clear the whole tree (the explicit reset command)."""
    return None


def add_rule(root: CompoundFilter, rule: FilterRule) -> FilterNode:
    """
    Add a rule at the root level.

    - If no filter exists, the rule becomes the root
    - If the root is a rule, both are wrapped in an AND group
    - If the root is a group, the rule is appended to it
    """
    if root is None:
        return rule
    if isinstance(root, FilterRule):
        return FilterGroup(operator=GroupOperator.AND, children=(root, rule))
    return _with_children(root, [*root.children, rule])


def _remove_internal(node: FilterNode, path: Path) -> CompoundFilter:
    if not isinstance(node, FilterGroup):
        return node

    index, rest = path[0], path[1:]
    if not _is_valid_index(node, index):
        return node

    children = list(node.children)
    if rest:
        child = children[index]
        updated = _remove_internal(child, rest)
        if updated is child:
            return node
        if updated is None:
            del children[index]
        else:
            children[index] = updated
    else:
        del children[index]

    if not children:
        return None
    # A negated group keeps its wrapper since a bare rule cannot carry the flag
    if len(children) == 1 and not node.negated:
        return children[0]
    return _with_children(node, children)


def remove_node(root: CompoundFilter, path: Path) -> CompoundFilter:
    """
    Remove the node at path.

    Removing the root yields no filter. A group left with no children is
    removed from its own parent, and a group left with a single child is
    replaced by that child. A negated group is the exception: it keeps its
    single child, since a rule cannot carry the negation. Paths that do not
    resolve leave the tree unchanged.

    Args:
        root: Root of the filter tree.
        path: Path of the node to remove.

    Returns:
        The new root, or None when nothing remains.
    """
    if root is None:
        return None
    if not path:
        return None

    result = _remove_internal(root, path)
    if result is root:
        logger.debug(f"remove_node: path {list(path)} does not resolve, tree unchanged")
    return result


def update_rule(root: CompoundFilter, path: Path, updates: Mapping[str, Any]) -> CompoundFilter:
    """
    Merge field updates into the rule at path.

    Args:
        root: Root of the filter tree.
        path: Path of the rule to update.
        updates: Field names and values (property, property_type, operator, value).

    Returns:
        The new root. Unchanged if path is not a rule or if a value cannot
        be coerced (unknown operator or category, malformed date range).
    """
    if root is None:
        return None

    known = {key: value for key, value in updates.items() if key in _RULE_FIELDS}
    ignored = set(updates) - set(known)
    if ignored:
        logger.debug(f"update_rule: ignoring unknown fields {sorted(ignored)}")

    def transform(node: FilterNode) -> FilterNode:
        if not isinstance(node, FilterRule):
            return node
        try:
            return node.with_fields(**known)
        except (ValueError, KeyError, TypeError) as e:
            logger.debug(f"update_rule: rejected {known} at path {list(path)}: {e}")
            return node

    return _update_at(root, path, transform)


def toggle_group_operator(root: CompoundFilter, path: Path) -> CompoundFilter:
    """Flip AND/OR on the group at path. No-op on a rule or unresolved path."""
    if root is None:
        return None

    def transform(node: FilterNode) -> FilterNode:
        if isinstance(node, FilterGroup):
            return replace(node, operator=node.operator.flipped())
        return node

    return _update_at(root, path, transform)


def toggle_group_negation(root: CompoundFilter, path: Path) -> CompoundFilter:
    """Flip the negated flag on the group at path. No-op on a rule."""
    if root is None:
        return None

    def transform(node: FilterNode) -> FilterNode:
        if isinstance(node, FilterGroup):
            return replace(node, negated=not node.negated)
        return node

    return _update_at(root, path, transform)


def add_node_to_group(root: CompoundFilter, path: Path, node: FilterNode) -> FilterNode:
    """
    Append an existing rule or group to the group at path.

    If no filter exists, the node becomes the new root.
    """
    if root is None:
        return node

    def transform(target: FilterNode) -> FilterNode:
        if isinstance(target, FilterGroup):
            return _with_children(target, [*target.children, node])
        return target

    return _update_at(root, path, transform)


def add_group(root: CompoundFilter, operator: GroupOperator = GroupOperator.AND) -> FilterNode:
    """
    Add a new group (seeded with one incomplete rule) at the root level.

    - If no filter exists, the new group becomes the root
    - If the root is a rule, both are wrapped in a group using operator
    - If the root is a group, the new group is appended to it
    """
    new_group = _create_group(operator)

    if root is None:
        return new_group
    if isinstance(root, FilterRule):
        return FilterGroup(operator=GroupOperator(operator), children=(root, new_group))
    return _with_children(root, [*root.children, new_group])


def add_group_at_path(
    root: CompoundFilter,
    path: Path,
    operator: GroupOperator = GroupOperator.AND,
    max_depth: int = 2
) -> CompoundFilter:
    """
    Add a new group inside the group at path.

    This is the only place that guards against runaway nesting: if the new
    group would exceed max_depth, the tree is returned unchanged.
    """
    if not can_add_group_at_path(root, path, max_depth):
        logger.debug(f"add_group_at_path: depth {max_depth} reached at path {list(path)}")
        return root

    new_group = _create_group(operator)
    if root is None:
        return new_group
    return add_node_to_group(root, path, new_group)


def duplicate_node(root: CompoundFilter, path: Path) -> CompoundFilter:
    """
    Duplicate the node at path, inserting the copy right after the original.

    Duplicating the root wraps the original and its copy in a new AND group.
    """
    if root is None:
        return None

    if not path:
        return FilterGroup(operator=GroupOperator.AND, children=(root, copy.deepcopy(root)))

    parent_path, index = path[:-1], path[-1]

    def transform(parent: FilterNode) -> FilterNode:
        if not isinstance(parent, FilterGroup) or not _is_valid_index(parent, index):
            return parent
        children = list(parent.children)
        children.insert(index + 1, copy.deepcopy(children[index]))
        return _with_children(parent, children)

    return _update_at(root, parent_path, transform)


# ============================================================================
# Depth queries
# ============================================================================

def nesting_depth(root: CompoundFilter) -> int:
    """
    Calculate the number of group levels from the root to the deepest node.

    Empty filters and single rules have depth 0.
    """
    if not isinstance(root, FilterGroup):
        return 0
    return 1 + max((nesting_depth(child) for child in root.children), default=0)


def depth_at_path(root: CompoundFilter, path: Path) -> int:
    """
    Count the groups on the chain from the root to the node at path.

    The target itself counts when it is a group. Resolution stops at the
    deepest node the path reaches.
    """
    depth = 0
    node = root
    remaining = list(path)
    while isinstance(node, FilterGroup):
        depth += 1
        if not remaining:
            break
        index = remaining.pop(0)
        if not _is_valid_index(node, index):
            break
        node = node.children[index]
    return depth


def can_add_group_at_path(root: CompoundFilter, path: Path, max_depth: int = 2) -> bool:
    """
    Check whether a new group may be nested inside the node at path.

    Args:
        root: Root of the filter tree.
        path: Path of the group that would receive the new group.
        max_depth: Maximum allowed nesting depth.

    Returns:
        True if the new group would sit at a depth no greater than max_depth.
    """
    if root is None and not path:
        return max_depth >= 1
    return depth_at_path(root, path) + 1 <= max_depth


def has_unsaved_changes(draft: CompoundFilter, applied: CompoundFilter) -> bool:
    """Check whether the draft differs from the applied filter."""
    return draft != applied


def effective_max_depth(requested_depth: int, current_depth: int) -> int:
    """Prevent the configured depth from dropping below the tree's actual depth."""
    return max(requested_depth, current_depth)
