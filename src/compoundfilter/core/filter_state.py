"""
Draft and applied filter state.

The editing layer works on a draft tree. Nothing reaches the remote API until
the draft is explicitly applied, at which point it is validated, normalized
and rewritten in one step. A failed apply leaves the previously applied
filter in place.
"""

from typing import Any, Mapping, Optional

from . import editor
from .models import CompoundFilter, FilterNode, FilterRule, GroupOperator, Path
from .rewrite import WireFilter, convert_to_wire
from .validation import assert_valid_structure
from .errors import FilterError
from ..config.settings import AppSettings, get_settings
from ..infrastructure.logging_config import get_logger


logger = get_logger(__name__)


class FilterState:
    """
    Holds the draft filter, the applied filter and the editing depth limit.

    Instances are not thread-safe; the owner serializes edits.
    """

    def __init__(
        self,
        applied: CompoundFilter = None,
        max_nesting_depth: Optional[int] = None,
        settings: Optional[AppSettings] = None
    ):
        """
        Initialize the state.

        Args:
            applied: Filter that is currently in effect, if any.
            max_nesting_depth: Editing depth limit. Defaults to the configured default.
            settings: Settings to read limits from. Defaults to the global settings.
        """
        self.settings = settings if settings is not None else get_settings()
        self.applied: CompoundFilter = applied
        self.draft: CompoundFilter = applied
        self.wire_filter: Optional[WireFilter] = None
        if max_nesting_depth is None:
            max_nesting_depth = self.settings.default_max_nesting_depth
        self.set_max_nesting_depth(max_nesting_depth)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def add_rule(self, rule: Optional[FilterRule] = None) -> None:
        """Add a rule at the root level (an incomplete placeholder by default)."""
        if rule is None:
            rule = FilterRule.incomplete()
        self.draft = editor.add_rule(self.draft, rule)

    def add_group(self, operator: GroupOperator = GroupOperator.AND) -> None:
        self.draft = editor.add_group(self.draft, operator)

    def add_group_at_path(self, path: Path, operator: GroupOperator = GroupOperator.AND) -> None:
        self.draft = editor.add_group_at_path(
            self.draft, path, operator, self.max_nesting_depth
        )

    def add_node_to_group(self, path: Path, node: FilterNode) -> None:
        self.draft = editor.add_node_to_group(self.draft, path, node)

    def remove_node(self, path: Path) -> None:
        self.draft = editor.remove_node(self.draft, path)

    def update_rule(self, path: Path, updates: Mapping[str, Any]) -> None:
        self.draft = editor.update_rule(self.draft, path, updates)

    def toggle_group_operator(self, path: Path) -> None:
        self.draft = editor.toggle_group_operator(self.draft, path)

    def toggle_group_negation(self, path: Path) -> None:
        self.draft = editor.toggle_group_negation(self.draft, path)

    def duplicate_node(self, path: Path) -> None:
        self.draft = editor.duplicate_node(self.draft, path)

    def reset(self) -> None:
        """Clear the draft. The applied filter stays until the next apply."""
        self.draft = editor.reset_filters()

    def discard_changes(self) -> None:
        """Revert the draft to the applied filter."""
        self.draft = self.applied

    # ------------------------------------------------------------------
    # Depth limit
    # ------------------------------------------------------------------

    @property
    def nesting_depth(self) -> int:
        """Group nesting depth of the draft."""
        return editor.nesting_depth(self.draft)

    def set_max_nesting_depth(self, depth: int) -> int:
        """
        Change the editing depth limit.

        The value is clamped to the configured bounds and never drops below
        the draft's current depth, so existing groups stay reachable.

        Args:
            depth: Requested depth limit.

        Returns:
            The limit actually stored.
        """
        clamped = self.settings.clamp_nesting_depth(depth)
        effective = editor.effective_max_depth(clamped, self.nesting_depth)
        if effective != depth:
            logger.debug(f"Requested nesting depth {depth} adjusted to {effective}")
        self.max_nesting_depth = effective
        return effective

    def can_add_group_at_path(self, path: Path) -> bool:
        return editor.can_add_group_at_path(self.draft, path, self.max_nesting_depth)

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def has_unsaved_changes(self) -> bool:
        return editor.has_unsaved_changes(self.draft, self.applied)

    def apply(self) -> Optional[WireFilter]:
        """
        Validate and convert the draft, then make it the applied filter.

        Returns:
            The wire filter for the remote API, or None for an empty filter.

        Raises:
            FilterError: If validation, normalization or rewriting fails.
                The applied filter is left unchanged.
        """
        try:
            assert_valid_structure(self.draft)
            wire = convert_to_wire(
                self.draft,
                max_depth=self.settings.api_max_depth,
                max_leaves=self.settings.max_expanded_leaves,
            )
        except FilterError as e:
            logger.error(f"Failed to apply filter: {e}")
            raise

        self.applied = self.draft
        self.wire_filter = wire
        logger.info("Filter applied" if wire is not None else "Filter cleared")
        return wire
