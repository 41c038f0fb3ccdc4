"""
Pytest configuration and shared fixtures.

This file contains pytest configuration and reusable test fixtures.
"""

import pytest

from compoundfilter.config.settings import AppSettings
from compoundfilter.core.models import (
    FilterGroup,
    FilterOperator,
    FilterRule,
    GroupOperator,
    PropertyCategory,
)


@pytest.fixture
def rule_a() -> FilterRule:
    """Number rule: Count > 5."""
    return FilterRule("Count", PropertyCategory.NUMBER, FilterOperator.GREATER_THAN, 5)


@pytest.fixture
def rule_b() -> FilterRule:
    """Select rule: Stage = Done."""
    return FilterRule("Stage", PropertyCategory.SELECT, FilterOperator.EQUALS, "Done")


@pytest.fixture
def rule_c() -> FilterRule:
    """Text rule: Name contains 'report'."""
    return FilterRule("Name", PropertyCategory.RICH_TEXT, FilterOperator.CONTAINS, "report")


@pytest.fixture
def nested_tree(rule_a, rule_b, rule_c) -> FilterGroup:
    """
    Create AND[A, OR[B, C]].

    Returns:
        A two-level filter tree.
    """
    return FilterGroup(
        GroupOperator.AND,
        (rule_a, FilterGroup(GroupOperator.OR, (rule_b, rule_c))),
    )


@pytest.fixture
def settings() -> AppSettings:
    """Default settings that never touch the user's log directory."""
    return AppSettings(log_to_file=False)
