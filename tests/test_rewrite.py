"""
Tests for conversion to the API wire format.

The central property is checked exhaustively on small trees: for every
assignment of truth values to the leaves, the converted wire filter and the
original tree agree, and the wire filter never nests deeper than allowed.
"""

import itertools
import random

import pytest

from compoundfilter.core.errors import (
    ExpansionLimitError,
    IncompleteRuleError,
    InvalidStructureError,
    UnsupportedNegationError,
)
from compoundfilter.core.models import (
    DateRange,
    FilterGroup,
    FilterOperator,
    FilterRule,
    GroupOperator,
    PropertyCategory,
    and_group,
    or_group,
)
from compoundfilter.core.rewrite import (
    API_MAX_DEPTH,
    convert_to_wire,
    rewrite,
    rule_to_wire,
)
from compoundfilter.core.validation import validate_wire_output, wire_depth


ATOMS = ("a", "b", "c", "d", "e")


def atom(name, operator=FilterOperator.EQUALS):
    """A boolean atom: the number property `name` equals 1."""
    return FilterRule(name, PropertyCategory.NUMBER, operator, 1)


def wire(name, operator="equals"):
    return {"property": name, "number": {operator: 1}}


def eval_tree(node, assignment):
    if isinstance(node, FilterGroup):
        combine = all if node.operator is GroupOperator.AND else any
        result = combine(eval_tree(child, assignment) for child in node.children)
        return not result if node.negated else result
    truth = assignment[node.property]
    return truth if node.operator is FilterOperator.EQUALS else not truth


def eval_wire(node, assignment):
    if "and" in node:
        return all(eval_wire(member, assignment) for member in node["and"])
    if "or" in node:
        return any(eval_wire(member, assignment) for member in node["or"])
    (operator, _value), = node["number"].items()
    truth = assignment[node["property"]]
    return truth if operator == "equals" else not truth


def assert_equivalent(tree, result):
    for values in itertools.product([False, True], repeat=len(ATOMS)):
        assignment = dict(zip(ATOMS, values))
        assert eval_wire(result, assignment) == eval_tree(tree, assignment), assignment


def random_tree(rng, depth, negate=False):
    """Build a random tree of atoms with at most `depth` group levels."""
    if depth == 0 or rng.random() < 0.3:
        operator = FilterOperator.EQUALS if rng.random() < 0.7 else FilterOperator.DOES_NOT_EQUAL
        return atom(rng.choice(ATOMS), operator)
    children = tuple(random_tree(rng, depth - 1, negate) for _ in range(rng.randint(2, 3)))
    return FilterGroup(
        rng.choice([GroupOperator.AND, GroupOperator.OR]),
        children,
        negated=negate and rng.random() < 0.3,
    )


# ============================================================================
# Leaf conversion
# ============================================================================

class TestRuleToWire:
    """Tests for rule_to_wire."""

    def test_property_rule(self, rule_a):
        assert rule_to_wire(rule_a) == {"property": "Count", "number": {"greater_than": 5}}

    def test_emptiness_carries_true(self):
        rule = FilterRule("Tags", PropertyCategory.MULTI_SELECT, FilterOperator.IS_EMPTY)
        assert rule_to_wire(rule) == {"property": "Tags", "multi_select": {"is_empty": True}}

    def test_relative_date_carries_empty_object(self):
        rule = FilterRule("Due", PropertyCategory.DATE, FilterOperator.PAST_WEEK)
        assert rule_to_wire(rule) == {"property": "Due", "date": {"past_week": {}}}

    def test_timestamp(self):
        rule = FilterRule("Created", PropertyCategory.CREATED_TIME, FilterOperator.AFTER, "2024-01-01")
        assert rule_to_wire(rule) == {
            "timestamp": "created_time",
            "created_time": {"after": "2024-01-01"},
        }

    def test_date_range_value(self):
        rule = FilterRule("Due", PropertyCategory.DATE, FilterOperator.EQUALS, DateRange("2024-02-01"))
        assert rule_to_wire(rule) == {
            "property": "Due",
            "date": {"equals": {"start": "2024-02-01", "end": None}},
        }

    def test_checkbox_false(self):
        rule = FilterRule("Done", PropertyCategory.CHECKBOX, FilterOperator.EQUALS, False)
        assert rule_to_wire(rule) == {"property": "Done", "checkbox": {"equals": False}}

    def test_incomplete_rule_raises(self):
        with pytest.raises(IncompleteRuleError) as exc_info:
            rule_to_wire(FilterRule.incomplete(), (1, 0))
        assert exc_info.value.path == (1, 0)

    def test_operator_outside_category_raises(self):
        rule = FilterRule("Done", PropertyCategory.CHECKBOX, FilterOperator.GREATER_THAN, 1)
        with pytest.raises(InvalidStructureError):
            rule_to_wire(rule)


# ============================================================================
# Rewriting
# ============================================================================

class TestRewrite:
    """Tests for depth-bounded rewriting."""

    def test_distribution_example(self):
        tree = and_group(atom("a"), or_group(atom("b"), atom("c")))
        assert rewrite(tree, max_depth=1) == {
            "or": [
                {"and": [wire("a"), wire("b")]},
                {"and": [wire("a"), wire("c")]},
            ]
        }

    def test_or_over_and_distributes_to_cnf(self):
        tree = or_group(atom("a"), and_group(atom("b"), atom("c")))
        assert rewrite(tree, max_depth=1) == {
            "and": [
                {"or": [wire("a"), wire("b")]},
                {"or": [wire("a"), wire("c")]},
            ]
        }

    def test_shallow_tree_kept_as_is(self):
        tree = and_group(atom("a"), or_group(atom("b"), atom("c")))
        assert rewrite(tree, max_depth=2) == {
            "and": [wire("a"), {"or": [wire("b"), wire("c")]}]
        }

    def test_same_operator_groups_are_spliced(self):
        tree = or_group(or_group(atom("a"), or_group(atom("b"), atom("c"))), atom("d"))
        assert rewrite(tree, max_depth=1) == {
            "or": [wire("a"), wire("b"), wire("c"), wire("d")]
        }

    def test_multiple_or_groups_cross_product(self):
        tree = and_group(
            atom("a"),
            or_group(atom("b"), atom("c")),
            or_group(atom("d"), atom("e")),
        )
        result = rewrite(tree, max_depth=1)
        assert result == {
            "or": [
                {"and": [wire("a"), wire("b"), wire("d")]},
                {"and": [wire("a"), wire("b"), wire("e")]},
                {"and": [wire("a"), wire("c"), wire("d")]},
                {"and": [wire("a"), wire("c"), wire("e")]},
            ]
        }
        assert_equivalent(tree, result)

    def test_singleton_group_collapses(self):
        assert rewrite(and_group(atom("a")), max_depth=2) == wire("a")

    def test_single_rule(self):
        assert rewrite(atom("a")) == wire("a")

    def test_empty_tree(self):
        assert rewrite(None) is None
        assert convert_to_wire(None) is None

    def test_leaves_are_independent_copies(self):
        tree = and_group(atom("a"), or_group(atom("b"), atom("c")))
        result = rewrite(tree, max_depth=1)
        first, second = result["or"]
        assert first["and"][0] == second["and"][0]
        assert first["and"][0] is not second["and"][0]

    def test_max_depth_must_be_positive(self, nested_tree):
        with pytest.raises(ValueError):
            rewrite(nested_tree, max_depth=0)

    def test_negated_group_rejected(self):
        tree = FilterGroup(GroupOperator.AND, (atom("a"), atom("b")), negated=True)
        with pytest.raises(InvalidStructureError):
            rewrite(tree)

    def test_empty_group_rejected(self):
        with pytest.raises(InvalidStructureError):
            rewrite(and_group(atom("a"), FilterGroup(GroupOperator.OR, ())))

    def test_incomplete_rule_reports_path(self):
        tree = and_group(atom("a"), or_group(atom("b"), FilterRule.incomplete()))
        with pytest.raises(IncompleteRuleError) as exc_info:
            rewrite(tree)
        assert exc_info.value.path == (1, 1)

    def test_expansion_limit(self):
        # AND of eight two-way ORs expands to 256 clauses
        tree = and_group(*(or_group(atom("a"), atom("b")) for _ in range(8)))
        with pytest.raises(ExpansionLimitError) as exc_info:
            rewrite(tree, max_depth=1, max_leaves=100)
        assert exc_info.value.limit == 100
        assert exc_info.value.required > 100

    def test_expansion_within_limit(self):
        tree = and_group(*(or_group(atom("a"), atom("b")) for _ in range(3)))
        result = rewrite(tree, max_depth=1, max_leaves=100)
        assert len(result["or"]) == 8


# ============================================================================
# Properties
# ============================================================================

class TestRewriteProperties:
    """Depth bound and logical equivalence over random trees."""

    @pytest.mark.parametrize("max_depth", [1, 2, 3, 4])
    @pytest.mark.parametrize("seed", range(25))
    def test_depth_bound_and_equivalence(self, seed, max_depth):
        rng = random.Random(seed)
        tree = random_tree(rng, depth=3)
        result = rewrite(tree, max_depth=max_depth, max_leaves=100_000)

        assert wire_depth(result) <= max_depth
        assert validate_wire_output(result, max_depth).valid
        assert_equivalent(tree, result)

    @pytest.mark.parametrize("seed", range(25))
    def test_negated_trees_convert_equivalently(self, seed):
        rng = random.Random(1000 + seed)
        tree = random_tree(rng, depth=3, negate=True)
        result = convert_to_wire(tree, max_leaves=100_000)

        assert wire_depth(result) <= API_MAX_DEPTH
        assert_equivalent(tree, result)

    def test_deep_alternating_tree(self):
        tree = atom("e")
        operators = itertools.cycle([GroupOperator.OR, GroupOperator.AND])
        for name, operator in zip(["a", "b", "c", "d", "a"], operators):
            tree = FilterGroup(operator, (atom(name), tree, atom(name, FilterOperator.DOES_NOT_EQUAL)))

        for max_depth in (1, 2, 3):
            result = rewrite(tree, max_depth=max_depth, max_leaves=100_000)
            assert wire_depth(result) <= max_depth
            assert_equivalent(tree, result)


# ============================================================================
# convert_to_wire
# ============================================================================

class TestConvertToWire:
    """Tests for the full normalize-then-rewrite pipeline."""

    def test_negated_group_is_normalized(self):
        tree = and_group(
            atom("a"),
            FilterGroup(GroupOperator.AND, (atom("b"), atom("c")), negated=True),
        )
        assert convert_to_wire(tree) == {
            "and": [wire("a"), {"or": [wire("b", "does_not_equal"), wire("c", "does_not_equal")]}]
        }

    def test_unsupported_negation(self):
        text = FilterRule("Name", PropertyCategory.RICH_TEXT, FilterOperator.STARTS_WITH, "x")
        tree = FilterGroup(GroupOperator.OR, (text, atom("a")), negated=True)
        with pytest.raises(UnsupportedNegationError):
            convert_to_wire(tree)

    def test_mixed_categories(self):
        tree = or_group(
            FilterRule("Status", PropertyCategory.STATUS, FilterOperator.EQUALS, "Done"),
            and_group(
                FilterRule("Edited", PropertyCategory.LAST_EDITED_TIME, FilterOperator.PAST_MONTH),
                FilterRule("Tags", PropertyCategory.MULTI_SELECT, FilterOperator.CONTAINS, "urgent"),
            ),
        )
        assert convert_to_wire(tree, max_depth=1) == {
            "and": [
                {"or": [
                    {"property": "Status", "status": {"equals": "Done"}},
                    {"timestamp": "last_edited_time", "last_edited_time": {"past_month": {}}},
                ]},
                {"or": [
                    {"property": "Status", "status": {"equals": "Done"}},
                    {"property": "Tags", "multi_select": {"contains": "urgent"}},
                ]},
            ]
        }
