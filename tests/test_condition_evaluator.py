"""
Tests for the condition evaluator.

Tests cover:
- TriBool Kleene logic
- Field path resolution over mappings, objects and lists
- Each comparison operator, including UNKNOWN on missing fields
- AND-before-OR grouping and weighted confidence
"""
import pytest
from datetime import datetime, timezone

from casepilot.engine import ConditionEvaluator, compare_values, resolve_field_path
from casepilot.models import (
    ConditionOperator,
    LogicalOperator,
    TaskPriority,
    TriBool,
)

from tests.conftest import make_condition, make_task


@pytest.fixture
def evaluator():
    return ConditionEvaluator()


# =============================================================================
# TriBool
# =============================================================================

class TestTriBool:
    """Kleene truth tables."""

    def test_and_false_dominates(self):
        assert (TriBool.UNKNOWN & TriBool.FALSE) == TriBool.FALSE
        assert (TriBool.TRUE & TriBool.UNKNOWN) == TriBool.UNKNOWN
        assert (TriBool.TRUE & TriBool.TRUE) == TriBool.TRUE

    def test_or_true_dominates(self):
        assert (TriBool.UNKNOWN | TriBool.TRUE) == TriBool.TRUE
        assert (TriBool.FALSE | TriBool.UNKNOWN) == TriBool.UNKNOWN
        assert (TriBool.FALSE | TriBool.FALSE) == TriBool.FALSE

    def test_invert(self):
        assert ~TriBool.TRUE == TriBool.FALSE
        assert ~TriBool.UNKNOWN == TriBool.UNKNOWN

    def test_unknown_refuses_bool(self):
        with pytest.raises(ValueError):
            bool(TriBool.UNKNOWN)


# =============================================================================
# Field Paths
# =============================================================================

class TestResolveFieldPath:

    def test_nested_mapping(self):
        root = {"case": {"metadata": {"court": "SDNY"}}}
        assert resolve_field_path(root, "case.metadata.court") == ("SDNY", True)

    def test_object_attribute(self):
        root = {"task": make_task(priority=TaskPriority.URGENT)}
        value, found = resolve_field_path(root, "task.priority")
        assert found
        assert value == TaskPriority.URGENT

    def test_list_index(self):
        root = {"docs": ["a", "b"]}
        assert resolve_field_path(root, "docs.1") == ("b", True)
        assert resolve_field_path(root, "docs.5") == (None, False)

    def test_missing_key(self):
        assert resolve_field_path({"a": 1}, "b") == (None, False)

    def test_private_attributes_not_reachable(self):
        task = make_task()
        assert resolve_field_path(task, "__class__") == (None, False)


# =============================================================================
# Operators
# =============================================================================

class TestCompareValues:

    def test_equals_numbers_across_types(self):
        assert compare_values(1, ConditionOperator.EQUALS, 1.0) == TriBool.TRUE
        assert compare_values(0.1 + 0.2, ConditionOperator.EQUALS, 0.3) == TriBool.FALSE

    def test_equals_enum_against_string(self):
        assert compare_values(TaskPriority.HIGH, ConditionOperator.EQUALS, "high") == TriBool.TRUE

    def test_not_equals(self):
        assert compare_values("a", ConditionOperator.NOT_EQUALS, "b") == TriBool.TRUE

    def test_greater_and_less(self):
        assert compare_values(5, ConditionOperator.GREATER_THAN, 3) == TriBool.TRUE
        assert compare_values(1, ConditionOperator.LESS_THAN, 2) == TriBool.TRUE
        assert compare_values("10", ConditionOperator.GREATER_THAN, 9) == TriBool.TRUE

    def test_ordering_incomparable_is_unknown(self):
        assert compare_values("abc", ConditionOperator.GREATER_THAN, 3) == TriBool.UNKNOWN

    def test_dates_compare(self):
        due = datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert compare_values(due, ConditionOperator.LESS_THAN, "2026-03-02T00:00:00Z") == TriBool.TRUE

    def test_in_and_not_in(self):
        assert compare_values("urgent", ConditionOperator.IN, ["high", "urgent"]) == TriBool.TRUE
        assert compare_values("low", ConditionOperator.NOT_IN, ["high", "urgent"]) == TriBool.TRUE
        assert compare_values("low", ConditionOperator.IN, "low") == TriBool.UNKNOWN

    def test_contains(self):
        assert compare_values("breach of contract", ConditionOperator.CONTAINS, "breach") == TriBool.TRUE
        assert compare_values(["tax", "ip"], ConditionOperator.CONTAINS, "ip") == TriBool.TRUE
        assert compare_values({"k": 1}, ConditionOperator.CONTAINS, "k") == TriBool.TRUE
        assert compare_values(42, ConditionOperator.CONTAINS, "4") == TriBool.FALSE

    def test_matches_pattern(self):
        assert compare_values("CASE-2026-001", ConditionOperator.MATCHES_PATTERN, r"^CASE-\d{4}") == TriBool.TRUE
        assert compare_values(TaskPriority.URGENT, ConditionOperator.MATCHES_PATTERN, "^urg") == TriBool.TRUE

    def test_missing_value_is_unknown(self):
        assert compare_values(None, ConditionOperator.EQUALS, "x") == TriBool.UNKNOWN

    def test_exists_and_not_exists_are_definite(self):
        assert compare_values(None, ConditionOperator.EXISTS, None) == TriBool.FALSE
        assert compare_values(None, ConditionOperator.NOT_EXISTS, None) == TriBool.TRUE
        assert compare_values([], ConditionOperator.EXISTS, None) == TriBool.TRUE


# =============================================================================
# Evaluator
# =============================================================================

class TestConditionEvaluator:

    def test_no_conditions_always_true(self, evaluator):
        result = evaluator.evaluate([], {})
        assert result.value == TriBool.TRUE
        assert result.confidence == 1.0
        assert result.score == 100.0

    def test_missing_field_reported_unresolved(self, evaluator):
        cond = make_condition("task.daysUntilDeadline", ConditionOperator.LESS_THAN, 2)
        result = evaluator.evaluate([cond], {"task": {}})
        assert result.value == TriBool.UNKNOWN
        assert result.unresolved_fields == ["task.daysUntilDeadline"]
        assert result.warnings

    def test_and_binds_tighter_than_or(self, evaluator):
        # a AND b OR c  ==  (a AND b) OR c
        conditions = [
            make_condition("a", ConditionOperator.EQUALS, 1),
            make_condition("b", ConditionOperator.EQUALS, 1, logical_operator=LogicalOperator.OR),
            make_condition("c", ConditionOperator.EQUALS, 1),
        ]
        assert evaluator.check(conditions, {"a": 0, "b": 1, "c": 1})
        assert not evaluator.check(conditions, {"a": 0, "b": 1, "c": 0})
        assert evaluator.check(conditions, {"a": 1, "b": 1, "c": 0})

    def test_or_rescues_unknown_group(self, evaluator):
        conditions = [
            make_condition("missing", ConditionOperator.EQUALS, 1, logical_operator=LogicalOperator.OR),
            make_condition("present", ConditionOperator.EQUALS, 1),
        ]
        result = evaluator.evaluate(conditions, {"present": 1})
        assert result.value == TriBool.TRUE
        assert "missing" in result.unresolved_fields

    def test_unknown_and_false_is_false(self, evaluator):
        conditions = [
            make_condition("missing", ConditionOperator.EQUALS, 1),
            make_condition("present", ConditionOperator.EQUALS, 2),
        ]
        assert evaluator.evaluate(conditions, {"present": 1}).value == TriBool.FALSE

    def test_weighted_confidence(self, evaluator):
        conditions = [
            make_condition("a", ConditionOperator.EQUALS, 1, weight=3.0, logical_operator=LogicalOperator.OR),
            make_condition("b", ConditionOperator.EQUALS, 1, weight=1.0),
        ]
        result = evaluator.evaluate(conditions, {"a": 1, "b": 0})
        assert result.value == TriBool.TRUE
        assert result.confidence == pytest.approx(0.75)
        assert result.score == 75.0

    def test_matched_conditions_listed(self, evaluator):
        cond = make_condition("a", ConditionOperator.EXISTS, id="has-a")
        result = evaluator.evaluate([cond], {"a": 0})
        assert result.matched_conditions == ["has-a"]

    def test_check_false_on_unknown(self, evaluator):
        cond = make_condition("missing", ConditionOperator.EQUALS, 1)
        assert evaluator.check([cond], {}) is False

    def test_required_fields_deduplicated(self, evaluator):
        conditions = [
            make_condition("a", ConditionOperator.EXISTS),
            make_condition("b", ConditionOperator.EXISTS),
            make_condition("a", ConditionOperator.NOT_EQUALS, 3),
        ]
        assert evaluator.required_fields(conditions) == ["a", "b"]
