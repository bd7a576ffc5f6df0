"""
CasePilot Condition Evaluator

Evaluates flat business-rule condition lists against an evaluation root
using three-valued logic.

Key features:
- Field path resolution (e.g., "task.priority", "case.metadata.court")
- TriBool leaves; missing fields are UNKNOWN except for exists/not_exists
- Fixed precedence: AND binds tighter than OR, read left to right
- Every leaf is evaluated, so weighted confidence is always complete
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence, Union

from ..models import (
    BusinessCondition,
    ConditionOperator,
    EvaluationResult,
    LogicalOperator,
    TriBool,
)


# =============================================================================
# Field Path Resolution
# =============================================================================

def resolve_field_path(obj: Any, path: str) -> tuple[Any, bool]:
    """
    Resolve a dot-notation field path to a value.

    Supports:
    - Mapping keys: "metadata.court"
    - Object attributes: "task.priority"
    - Nested paths: "case.metadata.judge.name"
    - List indexes: "event.documents.0"

    Args:
        obj: The root object to resolve from
        path: Dot-notation path

    Returns:
        Tuple of (resolved_value, found). If not found, returns (None, False).
    """
    current = obj
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part in current:
                current = current[part]
            else:
                return (None, False)
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return (None, False)
            current = current[index]
        elif current is not None and not part.startswith("_") and hasattr(current, part):
            current = getattr(current, part)
        else:
            return (None, False)
    return (current, True)


# =============================================================================
# Comparison Operators
# =============================================================================

def compare_values(
    actual: Any,
    operator: ConditionOperator,
    expected: Any,
) -> TriBool:
    """
    Compare a resolved value against the condition's value.

    Args:
        actual: The value found at the field path (None when absent)
        operator: Comparison operator
        expected: The condition's comparison value

    Returns:
        TriBool result of the comparison
    """
    if operator == ConditionOperator.EXISTS:
        return TriBool.from_bool(actual is not None)

    if operator == ConditionOperator.NOT_EXISTS:
        return TriBool.from_bool(actual is None)

    if actual is None:
        return TriBool.UNKNOWN

    try:
        if operator == ConditionOperator.EQUALS:
            return TriBool.from_bool(_equal(actual, expected))

        elif operator == ConditionOperator.NOT_EQUALS:
            return TriBool.from_bool(not _equal(actual, expected))

        elif operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
            left, right = _coerce_ordered(actual, expected)
            if operator == ConditionOperator.GREATER_THAN:
                return TriBool.from_bool(left > right)
            return TriBool.from_bool(left < right)

        elif operator == ConditionOperator.IN:
            if isinstance(expected, (list, tuple, set, frozenset)):
                return TriBool.from_bool(any(_equal(actual, v) for v in expected))
            return TriBool.UNKNOWN

        elif operator == ConditionOperator.NOT_IN:
            if isinstance(expected, (list, tuple, set, frozenset)):
                return TriBool.from_bool(not any(_equal(actual, v) for v in expected))
            return TriBool.UNKNOWN

        elif operator == ConditionOperator.CONTAINS:
            if isinstance(actual, str):
                return TriBool.from_bool(isinstance(expected, str) and expected in actual)
            if isinstance(actual, Mapping):
                return TriBool.from_bool(expected in actual)
            if isinstance(actual, (list, tuple, set, frozenset)):
                return TriBool.from_bool(any(_equal(item, expected) for item in actual))
            return TriBool.FALSE

        elif operator == ConditionOperator.MATCHES_PATTERN:
            if not isinstance(expected, str):
                return TriBool.UNKNOWN
            return TriBool.from_bool(re.search(expected, _as_text(actual)) is not None)

    except (TypeError, ValueError, re.error):
        return TriBool.UNKNOWN

    return TriBool.UNKNOWN


def _as_text(value: Any) -> str:
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        return value.value
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _equal(actual: Any, expected: Any) -> bool:
    if _is_number(actual) and _is_number(expected):
        return Decimal(str(actual)) == Decimal(str(expected))
    return actual == expected


def _coerce_ordered(actual: Any, expected: Any) -> tuple[Any, Any]:
    """Bring both sides of a greater/less comparison to a comparable type."""
    if isinstance(actual, (datetime, date)) or isinstance(expected, (datetime, date)):
        return _coerce_temporal(actual), _coerce_temporal(expected)
    return _coerce_numeric(actual), _coerce_numeric(expected)


def _coerce_numeric(value: Any) -> Union[int, float, Decimal]:
    if _is_number(value):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}")
    raise TypeError(f"cannot order {type(value).__name__}")


def _coerce_temporal(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=None)
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    raise TypeError(f"cannot compare {type(value).__name__} with a date")


# =============================================================================
# Condition Evaluator
# =============================================================================

@dataclass
class ConditionEvaluator:
    """
    Evaluates business-rule condition lists against an evaluation root.

    Combination rule: each condition's ``logical_operator`` links it to the
    next condition. The list is cut at every OR link into AND groups; the
    result is the Kleene OR of the Kleene AND of each group. So
    ``A and B or C`` is ``(A AND B) OR C``.

    Usage:
        evaluator = ConditionEvaluator()
        result = evaluator.evaluate(rule.conditions, root)

        if result.value == TriBool.TRUE:
            print(result.confidence)
        elif result.value == TriBool.UNKNOWN:
            print(f"Unresolved: {result.unresolved_fields}")
    """

    def evaluate(
        self,
        conditions: Sequence[BusinessCondition],
        root: Any,
    ) -> EvaluationResult:
        """
        Evaluate a flat condition list.

        Args:
            conditions: Conditions in declared order
            root: Mapping or object field paths resolve against

        Returns:
            EvaluationResult with TriBool value, weights and unresolved fields
        """
        if not conditions:
            return EvaluationResult.empty()

        groups: list[EvaluationResult] = []
        current: Optional[EvaluationResult] = None
        for index, condition in enumerate(conditions):
            leaf = self.evaluate_condition(condition, root)
            current = leaf if current is None else current & leaf
            is_last = index == len(conditions) - 1
            if is_last or condition.logical_operator == LogicalOperator.OR:
                groups.append(current)
                current = None

        result = groups[0]
        for group in groups[1:]:
            result = result | group
        return result

    def evaluate_condition(
        self,
        condition: BusinessCondition,
        root: Any,
    ) -> EvaluationResult:
        """Evaluate one leaf condition."""
        actual, found = resolve_field_path(root, condition.field)
        value = compare_values(actual if found else None, condition.operator, condition.value)

        unresolved: list[str] = []
        warnings: list[str] = []
        if value == TriBool.UNKNOWN:
            if not found:
                unresolved.append(condition.field)
                warnings.append(f"field '{condition.field}' not found for condition '{condition.id}'")
            else:
                warnings.append(
                    f"condition '{condition.id}' could not compare {type(actual).__name__} "
                    f"using {condition.operator.value}"
                )

        return EvaluationResult(
            value=value,
            explanation=condition.describe(),
            matched_weight=condition.weight if value == TriBool.TRUE else 0.0,
            total_weight=condition.weight,
            unresolved_fields=unresolved,
            matched_conditions=[condition.id] if value == TriBool.TRUE else [],
            warnings=warnings,
        )

    def check(self, conditions: Sequence[BusinessCondition], root: Any) -> bool:
        """True only when the conditions evaluate definitely TRUE."""
        return self.evaluate(conditions, root).value == TriBool.TRUE

    def required_fields(self, conditions: Sequence[BusinessCondition]) -> list[str]:
        """Field paths a condition list reads, in first-seen order."""
        seen: dict[str, None] = {}
        for condition in conditions:
            seen.setdefault(condition.field, None)
        return list(seen)
