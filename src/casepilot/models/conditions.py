"""
CasePilot Condition Logic

Three-valued truth (TriBool) and the weighted result records the condition
evaluator produces. A condition on a field the case or task does not carry
is UNKNOWN, never FALSE: it cannot match on its own, but a sibling in an OR
group can still satisfy the rule.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


# =============================================================================
# Three-Valued Logic (TriBool)
# =============================================================================

class TriBool(Enum):
    """
    Kleene truth value.

    Ordered FALSE < UNKNOWN < TRUE: ``&`` takes the lower of the two
    operands and ``|`` the higher, so FALSE dominates a conjunction and
    TRUE dominates a disjunction.
    """
    TRUE = True
    FALSE = False
    UNKNOWN = None

    @property
    def _rank(self) -> int:
        return _RANK[self]

    def __and__(self, other: TriBool) -> TriBool:
        if not isinstance(other, TriBool):
            return NotImplemented
        return min(self, other, key=lambda v: v._rank)

    def __or__(self, other: TriBool) -> TriBool:
        if not isinstance(other, TriBool):
            return NotImplemented
        return max(self, other, key=lambda v: v._rank)

    def __invert__(self) -> TriBool:
        return {
            TriBool.TRUE: TriBool.FALSE,
            TriBool.FALSE: TriBool.TRUE,
        }.get(self, TriBool.UNKNOWN)

    def __bool__(self) -> bool:
        # UNKNOWN must be handled by the caller, never coerced to False
        if self is TriBool.UNKNOWN:
            raise ValueError("TriBool.UNKNOWN has no boolean value")
        return self is TriBool.TRUE

    @classmethod
    def from_bool(cls, value: Optional[bool]) -> TriBool:
        if value is None:
            return cls.UNKNOWN
        return cls.TRUE if value else cls.FALSE


_RANK = {TriBool.FALSE: 0, TriBool.UNKNOWN: 1, TriBool.TRUE: 2}


# =============================================================================
# Evaluation Result
# =============================================================================

@dataclass
class EvaluationResult:
    """
    Result of evaluating one condition or a combination of conditions.

    Weights of TRUE leaves accumulate in ``matched_weight``; every leaf adds
    to ``total_weight``. Combining results with ``&`` or ``|`` always sums
    both weights, so confidence reflects every leaf that was evaluated.
    """
    value: TriBool
    explanation: str
    matched_weight: float = 0.0
    total_weight: float = 0.0
    unresolved_fields: list[str] = field(default_factory=list)
    matched_conditions: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_satisfied(self) -> bool:
        return self.value == TriBool.TRUE

    @property
    def confidence(self) -> float:
        """Share of condition weight that evaluated TRUE (0..1)."""
        if self.total_weight <= 0:
            return 1.0 if self.value == TriBool.TRUE else 0.0
        return self.matched_weight / self.total_weight

    @property
    def score(self) -> float:
        """Confidence on a 0..100 scale."""
        return round(self.confidence * 100, 2)

    def _merge(self, other: EvaluationResult, value: TriBool, joiner: str) -> EvaluationResult:
        return EvaluationResult(
            value=value,
            explanation=f"({self.explanation}) {joiner} ({other.explanation})",
            matched_weight=self.matched_weight + other.matched_weight,
            total_weight=self.total_weight + other.total_weight,
            unresolved_fields=_dedupe(self.unresolved_fields + other.unresolved_fields),
            matched_conditions=self.matched_conditions + other.matched_conditions,
            warnings=self.warnings + other.warnings,
        )

    def __and__(self, other: EvaluationResult) -> EvaluationResult:
        """Combine two results with AND logic."""
        return self._merge(other, self.value & other.value, "AND")

    def __or__(self, other: EvaluationResult) -> EvaluationResult:
        """Combine two results with OR logic."""
        return self._merge(other, self.value | other.value, "OR")

    @classmethod
    def empty(cls) -> EvaluationResult:
        """Result for a rule with no conditions: always satisfied."""
        return cls(value=TriBool.TRUE, explanation="no conditions")


def _dedupe(items: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return list(seen)
