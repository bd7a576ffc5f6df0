"""
CasePilot Assignment Selector

Chooses an assignee for a task from a candidate pool.

Pipeline:
1. Filter: role, availability, excluded users, workload ceiling,
   expertise floor
2. Score: named weighted factors (expertise, workload, availability,
   role_fit) for reporting and recommendation confidence
3. Order by strategy with deterministic tie-breaks:
   - expertise_based:  expertise desc, workload asc, input order
   - workload_balance: workload asc, expertise desc, input order
   - priority_based:   role priority, workload asc, input order

The same pool and criteria always produce the same decision.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Sequence

from ..exceptions import NoEligibleCandidateError
from ..models import (
    AssignmentCriteria,
    AssignmentDecision,
    AssignmentRecommendation,
    AssignmentStrategy,
    Candidate,
    CandidateScore,
    CaseType,
    FactorScore,
    Task,
    TaskPriority,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Workload and Expertise Scoring
# =============================================================================

TASK_BASE_LOAD = 10
PRIORITY_LOAD: dict[TaskPriority, int] = {
    TaskPriority.URGENT: 20,
    TaskPriority.HIGH: 15,
    TaskPriority.MEDIUM: 10,
    TaskPriority.LOW: 5,
}
OVERDUE_LOAD = 25

# Open tasks a user of each role can carry
ROLE_CAPACITY: dict[UserRole, int] = {
    UserRole.ATTORNEY: 15,
    UserRole.ASSISTANT: 20,
    UserRole.ADMIN: 25,
}
DEFAULT_CAPACITY = 10

_MATRIX_ORDER = (
    CaseType.CRIMINAL_DEFENSE,
    CaseType.MEDICAL_MALPRACTICE,
    CaseType.CONTRACT_DISPUTE,
    CaseType.LABOR_DISPUTE,
    CaseType.DIVORCE_FAMILY,
    CaseType.INHERITANCE_DISPUTE,
    CaseType.ADMINISTRATIVE_CASE,
    CaseType.DEMOLITION_CASE,
    CaseType.SPECIAL_MATTERS,
)

DEFAULT_EXPERTISE_MATRIX: dict[UserRole, dict[CaseType, float]] = {
    UserRole.ATTORNEY: dict(zip(_MATRIX_ORDER, (0.9, 0.8, 0.7, 0.6, 0.5, 0.4, 0.3, 0.2, 0.1))),
    UserRole.ASSISTANT: dict(zip(_MATRIX_ORDER, (0.4, 0.3, 0.5, 0.7, 0.6, 0.5, 0.4, 0.3, 0.2))),
    UserRole.ADMIN: dict(zip(_MATRIX_ORDER, (0.3, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.4))),
}

SPECIALIZATION_BONUS = 0.1


def workload_score(tasks: Iterable[Task], as_of: datetime) -> float:
    """
    Weighted load of a user's open tasks.

    Each open task counts 10, plus 20/15/10/5 for urgent/high/medium/low
    priority, plus 25 when overdue.
    """
    score = 0.0
    for task in tasks:
        if not task.is_open:
            continue
        score += TASK_BASE_LOAD + PRIORITY_LOAD.get(task.priority, 0)
        if task.is_overdue(as_of):
            score += OVERDUE_LOAD
    return score


def skill_matches(required: Sequence[str], expertise: Sequence[str]) -> list[str]:
    """Required skills covered by the user's expertise tags (substring match)."""
    tags = [e.lower() for e in expertise]
    return [
        skill for skill in required
        if any(skill.lower() in tag or tag in skill.lower() for tag in tags)
    ]


def expertise_score(
    user: User,
    case_type: Optional[CaseType],
    required_expertise: Sequence[str] = (),
    matrix: Optional[dict[UserRole, dict[CaseType, float]]] = None,
) -> float:
    """
    Expertise of a user for a case type and skill set, in 0..1.

    Role/case-type matrix value, plus a bonus for a matching
    specialization; averaged with skill coverage when skills are required.
    """
    matrix = matrix or DEFAULT_EXPERTISE_MATRIX
    base = 0.0
    if case_type is not None:
        base = matrix.get(user.role, {}).get(CaseType(case_type), 0.0)
        if user.specialization is not None and user.specialization == case_type:
            base += SPECIALIZATION_BONUS
    if required_expertise:
        coverage = len(skill_matches(required_expertise, user.expertise)) / len(required_expertise)
        base = (base + coverage) / 2
    return round(min(1.0, base), 4)


def determine_preferred_role(case_type: Optional[CaseType], priority: TaskPriority) -> UserRole:
    """Attorneys for urgent work and litigation-heavy practice areas."""
    if priority in (TaskPriority.URGENT, TaskPriority.HIGH):
        return UserRole.ATTORNEY
    if case_type in (
        CaseType.MEDICAL_MALPRACTICE,
        CaseType.CRIMINAL_DEFENSE,
        CaseType.LABOR_DISPUTE,
        CaseType.CONTRACT_DISPUTE,
    ):
        return UserRole.ATTORNEY
    return UserRole.ASSISTANT


def build_candidates(
    users: Iterable[User],
    open_tasks_by_user: dict[str, list[Task]],
    case_type: Optional[CaseType],
    required_expertise: Sequence[str],
    as_of: datetime,
    matrix: Optional[dict[UserRole, dict[CaseType, float]]] = None,
) -> list[Candidate]:
    """Turn directory users into scored candidates, preserving input order."""
    candidates = []
    for user in users:
        tasks = open_tasks_by_user.get(user.id, [])
        candidates.append(
            Candidate(
                user_id=user.id,
                name=user.name,
                role=user.role,
                workload=workload_score(tasks, as_of),
                expertise_score=expertise_score(user, case_type, required_expertise, matrix),
                available=user.is_available,
                active_tasks=sum(1 for t in tasks if t.is_open),
                expertise=list(user.expertise),
            )
        )
    return candidates


# =============================================================================
# Selector
# =============================================================================

DEFAULT_FACTOR_WEIGHTS: dict[str, float] = {
    "expertise": 0.5,
    "workload": 0.3,
    "availability": 0.1,
    "role_fit": 0.1,
}


@dataclass
class AssignmentSelector:
    """
    Deterministic candidate selection.

    Usage:
        selector = AssignmentSelector()
        decision = selector.select(candidates, AssignmentCriteria(
            strategy=AssignmentStrategy.WORKLOAD_BALANCE,
        ))
        print(decision.user_id)
    """

    factor_weights: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_FACTOR_WEIGHTS)
    )

    def eligible(
        self,
        candidates: Sequence[Candidate],
        criteria: AssignmentCriteria,
    ) -> list[tuple[int, Candidate]]:
        """Filtered pool as (input index, candidate) pairs."""
        pool = []
        for index, candidate in enumerate(candidates):
            if not candidate.available:
                continue
            if criteria.required_role is not None and candidate.role != criteria.required_role:
                continue
            if candidate.user_id in criteria.exclude_user_ids:
                continue
            if criteria.max_workload is not None and candidate.workload > criteria.max_workload:
                continue
            if (
                criteria.min_expertise_score is not None
                and candidate.expertise_score < criteria.min_expertise_score
            ):
                continue
            pool.append((index, candidate))
        return pool

    def score(
        self,
        candidate: Candidate,
        criteria: AssignmentCriteria,
        max_workload: float,
    ) -> list[FactorScore]:
        preferred = criteria.required_role or criteria.preferred_role
        workload_value = 1.0 if max_workload <= 0 else 1.0 - (candidate.workload / max_workload)
        if preferred is None:
            role_fit = 1.0
        else:
            role_fit = 1.0 if candidate.role == preferred else 0.5
        values = {
            "expertise": candidate.expertise_score,
            "workload": round(workload_value, 6),
            "availability": 1.0 if candidate.available else 0.0,
            "role_fit": role_fit,
        }
        return [
            FactorScore(name=name, weight=weight, value=values[name])
            for name, weight in self.factor_weights.items()
        ]

    def rank(
        self,
        candidates: Sequence[Candidate],
        criteria: AssignmentCriteria,
    ) -> list[CandidateScore]:
        """Eligible candidates ordered by the criteria's strategy."""
        pool = self.eligible(candidates, criteria)
        if not pool:
            return []
        max_workload = max(c.workload for _, c in pool)
        role_order = {role: i for i, role in enumerate(criteria.role_priority)}

        def sort_key(entry: tuple[int, Candidate]) -> tuple:
            index, c = entry
            if criteria.strategy == AssignmentStrategy.EXPERTISE_BASED:
                return (-c.expertise_score, c.workload, index)
            if criteria.strategy == AssignmentStrategy.WORKLOAD_BALANCE:
                return (c.workload, -c.expertise_score, index)
            return (role_order.get(c.role, len(role_order)), c.workload, index)

        ordered = sorted(pool, key=sort_key)
        return [
            CandidateScore(
                candidate=c,
                factors=self.score(c, criteria, max_workload),
                rank=position + 1,
            )
            for position, (_, c) in enumerate(ordered)
        ]

    def select(
        self,
        candidates: Sequence[Candidate],
        criteria: AssignmentCriteria,
    ) -> AssignmentDecision:
        """
        Pick the best candidate.

        Raises:
            NoEligibleCandidateError: If the filters leave nobody
        """
        ranked = self.rank(candidates, criteria)
        if not ranked:
            raise NoEligibleCandidateError(
                message="No eligible candidate for assignment",
                details={
                    "strategy": criteria.strategy.value,
                    "pool_size": len(candidates),
                    "required_role": criteria.required_role.value if criteria.required_role else None,
                },
            )
        best = ranked[0]
        reasoning = [
            f"strategy {criteria.strategy.value} ranked {len(ranked)} of {len(candidates)} candidates",
            f"selected {best.candidate.user_id}: expertise {best.candidate.expertise_score:.2f}, "
            f"workload {best.candidate.workload:g}",
        ]
        logger.debug("Selected %s via %s", best.candidate.user_id, criteria.strategy.value)
        return AssignmentDecision(
            selected=best,
            ranked=ranked,
            strategy=criteria.strategy,
            reasoning=reasoning,
        )

    def recommend(
        self,
        candidates: Sequence[Candidate],
        criteria: AssignmentCriteria,
        limit: int = 5,
    ) -> list[AssignmentRecommendation]:
        """
        Top candidates with a 0..100+ suitability score, reasoning and
        confidence, highest score first (ties keep input order).
        """
        preferred = criteria.required_role or criteria.preferred_role
        scored = []
        for index, candidate in self.eligible(candidates, criteria):
            capacity = ROLE_CAPACITY.get(candidate.role, DEFAULT_CAPACITY) - candidate.active_tasks
            matched = skill_matches(criteria.required_expertise, candidate.expertise)

            score = 100.0 - candidate.workload * 0.5
            if capacity > 0:
                score += capacity * 2
            if preferred is not None and candidate.role == preferred:
                score += 20
            score += len(matched) * 10
            if criteria.priority in (TaskPriority.URGENT, TaskPriority.HIGH):
                score += 15 if capacity > 0 else -10
            score = max(0.0, score)

            confidence = 0.5
            reasoning = []
            if capacity > 0:
                reasoning.append(f"Has capacity for {capacity} more tasks")
            if capacity > 5:
                confidence += 0.2
            if preferred is not None and candidate.role == preferred:
                reasoning.append(f"Matches preferred role: {preferred.value}")
                confidence += 0.2
            if matched:
                reasoning.append(f"Has relevant expertise: {', '.join(matched)}")
                confidence += 0.1
            if candidate.workload < 50:
                reasoning.append("Low current workload")

            scored.append((index, AssignmentRecommendation(
                user_id=candidate.user_id,
                role=candidate.role,
                score=round(score, 2),
                confidence=round(min(1.0, confidence), 2),
                reasoning=reasoning,
                available_capacity=max(0, capacity),
            )))

        scored.sort(key=lambda entry: (-entry[1].score, entry[0]))
        return [rec for _, rec in scored[:limit]]
