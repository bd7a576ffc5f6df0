"""
CasePilot Assignment Models

Candidate pool entries, selection criteria and the scored output of the
assignment selector.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .enums import AssignmentStrategy, TaskPriority, UserRole


@dataclass
class Candidate:
    """
    A user considered for a task.

    ``workload`` is the weighted workload score of the user's open tasks;
    ``expertise_score`` is in 0..1 for the task's case type and skills.
    """
    user_id: str
    role: UserRole
    workload: float = 0.0
    expertise_score: float = 0.0
    available: bool = True
    active_tasks: int = 0
    expertise: list[str] = field(default_factory=list)
    name: str = ""

    def __post_init__(self) -> None:
        self.role = UserRole(self.role)


@dataclass
class AssignmentCriteria:
    strategy: AssignmentStrategy = AssignmentStrategy.EXPERTISE_BASED
    required_role: Optional[UserRole] = None
    preferred_role: Optional[UserRole] = None
    required_expertise: list[str] = field(default_factory=list)
    max_workload: Optional[float] = None
    min_expertise_score: Optional[float] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    exclude_user_ids: list[str] = field(default_factory=list)
    role_priority: tuple[UserRole, ...] = (
        UserRole.ATTORNEY,
        UserRole.ADMIN,
        UserRole.ASSISTANT,
    )


@dataclass
class FactorScore:
    """One named, weighted component of a candidate's score."""
    name: str
    weight: float
    value: float

    @property
    def contribution(self) -> float:
        return self.weight * self.value


@dataclass
class CandidateScore:
    candidate: Candidate
    factors: list[FactorScore]
    rank: int = 0

    @property
    def total(self) -> float:
        return round(sum(f.contribution for f in self.factors), 6)

    def factor(self, name: str) -> Optional[FactorScore]:
        for f in self.factors:
            if f.name == name:
                return f
        return None


@dataclass
class AssignmentDecision:
    selected: CandidateScore
    ranked: list[CandidateScore]
    strategy: AssignmentStrategy
    reasoning: list[str] = field(default_factory=list)

    @property
    def user_id(self) -> str:
        return self.selected.candidate.user_id


@dataclass
class AssignmentRecommendation:
    user_id: str
    role: UserRole
    score: float
    confidence: float
    reasoning: list[str] = field(default_factory=list)
    available_capacity: int = 0
