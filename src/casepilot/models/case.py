"""
CasePilot Case, Task and User Models

Core entities of the practice-management domain. Cases move through the
lifecycle phases; tasks belong to a case and are the target of most rule
actions; users are the assignable staff and the clients they represent.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from ..exceptions import ImmutableFieldError
from .enums import CasePhase, CaseStatus, CaseType, TaskPriority, TaskStatus, UserRole


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Case
# =============================================================================

@dataclass
class Case:
    """
    A legal matter handled by the firm.

    ``case_type`` is fixed at creation; assigning it again raises
    ImmutableFieldError. Phase changes go through the transition service,
    which validates ordering before mutating ``phase``.
    """
    id: str
    title: str
    case_type: CaseType
    client_id: str
    phase: CasePhase = CasePhase.INTAKE
    status: CaseStatus = CaseStatus.INTAKE
    attorney_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    phase_started_at: datetime = field(default_factory=utc_now)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "case_type" and "case_type" in self.__dict__:
            raise ImmutableFieldError(
                message="case_type cannot be changed after creation",
                details={"current": self.__dict__["case_type"].value, "attempted": str(value)},
                case_id=self.__dict__.get("id"),
            )
        super().__setattr__(name, value)

    def __post_init__(self) -> None:
        self.__dict__["case_type"] = CaseType(self.case_type)
        self.phase = CasePhase(self.phase)
        self.status = CaseStatus(self.status)

    @property
    def type(self) -> CaseType:
        """Alias so rule conditions can address ``case.type``."""
        return self.case_type

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "case_type": self.case_type.value,
            "phase": self.phase.value,
            "status": self.status.value,
            "client_id": self.client_id,
            "attorney_id": self.attorney_id,
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "phase_started_at": self.phase_started_at.isoformat(),
        }


# =============================================================================
# Task
# =============================================================================

@dataclass
class ReviewRequest:
    """Review requested on a task by a rule action."""
    id: str
    review_type: str
    reviewer_role: UserRole
    requested_at: datetime
    due_at: Optional[datetime] = None
    reason: str = ""
    checklist: list[str] = field(default_factory=list)


@dataclass
class Task:
    """A unit of work on a case."""
    id: str
    case_id: str
    title: str
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[str] = None
    assignee_role: Optional[UserRole] = None
    due_date: Optional[datetime] = None
    escalation_level: int = 0
    required_expertise: list[str] = field(default_factory=list)
    estimated_hours: Optional[float] = None
    category: Optional[str] = None
    value: float = 0.0
    dependencies: list[str] = field(default_factory=list)
    review_requests: list[ReviewRequest] = field(default_factory=list)
    description: str = ""
    created_at: datetime = field(default_factory=utc_now)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.status = TaskStatus(self.status)
        self.priority = TaskPriority(self.priority)
        if self.assignee_role is not None:
            self.assignee_role = UserRole(self.assignee_role)

    @property
    def is_open(self) -> bool:
        return self.status not in (TaskStatus.COMPLETED, TaskStatus.CANCELLED)

    def is_overdue(self, as_of: datetime) -> bool:
        return self.is_open and self.due_date is not None and self.due_date < as_of

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "case_id": self.case_id,
            "title": self.title,
            "status": self.status.value,
            "priority": self.priority.value,
            "assignee_id": self.assignee_id,
            "assignee_role": self.assignee_role.value if self.assignee_role else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "escalation_level": self.escalation_level,
            "required_expertise": list(self.required_expertise),
            "estimated_hours": self.estimated_hours,
            "category": self.category,
            "value": self.value,
            "dependencies": list(self.dependencies),
            "review_requests": [r.id for r in self.review_requests],
        }


# =============================================================================
# User
# =============================================================================

@dataclass
class User:
    """Staff member or client known to the directory."""
    id: str
    name: str
    role: UserRole
    expertise: list[str] = field(default_factory=list)
    is_available: bool = True
    specialization: Optional[CaseType] = None
    email: Optional[str] = None

    def __post_init__(self) -> None:
        self.role = UserRole(self.role)
        if self.specialization is not None:
            self.specialization = CaseType(self.specialization)
