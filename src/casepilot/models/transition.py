"""
CasePilot Transition Models

Validation results, approval requests, history entries, notifications and
audit records produced around case phase transitions.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .case import utc_now
from .enums import (
    ApprovalStatus,
    CasePhase,
    CaseStatus,
    NotificationChannel,
    NotificationType,
    Urgency,
    UserRole,
)


@dataclass
class ValidationResult:
    """
    Structured outcome of a validation.

    Only ``errors`` block; warnings and recommendations are advisory.
    """
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @classmethod
    def from_messages(
        cls,
        errors: list[str],
        warnings: Optional[list[str]] = None,
        recommendations: Optional[list[str]] = None,
    ) -> ValidationResult:
        return cls(
            valid=not errors,
            errors=list(errors),
            warnings=list(warnings or []),
            recommendations=list(recommendations or []),
        )

    def merge(self, other: ValidationResult) -> ValidationResult:
        return ValidationResult.from_messages(
            self.errors + other.errors,
            self.warnings + other.warnings,
            self.recommendations + other.recommendations,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
        }


@dataclass
class PhaseRequirements:
    phase: CasePhase
    required_fields: list[str]
    conditional_fields: list[str]
    completion_checks: list[str]
    allowed_status_transitions: list[tuple[CaseStatus, CaseStatus]]

    @property
    def all_fields(self) -> list[str]:
        return self.required_fields + [f for f in self.conditional_fields if f not in self.required_fields]


@dataclass
class PhaseProgress:
    phase: CasePhase
    completed: int
    total: int
    missing: list[str] = field(default_factory=list)

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 0
        return round(self.completed / self.total * 100)


@dataclass
class ApprovalRequest:
    id: str
    case_id: str
    from_phase: CasePhase
    to_phase: CasePhase
    requested_by: str
    requested_role: UserRole
    approver_role: UserRole
    reason: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    target_status: Optional[CaseStatus] = None
    status: ApprovalStatus = ApprovalStatus.PENDING
    requested_at: datetime = field(default_factory=utc_now)
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    decision_comment: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "case_id": self.case_id,
            "from_phase": self.from_phase.value,
            "to_phase": self.to_phase.value,
            "requested_by": self.requested_by,
            "requested_role": self.requested_role.value,
            "approver_role": self.approver_role.value,
            "reason": self.reason,
            "target_status": self.target_status.value if self.target_status else None,
            "status": self.status.value,
            "requested_at": self.requested_at.isoformat(),
            "decided_by": self.decided_by,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "decision_comment": self.decision_comment,
        }


@dataclass
class TransitionRecord:
    """History entry for an executed phase transition."""
    id: str
    case_id: str
    from_phase: CasePhase
    to_phase: CasePhase
    from_status: CaseStatus
    to_status: CaseStatus
    actor_id: str
    reason: str = ""
    approval_id: Optional[str] = None
    executed_at: datetime = field(default_factory=utc_now)
    follow_up_task_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "case_id": self.case_id,
            "from_phase": self.from_phase.value,
            "to_phase": self.to_phase.value,
            "from_status": self.from_status.value,
            "to_status": self.to_status.value,
            "actor_id": self.actor_id,
            "reason": self.reason,
            "approval_id": self.approval_id,
            "executed_at": self.executed_at.isoformat(),
            "follow_up_task_ids": list(self.follow_up_task_ids),
        }


@dataclass
class TransitionOutcome:
    """What happened to a transition request."""
    status: str  # "completed" | "pending_approval" | "rejected"
    validation: ValidationResult
    record: Optional[TransitionRecord] = None
    approval: Optional[ApprovalRequest] = None

    @property
    def completed(self) -> bool:
        return self.status == "completed"


@dataclass
class Notification:
    id: str
    recipient: str
    template: str
    channel: NotificationChannel = NotificationChannel.IN_APP
    urgency: Urgency = Urgency.MEDIUM
    type: NotificationType = NotificationType.RULE_ACTION
    payload: dict[str, Any] = field(default_factory=dict)
    delay_minutes: int = 0
    created_at: datetime = field(default_factory=utc_now)
    read: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "recipient": self.recipient,
            "template": self.template,
            "channel": self.channel.value,
            "urgency": self.urgency.value,
            "type": self.type.value,
            "payload": dict(self.payload),
            "delay_minutes": self.delay_minutes,
            "created_at": self.created_at.isoformat(),
            "read": self.read,
        }


@dataclass
class AuditRecord:
    """Append-only record of a state change."""
    id: str
    event: str
    actor_id: str
    entity_type: str
    entity_id: str
    before: dict[str, Any] = field(default_factory=dict)
    after: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event": self.event,
            "actor_id": self.actor_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "before": self.before,
            "after": self.after,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }
