"""
CasePilot Store Contracts

Protocols for the persistence and delivery collaborators the engines use.
Any backend (SQL, document store, message bus) can implement them; the
in-memory implementations in ``casepilot.store.memory`` back the tests and
the default API wiring.
"""
from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

from ..models import (
    ApprovalRequest,
    AuditRecord,
    BusinessRule,
    Case,
    EscalationPath,
    Notification,
    NotificationChannel,
    NotificationType,
    RuleCategory,
    Task,
    TransitionRecord,
    Urgency,
    User,
    UserRole,
)


@runtime_checkable
class CaseRepository(Protocol):
    def get(self, case_id: str) -> Optional[Case]: ...

    def save(self, case: Case) -> Case: ...

    def list(self) -> list[Case]: ...

    def transaction(self) -> AbstractContextManager[Any]: ...


@runtime_checkable
class TaskRepository(Protocol):
    def get(self, task_id: str) -> Optional[Task]: ...

    def save(self, task: Task) -> Task: ...

    def list_for_case(self, case_id: str) -> list[Task]: ...

    def list_for_assignee(self, user_id: str, open_only: bool = True) -> list[Task]: ...

    def transaction(self) -> AbstractContextManager[Any]: ...


@runtime_checkable
class UserDirectory(Protocol):
    def get(self, user_id: str) -> Optional[User]: ...

    def list(self, role: Optional[UserRole] = None, available_only: bool = False) -> list[User]: ...


@runtime_checkable
class RuleRepository(Protocol):
    """
    Transactional store of business rules addressed by stable id.

    ``snapshot`` returns detached copies so an evaluation pass sees a fixed
    rule set; ``record_outcome`` and ``disable`` are the only writes the
    engine performs during evaluation.
    """

    def add(self, rule: BusinessRule) -> BusinessRule: ...

    def get(self, rule_id: str) -> Optional[BusinessRule]: ...

    def update(self, rule: BusinessRule) -> BusinessRule: ...

    def delete(self, rule_id: str) -> bool: ...

    def list(
        self,
        category: Optional[RuleCategory] = None,
        active_only: bool = False,
    ) -> list[BusinessRule]: ...

    def snapshot(self, active_only: bool = True) -> list[BusinessRule]: ...

    def record_outcome(self, rule_id: str, success: bool, at: datetime) -> None: ...

    def disable(self, rule_id: str, reason: str) -> None: ...

    def transaction(self) -> AbstractContextManager[Any]: ...


@runtime_checkable
class EscalationRegistry(Protocol):
    def add(self, path: EscalationPath) -> EscalationPath: ...

    def remove(self, from_role: UserRole, level: int) -> bool: ...

    def list(self, from_role: Optional[UserRole] = None) -> list[EscalationPath]: ...


@runtime_checkable
class TransitionRepository(Protocol):
    def save_approval(self, approval: ApprovalRequest) -> ApprovalRequest: ...

    def get_approval(self, approval_id: str) -> Optional[ApprovalRequest]: ...

    def list_approvals(self, pending_only: bool = True) -> list[ApprovalRequest]: ...

    def append_history(self, record: TransitionRecord) -> None: ...

    def history(self, case_id: str) -> list[TransitionRecord]: ...


@runtime_checkable
class NotificationDispatcher(Protocol):
    """
    Delivers notifications. Failures raise NotificationError; callers treat
    them as non-fatal.
    """

    def dispatch(
        self,
        recipients: list[str],
        template: str,
        *,
        channel: NotificationChannel = NotificationChannel.IN_APP,
        urgency: Urgency = Urgency.MEDIUM,
        delay_minutes: int = 0,
        type: NotificationType = NotificationType.RULE_ACTION,
        payload: Optional[dict[str, Any]] = None,
    ) -> list[Notification]: ...

    def list_for(self, recipient: str, unread_only: bool = False) -> list[Notification]: ...

    def mark_read(self, notification_id: str) -> bool: ...


@runtime_checkable
class AuditSink(Protocol):
    """Append-only audit trail."""

    def append(self, record: AuditRecord) -> None: ...

    def records(self, entity_id: Optional[str] = None) -> list[AuditRecord]: ...
