"""
In-memory store implementations.

All stores guard their state with a re-entrant lock; ``transaction()``
holds that lock for the duration of a block so multi-step updates are
atomic with respect to other threads using the same store.
"""
from __future__ import annotations

import copy
import itertools
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional
from uuid import uuid4

from ..exceptions import EscalationPathError, RuleNotFoundError
from ..models import (
    ApprovalRequest,
    ApprovalStatus,
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
    utc_now,
)

logger = logging.getLogger(__name__)


class _Locked:
    def __init__(self) -> None:
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        with self._lock:
            yield self


# =============================================================================
# Cases, Tasks, Users
# =============================================================================

class InMemoryCaseRepository(_Locked):
    def __init__(self, cases: Optional[list[Case]] = None) -> None:
        super().__init__()
        self._cases: dict[str, Case] = {}
        for case in cases or []:
            self.save(case)

    def get(self, case_id: str) -> Optional[Case]:
        with self._lock:
            return self._cases.get(case_id)

    def save(self, case: Case) -> Case:
        with self._lock:
            self._cases[case.id] = case
            return case

    def list(self) -> list[Case]:
        with self._lock:
            return list(self._cases.values())


class InMemoryTaskRepository(_Locked):
    def __init__(self, tasks: Optional[list[Task]] = None) -> None:
        super().__init__()
        self._tasks: dict[str, Task] = {}
        for task in tasks or []:
            self.save(task)

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._tasks.get(task_id)

    def save(self, task: Task) -> Task:
        with self._lock:
            self._tasks[task.id] = task
            return task

    def list_for_case(self, case_id: str) -> list[Task]:
        with self._lock:
            return [t for t in self._tasks.values() if t.case_id == case_id]

    def list_for_assignee(self, user_id: str, open_only: bool = True) -> list[Task]:
        with self._lock:
            return [
                t for t in self._tasks.values()
                if t.assignee_id == user_id and (t.is_open or not open_only)
            ]


class InMemoryUserDirectory:
    def __init__(self, users: Optional[list[User]] = None) -> None:
        self._users: dict[str, User] = {u.id: u for u in users or []}

    def add(self, user: User) -> User:
        self._users[user.id] = user
        return user

    def get(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def list(self, role: Optional[UserRole] = None, available_only: bool = False) -> list[User]:
        return [
            u for u in self._users.values()
            if (role is None or u.role == role) and (u.is_available or not available_only)
        ]


# =============================================================================
# Rules and Escalation Paths
# =============================================================================

def _rule_order(rule: BusinessRule) -> tuple[int, int]:
    return (-rule.priority, rule.sequence)


class InMemoryRuleRepository(_Locked):
    """Rule store with insertion sequencing and atomic counter updates."""

    def __init__(self, rules: Optional[list[BusinessRule]] = None) -> None:
        super().__init__()
        self._rules: dict[str, BusinessRule] = {}
        self._sequence = itertools.count(1)
        for rule in rules or []:
            self.add(rule)

    def add(self, rule: BusinessRule) -> BusinessRule:
        with self._lock:
            rule.sequence = next(self._sequence)
            self._rules[rule.id] = rule
            return rule

    def get(self, rule_id: str) -> Optional[BusinessRule]:
        with self._lock:
            return self._rules.get(rule_id)

    def update(self, rule: BusinessRule) -> BusinessRule:
        with self._lock:
            existing = self._rules.get(rule.id)
            if existing is None:
                raise RuleNotFoundError(message=f"Rule '{rule.id}' not found")
            rule.sequence = existing.sequence
            rule.updated_at = utc_now()
            self._rules[rule.id] = rule
            return rule

    def delete(self, rule_id: str) -> bool:
        with self._lock:
            return self._rules.pop(rule_id, None) is not None

    def list(
        self,
        category: Optional[RuleCategory] = None,
        active_only: bool = False,
    ) -> list[BusinessRule]:
        with self._lock:
            rules = [
                r for r in self._rules.values()
                if (category is None or r.category == category)
                and (r.is_active or not active_only)
            ]
        return sorted(rules, key=_rule_order)

    def snapshot(self, active_only: bool = True) -> list[BusinessRule]:
        with self._lock:
            return copy.deepcopy(self.list(active_only=active_only))

    def record_outcome(self, rule_id: str, success: bool, at: datetime) -> None:
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                # Deleted mid-pass; nothing left to count against
                logger.warning("Outcome for unknown rule %s dropped", rule_id, extra={"rule_id": rule_id})
                return
            rule.trigger_count += 1
            if success:
                rule.success_count += 1
            else:
                rule.failure_count += 1
            rule.last_triggered = at

    def disable(self, rule_id: str, reason: str) -> None:
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                raise RuleNotFoundError(message=f"Rule '{rule_id}' not found")
            rule.is_active = False
            rule.disabled_reason = reason
            rule.updated_at = utc_now()


class InMemoryEscalationRegistry(_Locked):
    """Escalation paths keyed by (from_role, level)."""

    def __init__(self, paths: Optional[list[EscalationPath]] = None) -> None:
        super().__init__()
        self._paths: dict[tuple[UserRole, int], EscalationPath] = {}
        for path in paths or []:
            self.add(path)

    def add(self, path: EscalationPath) -> EscalationPath:
        if path.level < 1:
            raise EscalationPathError(
                message=f"Escalation level must be >= 1, got {path.level}",
                details={"from_role": path.from_role.value, "level": path.level},
            )
        if path.from_role == path.to_role:
            raise EscalationPathError(
                message=f"Escalation path from {path.from_role.value} cannot target the same role",
                details={"from_role": path.from_role.value, "level": path.level},
            )
        with self._lock:
            self._paths[path.key] = path
            return path

    def remove(self, from_role: UserRole, level: int) -> bool:
        with self._lock:
            return self._paths.pop((UserRole(from_role), level), None) is not None

    def list(self, from_role: Optional[UserRole] = None) -> list[EscalationPath]:
        with self._lock:
            paths = [
                p for p in self._paths.values()
                if from_role is None or p.from_role == from_role
            ]
        return sorted(paths, key=lambda p: (p.from_role.value, p.level))


# =============================================================================
# Transitions, Notifications, Audit
# =============================================================================

class InMemoryTransitionRepository(_Locked):
    def __init__(self) -> None:
        super().__init__()
        self._approvals: dict[str, ApprovalRequest] = {}
        self._history: list[TransitionRecord] = []

    def save_approval(self, approval: ApprovalRequest) -> ApprovalRequest:
        with self._lock:
            self._approvals[approval.id] = approval
            return approval

    def get_approval(self, approval_id: str) -> Optional[ApprovalRequest]:
        with self._lock:
            return self._approvals.get(approval_id)

    def list_approvals(self, pending_only: bool = True) -> list[ApprovalRequest]:
        with self._lock:
            approvals = list(self._approvals.values())
        if pending_only:
            approvals = [a for a in approvals if a.status == ApprovalStatus.PENDING]
        return sorted(approvals, key=lambda a: a.requested_at)

    def append_history(self, record: TransitionRecord) -> None:
        with self._lock:
            self._history.append(record)

    def history(self, case_id: str) -> list[TransitionRecord]:
        with self._lock:
            return [r for r in self._history if r.case_id == case_id]


class InMemoryNotificationDispatcher(_Locked):
    """Stores notifications as an in-app inbox per recipient."""

    def __init__(self) -> None:
        super().__init__()
        self._notifications: list[Notification] = []

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
    ) -> list[Notification]:
        sent = [
            Notification(
                id=str(uuid4()),
                recipient=recipient,
                template=template,
                channel=channel,
                urgency=urgency,
                type=type,
                payload=dict(payload or {}),
                delay_minutes=delay_minutes,
            )
            for recipient in dict.fromkeys(recipients)
        ]
        with self._lock:
            self._notifications.extend(sent)
        return sent

    def list_for(self, recipient: str, unread_only: bool = False) -> list[Notification]:
        with self._lock:
            return [
                n for n in self._notifications
                if n.recipient == recipient and (not n.read or not unread_only)
            ]

    def mark_read(self, notification_id: str) -> bool:
        with self._lock:
            for n in self._notifications:
                if n.id == notification_id:
                    n.read = True
                    return True
        return False

    @property
    def sent(self) -> list[Notification]:
        with self._lock:
            return list(self._notifications)


class InMemoryAuditSink(_Locked):
    def __init__(self) -> None:
        super().__init__()
        self._records: list[AuditRecord] = []

    def append(self, record: AuditRecord) -> None:
        with self._lock:
            self._records.append(record)

    def records(self, entity_id: Optional[str] = None) -> list[AuditRecord]:
        with self._lock:
            return [r for r in self._records if entity_id is None or r.entity_id == entity_id]
