"""
CasePilot Stores

Contracts for repositories, notification delivery and audit, plus the
thread-safe in-memory implementations.
"""
from __future__ import annotations

from .base import (
    AuditSink,
    CaseRepository,
    EscalationRegistry,
    NotificationDispatcher,
    RuleRepository,
    TaskRepository,
    TransitionRepository,
    UserDirectory,
)
from .memory import (
    InMemoryAuditSink,
    InMemoryCaseRepository,
    InMemoryEscalationRegistry,
    InMemoryNotificationDispatcher,
    InMemoryRuleRepository,
    InMemoryTaskRepository,
    InMemoryTransitionRepository,
    InMemoryUserDirectory,
)

__all__ = [
    "AuditSink",
    "CaseRepository",
    "EscalationRegistry",
    "NotificationDispatcher",
    "RuleRepository",
    "TaskRepository",
    "TransitionRepository",
    "UserDirectory",
    "InMemoryAuditSink",
    "InMemoryCaseRepository",
    "InMemoryEscalationRegistry",
    "InMemoryNotificationDispatcher",
    "InMemoryRuleRepository",
    "InMemoryTaskRepository",
    "InMemoryTransitionRepository",
    "InMemoryUserDirectory",
]
