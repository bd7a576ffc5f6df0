"""
CasePilot Enumerations

All enumeration types used throughout the CasePilot system.
Organized by domain area for clarity.

All enums inherit from (str, Enum) for JSON serialization compatibility.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


# =============================================================================
# Cases
# =============================================================================

class CaseType(str, Enum):
    """Practice areas handled by the firm."""
    LABOR_DISPUTE = "labor_dispute"
    MEDICAL_MALPRACTICE = "medical_malpractice"
    CRIMINAL_DEFENSE = "criminal_defense"
    DIVORCE_FAMILY = "divorce_family"
    INHERITANCE_DISPUTE = "inheritance_dispute"
    CONTRACT_DISPUTE = "contract_dispute"
    ADMINISTRATIVE_CASE = "administrative_case"
    DEMOLITION_CASE = "demolition_case"
    SPECIAL_MATTERS = "special_matters"


class CasePhase(str, Enum):
    """Lifecycle phases of a legal matter, in order."""
    INTAKE = "intake"
    PREPARATION = "preparation"
    PROCEEDINGS = "proceedings"
    RESOLUTION = "resolution"
    CLOSURE = "closure"


PHASE_ORDER: tuple[CasePhase, ...] = (
    CasePhase.INTAKE,
    CasePhase.PREPARATION,
    CasePhase.PROCEEDINGS,
    CasePhase.RESOLUTION,
    CasePhase.CLOSURE,
)


def phase_index(phase: CasePhase) -> int:
    """Position of a phase in PHASE_ORDER."""
    return PHASE_ORDER.index(CasePhase(phase))


def next_phase(phase: CasePhase) -> Optional[CasePhase]:
    """Immediate successor of a phase, None for the terminal phase."""
    idx = phase_index(phase)
    if idx + 1 < len(PHASE_ORDER):
        return PHASE_ORDER[idx + 1]
    return None


class CaseStatus(str, Enum):
    """Administrative status of a case, orthogonal to its phase."""
    INTAKE = "intake"
    ACTIVE = "active"
    PENDING = "pending"
    COMPLETED = "completed"
    CLOSED = "closed"


# =============================================================================
# Users and Tasks
# =============================================================================

class UserRole(str, Enum):
    """Roles a user can hold within the firm."""
    CLIENT = "client"
    ASSISTANT = "assistant"
    ATTORNEY = "attorney"
    ADMIN = "admin"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    WAITING_DEPENDENCIES = "waiting_dependencies"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# =============================================================================
# Rules
# =============================================================================

class ConditionOperator(str, Enum):
    """Leaf comparison operators for business rule conditions."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    NOT_IN = "not_in"
    MATCHES_PATTERN = "matches_pattern"


class LogicalOperator(str, Enum):
    """Link between a condition and the next sibling condition."""
    AND = "and"
    OR = "or"


class ActionType(str, Enum):
    """Side effects a rule can perform once matched."""
    ASSIGN_TASK = "assign_task"
    ESCALATE_TASK = "escalate_task"
    CHANGE_PRIORITY = "change_priority"
    SET_DEADLINE = "set_deadline"
    SEND_NOTIFICATION = "send_notification"
    CREATE_DEPENDENCY = "create_dependency"
    UPDATE_STATUS = "update_status"
    REQUEST_REVIEW = "request_review"
    REASSIGN_TASK = "reassign_task"


class FailureStrategy(str, Enum):
    """What to do with the remaining actions when one fails."""
    CONTINUE = "continue"
    STOP = "stop"
    ROLLBACK = "rollback"


class RuleCategory(str, Enum):
    TASK_ASSIGNMENT = "task_assignment"
    ESCALATION = "escalation"
    DEADLINE_MANAGEMENT = "deadline_management"
    WORKLOAD_BALANCE = "workload_balance"
    COMPLIANCE = "compliance"
    QUALITY_CONTROL = "quality_control"


class TriggerEventType(str, Enum):
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    PHASE_CHANGED = "phase_changed"
    DEADLINE_APPROACHING = "deadline_approaching"
    USER_ACTION = "user_action"
    SYSTEM_EVENT = "system_event"


# =============================================================================
# Assignment / Deadlines
# =============================================================================

class AssignmentStrategy(str, Enum):
    EXPERTISE_BASED = "expertise_based"
    WORKLOAD_BALANCE = "workload_balance"
    PRIORITY_BASED = "priority_based"


class DeadlineStrategy(str, Enum):
    COMPLEXITY_BASED = "complexity_based"
    DEPENDENCY_BASED = "dependency_based"


# =============================================================================
# Notifications and Approvals
# =============================================================================

class NotificationChannel(str, Enum):
    EMAIL = "email"
    IN_APP = "in_app"
    SMS = "sms"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NotificationType(str, Enum):
    PHASE_CHANGE = "phase_change"
    STATUS_CHANGE = "status_change"
    APPROVAL_REQUIRED = "approval_required"
    TRANSITION_COMPLETED = "transition_completed"
    RULE_ACTION = "rule_action"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
