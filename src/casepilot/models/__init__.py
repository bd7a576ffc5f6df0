"""
CasePilot Domain Models

Dataclasses and enumerations shared by the engines, the packs and the API.
"""
from __future__ import annotations

from .assignment import (
    AssignmentCriteria,
    AssignmentDecision,
    AssignmentRecommendation,
    Candidate,
    CandidateScore,
    FactorScore,
)
from .case import Case, ReviewRequest, Task, User, utc_now
from .conditions import EvaluationResult, TriBool
from .enums import (
    PHASE_ORDER,
    ActionType,
    ApprovalStatus,
    AssignmentStrategy,
    CasePhase,
    CaseStatus,
    CaseType,
    ConditionOperator,
    DeadlineStrategy,
    FailureStrategy,
    LogicalOperator,
    NotificationChannel,
    NotificationType,
    RuleCategory,
    TaskPriority,
    TaskStatus,
    TriggerEventType,
    Urgency,
    UserRole,
    next_phase,
    phase_index,
)
from .rules import (
    ACTION_PARAM_TYPES,
    ActionParams,
    ActionResult,
    AssignTaskParams,
    BusinessAction,
    BusinessCondition,
    BusinessRule,
    ChangePriorityParams,
    CreateDependencyParams,
    EscalateTaskParams,
    EscalationPath,
    NotificationRule,
    ReassignTaskParams,
    RequestReviewParams,
    RuleEvaluationContext,
    RuleEvaluationResult,
    RuleStats,
    SendNotificationParams,
    SetDeadlineParams,
    TriggerEvent,
    UpdateStatusParams,
)
from .transition import (
    ApprovalRequest,
    AuditRecord,
    Notification,
    PhaseProgress,
    PhaseRequirements,
    TransitionOutcome,
    TransitionRecord,
    ValidationResult,
)
from .workflow import (
    ApprovalRequirement,
    CompletionCheck,
    ConditionalRequirement,
    FollowUpTask,
    PhaseAdvisory,
    PhaseDurationLimit,
    PhaseException,
    PhaseRules,
    StatusRule,
    TransitionPermission,
    WorkflowConfig,
)

__all__ = [
    # Enums
    "PHASE_ORDER",
    "ActionType",
    "ApprovalStatus",
    "AssignmentStrategy",
    "CasePhase",
    "CaseStatus",
    "CaseType",
    "ConditionOperator",
    "DeadlineStrategy",
    "FailureStrategy",
    "LogicalOperator",
    "NotificationChannel",
    "NotificationType",
    "RuleCategory",
    "TaskPriority",
    "TaskStatus",
    "TriggerEventType",
    "Urgency",
    "UserRole",
    "next_phase",
    "phase_index",
    # Logic
    "EvaluationResult",
    "TriBool",
    # Entities
    "Case",
    "ReviewRequest",
    "Task",
    "User",
    "utc_now",
    # Rules
    "ACTION_PARAM_TYPES",
    "ActionParams",
    "ActionResult",
    "AssignTaskParams",
    "BusinessAction",
    "BusinessCondition",
    "BusinessRule",
    "ChangePriorityParams",
    "CreateDependencyParams",
    "EscalateTaskParams",
    "EscalationPath",
    "NotificationRule",
    "ReassignTaskParams",
    "RequestReviewParams",
    "RuleEvaluationContext",
    "RuleEvaluationResult",
    "RuleStats",
    "SendNotificationParams",
    "SetDeadlineParams",
    "TriggerEvent",
    "UpdateStatusParams",
    # Assignment
    "AssignmentCriteria",
    "AssignmentDecision",
    "AssignmentRecommendation",
    "Candidate",
    "CandidateScore",
    "FactorScore",
    # Transitions
    "ApprovalRequest",
    "AuditRecord",
    "Notification",
    "PhaseProgress",
    "PhaseRequirements",
    "TransitionOutcome",
    "TransitionRecord",
    "ValidationResult",
    # Workflow
    "ApprovalRequirement",
    "CompletionCheck",
    "ConditionalRequirement",
    "FollowUpTask",
    "PhaseAdvisory",
    "PhaseDurationLimit",
    "PhaseException",
    "PhaseRules",
    "StatusRule",
    "TransitionPermission",
    "WorkflowConfig",
]
