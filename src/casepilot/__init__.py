"""
CasePilot - Case Lifecycle and Business Rule Engine for Law Firms

CasePilot validates how a legal case moves through its lifecycle and runs
configurable business rules over case tasks.

Key Features:
- Five-phase lifecycle (intake, preparation, proceedings, resolution,
  closure) with per-case-type required fields, status tables and exceptions
- Role-gated transitions with approval routing and follow-up tasks
- Weighted, three-valued rule conditions with typed actions
- Failure strategies per action: continue, stop, rollback (compensation)
- Deterministic task assignment and court-calendar-aware deadlines
- Rule and workflow tables loaded from YAML packs

Quick Start:
    from casepilot import build_services, Case, CaseType, CasePhase

    services = build_services()
    services.cases.save(Case(
        id="CASE-1", title="Acme v. Widget", case_type=CaseType.CONTRACT_DISPUTE,
        client_id="client-1",
    ))
    result = services.transitions.validate_transition(
        "CASE-1", CasePhase.PROCEEDINGS, UserRole.ATTORNEY,
    )
    print(result.errors)  # ['phase skip not permitted: ...']

Version: 0.1.0
"""
from __future__ import annotations

__version__ = "0.1.0"
__author__ = "CasePilot Team"

# =============================================================================
# Core Models (Re-exported for convenience)
# =============================================================================
from .models import (
    # Enums
    ActionType,
    AssignmentStrategy,
    CasePhase,
    CaseStatus,
    CaseType,
    ConditionOperator,
    DeadlineStrategy,
    FailureStrategy,
    LogicalOperator,
    RuleCategory,
    TaskPriority,
    TaskStatus,
    TriggerEventType,
    UserRole,
    # Logic
    EvaluationResult,
    TriBool,
    # Entities
    Case,
    Task,
    User,
    # Rules
    BusinessAction,
    BusinessCondition,
    BusinessRule,
    EscalationPath,
    RuleEvaluationContext,
    RuleEvaluationResult,
    TriggerEvent,
    # Lifecycle
    ValidationResult,
    WorkflowConfig,
)

# =============================================================================
# Services
# =============================================================================
from .engine import (
    AssignmentSelector,
    BusinessRuleEngine,
    CaseTransitionService,
    ConditionEvaluator,
    DeadlineCalculator,
    EscalationRouter,
    PhaseValidator,
)
from .services import CasePilotServices, build_services

# =============================================================================
# Exceptions
# =============================================================================
from .exceptions import (
    ActionExecutionError,
    CasePilotError,
    CaseNotFoundError,
    CaseValidationError,
    ImmutableFieldError,
    PackLoadError,
    PackValidationError,
    RuleConfigurationError,
    RuleNotFoundError,
)

# =============================================================================
# Public API
# =============================================================================
__all__ = [
    # Version
    "__version__",
    # Enums
    "ActionType",
    "AssignmentStrategy",
    "CasePhase",
    "CaseStatus",
    "CaseType",
    "ConditionOperator",
    "DeadlineStrategy",
    "FailureStrategy",
    "LogicalOperator",
    "RuleCategory",
    "TaskPriority",
    "TaskStatus",
    "TriggerEventType",
    "UserRole",
    # Logic
    "EvaluationResult",
    "TriBool",
    # Entities
    "Case",
    "Task",
    "User",
    # Rules
    "BusinessAction",
    "BusinessCondition",
    "BusinessRule",
    "EscalationPath",
    "RuleEvaluationContext",
    "RuleEvaluationResult",
    "TriggerEvent",
    # Lifecycle
    "ValidationResult",
    "WorkflowConfig",
    # Services
    "AssignmentSelector",
    "BusinessRuleEngine",
    "CaseTransitionService",
    "ConditionEvaluator",
    "DeadlineCalculator",
    "EscalationRouter",
    "PhaseValidator",
    "CasePilotServices",
    "build_services",
    # Exceptions
    "ActionExecutionError",
    "CasePilotError",
    "CaseNotFoundError",
    "CaseValidationError",
    "ImmutableFieldError",
    "PackLoadError",
    "PackValidationError",
    "RuleConfigurationError",
    "RuleNotFoundError",
]
