"""
CasePilot Engine

Core services for case lifecycle validation and business rule evaluation.

Services:
- PhaseValidator: Phase, status and completion validation
- CaseStateMachine: Role permissions, gates and approval requirements
- ConditionEvaluator: Three-valued condition evaluation with weights
- BusinessRuleEngine: Rule evaluation and action execution
- ActionExecutor: Typed action handlers with compensation
- AssignmentSelector: Deterministic candidate selection
- DeadlineCalculator: Complexity and dependency deadlines
- EscalationRouter: Escalation paths per role
- CaseTransitionService: Approval-gated transition workflow

Usage:
    from casepilot.engine import (
        PhaseValidator,
        BusinessRuleEngine,
        AssignmentSelector,
        DeadlineCalculator,
    )
"""
from __future__ import annotations

from .actions import ActionExecutor, ExecutionContext
from .assignment import (
    DEFAULT_EXPERTISE_MATRIX,
    DEFAULT_FACTOR_WEIGHTS,
    AssignmentSelector,
    build_candidates,
    determine_preferred_role,
    expertise_score,
    workload_score,
)
from .condition_evaluator import ConditionEvaluator, compare_values, resolve_field_path
from .deadlines import DeadlineCalculator, DeadlineConfig, DeadlineResult
from .escalation import EscalationRouter, next_role_up
from .phase_validator import PhaseValidator
from .rule_engine import BusinessRuleEngine
from .state_machine import ROLE_RANK, CaseStateMachine, role_rank
from .transitions import AvailableTransition, CaseTransitionService

__all__ = [
    # Actions
    "ActionExecutor",
    "ExecutionContext",
    # Assignment
    "AssignmentSelector",
    "DEFAULT_EXPERTISE_MATRIX",
    "DEFAULT_FACTOR_WEIGHTS",
    "build_candidates",
    "determine_preferred_role",
    "expertise_score",
    "workload_score",
    # Conditions
    "ConditionEvaluator",
    "compare_values",
    "resolve_field_path",
    # Deadlines
    "DeadlineCalculator",
    "DeadlineConfig",
    "DeadlineResult",
    # Escalation
    "EscalationRouter",
    "next_role_up",
    # Lifecycle
    "PhaseValidator",
    "CaseStateMachine",
    "ROLE_RANK",
    "role_rank",
    "CaseTransitionService",
    "AvailableTransition",
    # Rules
    "BusinessRuleEngine",
]
