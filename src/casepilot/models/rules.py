"""
CasePilot Business Rule Models

Configuration entities for the rule engine (rules, conditions, typed
action payloads, escalation paths) and the result records the engine
produces when it evaluates them.

Action parameters are one dataclass per ActionType. ACTION_PARAM_TYPES
maps each type to its payload class; a rule whose action carries the wrong
payload is a configuration error.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from .case import utc_now
from .enums import (
    ActionType,
    AssignmentStrategy,
    CaseStatus,
    ConditionOperator,
    DeadlineStrategy,
    FailureStrategy,
    LogicalOperator,
    NotificationChannel,
    RuleCategory,
    TaskPriority,
    TaskStatus,
    TriggerEventType,
    Urgency,
    UserRole,
)


# =============================================================================
# Conditions
# =============================================================================

@dataclass
class BusinessCondition:
    """
    Leaf comparison of a field path against a value.

    ``logical_operator`` links this condition to the NEXT sibling in the
    rule's condition list; it is ignored on the last condition.
    """
    id: str
    field: str
    operator: ConditionOperator
    value: Any = None
    logical_operator: LogicalOperator = LogicalOperator.AND
    weight: float = 1.0

    def describe(self) -> str:
        if self.operator in (ConditionOperator.EXISTS, ConditionOperator.NOT_EXISTS):
            return f"{self.field} {self.operator.value}"
        return f"{self.field} {self.operator.value} {self.value!r}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "field": self.field,
            "operator": self.operator.value,
            "value": _plain(self.value),
            "logical_operator": self.logical_operator.value,
            "weight": self.weight,
        }


def _plain(value: Any) -> Any:
    """Enum members to their values, recursively through containers."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(v) for v in value]
    return value


# =============================================================================
# Action Payloads
# =============================================================================

@dataclass
class AssignTaskParams:
    strategy: AssignmentStrategy = AssignmentStrategy.EXPERTISE_BASED
    required_role: Optional[UserRole] = None
    required_expertise: list[str] = field(default_factory=list)
    max_workload: Optional[float] = None
    min_expertise_score: Optional[float] = None


@dataclass
class ReassignTaskParams:
    strategy: AssignmentStrategy = AssignmentStrategy.WORKLOAD_BALANCE
    required_role: Optional[UserRole] = None
    max_workload: Optional[float] = None
    reason: str = ""


@dataclass
class EscalateTaskParams:
    """Escalate one level; ``to_role`` overrides the registered path."""
    to_role: Optional[UserRole] = None
    levels: int = 1
    reason: str = ""
    deadline_extension_hours: float = 0.0


@dataclass
class ChangePriorityParams:
    priority: TaskPriority = TaskPriority.HIGH
    reason: str = ""


@dataclass
class SetDeadlineParams:
    strategy: DeadlineStrategy = DeadlineStrategy.COMPLEXITY_BASED
    base_hours: Optional[float] = None
    buffer: Optional[float] = None
    min_extension_hours: Optional[float] = None
    dependency_buffer_hours: Optional[float] = None
    roll_to_business_day: bool = False


@dataclass
class SendNotificationParams:
    recipients: list[str] = field(default_factory=list)
    template: str = ""
    channel: NotificationChannel = NotificationChannel.IN_APP
    urgency: Urgency = Urgency.MEDIUM
    delay_minutes: int = 0


@dataclass
class CreateDependencyParams:
    depends_on: list[str] = field(default_factory=list)
    block_until_complete: bool = True


@dataclass
class UpdateStatusParams:
    """``target`` is "task" or "case"; ``status`` is validated against it."""
    status: str = TaskStatus.PENDING.value
    target: str = "task"
    reason: str = ""


@dataclass
class RequestReviewParams:
    review_type: str = "quality"
    reviewer_role: UserRole = UserRole.ATTORNEY
    deadline_offset_hours: float = 24.0
    checklist: list[str] = field(default_factory=list)
    reason: str = ""


ActionParams = Union[
    AssignTaskParams,
    ReassignTaskParams,
    EscalateTaskParams,
    ChangePriorityParams,
    SetDeadlineParams,
    SendNotificationParams,
    CreateDependencyParams,
    UpdateStatusParams,
    RequestReviewParams,
]

ACTION_PARAM_TYPES: dict[ActionType, type] = {
    ActionType.ASSIGN_TASK: AssignTaskParams,
    ActionType.REASSIGN_TASK: ReassignTaskParams,
    ActionType.ESCALATE_TASK: EscalateTaskParams,
    ActionType.CHANGE_PRIORITY: ChangePriorityParams,
    ActionType.SET_DEADLINE: SetDeadlineParams,
    ActionType.SEND_NOTIFICATION: SendNotificationParams,
    ActionType.CREATE_DEPENDENCY: CreateDependencyParams,
    ActionType.UPDATE_STATUS: UpdateStatusParams,
    ActionType.REQUEST_REVIEW: RequestReviewParams,
}


@dataclass
class BusinessAction:
    """A side effect executed when its rule matches."""
    id: str
    type: ActionType
    params: ActionParams
    failure_strategy: FailureStrategy = FailureStrategy.CONTINUE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "on_failure": self.failure_strategy.value,
            "parameters": _plain(asdict(self.params)),
        }


# =============================================================================
# Rules
# =============================================================================

@dataclass
class BusinessRule:
    """
    Condition/action rule evaluated by the BusinessRuleEngine.

    Rules run in descending ``priority``; equal priorities run in insertion
    order (``sequence``, assigned by the rule repository). Counters are
    written by the repository, never by the engine directly.
    """
    id: str
    name: str
    category: RuleCategory
    conditions: list[BusinessCondition] = field(default_factory=list)
    actions: list[BusinessAction] = field(default_factory=list)
    description: str = ""
    priority: int = 0
    is_active: bool = True
    min_confidence: Optional[float] = None
    tags: list[str] = field(default_factory=list)

    trigger_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    last_triggered: Optional[datetime] = None
    disabled_reason: Optional[str] = None
    sequence: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def validate(self) -> list[str]:
        """
        Check the rule's configuration.

        Returns:
            A list of problems; empty when the rule is well formed.
        """
        errors: list[str] = []
        if not self.id:
            errors.append("rule id is required")
        if not self.actions:
            errors.append(f"rule '{self.id}' has no actions")
        if self.min_confidence is not None and not 0.0 <= self.min_confidence <= 1.0:
            errors.append(f"min_confidence must be within 0..1, got {self.min_confidence}")

        seen_conditions: set[str] = set()
        for cond in self.conditions:
            errors.extend(_validate_condition(cond))
            if cond.id in seen_conditions:
                errors.append(f"duplicate condition id '{cond.id}'")
            seen_conditions.add(cond.id)

        seen_actions: set[str] = set()
        for action in self.actions:
            expected = ACTION_PARAM_TYPES.get(action.type)
            if expected is None:
                errors.append(f"action '{action.id}' has unknown type {action.type!r}")
            elif not isinstance(action.params, expected):
                errors.append(
                    f"action '{action.id}' of type {action.type.value} "
                    f"expects {expected.__name__}, got {type(action.params).__name__}"
                )
            else:
                errors.extend(_validate_params(action))
            if action.id in seen_actions:
                errors.append(f"duplicate action id '{action.id}'")
            seen_actions.add(action.id)
        return errors

    @property
    def success_rate(self) -> float:
        if self.trigger_count == 0:
            return 0.0
        return self.success_count / self.trigger_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "priority": self.priority,
            "is_active": self.is_active,
            "min_confidence": self.min_confidence,
            "tags": list(self.tags),
            "conditions": [c.to_dict() for c in self.conditions],
            "actions": [a.to_dict() for a in self.actions],
            "trigger_count": self.trigger_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "success_rate": round(self.success_rate, 4),
            "last_triggered": self.last_triggered.isoformat() if self.last_triggered else None,
            "disabled_reason": self.disabled_reason,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def _validate_condition(cond: BusinessCondition) -> list[str]:
    errors: list[str] = []
    if not isinstance(cond.operator, ConditionOperator):
        return [f"condition '{cond.id}' has unknown operator {cond.operator!r}"]
    if not cond.field:
        errors.append(f"condition '{cond.id}' has an empty field path")
    if cond.weight < 0:
        errors.append(f"condition '{cond.id}' has negative weight {cond.weight}")
    if cond.operator in (ConditionOperator.IN, ConditionOperator.NOT_IN):
        if not isinstance(cond.value, (list, tuple, set, frozenset)):
            errors.append(f"condition '{cond.id}' operator {cond.operator.value} needs a list value")
    if cond.operator == ConditionOperator.MATCHES_PATTERN:
        if not isinstance(cond.value, str):
            errors.append(f"condition '{cond.id}' matches_pattern needs a string pattern")
        else:
            try:
                re.compile(cond.value)
            except re.error as e:
                errors.append(f"condition '{cond.id}' has invalid pattern: {e}")
    return errors


def _validate_params(action: BusinessAction) -> list[str]:
    params = action.params
    errors: list[str] = []
    if isinstance(params, SendNotificationParams):
        if not params.recipients:
            errors.append(f"action '{action.id}' sends a notification with no recipients")
        if not params.template:
            errors.append(f"action '{action.id}' sends a notification with no template")
    elif isinstance(params, CreateDependencyParams):
        if not params.depends_on:
            errors.append(f"action '{action.id}' creates a dependency on nothing")
    elif isinstance(params, UpdateStatusParams):
        if params.target == "task":
            if params.status not in {s.value for s in TaskStatus}:
                errors.append(f"action '{action.id}' sets unknown task status '{params.status}'")
        elif params.target == "case":
            if params.status not in {s.value for s in CaseStatus}:
                errors.append(f"action '{action.id}' sets unknown case status '{params.status}'")
        else:
            errors.append(f"action '{action.id}' targets '{params.target}', expected task or case")
    elif isinstance(params, EscalateTaskParams):
        if params.levels < 1:
            errors.append(f"action '{action.id}' escalates by {params.levels} levels")
    elif isinstance(params, AssignTaskParams):
        if params.min_expertise_score is not None and not 0.0 <= params.min_expertise_score <= 1.0:
            errors.append(f"action '{action.id}' min_expertise_score must be within 0..1")
    return errors


# =============================================================================
# Escalation
# =============================================================================

@dataclass
class NotificationRule:
    """Who to notify when an escalation step is taken."""
    channel: NotificationChannel
    recipients: list[str]
    template: str
    urgency: Urgency = Urgency.MEDIUM
    delay_minutes: int = 0


@dataclass
class EscalationPath:
    """One step up the escalation ladder for a role."""
    level: int
    from_role: UserRole
    to_role: UserRole
    conditions: list[BusinessCondition] = field(default_factory=list)
    notification_rules: list[NotificationRule] = field(default_factory=list)
    approval_required: bool = False

    @property
    def key(self) -> tuple[UserRole, int]:
        return (self.from_role, self.level)

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "from_role": self.from_role.value,
            "to_role": self.to_role.value,
            "approval_required": self.approval_required,
            "conditions": [c.to_dict() for c in self.conditions],
            "notification_rules": [_plain(asdict(n)) for n in self.notification_rules],
        }


# =============================================================================
# Evaluation Context and Results
# =============================================================================

@dataclass
class TriggerEvent:
    type: TriggerEventType
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class RuleEvaluationContext:
    """Inputs for one evaluation pass."""
    case_id: Optional[str] = None
    task_id: Optional[str] = None
    user_id: Optional[str] = None
    trigger_event: Optional[TriggerEvent] = None
    timestamp: datetime = field(default_factory=utc_now)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ActionResult:
    action_id: str
    action_type: ActionType
    success: bool
    result: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    compensated: bool = False
    execution_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "action_id": self.action_id,
            "action_type": self.action_type.value,
            "success": self.success,
            "result": self.result,
            "error": self.error,
            "compensated": self.compensated,
            "execution_time_ms": self.execution_time_ms,
        }


@dataclass
class RuleEvaluationResult:
    """Outcome of evaluating a single rule in a pass."""
    rule_id: str
    rule_name: str
    matched: bool
    score: float = 0.0
    confidence: float = 0.0
    actions_executed: list[str] = field(default_factory=list)
    results: list[ActionResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    rolled_back: bool = False
    skipped: bool = False
    dry_run: bool = False
    execution_time_ms: float = 0.0
    evaluated_at: datetime = field(default_factory=utc_now)

    @property
    def success(self) -> bool:
        return self.matched and not self.skipped and all(r.success for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "matched": self.matched,
            "score": self.score,
            "confidence": self.confidence,
            "actions_executed": list(self.actions_executed),
            "results": [r.to_dict() for r in self.results],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "rolled_back": self.rolled_back,
            "skipped": self.skipped,
            "dry_run": self.dry_run,
            "execution_time_ms": self.execution_time_ms,
            "evaluated_at": self.evaluated_at.isoformat(),
        }


@dataclass
class RuleStats:
    total_rules: int
    active_rules: int
    total_evaluations: int
    total_triggers: int
    total_successes: int
    total_failures: int
    success_rate: float
    average_execution_time_ms: float
    top_rules: list[dict[str, Any]] = field(default_factory=list)
    category_counts: dict[str, int] = field(default_factory=dict)
