"""
CasePilot Pack Schemas

Pydantic models for validating rule pack and workflow pack YAML/JSON
files. They map to the domain models in casepilot.models.

Rule actions are a discriminated union on ``type``: each action type has
its own ``parameters`` model, so a pack that pairs an action with the
wrong parameters is rejected at load time.

Schema versioning:
- schema_version field tracks breaking changes
- Loaders check major version compatibility
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


# =============================================================================
# Schema Version
# =============================================================================

SCHEMA_VERSION = "1.0.0"


# =============================================================================
# Enums as Literals (for YAML validation)
# =============================================================================

CaseTypeValue = Literal[
    "labor_dispute", "medical_malpractice", "criminal_defense",
    "divorce_family", "inheritance_dispute", "contract_dispute",
    "administrative_case", "demolition_case", "special_matters",
]

CasePhaseValue = Literal["intake", "preparation", "proceedings", "resolution", "closure"]

CaseStatusValue = Literal["intake", "active", "pending", "completed", "closed"]

UserRoleValue = Literal["client", "assistant", "attorney", "admin"]

TaskPriorityValue = Literal["low", "medium", "high", "urgent"]

ConditionOperatorValue = Literal[
    "equals", "not_equals", "contains", "exists", "not_exists",
    "greater_than", "less_than", "in", "not_in", "matches_pattern",
]

LogicalOperatorValue = Literal["and", "or"]

FailureStrategyValue = Literal["continue", "stop", "rollback"]

RuleCategoryValue = Literal[
    "task_assignment", "escalation", "deadline_management",
    "workload_balance", "compliance", "quality_control",
]

AssignmentStrategyValue = Literal["expertise_based", "workload_balance", "priority_based"]

DeadlineStrategyValue = Literal["complexity_based", "dependency_based"]

ChannelValue = Literal["email", "in_app", "sms"]

UrgencyValue = Literal["low", "medium", "high", "critical"]


class _Strict(BaseModel):
    model_config = {"extra": "forbid"}


# =============================================================================
# Conditions
# =============================================================================

class BusinessConditionSchema(_Strict):
    """One leaf condition; ``logical_operator`` links it to the next one."""
    id: str = Field(..., description="Condition ID, unique within the rule")
    field: str = Field(..., description="Dot-notation field path (e.g., 'task.priority')")
    operator: ConditionOperatorValue = Field(..., description="Comparison operator")
    value: Any = Field(None, description="Value to compare against")
    logical_operator: LogicalOperatorValue = Field("and", description="Link to the next condition")
    weight: float = Field(1.0, ge=0, description="Contribution to rule confidence")

    @model_validator(mode="after")
    def validate_value(self) -> "BusinessConditionSchema":
        if self.operator in ("in", "not_in") and not isinstance(self.value, list):
            raise ValueError(f"Operator '{self.operator}' requires a list value")
        if self.operator == "matches_pattern" and not isinstance(self.value, str):
            raise ValueError("Operator 'matches_pattern' requires a string pattern")
        return self


# =============================================================================
# Action Parameters
# =============================================================================

class AssignTaskParamsSchema(_Strict):
    strategy: AssignmentStrategyValue = "expertise_based"
    required_role: Optional[UserRoleValue] = None
    required_expertise: list[str] = Field(default_factory=list)
    max_workload: Optional[float] = None
    min_expertise_score: Optional[float] = Field(None, ge=0, le=1)


class ReassignTaskParamsSchema(_Strict):
    strategy: AssignmentStrategyValue = "workload_balance"
    required_role: Optional[UserRoleValue] = None
    max_workload: Optional[float] = None
    reason: str = ""


class EscalateTaskParamsSchema(_Strict):
    to_role: Optional[UserRoleValue] = None
    levels: int = Field(1, ge=1)
    reason: str = ""
    deadline_extension_hours: float = Field(0.0, ge=0)


class ChangePriorityParamsSchema(_Strict):
    priority: TaskPriorityValue
    reason: str = ""


class SetDeadlineParamsSchema(_Strict):
    strategy: DeadlineStrategyValue = "complexity_based"
    base_hours: Optional[float] = Field(None, ge=0)
    buffer: Optional[float] = Field(None, ge=0)
    min_extension_hours: Optional[float] = Field(None, ge=0)
    dependency_buffer_hours: Optional[float] = Field(None, ge=0)
    roll_to_business_day: bool = False


class SendNotificationParamsSchema(_Strict):
    recipients: list[str] = Field(..., min_length=1)
    template: str = Field(..., min_length=1)
    channel: ChannelValue = "in_app"
    urgency: UrgencyValue = "medium"
    delay_minutes: int = Field(0, ge=0)


class CreateDependencyParamsSchema(_Strict):
    depends_on: list[str] = Field(..., min_length=1)
    block_until_complete: bool = True


class UpdateStatusParamsSchema(_Strict):
    status: str
    target: Literal["task", "case"] = "task"
    reason: str = ""


class RequestReviewParamsSchema(_Strict):
    review_type: str = "quality"
    reviewer_role: UserRoleValue = "attorney"
    deadline_offset_hours: float = Field(24.0, ge=0)
    checklist: list[str] = Field(default_factory=list)
    reason: str = ""


# =============================================================================
# Actions (discriminated on type)
# =============================================================================

class _ActionBase(_Strict):
    id: str = Field(..., description="Action ID, unique within the rule")
    on_failure: FailureStrategyValue = Field("continue", description="Failure strategy")


class AssignTaskActionSchema(_ActionBase):
    type: Literal["assign_task"]
    parameters: AssignTaskParamsSchema = Field(default_factory=AssignTaskParamsSchema)


class ReassignTaskActionSchema(_ActionBase):
    type: Literal["reassign_task"]
    parameters: ReassignTaskParamsSchema = Field(default_factory=ReassignTaskParamsSchema)


class EscalateTaskActionSchema(_ActionBase):
    type: Literal["escalate_task"]
    parameters: EscalateTaskParamsSchema = Field(default_factory=EscalateTaskParamsSchema)


class ChangePriorityActionSchema(_ActionBase):
    type: Literal["change_priority"]
    parameters: ChangePriorityParamsSchema


class SetDeadlineActionSchema(_ActionBase):
    type: Literal["set_deadline"]
    parameters: SetDeadlineParamsSchema = Field(default_factory=SetDeadlineParamsSchema)


class SendNotificationActionSchema(_ActionBase):
    type: Literal["send_notification"]
    parameters: SendNotificationParamsSchema


class CreateDependencyActionSchema(_ActionBase):
    type: Literal["create_dependency"]
    parameters: CreateDependencyParamsSchema


class UpdateStatusActionSchema(_ActionBase):
    type: Literal["update_status"]
    parameters: UpdateStatusParamsSchema


class RequestReviewActionSchema(_ActionBase):
    type: Literal["request_review"]
    parameters: RequestReviewParamsSchema = Field(default_factory=RequestReviewParamsSchema)


ActionSchema = Annotated[
    Union[
        AssignTaskActionSchema,
        ReassignTaskActionSchema,
        EscalateTaskActionSchema,
        ChangePriorityActionSchema,
        SetDeadlineActionSchema,
        SendNotificationActionSchema,
        CreateDependencyActionSchema,
        UpdateStatusActionSchema,
        RequestReviewActionSchema,
    ],
    Field(discriminator="type"),
]


# =============================================================================
# Rule Pack
# =============================================================================

class BusinessRuleSchema(_Strict):
    id: str = Field(..., description="Stable rule identifier")
    name: str = Field(..., description="Human-readable name")
    description: str = ""
    category: RuleCategoryValue
    priority: int = Field(0, description="Higher priority rules evaluated first")
    is_active: bool = True
    min_confidence: Optional[float] = Field(None, ge=0, le=1)
    tags: list[str] = Field(default_factory=list)
    conditions: list[BusinessConditionSchema] = Field(default_factory=list)
    actions: list[ActionSchema] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_ids(self) -> "BusinessRuleSchema":
        for label, ids in (
            ("condition", [c.id for c in self.conditions]),
            ("action", [a.id for a in self.actions]),
        ):
            duplicates = sorted({i for i in ids if ids.count(i) > 1})
            if duplicates:
                raise ValueError(f"Duplicate {label} IDs in rule '{self.id}': {duplicates}")
        return self


class NotificationRuleSchema(_Strict):
    channel: ChannelValue = "in_app"
    recipients: list[str] = Field(..., min_length=1)
    template: str
    urgency: UrgencyValue = "medium"
    delay_minutes: int = Field(0, ge=0)


class EscalationPathSchema(_Strict):
    level: int = Field(..., ge=1)
    from_role: UserRoleValue
    to_role: UserRoleValue
    approval_required: bool = False
    conditions: list[BusinessConditionSchema] = Field(default_factory=list)
    notification_rules: list[NotificationRuleSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_roles(self) -> "EscalationPathSchema":
        if self.from_role == self.to_role:
            raise ValueError(f"Escalation path cannot target its own role '{self.from_role}'")
        return self


class RulePackSchema(_Strict):
    """Top-level schema for a business rule pack."""
    schema_version: str = Field(SCHEMA_VERSION, description="Pack schema version")
    pack_id: str = Field(..., description="Pack identifier")
    name: str = ""
    description: str = ""
    rules: list[BusinessRuleSchema] = Field(default_factory=list)
    escalation_paths: list[EscalationPathSchema] = Field(default_factory=list)


# =============================================================================
# Workflow Pack
# =============================================================================

class ConditionalRequirementSchema(_Strict):
    case_types: list[CaseTypeValue] = Field(..., min_length=1)
    required_fields: list[str] = Field(..., min_length=1)
    error_message: str


class StatusRuleSchema(_Strict):
    from_statuses: list[CaseStatusValue] = Field(..., min_length=1)
    to_statuses: list[CaseStatusValue] = Field(..., min_length=1)
    allowed: bool = True
    reason: Optional[str] = None


class CompletionCheckSchema(_Strict):
    field: str
    message: str
    blocking: bool = True
    case_types: list[CaseTypeValue] = Field(default_factory=list)


class PhaseAdvisorySchema(_Strict):
    message: str
    case_types: list[CaseTypeValue] = Field(default_factory=list)
    from_phase: Optional[CasePhaseValue] = None
    unless_field: Optional[str] = None


class PhaseRulesSchema(_Strict):
    required_fields: list[str] = Field(default_factory=list)
    conditional_rules: list[ConditionalRequirementSchema] = Field(default_factory=list)
    status_rules: list[StatusRuleSchema] = Field(default_factory=list)
    completion_checks: list[CompletionCheckSchema] = Field(default_factory=list)
    warnings: list[PhaseAdvisorySchema] = Field(default_factory=list)
    recommendations: list[PhaseAdvisorySchema] = Field(default_factory=list)


class PhaseExceptionSchema(_Strict):
    id: str
    from_phase: CasePhaseValue
    to_phase: CasePhaseValue
    reason: str
    case_types: list[CaseTypeValue] = Field(default_factory=list)
    conditions: list[BusinessConditionSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_phases(self) -> "PhaseExceptionSchema":
        if self.from_phase == self.to_phase:
            raise ValueError(f"Exception '{self.id}' must change the phase")
        return self


class TransitionPermissionSchema(_Strict):
    from_phase: CasePhaseValue
    to_phase: CasePhaseValue
    roles: list[UserRoleValue] = Field(..., min_length=1)
    case_types: list[CaseTypeValue] = Field(default_factory=list)
    conditions: list[BusinessConditionSchema] = Field(default_factory=list)


class ApprovalRequirementSchema(_Strict):
    case_type: CaseTypeValue
    to_phase: CasePhaseValue
    approver_role: UserRoleValue = "admin"


class FollowUpTaskSchema(_Strict):
    case_type: CaseTypeValue
    to_phase: CasePhaseValue
    title: str
    due_in_days: int = Field(..., ge=0)
    priority: TaskPriorityValue = "medium"
    description: str = ""
    category: Optional[str] = None


class PhaseDurationLimitSchema(_Strict):
    case_type: CaseTypeValue
    phase: CasePhaseValue
    max_days: int = Field(..., ge=1)
    milestones: list[str] = Field(default_factory=list)


class WorkflowPackSchema(_Strict):
    """Top-level schema for a case workflow pack."""
    schema_version: str = Field(SCHEMA_VERSION, description="Pack schema version")
    pack_id: str = Field(..., description="Pack identifier")
    name: str = ""
    description: str = ""
    default_transition_roles: list[UserRoleValue] = Field(
        default_factory=lambda: ["attorney", "admin"]
    )
    phases: dict[CasePhaseValue, PhaseRulesSchema] = Field(default_factory=dict)
    exceptions: list[PhaseExceptionSchema] = Field(default_factory=list)
    permissions: list[TransitionPermissionSchema] = Field(default_factory=list)
    approvals: list[ApprovalRequirementSchema] = Field(default_factory=list)
    follow_up_tasks: list[FollowUpTaskSchema] = Field(default_factory=list)
    duration_limits: list[PhaseDurationLimitSchema] = Field(default_factory=list)

    @field_validator("default_transition_roles")
    @classmethod
    def validate_roles(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("default_transition_roles cannot be empty")
        return v


# =============================================================================
# Validation Helpers
# =============================================================================

def validate_rule_pack(data: dict[str, Any]) -> RulePackSchema:
    """
    Validate a rule pack dictionary against the schema.

    Raises:
        pydantic.ValidationError: If validation fails
    """
    return RulePackSchema.model_validate(data)


def validate_workflow_pack(data: dict[str, Any]) -> WorkflowPackSchema:
    """
    Validate a workflow pack dictionary against the schema.

    Raises:
        pydantic.ValidationError: If validation fails
    """
    return WorkflowPackSchema.model_validate(data)


def check_schema_version(data: dict[str, Any]) -> bool:
    """True when the pack's major schema version matches this release."""
    pack_version = str(data.get("schema_version", SCHEMA_VERSION))
    return pack_version.split(".")[0] == SCHEMA_VERSION.split(".")[0]
