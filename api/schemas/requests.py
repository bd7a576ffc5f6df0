"""Request schemas for the API."""

from typing import Any, Literal, Optional

from pydantic import AwareDatetime, BaseModel, Field

CaseTypeValue = Literal[
    "labor_dispute",
    "medical_malpractice",
    "criminal_defense",
    "divorce_family",
    "inheritance_dispute",
    "contract_dispute",
    "administrative_case",
    "demolition_case",
    "special_matters",
]
CasePhaseValue = Literal["intake", "preparation", "proceedings", "resolution", "closure"]
CaseStatusValue = Literal["intake", "active", "pending", "completed", "closed"]
RoleValue = Literal["client", "assistant", "attorney", "admin"]
PriorityValue = Literal["low", "medium", "high", "urgent"]
StrategyValue = Literal["expertise_based", "workload_balance", "priority_based"]


# =============================================================================
# Cases, Tasks, Users
# =============================================================================

class CaseCreateRequest(BaseModel):
    """Register a new case. Cases always start in intake."""
    id: Optional[str] = Field(None, description="Case ID (generated when omitted)")
    title: str = Field(..., description="Short case title")
    case_type: CaseTypeValue = Field(..., description="Practice area; fixed after creation")
    client_id: str = Field(..., description="Client user ID")
    attorney_id: Optional[str] = Field(None, description="Responsible attorney")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Case facts")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "title": "Acme Corp v. Widget LLC",
                    "case_type": "contract_dispute",
                    "client_id": "client-17",
                    "attorney_id": "att-3",
                    "metadata": {"clientInformation": "Acme Corp", "initialContactDate": "2026-03-02"},
                }
            ]
        }
    }


class TaskCreateRequest(BaseModel):
    """Create a task on an existing case."""
    id: Optional[str] = Field(None, description="Task ID (generated when omitted)")
    case_id: str
    title: str
    priority: PriorityValue = "medium"
    status: Literal["pending", "in_progress", "waiting_dependencies", "completed", "cancelled"] = "pending"
    assignee_id: Optional[str] = None
    assignee_role: Optional[RoleValue] = None
    due_date: Optional[AwareDatetime] = None
    required_expertise: list[str] = Field(default_factory=list)
    estimated_hours: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    value: float = Field(0.0, ge=0, description="Monetary value of the work product")
    dependencies: list[str] = Field(default_factory=list, description="Prerequisite task IDs")
    description: str = ""


class UserCreateRequest(BaseModel):
    """Add a user to the directory."""
    id: str
    name: str
    role: RoleValue
    expertise: list[str] = Field(default_factory=list)
    is_available: bool = True
    specialization: Optional[CaseTypeValue] = None
    email: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "att-3",
                    "name": "Dana Whitfield",
                    "role": "attorney",
                    "expertise": ["contract", "litigation"],
                    "specialization": "contract_dispute",
                }
            ]
        }
    }


# =============================================================================
# Transitions
# =============================================================================

class TransitionValidateRequest(BaseModel):
    """Dry-run validation of a phase transition."""
    target_phase: CasePhaseValue
    role: RoleValue = Field(..., description="Role of the requesting user")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Facts supplied with the request")
    as_of: Optional[AwareDatetime] = Field(None, description="Evaluation time (defaults to now)")
    target_status: Optional[CaseStatusValue] = Field(None, description="Explicit status to move to")


class TransitionRequest(BaseModel):
    """Request a phase transition; may park for approval."""
    target_phase: CasePhaseValue
    requested_by: str = Field(..., description="Requesting user ID")
    role: RoleValue
    reason: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    target_status: Optional[CaseStatusValue] = None
    as_of: Optional[AwareDatetime] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "target_phase": "preparation",
                    "requested_by": "att-3",
                    "role": "attorney",
                    "reason": "Intake complete",
                    "metadata": {
                        "conflictCheckCompleted": True,
                        "riskAssessmentCompleted": True,
                        "legalResearchCompleted": True,
                        "documentPreparationStarted": True,
                        "strategyDefined": True,
                        "contractAnalyzed": True,
                        "breachIdentified": True,
                        "damagesCalculated": True,
                    },
                }
            ]
        }
    }


class ApprovalDecisionRequest(BaseModel):
    approver_id: str
    approver_role: RoleValue
    comment: str = ""
    as_of: Optional[AwareDatetime] = None


# =============================================================================
# Rules
# =============================================================================

class TriggerEventInput(BaseModel):
    type: Literal[
        "task_created",
        "task_updated",
        "phase_changed",
        "deadline_approaching",
        "user_action",
        "system_event",
    ]
    details: dict[str, Any] = Field(default_factory=dict)


class RuleEvaluateRequest(BaseModel):
    """Run the active rules against a case/task."""
    case_id: Optional[str] = None
    task_id: Optional[str] = None
    user_id: Optional[str] = None
    trigger_event: Optional[TriggerEventInput] = None
    timestamp: Optional[AwareDatetime] = Field(None, description="Evaluation time (defaults to now)")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Extra facts, visible at top level")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "task_id": "task-7",
                    "trigger_event": {"type": "deadline_approaching", "details": {}},
                    "metadata": {"daysUntilDeadline": 1},
                }
            ]
        }
    }


class RuleDeactivateRequest(BaseModel):
    reason: str = Field("deactivated", description="Recorded as the rule's disabled reason")


# =============================================================================
# Assignment and Deadlines
# =============================================================================

class CandidateInput(BaseModel):
    user_id: str
    role: RoleValue
    workload: float = Field(0.0, ge=0)
    expertise_score: float = Field(0.0, ge=0, le=1)
    available: bool = True
    active_tasks: int = Field(0, ge=0)
    expertise: list[str] = Field(default_factory=list)
    name: str = ""


class AssignmentRequest(BaseModel):
    """
    Select an assignee. Either pass an explicit candidate pool or a task ID,
    in which case the pool is built from the user directory.
    """
    task_id: Optional[str] = None
    candidates: list[CandidateInput] = Field(default_factory=list)
    strategy: StrategyValue = "expertise_based"
    required_role: Optional[RoleValue] = None
    preferred_role: Optional[RoleValue] = None
    required_expertise: list[str] = Field(default_factory=list)
    max_workload: Optional[float] = None
    min_expertise_score: Optional[float] = Field(None, ge=0, le=1)
    priority: PriorityValue = "medium"
    exclude_user_ids: list[str] = Field(default_factory=list)
    limit: int = Field(5, ge=1, le=50, description="Recommendations returned")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "strategy": "workload_balance",
                    "candidates": [
                        {"user_id": "att-1", "role": "attorney", "workload": 5, "expertise_score": 0.9},
                        {"user_id": "att-2", "role": "attorney", "workload": 3, "expertise_score": 0.9},
                    ],
                }
            ]
        }
    }


class ComplexityDeadlineRequest(BaseModel):
    start: AwareDatetime
    case_type: Optional[CaseTypeValue] = None
    base_hours: Optional[float] = Field(None, ge=0)
    flags: dict[str, bool] = Field(default_factory=dict, description="complex, requires_research, multi_party, urgent")
    buffer: Optional[float] = Field(None, ge=0)
    min_extension_hours: Optional[float] = Field(None, ge=0)
    roll_to_business_day: Optional[bool] = None


class DependencyDeadlineRequest(BaseModel):
    start: AwareDatetime
    dependency_deadlines: list[Optional[AwareDatetime]] = Field(default_factory=list)
    buffer_hours: Optional[float] = Field(None, ge=0)
    roll_to_business_day: Optional[bool] = None


class MetadataRequest(BaseModel):
    """Facts supplied alongside the case's stored metadata."""
    metadata: dict[str, Any] = Field(default_factory=dict)
