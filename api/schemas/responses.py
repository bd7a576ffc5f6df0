"""Response schemas for the API."""

from typing import Any, Optional

from pydantic import BaseModel


class ValidationResponse(BaseModel):
    """Outcome of a phase, status or completion validation."""
    valid: bool
    errors: list[str]
    warnings: list[str]
    recommendations: list[str]


class TransitionResponse(BaseModel):
    """Outcome of a transition request or approval."""
    status: str  # completed|pending_approval|rejected
    validation: ValidationResponse
    transition: Optional[dict[str, Any]] = None
    approval: Optional[dict[str, Any]] = None


class PhaseRequirementsResponse(BaseModel):
    case_id: str
    phase: str
    required_fields: list[str]
    conditional_fields: list[str]
    completion_checks: list[str]
    allowed_status_transitions: list[list[str]]


class PhaseProgressResponse(BaseModel):
    case_id: str
    phase: str
    completed: int
    total: int
    percent: int
    missing: list[str]


class FactorScoreResponse(BaseModel):
    name: str
    weight: float
    value: float


class RankedCandidate(BaseModel):
    user_id: str
    role: str
    rank: int
    total: float
    workload: float
    expertise_score: float
    factors: list[FactorScoreResponse]


class AssignmentResponse(BaseModel):
    selected_user_id: str
    strategy: str
    ranked: list[RankedCandidate]
    reasoning: list[str]


class RecommendationResponse(BaseModel):
    user_id: str
    role: str
    score: float
    confidence: float
    reasoning: list[str]
    available_capacity: int


class DeadlineResponse(BaseModel):
    deadline: str
    strategy: str
    hours: float
    multiplier: float
    rolled_forward: bool
    explanation: list[str]


class RuleStatsResponse(BaseModel):
    total_rules: int
    active_rules: int
    total_evaluations: int
    total_triggers: int
    total_successes: int
    total_failures: int
    success_rate: float
    average_execution_time_ms: float
    top_rules: list[dict[str, Any]]
    category_counts: dict[str, int]
