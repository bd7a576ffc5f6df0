"""Assignment selection and recommendation endpoints."""

from fastapi import APIRouter, HTTPException

from api.schemas.requests import AssignmentRequest
from api.schemas.responses import (
    AssignmentResponse,
    FactorScoreResponse,
    RankedCandidate,
    RecommendationResponse,
)
from casepilot.engine import build_candidates, determine_preferred_role
from casepilot.models import (
    AssignmentCriteria,
    AssignmentStrategy,
    Candidate,
    TaskPriority,
    UserRole,
    utc_now,
)
from casepilot.services import CasePilotServices

router = APIRouter(prefix="/assignments", tags=["Assignments"])

# Shared services (set by main.py)
services: CasePilotServices = None


def set_services(s: CasePilotServices):
    global services
    services = s


def _pool_and_criteria(request: AssignmentRequest) -> tuple[list[Candidate], AssignmentCriteria]:
    criteria = AssignmentCriteria(
        strategy=AssignmentStrategy(request.strategy),
        required_role=UserRole(request.required_role) if request.required_role else None,
        preferred_role=UserRole(request.preferred_role) if request.preferred_role else None,
        required_expertise=list(request.required_expertise),
        max_workload=request.max_workload,
        min_expertise_score=request.min_expertise_score,
        priority=TaskPriority(request.priority),
        exclude_user_ids=list(request.exclude_user_ids),
    )
    if request.candidates:
        pool = [Candidate(**c.model_dump()) for c in request.candidates]
        return pool, criteria

    if not request.task_id:
        raise HTTPException(status_code=400, detail="Provide candidates or a task_id")
    task = services.tasks.get(request.task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task '{request.task_id}' not found")
    case = services.cases.get(task.case_id)
    case_type = case.case_type if case else None

    criteria.priority = task.priority
    criteria.required_expertise = criteria.required_expertise or list(task.required_expertise)
    if criteria.preferred_role is None:
        criteria.preferred_role = determine_preferred_role(case_type, task.priority)
    users = [
        u for u in services.users.list(role=criteria.required_role)
        if u.role != UserRole.CLIENT
    ]
    open_tasks = {u.id: services.tasks.list_for_assignee(u.id) for u in users}
    pool = build_candidates(users, open_tasks, case_type, criteria.required_expertise, utc_now())
    return pool, criteria


@router.post("/select", response_model=AssignmentResponse)
async def select_assignee(request: AssignmentRequest):
    """
    Pick one assignee deterministically.

    expertise_based orders by expertise then workload, workload_balance by
    workload then expertise, priority_based by role priority then
    workload. Remaining ties keep pool order.
    """
    pool, criteria = _pool_and_criteria(request)
    decision = services.selector.select(pool, criteria)
    return AssignmentResponse(
        selected_user_id=decision.user_id,
        strategy=decision.strategy.value,
        reasoning=decision.reasoning,
        ranked=[
            RankedCandidate(
                user_id=s.candidate.user_id,
                role=s.candidate.role.value,
                rank=s.rank,
                total=s.total,
                workload=s.candidate.workload,
                expertise_score=s.candidate.expertise_score,
                factors=[
                    FactorScoreResponse(name=f.name, weight=f.weight, value=f.value)
                    for f in s.factors
                ],
            )
            for s in decision.ranked
        ],
    )


@router.post("/recommend", response_model=list[RecommendationResponse])
async def recommend_assignees(request: AssignmentRequest):
    """Top candidates with a suitability score, confidence and reasoning."""
    pool, criteria = _pool_and_criteria(request)
    return [
        RecommendationResponse(
            user_id=r.user_id,
            role=r.role.value,
            score=r.score,
            confidence=r.confidence,
            reasoning=r.reasoning,
            available_capacity=r.available_capacity,
        )
        for r in services.selector.recommend(pool, criteria, limit=request.limit)
    ]
