"""Case, task and transition endpoints."""

from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, HTTPException

from api.schemas.requests import (
    CaseCreateRequest,
    MetadataRequest,
    TaskCreateRequest,
    TransitionRequest,
    TransitionValidateRequest,
)
from api.schemas.responses import (
    PhaseProgressResponse,
    PhaseRequirementsResponse,
    TransitionResponse,
    ValidationResponse,
)
from casepilot.models import (
    Case,
    CasePhase,
    CaseStatus,
    CaseType,
    Task,
    TaskPriority,
    TaskStatus,
    TransitionOutcome,
    UserRole,
)
from casepilot.services import CasePilotServices

router = APIRouter(prefix="/cases", tags=["Cases"])

# Shared services (set by main.py)
services: CasePilotServices = None


def set_services(s: CasePilotServices):
    global services
    services = s


def outcome_response(outcome: TransitionOutcome) -> TransitionResponse:
    return TransitionResponse(
        status=outcome.status,
        validation=ValidationResponse(**outcome.validation.to_dict()),
        transition=outcome.record.to_dict() if outcome.record else None,
        approval=outcome.approval.to_dict() if outcome.approval else None,
    )


# =============================================================================
# Cases
# =============================================================================

@router.post("", status_code=201)
async def create_case(request: CaseCreateRequest):
    """Register a case in the intake phase."""
    case_id = request.id or f"CASE-{uuid4().hex[:8].upper()}"
    if services.cases.get(case_id) is not None:
        raise HTTPException(status_code=409, detail=f"Case '{case_id}' already exists")
    case = Case(
        id=case_id,
        title=request.title,
        case_type=CaseType(request.case_type),
        client_id=request.client_id,
        attorney_id=request.attorney_id,
        metadata=dict(request.metadata),
    )
    services.cases.save(case)
    return case.to_dict()


@router.get("")
async def list_cases(phase: Optional[str] = None, case_type: Optional[str] = None):
    """List cases, optionally filtered by phase or case type."""
    cases = services.cases.list()
    if phase:
        cases = [c for c in cases if c.phase.value == phase]
    if case_type:
        cases = [c for c in cases if c.case_type.value == case_type]
    return [c.to_dict() for c in cases]


@router.get("/{case_id}")
async def get_case(case_id: str):
    return services.transitions.get_case(case_id).to_dict()


@router.get("/{case_id}/tasks")
async def list_case_tasks(case_id: str):
    services.transitions.get_case(case_id)
    return [t.to_dict() for t in services.tasks.list_for_case(case_id)]


@router.post("/{case_id}/tasks", status_code=201)
async def create_task(case_id: str, request: TaskCreateRequest):
    """Create a task on the case. ``request.case_id`` must match the path."""
    services.transitions.get_case(case_id)
    if request.case_id != case_id:
        raise HTTPException(status_code=400, detail="case_id in body does not match the path")
    task_id = request.id or f"TASK-{uuid4().hex[:8].upper()}"
    if services.tasks.get(task_id) is not None:
        raise HTTPException(status_code=409, detail=f"Task '{task_id}' already exists")
    for dep in request.dependencies:
        if services.tasks.get(dep) is None:
            raise HTTPException(status_code=400, detail=f"Dependency '{dep}' not found")
    task = Task(
        id=task_id,
        case_id=case_id,
        title=request.title,
        status=TaskStatus(request.status),
        priority=TaskPriority(request.priority),
        assignee_id=request.assignee_id,
        assignee_role=UserRole(request.assignee_role) if request.assignee_role else None,
        due_date=request.due_date,
        required_expertise=list(request.required_expertise),
        estimated_hours=request.estimated_hours,
        category=request.category,
        value=request.value,
        dependencies=list(request.dependencies),
        description=request.description,
    )
    services.tasks.save(task)
    return task.to_dict()


@router.get("/{case_id}/audit")
async def get_case_audit(case_id: str):
    """Audit records for the case, oldest first."""
    services.transitions.get_case(case_id)
    return [r.to_dict() for r in services.audit.records(case_id)]


# =============================================================================
# Phase Rules
# =============================================================================

@router.get("/{case_id}/requirements", response_model=PhaseRequirementsResponse)
async def get_requirements(case_id: str, phase: Optional[CasePhase] = None):
    """Fields and checks the case needs in a phase (its current phase by default)."""
    reqs = services.transitions.phase_requirements(case_id, phase)
    return PhaseRequirementsResponse(
        case_id=case_id,
        phase=reqs.phase.value,
        required_fields=reqs.required_fields,
        conditional_fields=reqs.conditional_fields,
        completion_checks=reqs.completion_checks,
        allowed_status_transitions=[
            [a.value, b.value] for a, b in reqs.allowed_status_transitions
        ],
    )


@router.post("/{case_id}/progress", response_model=PhaseProgressResponse)
async def get_progress(case_id: str, request: MetadataRequest, phase: Optional[CasePhase] = None):
    progress = services.transitions.phase_progress(case_id, request.metadata, phase)
    return PhaseProgressResponse(
        case_id=case_id,
        phase=progress.phase.value,
        completed=progress.completed,
        total=progress.total,
        percent=progress.percent,
        missing=progress.missing,
    )


@router.post("/{case_id}/completion", response_model=ValidationResponse)
async def validate_completion(case_id: str, request: MetadataRequest):
    """Check whether the case has satisfied its current phase."""
    result = services.transitions.validate_phase_completion(case_id, request.metadata)
    return ValidationResponse(**result.to_dict())


# =============================================================================
# Transitions
# =============================================================================

@router.post("/{case_id}/transitions/validate", response_model=ValidationResponse)
async def validate_transition(case_id: str, request: TransitionValidateRequest):
    """Dry-run a phase transition without changing the case."""
    result = services.transitions.validate_transition(
        case_id,
        CasePhase(request.target_phase),
        UserRole(request.role),
        request.metadata,
        request.as_of,
        CaseStatus(request.target_status) if request.target_status else None,
    )
    return ValidationResponse(**result.to_dict())


@router.get("/{case_id}/transitions/available")
async def available_transitions(case_id: str, role: UserRole):
    """Reachable target phases and whether each would validate for ``role``."""
    return [t.to_dict() for t in services.transitions.available_transitions(case_id, role)]


@router.post("/{case_id}/transitions", response_model=TransitionResponse)
async def request_transition(case_id: str, request: TransitionRequest):
    """
    Request a phase transition.

    Returns status ``completed`` when executed immediately,
    ``pending_approval`` when an approver must decide, or ``rejected``
    with the validation errors.
    """
    outcome = services.transitions.request_transition(
        case_id,
        CasePhase(request.target_phase),
        requested_by=request.requested_by,
        role=UserRole(request.role),
        reason=request.reason,
        metadata=request.metadata,
        target_status=CaseStatus(request.target_status) if request.target_status else None,
        as_of=request.as_of,
    )
    return outcome_response(outcome)


@router.get("/{case_id}/transitions")
async def transition_history(case_id: str):
    return [r.to_dict() for r in services.transitions.get_history(case_id)]
