"""Deadline calculation endpoints."""

from fastapi import APIRouter

from api.schemas.requests import ComplexityDeadlineRequest, DependencyDeadlineRequest
from api.schemas.responses import DeadlineResponse
from casepilot.models import CaseType
from casepilot.services import CasePilotServices

router = APIRouter(prefix="/deadlines", tags=["Deadlines"])

# Shared services (set by main.py)
services: CasePilotServices = None


def set_services(s: CasePilotServices):
    global services
    services = s


@router.post("/complexity", response_model=DeadlineResponse)
async def complexity_deadline(request: ComplexityDeadlineRequest):
    """Base hours scaled by case type and complexity flags, plus buffer."""
    result = services.deadlines.complexity_deadline(
        start=request.start,
        case_type=CaseType(request.case_type) if request.case_type else None,
        base_hours=request.base_hours,
        flags=request.flags,
        buffer=request.buffer,
        min_extension_hours=request.min_extension_hours,
        roll_to_business_day=request.roll_to_business_day,
    )
    return DeadlineResponse(**result.to_dict())


@router.post("/dependency", response_model=DeadlineResponse)
async def dependency_deadline(request: DependencyDeadlineRequest):
    """Latest prerequisite deadline plus a buffer."""
    result = services.deadlines.dependency_deadline(
        start=request.start,
        dependency_deadlines=request.dependency_deadlines,
        buffer_hours=request.buffer_hours,
        roll_to_business_day=request.roll_to_business_day,
    )
    return DeadlineResponse(**result.to_dict())
