"""Transition approval endpoints."""

from typing import Optional

from fastapi import APIRouter

from api.routes.cases import outcome_response
from api.schemas.requests import ApprovalDecisionRequest
from api.schemas.responses import TransitionResponse
from casepilot.models import UserRole
from casepilot.services import CasePilotServices

router = APIRouter(prefix="/approvals", tags=["Approvals"])

# Shared services (set by main.py)
services: CasePilotServices = None


def set_services(s: CasePilotServices):
    global services
    services = s


@router.get("")
async def list_pending(approver_role: Optional[UserRole] = None):
    """
    Pending approval requests.

    With ``approver_role``, only requests that role has authority to decide.
    """
    return [a.to_dict() for a in services.transitions.pending_approvals(approver_role)]


@router.get("/{approval_id}")
async def get_approval(approval_id: str):
    return services.transitions.get_approval(approval_id).to_dict()


@router.post("/{approval_id}/approve", response_model=TransitionResponse)
async def approve(approval_id: str, request: ApprovalDecisionRequest):
    """Approve the request and execute its transition."""
    outcome = services.transitions.approve_transition(
        approval_id,
        request.approver_id,
        UserRole(request.approver_role),
        request.comment,
        request.as_of,
    )
    return outcome_response(outcome)


@router.post("/{approval_id}/reject")
async def reject(approval_id: str, request: ApprovalDecisionRequest):
    approval = services.transitions.reject_transition(
        approval_id,
        request.approver_id,
        UserRole(request.approver_role),
        request.comment,
        request.as_of,
    )
    return approval.to_dict()
