"""Escalation path endpoints."""

from typing import Optional

from fastapi import APIRouter, HTTPException

from casepilot.models import UserRole
from casepilot.packs import EscalationPathSchema, escalation_path_from_schema
from casepilot.services import CasePilotServices

router = APIRouter(prefix="/escalation-paths", tags=["Escalation"])

# Shared services (set by main.py)
services: CasePilotServices = None


def set_services(s: CasePilotServices):
    global services
    services = s


@router.get("")
async def list_paths(from_role: Optional[UserRole] = None):
    return [p.to_dict() for p in services.escalation_paths.list(from_role)]


@router.post("", status_code=201)
async def add_path(path: EscalationPathSchema):
    """Register (or replace) the path for its (from_role, level) key."""
    return services.escalation_paths.add(escalation_path_from_schema(path)).to_dict()


@router.delete("/{from_role}/{level}", status_code=204)
async def remove_path(from_role: UserRole, level: int):
    if not services.escalation_paths.remove(from_role, level):
        raise HTTPException(
            status_code=404,
            detail=f"No escalation path for {from_role.value} at level {level}",
        )


@router.get("/chain/{role}")
async def escalation_chain(role: UserRole, max_steps: int = 5):
    """Steps a task held by ``role`` would take when escalated repeatedly."""
    return [p.to_dict() for p in services.escalation.escalation_chain(role, max_steps)]
