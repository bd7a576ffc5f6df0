"""User directory and notification endpoints."""

from typing import Optional

from fastapi import APIRouter, HTTPException

from api.schemas.requests import UserCreateRequest
from casepilot.models import CaseType, User, UserRole
from casepilot.services import CasePilotServices

router = APIRouter(tags=["Directory"])

# Shared services (set by main.py)
services: CasePilotServices = None


def set_services(s: CasePilotServices):
    global services
    services = s


def _user_dict(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "role": user.role.value,
        "expertise": list(user.expertise),
        "is_available": user.is_available,
        "specialization": user.specialization.value if user.specialization else None,
        "email": user.email,
    }


@router.post("/users", status_code=201)
async def add_user(request: UserCreateRequest):
    user = User(
        id=request.id,
        name=request.name,
        role=UserRole(request.role),
        expertise=list(request.expertise),
        is_available=request.is_available,
        specialization=CaseType(request.specialization) if request.specialization else None,
        email=request.email,
    )
    return _user_dict(services.users.add(user))


@router.get("/users")
async def list_users(role: Optional[UserRole] = None, available_only: bool = False):
    return [_user_dict(u) for u in services.users.list(role=role, available_only=available_only)]


@router.get("/users/{user_id}/notifications")
async def get_notifications(user_id: str, unread_only: bool = False):
    return [n.to_dict() for n in services.transitions.get_notifications(user_id, unread_only)]


@router.post("/notifications/{notification_id}/read")
async def mark_read(notification_id: str):
    if not services.transitions.mark_notification_read(notification_id):
        raise HTTPException(status_code=404, detail=f"Notification '{notification_id}' not found")
    return {"id": notification_id, "read": True}
