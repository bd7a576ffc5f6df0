"""Business rule endpoints."""

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, HTTPException

from api.schemas.requests import RuleDeactivateRequest, RuleEvaluateRequest
from api.schemas.responses import RuleStatsResponse
from casepilot.models import (
    RuleCategory,
    RuleEvaluationContext,
    TriggerEvent,
    TriggerEventType,
)
from casepilot.packs import BusinessRuleSchema, rule_from_schema
from casepilot.services import CasePilotServices

router = APIRouter(prefix="/rules", tags=["Rules"])

# Shared services (set by main.py)
services: CasePilotServices = None


def set_services(s: CasePilotServices):
    global services
    services = s


def build_context(request: RuleEvaluateRequest) -> RuleEvaluationContext:
    """Evaluation context from an API request."""
    trigger = None
    if request.trigger_event is not None:
        trigger = TriggerEvent(
            type=TriggerEventType(request.trigger_event.type),
            details=dict(request.trigger_event.details),
        )
    context = RuleEvaluationContext(
        case_id=request.case_id,
        task_id=request.task_id,
        user_id=request.user_id,
        trigger_event=trigger,
        metadata=dict(request.metadata),
    )
    if request.timestamp is not None:
        context.timestamp = request.timestamp
    return context


# =============================================================================
# Evaluation
# =============================================================================

@router.post("/evaluate")
async def evaluate(request: RuleEvaluateRequest):
    """
    Evaluate every active rule against the case/task in the request.

    Matching rules execute their actions; results are returned in
    evaluation order (priority descending).
    """
    results = services.rule_engine.evaluate(build_context(request))
    return {
        "rule_pack_id": services.rule_pack.pack_id,
        "matched": sum(1 for r in results if r.matched),
        "results": [r.to_dict() for r in results],
    }


@router.get("/stats", response_model=RuleStatsResponse)
async def get_stats():
    return RuleStatsResponse(**asdict(services.rule_engine.get_stats()))


@router.get("/history")
async def get_history(rule_id: Optional[str] = None, limit: int = 100):
    """Recent evaluation results, newest first."""
    return [r.to_dict() for r in services.rule_engine.get_history(rule_id, limit)]


# =============================================================================
# Rule Management
# =============================================================================

@router.get("")
async def list_rules(category: Optional[RuleCategory] = None, active_only: bool = False):
    return [r.to_dict() for r in services.rule_engine.list_rules(category, active_only)]


@router.post("", status_code=201)
async def create_rule(rule: BusinessRuleSchema):
    """Add a rule. The body uses the same shape as a rule pack entry."""
    return services.rule_engine.add_rule(rule_from_schema(rule)).to_dict()


@router.get("/{rule_id}")
async def get_rule(rule_id: str):
    return services.rule_engine.get_rule(rule_id).to_dict()


@router.put("/{rule_id}")
async def update_rule(rule_id: str, rule: BusinessRuleSchema):
    """Replace a rule's definition. Counters are preserved."""
    if rule.id != rule_id:
        raise HTTPException(status_code=400, detail="Rule id in body does not match the path")
    return services.rule_engine.update_rule(rule_from_schema(rule)).to_dict()


@router.delete("/{rule_id}", status_code=204)
async def delete_rule(rule_id: str):
    services.rule_engine.delete_rule(rule_id)


@router.post("/{rule_id}/activate")
async def activate_rule(rule_id: str):
    return services.rule_engine.activate_rule(rule_id).to_dict()


@router.post("/{rule_id}/deactivate")
async def deactivate_rule(rule_id: str, request: RuleDeactivateRequest):
    return services.rule_engine.deactivate_rule(rule_id, request.reason).to_dict()


@router.post("/{rule_id}/test")
async def test_rule(rule_id: str, request: RuleEvaluateRequest):
    """Dry-run one rule: conditions are evaluated, actions are only planned."""
    return services.rule_engine.test_rule(rule_id, build_context(request)).to_dict()
