"""
Pytest configuration and fixtures for CasePilot tests.

Provides helper factories and common fixtures matching actual model definitions.
"""
import pytest
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from casepilot.config import Settings
from casepilot.models import (
    ActionType,
    BusinessAction,
    BusinessCondition,
    BusinessRule,
    Case,
    CasePhase,
    CaseStatus,
    CaseType,
    ConditionOperator,
    FailureStrategy,
    LogicalOperator,
    RuleCategory,
    RuleEvaluationContext,
    Task,
    TaskPriority,
    TaskStatus,
    TriggerEvent,
    TriggerEventType,
    User,
    UserRole,
)
from casepilot.models.rules import ACTION_PARAM_TYPES
from casepilot.packs import load_default_rule_pack, load_default_workflow_pack
from casepilot.services import build_services


# Fixed reference time (a Monday) so deadlines and overdue checks are stable
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# =============================================================================
# Factory Helpers
# =============================================================================

def make_case(
    id: str = "CASE-001",
    case_type: CaseType = CaseType.CONTRACT_DISPUTE,
    phase: CasePhase = CasePhase.INTAKE,
    status: CaseStatus = CaseStatus.INTAKE,
    title: str = None,
    client_id: str = "client-1",
    attorney_id: str = None,
    metadata: dict = None,
    phase_started_at: datetime = None,
) -> Case:
    """Create a Case with required fields."""
    return Case(
        id=id,
        title=title or f"{case_type.value} matter",
        case_type=case_type,
        client_id=client_id,
        phase=phase,
        status=status,
        attorney_id=attorney_id,
        metadata=metadata or {},
        created_at=NOW,
        updated_at=NOW,
        phase_started_at=phase_started_at or NOW,
    )


def make_task(
    id: str = "TASK-001",
    case_id: str = "CASE-001",
    title: str = "Draft motion",
    status: TaskStatus = TaskStatus.PENDING,
    priority: TaskPriority = TaskPriority.MEDIUM,
    assignee_id: str = None,
    assignee_role: UserRole = None,
    due_date: datetime = None,
    escalation_level: int = 0,
    required_expertise: list = None,
    estimated_hours: float = None,
    category: str = None,
    value: float = 0.0,
    dependencies: list = None,
    metadata: dict = None,
) -> Task:
    """Create a Task with required fields."""
    return Task(
        id=id,
        case_id=case_id,
        title=title,
        status=status,
        priority=priority,
        assignee_id=assignee_id,
        assignee_role=assignee_role,
        due_date=due_date,
        escalation_level=escalation_level,
        required_expertise=required_expertise or [],
        estimated_hours=estimated_hours,
        category=category,
        value=value,
        dependencies=dependencies or [],
        created_at=NOW,
        metadata=metadata or {},
    )


def make_user(
    id: str,
    role: UserRole = UserRole.ATTORNEY,
    name: str = None,
    expertise: list = None,
    is_available: bool = True,
    specialization: CaseType = None,
) -> User:
    """Create a User with required fields."""
    return User(
        id=id,
        name=name or id.title(),
        role=role,
        expertise=expertise or [],
        is_available=is_available,
        specialization=specialization,
    )


def make_condition(
    field: str,
    operator: ConditionOperator,
    value=None,
    logical_operator: LogicalOperator = LogicalOperator.AND,
    weight: float = 1.0,
    id: str = None,
) -> BusinessCondition:
    """Create a BusinessCondition."""
    return BusinessCondition(
        id=id or f"cond-{uuid4().hex[:6]}",
        field=field,
        operator=operator,
        value=value,
        logical_operator=logical_operator,
        weight=weight,
    )


def make_action(
    type: ActionType,
    id: str = None,
    failure_strategy: FailureStrategy = FailureStrategy.CONTINUE,
    **params,
) -> BusinessAction:
    """Create a BusinessAction with the typed payload for ``type``."""
    return BusinessAction(
        id=id or f"act-{type.value}-{uuid4().hex[:4]}",
        type=type,
        params=ACTION_PARAM_TYPES[type](**params),
        failure_strategy=failure_strategy,
    )


def make_rule(
    id: str = "rule-1",
    conditions: list = None,
    actions: list = None,
    priority: int = 0,
    category: RuleCategory = RuleCategory.ESCALATION,
    name: str = None,
    is_active: bool = True,
    min_confidence: float = None,
) -> BusinessRule:
    """Create a BusinessRule. Defaults to a single change_priority action."""
    return BusinessRule(
        id=id,
        name=name or id.replace("-", " ").title(),
        category=category,
        conditions=conditions or [],
        actions=actions if actions is not None else [
            make_action(ActionType.CHANGE_PRIORITY, id=f"{id}-act", priority=TaskPriority.HIGH)
        ],
        priority=priority,
        is_active=is_active,
        min_confidence=min_confidence,
    )


def make_context(
    task_id: str = None,
    case_id: str = None,
    user_id: str = None,
    event: TriggerEventType = None,
    event_details: dict = None,
    metadata: dict = None,
    timestamp: datetime = None,
) -> RuleEvaluationContext:
    """Create a RuleEvaluationContext at the fixed reference time."""
    return RuleEvaluationContext(
        case_id=case_id,
        task_id=task_id,
        user_id=user_id,
        trigger_event=TriggerEvent(type=event, details=event_details or {}) if event else None,
        timestamp=timestamp or NOW,
        metadata=metadata or {},
    )


# Metadata that satisfies every intake -> preparation check for a contract dispute
CONTRACT_INTAKE_COMPLETE = {
    "clientInformation": "Acme Corp",
    "caseDescription": "Supplier failed to deliver",
    "initialContactDate": "2026-02-20",
    "conflictCheckCompleted": True,
    "riskAssessmentCompleted": True,
    "legalResearchCompleted": True,
    "documentPreparationStarted": True,
    "strategyDefined": True,
    "contractAnalyzed": True,
    "breachIdentified": True,
    "damagesCalculated": True,
}


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def rule_pack():
    return load_default_rule_pack()


@pytest.fixture(scope="session")
def workflow():
    return load_default_workflow_pack()


@pytest.fixture
def services(rule_pack, workflow):
    """Fresh services over the bundled packs."""
    return build_services(Settings(), rule_pack=rule_pack, workflow=workflow)


@pytest.fixture
def staffed_services(services):
    """Services with a small firm in the directory."""
    services.users.add(make_user("att-1", UserRole.ATTORNEY, expertise=["contract", "litigation"]))
    services.users.add(make_user("att-2", UserRole.ATTORNEY, expertise=["criminal"]))
    services.users.add(make_user("asst-1", UserRole.ASSISTANT, expertise=["filing"]))
    services.users.add(make_user("admin-1", UserRole.ADMIN))
    return services


@pytest.fixture
def later():
    """Helper for times relative to the reference time."""
    def _later(**kwargs) -> datetime:
        return NOW + timedelta(**kwargs)
    return _later
