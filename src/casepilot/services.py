"""
CasePilot Service Wiring

Builds the in-memory stores and engine services from a rule pack and a
workflow pack. The API lifespan and the CLI both start from here.

Usage:
    from casepilot.config import get_settings
    from casepilot.services import build_services

    services = build_services(get_settings())
    results = services.rule_engine.evaluate(context)
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Optional

from .config import Settings
from .engine import (
    ActionExecutor,
    AssignmentSelector,
    BusinessRuleEngine,
    CaseTransitionService,
    ConditionEvaluator,
    DeadlineCalculator,
    DeadlineConfig,
    EscalationRouter,
    PhaseValidator,
)
from .models import WorkflowConfig
from .packs import RulePack, load_rule_pack_or_default, load_workflow_pack_or_default
from .store import (
    InMemoryAuditSink,
    InMemoryCaseRepository,
    InMemoryEscalationRegistry,
    InMemoryNotificationDispatcher,
    InMemoryRuleRepository,
    InMemoryTaskRepository,
    InMemoryTransitionRepository,
    InMemoryUserDirectory,
)

logger = logging.getLogger(__name__)


@dataclass
class CasePilotServices:
    """Stores and engines sharing one set of repositories."""
    rule_pack: RulePack
    workflow: WorkflowConfig
    cases: InMemoryCaseRepository
    tasks: InMemoryTaskRepository
    users: InMemoryUserDirectory
    rules: InMemoryRuleRepository
    escalation_paths: InMemoryEscalationRegistry
    transitions_repo: InMemoryTransitionRepository
    notifications: InMemoryNotificationDispatcher
    audit: InMemoryAuditSink
    evaluator: ConditionEvaluator
    selector: AssignmentSelector
    deadlines: DeadlineCalculator
    escalation: EscalationRouter
    validator: PhaseValidator
    executor: ActionExecutor
    rule_engine: BusinessRuleEngine
    transitions: CaseTransitionService
    settings: Settings = field(default_factory=Settings)


def build_services(
    settings: Optional[Settings] = None,
    rule_pack: Optional[RulePack] = None,
    workflow: Optional[WorkflowConfig] = None,
) -> CasePilotServices:
    """
    Wire every service over fresh in-memory stores.

    Packs not passed explicitly are loaded from the settings' paths, or
    from the bundled defaults when no path is configured.

    Raises:
        PackLoadError: If a configured pack cannot be read
        PackValidationError: If a pack fails validation
    """
    settings = settings or Settings()
    rule_pack = rule_pack or load_rule_pack_or_default(settings.rule_pack)
    workflow = workflow or load_workflow_pack_or_default(settings.workflow_pack)

    cases = InMemoryCaseRepository()
    tasks = InMemoryTaskRepository()
    users = InMemoryUserDirectory()
    rules = InMemoryRuleRepository(copy.deepcopy(rule_pack.rules))
    escalation_paths = InMemoryEscalationRegistry(copy.deepcopy(rule_pack.escalation_paths))
    transitions_repo = InMemoryTransitionRepository()
    notifications = InMemoryNotificationDispatcher()
    audit = InMemoryAuditSink()

    evaluator = ConditionEvaluator()
    selector = AssignmentSelector()
    deadlines = DeadlineCalculator(DeadlineConfig(
        dependency_buffer_hours=settings.deadline_buffer_hours,
        roll_to_business_day=settings.roll_to_business_day,
    ))
    escalation = EscalationRouter(escalation_paths, evaluator)
    validator = PhaseValidator(workflow, evaluator)
    executor = ActionExecutor(
        cases, tasks, users, notifications,
        selector=selector,
        deadlines=deadlines,
        escalation=escalation,
        validator=validator,
    )
    rule_engine = BusinessRuleEngine(
        rules, cases, tasks, executor,
        evaluator=evaluator,
        audit=audit,
        history_limit=settings.history_limit,
    )
    transitions = CaseTransitionService(
        workflow, cases, tasks, transitions_repo, notifications, audit,
        users=users,
        evaluator=evaluator,
    )

    logger.info(
        "Services ready: %d rules, %d escalation paths, %d phases",
        len(rule_pack.rules), len(rule_pack.escalation_paths), len(workflow.phases),
        extra={"pack_id": rule_pack.pack_id},
    )
    return CasePilotServices(
        rule_pack=rule_pack,
        workflow=workflow,
        cases=cases,
        tasks=tasks,
        users=users,
        rules=rules,
        escalation_paths=escalation_paths,
        transitions_repo=transitions_repo,
        notifications=notifications,
        audit=audit,
        evaluator=evaluator,
        selector=selector,
        deadlines=deadlines,
        escalation=escalation,
        validator=validator,
        executor=executor,
        rule_engine=rule_engine,
        transitions=transitions,
        settings=settings,
    )
