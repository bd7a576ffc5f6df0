"""
CasePilot Pack Loader

Loads and validates rule packs and workflow packs from YAML or JSON, and
converts the Pydantic schema models to CasePilot domain models.

The bundled defaults live in ``casepilot/packs/defaults/``.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import ValidationError

from ..canon import compute_pack_hash
from ..exceptions import PackLoadError, PackValidationError
from ..models import (
    ACTION_PARAM_TYPES,
    ActionType,
    ApprovalRequirement,
    AssignmentStrategy,
    BusinessAction,
    BusinessCondition,
    BusinessRule,
    CasePhase,
    CaseStatus,
    CaseType,
    CompletionCheck,
    ConditionalRequirement,
    ConditionOperator,
    DeadlineStrategy,
    EscalationPath,
    FailureStrategy,
    FollowUpTask,
    LogicalOperator,
    NotificationChannel,
    NotificationRule,
    PhaseAdvisory,
    PhaseDurationLimit,
    PhaseException,
    PhaseRules,
    RuleCategory,
    StatusRule,
    TaskPriority,
    TransitionPermission,
    Urgency,
    UserRole,
    WorkflowConfig,
)
from .schema import (
    SCHEMA_VERSION,
    BusinessConditionSchema,
    BusinessRuleSchema,
    EscalationPathSchema,
    PhaseAdvisorySchema,
    PhaseRulesSchema,
    RulePackSchema,
    WorkflowPackSchema,
    check_schema_version,
    validate_rule_pack,
    validate_workflow_pack,
)

logger = logging.getLogger(__name__)

DEFAULT_RULE_PACK = "rules.yaml"
DEFAULT_WORKFLOW_PACK = "workflow.yaml"


@dataclass
class RulePack:
    """A loaded rule pack: rules in file order plus escalation paths."""
    pack_id: str
    rules: list[BusinessRule] = field(default_factory=list)
    escalation_paths: list[EscalationPath] = field(default_factory=list)
    pack_hash: str = ""
    name: str = ""


# =============================================================================
# Reference Integrity Validation
# =============================================================================

def validate_rule_references(pack: RulePack) -> list[str]:
    """
    Cross-object checks the schema cannot express.

    Catches:
    - Duplicate rule IDs
    - Duplicate escalation keys (from_role, level)
    - Rules whose domain validation fails
    """
    errors: list[str] = []
    seen_rules: set[str] = set()
    for rule in pack.rules:
        if rule.id in seen_rules:
            errors.append(f"Duplicate rule ID: '{rule.id}'")
        seen_rules.add(rule.id)
        errors.extend(f"Rule '{rule.id}': {problem}" for problem in rule.validate())

    seen_paths: set[tuple[UserRole, int]] = set()
    for path in pack.escalation_paths:
        if path.key in seen_paths:
            errors.append(f"Duplicate escalation path: {path.from_role.value} level {path.level}")
        seen_paths.add(path.key)
    return errors


def validate_workflow_references(workflow: WorkflowConfig) -> list[str]:
    """
    Catches:
    - Duplicate exception IDs
    - Status rules that never change the status
    - Approval requirements with a non-staff approver
    """
    errors: list[str] = []
    seen: set[str] = set()
    for exc in workflow.exceptions:
        if exc.id in seen:
            errors.append(f"Duplicate exception ID: '{exc.id}'")
        seen.add(exc.id)

    for phase, rules in workflow.phases.items():
        for rule in rules.status_rules:
            if set(rule.from_statuses) == set(rule.to_statuses) and len(rule.from_statuses) == 1:
                errors.append(
                    f"Status rule in {phase.value} maps {rule.from_statuses[0].value} to itself"
                )

    for approval in workflow.approvals:
        if approval.approver_role == UserRole.CLIENT:
            errors.append(
                f"Approval for {approval.case_type.value} -> {approval.to_phase.value} "
                f"cannot be assigned to clients"
            )
    return errors


# =============================================================================
# Schema to Model Converters
# =============================================================================

def _convert_condition(schema: BusinessConditionSchema) -> BusinessCondition:
    return BusinessCondition(
        id=schema.id,
        field=schema.field,
        operator=ConditionOperator(schema.operator),
        value=schema.value,
        logical_operator=LogicalOperator(schema.logical_operator),
        weight=schema.weight,
    )


# Enum-typed payload fields; the schema hands them over as plain strings
_PARAM_ENUMS: dict[ActionType, dict[str, type]] = {
    ActionType.ASSIGN_TASK: {"strategy": AssignmentStrategy, "required_role": UserRole},
    ActionType.REASSIGN_TASK: {"strategy": AssignmentStrategy, "required_role": UserRole},
    ActionType.ESCALATE_TASK: {"to_role": UserRole},
    ActionType.CHANGE_PRIORITY: {"priority": TaskPriority},
    ActionType.SET_DEADLINE: {"strategy": DeadlineStrategy},
    ActionType.SEND_NOTIFICATION: {"channel": NotificationChannel, "urgency": Urgency},
    ActionType.REQUEST_REVIEW: {"reviewer_role": UserRole},
}


def _convert_params(action_type: ActionType, parameters: Any) -> Any:
    """Build the typed payload for an action from its schema parameters."""
    values = parameters.model_dump()
    for name, enum_cls in _PARAM_ENUMS.get(action_type, {}).items():
        if values.get(name) is not None:
            values[name] = enum_cls(values[name])
    return ACTION_PARAM_TYPES[action_type](**values)


def rule_from_schema(schema: BusinessRuleSchema) -> BusinessRule:
    actions = []
    for action in schema.actions:
        action_type = ActionType(action.type)
        actions.append(BusinessAction(
            id=action.id,
            type=action_type,
            params=_convert_params(action_type, action.parameters),
            failure_strategy=FailureStrategy(action.on_failure),
        ))
    return BusinessRule(
        id=schema.id,
        name=schema.name,
        description=schema.description,
        category=RuleCategory(schema.category),
        priority=schema.priority,
        is_active=schema.is_active,
        min_confidence=schema.min_confidence,
        tags=list(schema.tags),
        conditions=[_convert_condition(c) for c in schema.conditions],
        actions=actions,
    )


def escalation_path_from_schema(schema: EscalationPathSchema) -> EscalationPath:
    return EscalationPath(
        level=schema.level,
        from_role=UserRole(schema.from_role),
        to_role=UserRole(schema.to_role),
        approval_required=schema.approval_required,
        conditions=[_convert_condition(c) for c in schema.conditions],
        notification_rules=[
            NotificationRule(
                channel=NotificationChannel(n.channel),
                recipients=list(n.recipients),
                template=n.template,
                urgency=Urgency(n.urgency),
                delay_minutes=n.delay_minutes,
            )
            for n in schema.notification_rules
        ],
    )


def _convert_advisory(schema: PhaseAdvisorySchema) -> PhaseAdvisory:
    return PhaseAdvisory(
        message=schema.message,
        case_types=[CaseType(c) for c in schema.case_types],
        from_phase=CasePhase(schema.from_phase) if schema.from_phase else None,
        unless_field=schema.unless_field,
    )


def _convert_phase_rules(phase: CasePhase, schema: PhaseRulesSchema) -> PhaseRules:
    return PhaseRules(
        phase=phase,
        required_fields=list(schema.required_fields),
        conditional_rules=[
            ConditionalRequirement(
                case_types=[CaseType(c) for c in r.case_types],
                required_fields=list(r.required_fields),
                error_message=r.error_message,
            )
            for r in schema.conditional_rules
        ],
        status_rules=[
            StatusRule(
                from_statuses=[CaseStatus(s) for s in r.from_statuses],
                to_statuses=[CaseStatus(s) for s in r.to_statuses],
                allowed=r.allowed,
                reason=r.reason,
            )
            for r in schema.status_rules
        ],
        completion_checks=[
            CompletionCheck(
                field=c.field,
                message=c.message,
                blocking=c.blocking,
                case_types=[CaseType(t) for t in c.case_types],
            )
            for c in schema.completion_checks
        ],
        warnings=[_convert_advisory(a) for a in schema.warnings],
        recommendations=[_convert_advisory(a) for a in schema.recommendations],
    )


def _convert_rule_pack(schema: RulePackSchema) -> RulePack:
    return RulePack(
        pack_id=schema.pack_id,
        name=schema.name,
        rules=[rule_from_schema(r) for r in schema.rules],
        escalation_paths=[escalation_path_from_schema(p) for p in schema.escalation_paths],
    )


def _convert_workflow_pack(schema: WorkflowPackSchema) -> WorkflowConfig:
    return WorkflowConfig(
        pack_id=schema.pack_id,
        phases={
            CasePhase(name): _convert_phase_rules(CasePhase(name), rules)
            for name, rules in schema.phases.items()
        },
        exceptions=[
            PhaseException(
                id=e.id,
                from_phase=CasePhase(e.from_phase),
                to_phase=CasePhase(e.to_phase),
                reason=e.reason,
                case_types=[CaseType(c) for c in e.case_types],
                conditions=[_convert_condition(c) for c in e.conditions],
            )
            for e in schema.exceptions
        ],
        permissions=[
            TransitionPermission(
                from_phase=CasePhase(p.from_phase),
                to_phase=CasePhase(p.to_phase),
                roles=[UserRole(r) for r in p.roles],
                case_types=[CaseType(c) for c in p.case_types],
                conditions=[_convert_condition(c) for c in p.conditions],
            )
            for p in schema.permissions
        ],
        approvals=[
            ApprovalRequirement(
                case_type=CaseType(a.case_type),
                to_phase=CasePhase(a.to_phase),
                approver_role=UserRole(a.approver_role),
            )
            for a in schema.approvals
        ],
        follow_up_tasks=[
            FollowUpTask(
                case_type=CaseType(f.case_type),
                to_phase=CasePhase(f.to_phase),
                title=f.title,
                due_in_days=f.due_in_days,
                priority=TaskPriority(f.priority),
                description=f.description,
                category=f.category,
            )
            for f in schema.follow_up_tasks
        ],
        duration_limits=[
            PhaseDurationLimit(
                case_type=CaseType(d.case_type),
                phase=CasePhase(d.phase),
                max_days=d.max_days,
                milestones=list(d.milestones),
            )
            for d in schema.duration_limits
        ],
        default_transition_roles=[UserRole(r) for r in schema.default_transition_roles],
    )


# =============================================================================
# Pack Loader
# =============================================================================

class PackLoader:
    """
    Loads rule and workflow packs from YAML or JSON files.

    Usage:
        loader = PackLoader()
        rules = loader.load_rule_pack("path/to/rules.yaml")
        workflow = loader.load_workflow_pack("path/to/workflow.yaml")
    """

    def __init__(self, strict_version: bool = True):
        """
        Args:
            strict_version: If True, reject packs with incompatible schema versions
        """
        self.strict_version = strict_version

    def load_rule_pack(self, path: Union[str, Path]) -> RulePack:
        """
        Raises:
            PackLoadError: If the file cannot be read or parsed
            PackValidationError: If schema or reference validation fails
        """
        path = Path(path)
        return self.rule_pack_from_data(self._load_file(path), str(path))

    def load_workflow_pack(self, path: Union[str, Path]) -> WorkflowConfig:
        """
        Raises:
            PackLoadError: If the file cannot be read or parsed
            PackValidationError: If schema or reference validation fails
        """
        path = Path(path)
        return self.workflow_pack_from_data(self._load_file(path), str(path))

    def rule_pack_from_data(self, data: Any, source: str = "<data>") -> RulePack:
        self._check_document(data, source)
        try:
            schema = validate_rule_pack(data)
        except ValidationError as e:
            raise PackValidationError(
                message=f"Rule pack validation failed: {e.error_count()} errors",
                details={"errors": _error_list(e), "path": source},
            )
        pack = _convert_rule_pack(schema)
        errors = validate_rule_references(pack)
        if errors:
            raise PackValidationError(
                message="Rule pack reference integrity validation failed",
                details={"errors": errors, "path": source},
            )
        pack.pack_hash = compute_pack_hash(data)
        logger.info(
            "Loaded rule pack %s (%d rules)", pack.pack_id, len(pack.rules),
            extra={"pack_id": pack.pack_id, "pack_hash_short": pack.pack_hash[:12]},
        )
        return pack

    def workflow_pack_from_data(self, data: Any, source: str = "<data>") -> WorkflowConfig:
        self._check_document(data, source)
        try:
            schema = validate_workflow_pack(data)
        except ValidationError as e:
            raise PackValidationError(
                message=f"Workflow pack validation failed: {e.error_count()} errors",
                details={"errors": _error_list(e), "path": source},
            )
        workflow = _convert_workflow_pack(schema)
        errors = validate_workflow_references(workflow)
        if errors:
            raise PackValidationError(
                message="Workflow pack reference integrity validation failed",
                details={"errors": errors, "path": source},
            )
        workflow.pack_hash = compute_pack_hash(data)
        logger.info(
            "Loaded workflow pack %s", workflow.pack_id,
            extra={"pack_id": workflow.pack_id, "pack_hash_short": workflow.pack_hash[:12]},
        )
        return workflow

    def _check_document(self, data: Any, source: str) -> None:
        if not isinstance(data, dict):
            raise PackLoadError(
                message="Pack document must be a mapping",
                details={"path": source, "type": type(data).__name__},
            )
        if self.strict_version and not check_schema_version(data):
            raise PackValidationError(
                message=f"Schema version mismatch: pack has {data.get('schema_version')}, "
                f"expected {SCHEMA_VERSION}",
                details={"pack_version": data.get("schema_version"), "expected_version": SCHEMA_VERSION},
            )

    def _load_file(self, path: Path) -> Any:
        """Load data from a YAML or JSON file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.suffix.lower() == ".json":
                    return json.load(f)
                return yaml.safe_load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise PackLoadError(
                message=f"Failed to load pack: {e}",
                details={"path": str(path), "error": str(e)},
            )


def _error_list(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
        for err in error.errors()
    ]


# =============================================================================
# Convenience Functions
# =============================================================================

def _parse(content: str, format: str) -> Any:
    try:
        if format.lower() == "json":
            return json.loads(content)
        return yaml.safe_load(content)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise PackLoadError(message=f"Failed to parse pack: {e}", details={"format": format})


def load_rule_pack(path: Union[str, Path]) -> RulePack:
    return PackLoader().load_rule_pack(path)


def load_workflow_pack(path: Union[str, Path]) -> WorkflowConfig:
    return PackLoader().load_workflow_pack(path)


def load_rule_pack_from_string(content: str, format: str = "yaml") -> RulePack:
    return PackLoader().rule_pack_from_data(_parse(content, format))


def load_workflow_pack_from_string(content: str, format: str = "yaml") -> WorkflowConfig:
    return PackLoader().workflow_pack_from_data(_parse(content, format))


def _default_text(name: str) -> str:
    return resources.files("casepilot.packs").joinpath("defaults", name).read_text(encoding="utf-8")


def load_default_rule_pack() -> RulePack:
    """The rule pack bundled with the package."""
    return PackLoader().rule_pack_from_data(yaml.safe_load(_default_text(DEFAULT_RULE_PACK)), DEFAULT_RULE_PACK)


def load_default_workflow_pack() -> WorkflowConfig:
    """The workflow pack bundled with the package."""
    return PackLoader().workflow_pack_from_data(
        yaml.safe_load(_default_text(DEFAULT_WORKFLOW_PACK)), DEFAULT_WORKFLOW_PACK
    )


def load_rule_pack_or_default(path: Optional[Union[str, Path]]) -> RulePack:
    return load_rule_pack(path) if path else load_default_rule_pack()


def load_workflow_pack_or_default(path: Optional[Union[str, Path]]) -> WorkflowConfig:
    return load_workflow_pack(path) if path else load_default_workflow_pack()
