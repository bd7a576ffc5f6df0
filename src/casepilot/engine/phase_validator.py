"""
CasePilot Phase Validator

Validates case phase and status transitions against the workflow pack.

Checks performed for a phase transition:
1. Ordering: the target is the current phase (no-op) or its immediate
   successor, unless a case-type exception whitelists the move
2. Required fields of the target phase, base plus case-type conditional
3. Completion checks of the phase being left (when advancing), plus its
   case-type conditional fields unless an exception permits the move
4. Advisory warnings, duration limits and recommendations

A field counts as missing when it is absent, None or the empty string.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from ..models import (
    Case,
    CasePhase,
    CaseStatus,
    CaseType,
    PhaseException,
    PhaseProgress,
    PhaseRequirements,
    PhaseRules,
    ValidationResult,
    WorkflowConfig,
    phase_index,
    utc_now,
)
from .condition_evaluator import ConditionEvaluator

logger = logging.getLogger(__name__)


def is_missing(value: Any) -> bool:
    return value is None or value == ""


def missing_fields(fields: list[str], data: Mapping[str, Any]) -> list[str]:
    return [f for f in fields if is_missing(data.get(f))]


class PhaseValidator:
    """
    Stateless validator over a WorkflowConfig.

    Usage:
        validator = PhaseValidator(workflow)
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, metadata)
        if not result.valid:
            print(result.errors)
    """

    def __init__(
        self,
        workflow: WorkflowConfig,
        evaluator: Optional[ConditionEvaluator] = None,
    ) -> None:
        self.workflow = workflow
        self.evaluator = evaluator or ConditionEvaluator()

    # -------------------------------------------------------------------------
    # Phase transitions
    # -------------------------------------------------------------------------

    def validate_phase_transition(
        self,
        case: Case,
        target_phase: CasePhase,
        metadata: Optional[Mapping[str, Any]] = None,
        as_of: Optional[datetime] = None,
    ) -> ValidationResult:
        """
        Validate moving ``case`` to ``target_phase``.

        Args:
            case: The case in its current state
            target_phase: Requested phase
            metadata: Request metadata, layered over the case's own metadata
            as_of: Reference time for duration warnings (defaults to now)

        Returns:
            ValidationResult; only errors block the transition
        """
        target_phase = CasePhase(target_phase)
        if target_phase == case.phase:
            return ValidationResult(valid=True)

        data = self._merged(case, metadata)
        errors: list[str] = []
        warnings: list[str] = []
        recommendations: list[str] = []

        order_errors, exception = self._check_order(case, target_phase, data)
        errors.extend(order_errors)
        if exception is not None:
            warnings.append(f"transition permitted by exception '{exception.id}': {exception.reason}")

        target_rules = self.workflow.rules_for(target_phase)
        absent = missing_fields(target_rules.required_fields, data)
        if absent:
            errors.append(f"Missing required fields for {target_phase.value}: {', '.join(absent)}")
        errors.extend(self._conditional_errors(target_rules, case.case_type, data))

        if phase_index(target_phase) > phase_index(case.phase):
            if exception is None:
                errors.extend(self._conditional_errors(
                    self.workflow.rules_for(case.phase), case.case_type, data,
                ))
            completion = self._completion_messages(case.phase, case.case_type, data)
            errors.extend(completion.errors)
            warnings.extend(completion.warnings)

        warnings.extend(self._advisories(target_rules, case, data, kind="warnings"))
        warnings.extend(self._duration_warnings(case, as_of or utc_now()))
        recommendations.extend(self._advisories(target_rules, case, data, kind="recommendations"))

        result = ValidationResult.from_messages(errors, warnings, recommendations)
        logger.debug(
            "Phase transition %s -> %s valid=%s",
            case.phase.value, target_phase.value, result.valid,
            extra={"case_id": case.id},
        )
        return result

    def _check_order(
        self,
        case: Case,
        target: CasePhase,
        data: Mapping[str, Any],
    ) -> tuple[list[str], Optional[PhaseException]]:
        delta = phase_index(target) - phase_index(case.phase)
        if delta == 1:
            return [], None

        exception = self.find_exception(case, target, data)
        if exception is not None:
            return [], exception

        if delta > 1:
            return [
                f"phase skip not permitted: {case.phase.value} -> {target.value} "
                f"for {case.case_type.value}"
            ], None
        return [
            f"phase regression not permitted: {case.phase.value} -> {target.value} "
            f"for {case.case_type.value}"
        ], None

    def find_exception(
        self,
        case: Case,
        target: CasePhase,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Optional[PhaseException]:
        """First exception whitelisting ``case.phase -> target`` whose conditions hold."""
        data = self._merged(case, metadata)
        for exception in self.workflow.exceptions:
            if exception.from_phase != case.phase or exception.to_phase != target:
                continue
            if not exception.applies_to(case.case_type):
                continue
            if self.evaluator.check(exception.conditions, data):
                return exception
        return None

    # -------------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------------

    def validate_status_transition(
        self,
        current_status: CaseStatus,
        target_status: CaseStatus,
        phase: CasePhase,
    ) -> ValidationResult:
        """
        Validate a status move against the phase's allowed (from, to) pairs.

        The same status is a valid no-op. A phase with no status table
        allows every move.
        """
        current_status = CaseStatus(current_status)
        target_status = CaseStatus(target_status)
        phase = CasePhase(phase)
        if current_status == target_status:
            return ValidationResult(valid=True)

        rules = self.workflow.rules_for(phase).status_rules
        if not rules:
            return ValidationResult(valid=True)

        for rule in rules:
            if rule.covers(current_status, target_status):
                if rule.allowed:
                    return ValidationResult(valid=True)
                return ValidationResult.from_messages([
                    rule.reason
                    or f"Status transition from {current_status.value} to {target_status.value} is not allowed"
                ])

        return ValidationResult.from_messages([
            f"Status transition from {current_status.value} to {target_status.value} "
            f"is not defined for phase {phase.value}"
        ])

    # -------------------------------------------------------------------------
    # Phase completion
    # -------------------------------------------------------------------------

    def validate_phase_completion(
        self,
        case: Case,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> ValidationResult:
        """Check whether the case's current phase can be left."""
        data = self._merged(case, metadata)
        rules = self.workflow.rules_for(case.phase)

        errors: list[str] = []
        absent = missing_fields(rules.required_fields, data)
        if absent:
            errors.append(
                f"Cannot complete phase {case.phase.value}. Missing required fields: {', '.join(absent)}"
            )
        errors.extend(self._conditional_errors(rules, case.case_type, data))

        completion = self._completion_messages(case.phase, case.case_type, data)
        return ValidationResult.from_messages(errors + completion.errors, completion.warnings)

    def _completion_messages(
        self,
        phase: CasePhase,
        case_type: CaseType,
        data: Mapping[str, Any],
    ) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        for check in self.workflow.rules_for(phase).completion_checks:
            if not check.applies_to(case_type) or data.get(check.field):
                continue
            (errors if check.blocking else warnings).append(check.message)
        return ValidationResult.from_messages(errors, warnings)

    # -------------------------------------------------------------------------
    # Requirements and progress
    # -------------------------------------------------------------------------

    def get_phase_requirements(self, phase: CasePhase, case_type: CaseType) -> PhaseRequirements:
        rules = self.workflow.rules_for(phase)
        case_type = CaseType(case_type)
        conditional: list[str] = []
        for rule in rules.conditional_rules:
            if rule.applies_to(case_type):
                conditional.extend(f for f in rule.required_fields if f not in conditional)
        pairs = [
            (src, dst)
            for rule in rules.status_rules if rule.allowed
            for src in rule.from_statuses
            for dst in rule.to_statuses
        ]
        return PhaseRequirements(
            phase=CasePhase(phase),
            required_fields=list(rules.required_fields),
            conditional_fields=conditional,
            completion_checks=[
                c.field for c in rules.completion_checks if c.blocking and c.applies_to(case_type)
            ],
            allowed_status_transitions=pairs,
        )

    def get_phase_progress(
        self,
        case: Case,
        metadata: Optional[Mapping[str, Any]] = None,
        phase: Optional[CasePhase] = None,
    ) -> PhaseProgress:
        """Share of the phase's required and conditional fields already present."""
        phase = CasePhase(phase or case.phase)
        data = self._merged(case, metadata)
        fields = self.get_phase_requirements(phase, case.case_type).all_fields
        absent = missing_fields(fields, data)
        return PhaseProgress(
            phase=phase,
            completed=len(fields) - len(absent),
            total=len(fields),
            missing=absent,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _merged(case: Case, metadata: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        data = dict(case.metadata)
        data.update(metadata or {})
        data.setdefault("case_type", case.case_type.value)
        return data

    @staticmethod
    def _conditional_errors(
        rules: PhaseRules,
        case_type: CaseType,
        data: Mapping[str, Any],
    ) -> list[str]:
        return [
            rule.error_message
            for rule in rules.conditional_rules
            if rule.applies_to(case_type) and missing_fields(rule.required_fields, data)
        ]

    @staticmethod
    def _advisories(
        rules: PhaseRules,
        case: Case,
        data: Mapping[str, Any],
        kind: str,
    ) -> list[str]:
        messages = []
        for advisory in getattr(rules, kind):
            if not advisory.applies_to(case.case_type, case.phase):
                continue
            if advisory.unless_field and data.get(advisory.unless_field):
                continue
            messages.append(advisory.message)
        return messages

    def _duration_warnings(self, case: Case, as_of: datetime) -> list[str]:
        warnings = []
        for limit in self.workflow.duration_limits:
            if limit.case_type != case.case_type or limit.phase != case.phase:
                continue
            elapsed = (as_of - case.phase_started_at).days
            if elapsed > limit.max_days:
                warnings.append(
                    f"{case.phase.value} phase has exceeded maximum duration of {limit.max_days} days"
                )
        return warnings

