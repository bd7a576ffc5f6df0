"""
CasePilot Case State Machine

Role permissions and gating conditions for phase transitions, plus the
approval requirements that route a transition through an approver.

Ordering (adjacency, exceptions) is the PhaseValidator's concern; this
module answers "who may do it, and does it need sign-off".
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from ..models import (
    Case,
    CasePhase,
    CaseType,
    TransitionPermission,
    UserRole,
    ValidationResult,
    WorkflowConfig,
    next_phase,
)
from .condition_evaluator import ConditionEvaluator

# Higher number = more authority
ROLE_RANK: dict[UserRole, int] = {
    UserRole.CLIENT: 0,
    UserRole.ASSISTANT: 1,
    UserRole.ATTORNEY: 2,
    UserRole.ADMIN: 3,
}


def role_rank(role: UserRole) -> int:
    return ROLE_RANK.get(UserRole(role), 0)


class CaseStateMachine:
    """Answers permission and approval questions over a WorkflowConfig."""

    def __init__(
        self,
        workflow: WorkflowConfig,
        evaluator: Optional[ConditionEvaluator] = None,
    ) -> None:
        self.workflow = workflow
        self.evaluator = evaluator or ConditionEvaluator()

    def permissions_for(
        self,
        case_type: CaseType,
        from_phase: CasePhase,
        to_phase: CasePhase,
    ) -> list[TransitionPermission]:
        """
        Permissions declared for a move. Case-type specific entries replace
        the generic ones for that move.
        """
        matching = [
            p for p in self.workflow.permissions
            if p.from_phase == from_phase and p.to_phase == to_phase and p.applies_to(case_type)
        ]
        specific = [p for p in matching if p.case_types]
        return specific or matching

    def allowed_roles(
        self,
        case_type: CaseType,
        from_phase: CasePhase,
        to_phase: CasePhase,
    ) -> list[UserRole]:
        permissions = self.permissions_for(case_type, from_phase, to_phase)
        if not permissions:
            return list(self.workflow.default_transition_roles)
        roles: list[UserRole] = []
        for permission in permissions:
            roles.extend(r for r in permission.roles if r not in roles)
        return roles

    def check_transition(
        self,
        case: Case,
        target_phase: CasePhase,
        role: UserRole,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> ValidationResult:
        """
        Check the requesting role and any gating conditions on the move.

        Returns:
            ValidationResult with permission or gate errors
        """
        target_phase = CasePhase(target_phase)
        role = UserRole(role)
        roles = self.allowed_roles(case.case_type, case.phase, target_phase)
        if role not in roles:
            return ValidationResult.from_messages([
                f"role {role.value} is not authorized to move a case from "
                f"{case.phase.value} to {target_phase.value}"
            ])

        data = dict(case.metadata)
        data.update(metadata or {})
        errors: list[str] = []
        for permission in self.permissions_for(case.case_type, case.phase, target_phase):
            if not permission.conditions:
                continue
            result = self.evaluator.evaluate(permission.conditions, data)
            if not result.is_satisfied:
                unmet = [c.describe() for c in permission.conditions if c.id not in result.matched_conditions]
                errors.append(f"transition conditions not met: {', '.join(unmet)}")
        return ValidationResult.from_messages(errors)

    def approval_role(self, case_type: CaseType, to_phase: CasePhase) -> Optional[UserRole]:
        """Role whose sign-off the move needs, or None."""
        for requirement in self.workflow.approvals:
            if requirement.case_type == case_type and requirement.to_phase == to_phase:
                return requirement.approver_role
        return None

    def requires_approval(self, case_type: CaseType, to_phase: CasePhase, role: UserRole) -> bool:
        """A requester at or above the approver's rank approves implicitly."""
        approver = self.approval_role(case_type, to_phase)
        return approver is not None and role_rank(role) < role_rank(approver)

    def candidate_targets(self, case: Case) -> list[CasePhase]:
        """Adjacent successor plus any exception targets configured for the case."""
        targets: list[CasePhase] = []
        successor = next_phase(case.phase)
        if successor is not None:
            targets.append(successor)
        for exception in self.workflow.exceptions:
            if (
                exception.from_phase == case.phase
                and exception.applies_to(case.case_type)
                and exception.to_phase not in targets
            ):
                targets.append(exception.to_phase)
        return targets
