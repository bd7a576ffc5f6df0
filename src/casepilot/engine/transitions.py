"""
CasePilot Transition Service

Orchestrates case phase transitions on top of the PhaseValidator and the
CaseStateMachine:

    request -> validate (ordering, fields, role, gates)
            -> approval needed?  yes: park an ApprovalRequest, notify approvers
                                 no:  execute
    execute -> update case, create follow-up tasks, record history,
               notify, audit

Every executed, rejected or approved transition leaves an audit record.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional
from uuid import uuid4

from ..exceptions import (
    ApprovalNotFoundError,
    ApprovalStateError,
    CaseNotFoundError,
    CaseValidationError,
    NotificationError,
)
from ..models import (
    ApprovalRequest,
    ApprovalStatus,
    AuditRecord,
    Case,
    CasePhase,
    CaseStatus,
    Notification,
    NotificationType,
    PhaseProgress,
    PhaseRequirements,
    Task,
    TransitionOutcome,
    TransitionRecord,
    Urgency,
    UserRole,
    ValidationResult,
    WorkflowConfig,
    utc_now,
)
from ..store import (
    AuditSink,
    CaseRepository,
    NotificationDispatcher,
    TaskRepository,
    TransitionRepository,
    UserDirectory,
)
from .condition_evaluator import ConditionEvaluator
from .phase_validator import PhaseValidator
from .state_machine import CaseStateMachine, role_rank

logger = logging.getLogger(__name__)


@dataclass
class AvailableTransition:
    to_phase: CasePhase
    validation: ValidationResult
    requires_approval: bool = False
    allowed_roles: list[UserRole] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "to_phase": self.to_phase.value,
            "requires_approval": self.requires_approval,
            "allowed_roles": [r.value for r in self.allowed_roles],
            **self.validation.to_dict(),
        }


class CaseTransitionService:
    """
    Phase transition workflow over the case, task and transition stores.

    Usage:
        service = CaseTransitionService(workflow, cases, tasks, transitions,
                                        notifications, audit, users)
        outcome = service.request_transition(
            "case-1", CasePhase.PREPARATION,
            requested_by="u-attorney", role=UserRole.ATTORNEY,
            metadata={"legalResearchCompleted": True, ...},
        )
        if outcome.status == "pending_approval":
            service.approve_transition(outcome.approval.id, "u-admin", UserRole.ADMIN)
    """

    def __init__(
        self,
        workflow: WorkflowConfig,
        cases: CaseRepository,
        tasks: TaskRepository,
        transitions: TransitionRepository,
        notifications: NotificationDispatcher,
        audit: AuditSink,
        users: Optional[UserDirectory] = None,
        evaluator: Optional[ConditionEvaluator] = None,
    ) -> None:
        self.workflow = workflow
        self.cases = cases
        self.tasks = tasks
        self.transitions = transitions
        self.notifications = notifications
        self.audit = audit
        self.users = users
        evaluator = evaluator or ConditionEvaluator()
        self.validator = PhaseValidator(workflow, evaluator)
        self.state_machine = CaseStateMachine(workflow, evaluator)

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_case(self, case_id: str) -> Case:
        case = self.cases.get(case_id)
        if case is None:
            raise CaseNotFoundError(message=f"Case '{case_id}' not found", case_id=case_id)
        return case

    def get_approval(self, approval_id: str) -> ApprovalRequest:
        approval = self.transitions.get_approval(approval_id)
        if approval is None:
            raise ApprovalNotFoundError(
                message=f"Approval request '{approval_id}' not found",
                details={"approval_id": approval_id},
            )
        return approval

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_transition(
        self,
        case_id: str,
        target_phase: CasePhase,
        role: UserRole,
        metadata: Optional[Mapping[str, Any]] = None,
        as_of: Optional[datetime] = None,
        target_status: Optional[CaseStatus] = None,
    ) -> ValidationResult:
        """Phase rules, an explicit status move, role permission and gate conditions."""
        case = self.get_case(case_id)
        result = self.validator.validate_phase_transition(case, target_phase, metadata, as_of)
        if target_status is not None:
            result = result.merge(self.validator.validate_status_transition(
                case.status, CaseStatus(target_status), CasePhase(target_phase),
            ))
        if CasePhase(target_phase) == case.phase:
            return result
        return result.merge(self.state_machine.check_transition(case, target_phase, role, metadata))

    def validate_phase_completion(
        self,
        case_id: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> ValidationResult:
        return self.validator.validate_phase_completion(self.get_case(case_id), metadata)

    def phase_requirements(self, case_id: str, phase: Optional[CasePhase] = None) -> PhaseRequirements:
        case = self.get_case(case_id)
        return self.validator.get_phase_requirements(phase or case.phase, case.case_type)

    def phase_progress(
        self,
        case_id: str,
        metadata: Optional[Mapping[str, Any]] = None,
        phase: Optional[CasePhase] = None,
    ) -> PhaseProgress:
        return self.validator.get_phase_progress(self.get_case(case_id), metadata, phase)

    def available_transitions(
        self,
        case_id: str,
        role: UserRole,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> list[AvailableTransition]:
        """Candidate target phases with their validation outcome for ``role``."""
        case = self.get_case(case_id)
        available = []
        for target in self.state_machine.candidate_targets(case):
            available.append(AvailableTransition(
                to_phase=target,
                validation=self.validate_transition(case_id, target, role, metadata),
                requires_approval=self.state_machine.requires_approval(case.case_type, target, role),
                allowed_roles=self.state_machine.allowed_roles(case.case_type, case.phase, target),
            ))
        return available

    # =========================================================================
    # Request / Execute
    # =========================================================================

    def request_transition(
        self,
        case_id: str,
        target_phase: CasePhase,
        requested_by: str,
        role: UserRole,
        reason: str = "",
        metadata: Optional[Mapping[str, Any]] = None,
        target_status: Optional[CaseStatus] = None,
        as_of: Optional[datetime] = None,
    ) -> TransitionOutcome:
        """
        Validate and either execute the transition or park it for approval.

        Returns:
            TransitionOutcome with status "completed", "pending_approval"
            or "rejected"
        """
        case = self.get_case(case_id)
        target_phase = CasePhase(target_phase)
        role = UserRole(role)
        now = as_of or utc_now()

        validation = self.validate_transition(case_id, target_phase, role, metadata, now, target_status)
        if not validation.valid:
            self._audit("transition_rejected", requested_by, case, case.to_dict(), now, {
                "to_phase": target_phase.value,
                "errors": validation.errors,
            })
            logger.info(
                "Transition %s -> %s rejected", case.phase.value, target_phase.value,
                extra={"case_id": case.id},
            )
            return TransitionOutcome(status="rejected", validation=validation)

        if target_phase != case.phase and self.state_machine.requires_approval(
            case.case_type, target_phase, role
        ):
            approval = ApprovalRequest(
                id=str(uuid4()),
                case_id=case.id,
                from_phase=case.phase,
                to_phase=target_phase,
                requested_by=requested_by,
                requested_role=role,
                approver_role=self.state_machine.approval_role(case.case_type, target_phase),
                reason=reason,
                metadata=dict(metadata or {}),
                target_status=CaseStatus(target_status) if target_status else None,
                requested_at=now,
            )
            self.transitions.save_approval(approval)
            self._notify_approvers(approval)
            self._audit("transition_approval_requested", requested_by, case, case.to_dict(), now, {
                "approval_id": approval.id,
                "to_phase": target_phase.value,
            })
            logger.info(
                "Transition to %s awaits %s approval", target_phase.value, approval.approver_role.value,
                extra={"case_id": case.id, "approval_id": approval.id},
            )
            return TransitionOutcome(status="pending_approval", validation=validation, approval=approval)

        record = self.execute_transition(
            case_id, target_phase, requested_by, reason, metadata, target_status, as_of=now,
        )
        return TransitionOutcome(status="completed", validation=validation, record=record)

    def execute_transition(
        self,
        case_id: str,
        target_phase: CasePhase,
        actor_id: str,
        reason: str = "",
        metadata: Optional[Mapping[str, Any]] = None,
        target_status: Optional[CaseStatus] = None,
        approval_id: Optional[str] = None,
        as_of: Optional[datetime] = None,
    ) -> TransitionRecord:
        """
        Apply a transition that has already been authorized.

        Phase rules are re-checked because the case may have changed since
        the request.

        Raises:
            CaseValidationError: If the phase or status move is no longer valid
        """
        now = as_of or utc_now()
        target_phase = CasePhase(target_phase)
        with self.cases.transaction():
            case = self.get_case(case_id)
            validation = self.validator.validate_phase_transition(case, target_phase, metadata, now)
            if not validation.valid:
                raise CaseValidationError(
                    message=f"Transition to {target_phase.value} is not valid",
                    details={"errors": validation.errors},
                    case_id=case.id,
                )
            new_status = self._resolve_status(case, target_phase, target_status)

            before = case.to_dict()
            from_phase, from_status = case.phase, case.status
            case.metadata.update(metadata or {})
            if target_phase != case.phase:
                case.phase_started_at = now
            case.phase = target_phase
            case.status = new_status
            case.updated_at = now
            self.cases.save(case)

        follow_ups = self._create_follow_up_tasks(case, from_phase, now)
        record = TransitionRecord(
            id=str(uuid4()),
            case_id=case.id,
            from_phase=from_phase,
            to_phase=target_phase,
            from_status=from_status,
            to_status=new_status,
            actor_id=actor_id,
            reason=reason,
            approval_id=approval_id,
            executed_at=now,
            follow_up_task_ids=[t.id for t in follow_ups],
        )
        self.transitions.append_history(record)

        self._audit("transition_executed", actor_id, case, before, now, {
            "transition_id": record.id,
            "approval_id": approval_id,
            "follow_up_task_ids": record.follow_up_task_ids,
        })

        recipients = [r for r in (case.attorney_id, case.client_id) if r]
        if recipients:
            self._dispatch(
                case.id,
                recipients,
                "case_phase_changed",
                type=NotificationType.PHASE_CHANGE,
                payload={
                    "case_id": case.id,
                    "from_phase": from_phase.value,
                    "to_phase": target_phase.value,
                },
            )
        logger.info(
            "Case moved %s -> %s", from_phase.value, target_phase.value,
            extra={"case_id": case.id},
        )
        return record

    def _resolve_status(
        self,
        case: Case,
        target_phase: CasePhase,
        target_status: Optional[CaseStatus],
    ) -> CaseStatus:
        if target_status is None:
            # Leaving intake activates the case
            if case.status == CaseStatus.INTAKE and target_phase != CasePhase.INTAKE:
                return CaseStatus.ACTIVE
            return case.status
        target_status = CaseStatus(target_status)
        check = self.validator.validate_status_transition(case.status, target_status, target_phase)
        if not check.valid:
            raise CaseValidationError(
                message=check.errors[0],
                details={"errors": check.errors},
                case_id=case.id,
            )
        return target_status

    def _create_follow_up_tasks(self, case: Case, from_phase: CasePhase, now: datetime) -> list[Task]:
        if from_phase == case.phase:
            return []
        created = []
        for template in self.workflow.follow_up_tasks:
            if template.case_type != case.case_type or template.to_phase != case.phase:
                continue
            task = Task(
                id=str(uuid4()),
                case_id=case.id,
                title=template.title,
                priority=template.priority,
                due_date=now + timedelta(days=template.due_in_days),
                description=template.description,
                category=template.category,
                created_at=now,
            )
            self.tasks.save(task)
            created.append(task)
        return created

    # =========================================================================
    # Approvals
    # =========================================================================

    def pending_approvals(self, approver_role: Optional[UserRole] = None) -> list[ApprovalRequest]:
        pending = self.transitions.list_approvals(pending_only=True)
        if approver_role is None:
            return pending
        rank = role_rank(approver_role)
        return [a for a in pending if rank >= role_rank(a.approver_role)]

    def approve_transition(
        self,
        approval_id: str,
        approver_id: str,
        approver_role: UserRole,
        comment: str = "",
        as_of: Optional[datetime] = None,
    ) -> TransitionOutcome:
        """
        Approve a pending request and execute its transition.

        Raises:
            ApprovalNotFoundError: Unknown approval id
            ApprovalStateError: Already decided, or approver lacks authority
            CaseValidationError: The transition is no longer valid
        """
        now = as_of or utc_now()
        approval = self._decidable(approval_id, approver_role)
        record = self.execute_transition(
            approval.case_id,
            approval.to_phase,
            approval.requested_by,
            approval.reason,
            approval.metadata,
            approval.target_status,
            approval_id=approval.id,
            as_of=now,
        )
        approval.status = ApprovalStatus.APPROVED
        approval.decided_by = approver_id
        approval.decided_at = now
        approval.decision_comment = comment or None
        self.transitions.save_approval(approval)

        self._dispatch(
            approval.case_id,
            [approval.requested_by],
            "transition_approved",
            type=NotificationType.TRANSITION_COMPLETED,
            payload={"approval_id": approval.id, "case_id": approval.case_id},
        )
        case = self.get_case(approval.case_id)
        self._audit("transition_approved", approver_id, case, {}, now, {"approval_id": approval.id})
        return TransitionOutcome(status="completed", validation=ValidationResult(valid=True), record=record, approval=approval)

    def reject_transition(
        self,
        approval_id: str,
        approver_id: str,
        approver_role: UserRole,
        comment: str = "",
        as_of: Optional[datetime] = None,
    ) -> ApprovalRequest:
        now = as_of or utc_now()
        approval = self._decidable(approval_id, approver_role)
        approval.status = ApprovalStatus.REJECTED
        approval.decided_by = approver_id
        approval.decided_at = now
        approval.decision_comment = comment or None
        self.transitions.save_approval(approval)

        self._dispatch(
            approval.case_id,
            [approval.requested_by],
            "transition_rejected",
            urgency=Urgency.HIGH,
            type=NotificationType.STATUS_CHANGE,
            payload={"approval_id": approval.id, "case_id": approval.case_id, "comment": comment},
        )
        case = self.get_case(approval.case_id)
        self._audit("transition_approval_rejected", approver_id, case, {}, now, {
            "approval_id": approval.id,
            "comment": comment,
        })
        return approval

    def _decidable(self, approval_id: str, approver_role: UserRole) -> ApprovalRequest:
        approval = self.get_approval(approval_id)
        if approval.status != ApprovalStatus.PENDING:
            raise ApprovalStateError(
                message=f"Approval request '{approval_id}' is already {approval.status.value}",
                details={"approval_id": approval_id},
                case_id=approval.case_id,
            )
        if role_rank(approver_role) < role_rank(approval.approver_role):
            raise ApprovalStateError(
                message=f"Role {UserRole(approver_role).value} cannot decide a request "
                f"that needs {approval.approver_role.value}",
                details={"approval_id": approval_id},
                case_id=approval.case_id,
            )
        return approval

    def _notify_approvers(self, approval: ApprovalRequest) -> None:
        if self.users is None:
            return
        approvers = [u.id for u in self.users.list(role=approval.approver_role, available_only=True)]
        if not approvers:
            logger.warning(
                "No available %s to approve transition", approval.approver_role.value,
                extra={"case_id": approval.case_id, "approval_id": approval.id},
            )
            return
        self._dispatch(
            approval.case_id,
            approvers,
            "transition_approval_required",
            urgency=Urgency.HIGH,
            type=NotificationType.APPROVAL_REQUIRED,
            payload={
                "approval_id": approval.id,
                "case_id": approval.case_id,
                "to_phase": approval.to_phase.value,
            },
        )

    # =========================================================================
    # History, Notifications, Audit
    # =========================================================================

    def get_history(self, case_id: str) -> list[TransitionRecord]:
        self.get_case(case_id)
        return self.transitions.history(case_id)

    def get_notifications(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        return self.notifications.list_for(user_id, unread_only=unread_only)

    def mark_notification_read(self, notification_id: str) -> bool:
        return self.notifications.mark_read(notification_id)

    def _dispatch(self, case_id: str, recipients: list[str], template: str, **options: Any) -> None:
        """Send a notification; delivery failures are logged, never raised."""
        try:
            self.notifications.dispatch(recipients, template, **options)
        except NotificationError as e:
            logger.warning(
                "Notification %s not delivered: %s", template, e.message,
                extra={"case_id": case_id},
            )

    def _audit(
        self,
        event: str,
        actor_id: str,
        case: Case,
        before: dict[str, Any],
        at: datetime,
        details: dict[str, Any],
    ) -> None:
        self.audit.append(AuditRecord(
            id=str(uuid4()),
            event=event,
            actor_id=actor_id,
            entity_type="case",
            entity_id=case.id,
            before=before,
            after=case.to_dict(),
            timestamp=at,
            details=details,
        ))
