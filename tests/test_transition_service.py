"""
Tests for the case transition service.

Tests cover:
- Rejected requests (ordering, role, gates) leave the case untouched
- Executed transitions: status activation, history, notifications, audit
- Approval workflow: request, approve, reject, authority checks
- Follow-up task creation per case type
- Notification delivery failures
- Available transitions and phase queries
"""
import pytest
from datetime import timedelta

from casepilot.exceptions import (
    ApprovalNotFoundError,
    ApprovalStateError,
    CaseNotFoundError,
    CaseValidationError,
    ImmutableFieldError,
    NotificationError,
)
from casepilot.models import (
    ApprovalStatus,
    CasePhase,
    CaseStatus,
    CaseType,
    TaskPriority,
    UserRole,
)

from tests.conftest import CONTRACT_INTAKE_COMPLETE, NOW, make_case


MED_MAL_INTAKE_COMPLETE = {
    "incidentDate": "2025-11-14",
    "healthcareProvider": "General Hospital",
    "injuryDescription": "Nerve damage after surgery",
    "conflictCheckCompleted": True,
    "legalResearchCompleted": True,
    "documentPreparationStarted": True,
    "strategyDefined": True,
    "expertConsultationCompleted": True,
    "medicalRecordsReviewed": True,
    "violationAnalysis": "Standard of care breached during surgery",
}


@pytest.fixture
def svc(staffed_services):
    return staffed_services


def add_case(services, **kwargs):
    kwargs.setdefault("attorney_id", "att-1")
    return services.cases.save(make_case(**kwargs))


def request(services, case_id, target, role=UserRole.ATTORNEY, requested_by="att-1", **kwargs):
    kwargs.setdefault("as_of", NOW)
    return services.transitions.request_transition(
        case_id, target, requested_by=requested_by, role=role, **kwargs,
    )


class TestRejectedRequests:

    def test_phase_skip(self, svc):
        add_case(svc)
        outcome = request(svc, "CASE-001", CasePhase.PROCEEDINGS, metadata=CONTRACT_INTAKE_COMPLETE)
        assert outcome.status == "rejected"
        assert any(
            e.startswith("phase skip not permitted: intake -> proceedings for contract_dispute")
            for e in outcome.validation.errors
        )
        assert svc.cases.get("CASE-001").phase == CasePhase.INTAKE
        assert [r.event for r in svc.audit.records("CASE-001")] == ["transition_rejected"]

    def test_missing_fields(self, svc):
        add_case(svc)
        outcome = request(svc, "CASE-001", CasePhase.PREPARATION, metadata={"riskAssessmentCompleted": True})
        assert outcome.status == "rejected"
        assert "Conflict check must be completed before ending intake phase" in outcome.validation.errors
        assert any(e.startswith("Missing required fields for preparation") for e in outcome.validation.errors)

    def test_role_not_authorized(self, svc):
        add_case(svc)
        outcome = request(
            svc, "CASE-001", CasePhase.PREPARATION,
            role=UserRole.ASSISTANT, requested_by="asst-1", metadata=CONTRACT_INTAKE_COMPLETE,
        )
        assert outcome.status == "rejected"
        assert "role assistant is not authorized to move a case from intake to preparation" in (
            outcome.validation.errors
        )

    def test_gate_not_met(self, svc):
        add_case(svc)
        metadata = {**CONTRACT_INTAKE_COMPLETE, "riskAssessmentCompleted": False}
        outcome = request(svc, "CASE-001", CasePhase.PREPARATION, metadata=metadata)
        assert outcome.status == "rejected"
        assert "transition conditions not met: riskAssessmentCompleted equals True" in outcome.validation.errors

    def test_unknown_case(self, svc):
        with pytest.raises(CaseNotFoundError):
            request(svc, "CASE-NOPE", CasePhase.PREPARATION)


class TestExecutedTransitions:

    def test_contract_intake_to_preparation(self, svc):
        add_case(svc)
        outcome = request(
            svc, "CASE-001", CasePhase.PREPARATION,
            reason="Intake complete", metadata=CONTRACT_INTAKE_COMPLETE,
            as_of=NOW + timedelta(days=3),
        )
        assert outcome.status == "completed"
        assert outcome.approval is None

        case = svc.cases.get("CASE-001")
        assert case.phase == CasePhase.PREPARATION
        assert case.status == CaseStatus.ACTIVE
        assert case.metadata["contractAnalyzed"] is True
        assert case.phase_started_at == NOW + timedelta(days=3)

        record = outcome.record
        assert (record.from_phase, record.to_phase) == (CasePhase.INTAKE, CasePhase.PREPARATION)
        assert (record.from_status, record.to_status) == (CaseStatus.INTAKE, CaseStatus.ACTIVE)
        assert record.follow_up_task_ids == []
        assert svc.transitions.get_history("CASE-001") == [record]

    def test_participants_notified_and_audited(self, svc):
        add_case(svc)
        request(svc, "CASE-001", CasePhase.PREPARATION, metadata=CONTRACT_INTAKE_COMPLETE)
        for user_id in ("att-1", "client-1"):
            inbox = svc.transitions.get_notifications(user_id)
            assert [n.template for n in inbox] == ["case_phase_changed"]
            assert inbox[0].payload["to_phase"] == "preparation"
        assert [r.event for r in svc.audit.records("CASE-001")] == ["transition_executed"]

    def test_mark_notification_read(self, svc):
        add_case(svc)
        request(svc, "CASE-001", CasePhase.PREPARATION, metadata=CONTRACT_INTAKE_COMPLETE)
        notification = svc.transitions.get_notifications("client-1")[0]
        assert svc.transitions.mark_notification_read(notification.id)
        assert svc.transitions.get_notifications("client-1", unread_only=True) == []

    def test_exception_path_to_closure(self, svc):
        add_case(svc)
        metadata = {
            "caseRejected": True,
            "conflictCheckCompleted": True,
            "finalDocumentation": "Declination letter",
            "clientNotified": True,
            "feesSettled": True,
        }
        outcome = request(svc, "CASE-001", CasePhase.CLOSURE, metadata=metadata)
        assert outcome.status == "completed", outcome.validation.errors
        assert "transition permitted by exception 'intake-rejected': Case rejected during intake" in (
            outcome.validation.warnings
        )
        assert svc.cases.get("CASE-001").phase == CasePhase.CLOSURE

    def test_closure_status_checked_against_target_phase(self, svc):
        add_case(svc)
        metadata = {
            "caseRejected": True,
            "conflictCheckCompleted": True,
            "finalDocumentation": "Declination letter",
            "clientNotified": True,
            "feesSettled": True,
        }
        # closure only closes completed or active cases
        outcome = request(svc, "CASE-001", CasePhase.CLOSURE, metadata=metadata, target_status=CaseStatus.CLOSED)
        assert outcome.status == "rejected"
        assert any("not defined for phase closure" in e for e in outcome.validation.errors)
        assert [r.event for r in svc.audit.records("CASE-001")] == ["transition_rejected"]

    def test_invalid_target_status(self, svc):
        add_case(svc)
        outcome = request(
            svc, "CASE-001", CasePhase.PREPARATION,
            metadata=CONTRACT_INTAKE_COMPLETE, target_status=CaseStatus.COMPLETED,
        )
        assert outcome.status == "rejected"
        assert outcome.record is None
        assert "Status transition from intake to completed is not defined for phase preparation" in (
            outcome.validation.errors
        )
        case = svc.cases.get("CASE-001")
        assert case.phase == CasePhase.INTAKE
        assert case.status == CaseStatus.INTAKE
        assert [r.event for r in svc.audit.records("CASE-001")] == ["transition_rejected"]

    def test_invalid_target_status_not_parked(self, svc):
        add_case(svc, case_type=CaseType.MEDICAL_MALPRACTICE)
        outcome = request(
            svc, "CASE-001", CasePhase.PREPARATION,
            metadata=MED_MAL_INTAKE_COMPLETE, target_status=CaseStatus.CLOSED,
        )
        assert outcome.status == "rejected"
        assert outcome.approval is None
        assert svc.transitions.pending_approvals() == []

    def test_explicit_target_status_applied(self, svc):
        add_case(svc)
        outcome = request(
            svc, "CASE-001", CasePhase.PREPARATION,
            metadata=CONTRACT_INTAKE_COMPLETE, target_status=CaseStatus.ACTIVE,
        )
        assert outcome.status == "completed", outcome.validation.errors
        assert outcome.record.to_status == CaseStatus.ACTIVE

    def test_divorce_follow_up_task(self, svc):
        add_case(svc, case_type=CaseType.DIVORCE_FAMILY)
        metadata = {
            "marriageDate": "2015-06-20",
            "spouseInformation": "Jordan Doe",
            "childrenInformation": "Two minors",
            "conflictCheckCompleted": True,
            "riskAssessmentCompleted": True,
            "legalResearchCompleted": True,
            "documentPreparationStarted": True,
            "strategyDefined": True,
        }
        outcome = request(svc, "CASE-001", CasePhase.PREPARATION, metadata=metadata)
        assert outcome.status == "completed", outcome.validation.errors
        task = svc.tasks.get(outcome.record.follow_up_task_ids[0])
        assert task.title == "Mediation Session"
        assert task.due_date == NOW + timedelta(days=21)
        assert task.priority == TaskPriority.MEDIUM


class TestApprovals:

    def test_med_mal_needs_admin_approval(self, svc):
        add_case(svc, case_type=CaseType.MEDICAL_MALPRACTICE)
        outcome = request(svc, "CASE-001", CasePhase.PREPARATION, metadata=MED_MAL_INTAKE_COMPLETE)
        assert outcome.status == "pending_approval"
        approval = outcome.approval
        assert approval.approver_role == UserRole.ADMIN
        assert approval.status == ApprovalStatus.PENDING
        assert svc.cases.get("CASE-001").phase == CasePhase.INTAKE

        assert [n.template for n in svc.notifications.list_for("admin-1")] == ["transition_approval_required"]
        assert svc.transitions.pending_approvals(UserRole.ADMIN) == [approval]
        assert svc.transitions.pending_approvals(UserRole.ATTORNEY) == []
        assert [r.event for r in svc.audit.records("CASE-001")] == ["transition_approval_requested"]

    def test_approve_executes(self, svc):
        add_case(svc, case_type=CaseType.MEDICAL_MALPRACTICE)
        pending = request(svc, "CASE-001", CasePhase.PREPARATION, metadata=MED_MAL_INTAKE_COMPLETE)
        outcome = svc.transitions.approve_transition(
            pending.approval.id, "admin-1", UserRole.ADMIN, comment="ok", as_of=NOW,
        )
        assert outcome.status == "completed"
        assert outcome.approval.status == ApprovalStatus.APPROVED
        assert outcome.approval.decided_by == "admin-1"
        assert outcome.record.approval_id == pending.approval.id
        assert outcome.record.actor_id == "att-1"

        case = svc.cases.get("CASE-001")
        assert case.phase == CasePhase.PREPARATION
        assert case.metadata["medicalRecordsReviewed"] is True

        task = svc.tasks.get(outcome.record.follow_up_task_ids[0])
        assert task.title == "Schedule Medical Expert Consultation"
        assert task.due_date == NOW + timedelta(days=14)

        assert "transition_approved" in [n.template for n in svc.notifications.list_for("att-1")]
        assert [r.event for r in svc.audit.records("CASE-001")] == [
            "transition_approval_requested",
            "transition_executed",
            "transition_approved",
        ]
        assert svc.transitions.pending_approvals() == []

    def test_admin_request_approved_implicitly(self, svc):
        add_case(svc, case_type=CaseType.MEDICAL_MALPRACTICE)
        outcome = request(
            svc, "CASE-001", CasePhase.PREPARATION,
            role=UserRole.ADMIN, requested_by="admin-1", metadata=MED_MAL_INTAKE_COMPLETE,
        )
        assert outcome.status == "completed"
        assert outcome.approval is None

    def test_reject(self, svc):
        add_case(svc, case_type=CaseType.MEDICAL_MALPRACTICE)
        pending = request(svc, "CASE-001", CasePhase.PREPARATION, metadata=MED_MAL_INTAKE_COMPLETE)
        approval = svc.transitions.reject_transition(
            pending.approval.id, "admin-1", UserRole.ADMIN, comment="records incomplete", as_of=NOW,
        )
        assert approval.status == ApprovalStatus.REJECTED
        assert approval.decision_comment == "records incomplete"
        assert svc.cases.get("CASE-001").phase == CasePhase.INTAKE
        rejected = [n for n in svc.notifications.list_for("att-1") if n.template == "transition_rejected"]
        assert rejected[0].payload["comment"] == "records incomplete"
        assert svc.audit.records("CASE-001")[-1].event == "transition_approval_rejected"

    def test_cannot_decide_twice(self, svc):
        add_case(svc, case_type=CaseType.MEDICAL_MALPRACTICE)
        pending = request(svc, "CASE-001", CasePhase.PREPARATION, metadata=MED_MAL_INTAKE_COMPLETE)
        svc.transitions.reject_transition(pending.approval.id, "admin-1", UserRole.ADMIN)
        with pytest.raises(ApprovalStateError, match="already rejected"):
            svc.transitions.approve_transition(pending.approval.id, "admin-1", UserRole.ADMIN)

    def test_approver_needs_authority(self, svc):
        add_case(svc, case_type=CaseType.MEDICAL_MALPRACTICE)
        pending = request(svc, "CASE-001", CasePhase.PREPARATION, metadata=MED_MAL_INTAKE_COMPLETE)
        with pytest.raises(ApprovalStateError, match="cannot decide"):
            svc.transitions.approve_transition(pending.approval.id, "att-2", UserRole.ATTORNEY)
        assert svc.transitions.get_approval(pending.approval.id).status == ApprovalStatus.PENDING

    def test_unknown_approval(self, svc):
        with pytest.raises(ApprovalNotFoundError):
            svc.transitions.approve_transition("nope", "admin-1", UserRole.ADMIN)

    def test_approval_revalidated(self, svc):
        add_case(svc, case_type=CaseType.MEDICAL_MALPRACTICE)
        pending = request(svc, "CASE-001", CasePhase.PREPARATION, metadata=MED_MAL_INTAKE_COMPLETE)
        case = svc.cases.get("CASE-001")
        case.phase = CasePhase.PROCEEDINGS
        svc.cases.save(case)

        with pytest.raises(CaseValidationError, match="not valid"):
            svc.transitions.approve_transition(pending.approval.id, "admin-1", UserRole.ADMIN, as_of=NOW)
        assert svc.transitions.get_approval(pending.approval.id).status == ApprovalStatus.PENDING

    def test_criminal_proceedings_follow_up(self, svc):
        add_case(
            svc,
            case_type=CaseType.CRIMINAL_DEFENSE,
            phase=CasePhase.PREPARATION,
            status=CaseStatus.ACTIVE,
        )
        metadata = {
            "clientAgreementSigned": True,
            "preparationCompleted": True,
            "bailHearingScheduled": True,
            "evidenceSecured": True,
            "witnessList": ["Officer Lane"],
            "courtDocumentsFiled": True,
            "hearingScheduled": True,
            "evidenceSubmitted": True,
            "arraignmentCompleted": True,
            "pleaEntered": "not guilty",
            "trialDateSet": "2026-06-01",
        }
        outcome = request(
            svc, "CASE-001", CasePhase.PROCEEDINGS,
            role=UserRole.ADMIN, requested_by="admin-1", metadata=metadata,
        )
        assert outcome.status == "completed", outcome.validation.errors
        task = svc.tasks.get(outcome.record.follow_up_task_ids[0])
        assert task.title == "Court Appearance - Arraignment"
        assert task.priority == TaskPriority.HIGH
        assert task.due_date == NOW + timedelta(days=7)
        assert "Bail has not been posted for criminal defense case" in outcome.validation.warnings


class TestNotificationFailures:
    """Delivery failures never undo or block a transition."""

    @pytest.fixture
    def failing(self, svc, monkeypatch):
        def dispatch(recipients, template, **kwargs):
            raise NotificationError(message="smtp down")

        monkeypatch.setattr(svc.notifications, "dispatch", dispatch)
        return svc

    def test_executed_transition_still_audited(self, failing):
        add_case(failing)
        outcome = request(failing, "CASE-001", CasePhase.PREPARATION, metadata=CONTRACT_INTAKE_COMPLETE)
        assert outcome.status == "completed"
        assert failing.cases.get("CASE-001").phase == CasePhase.PREPARATION
        assert failing.transitions.get_history("CASE-001") == [outcome.record]
        assert [r.event for r in failing.audit.records("CASE-001")] == ["transition_executed"]

    def test_approval_flow_survives(self, failing):
        add_case(failing, case_type=CaseType.MEDICAL_MALPRACTICE)
        pending = request(failing, "CASE-001", CasePhase.PREPARATION, metadata=MED_MAL_INTAKE_COMPLETE)
        assert pending.status == "pending_approval"

        outcome = failing.transitions.approve_transition(
            pending.approval.id, "admin-1", UserRole.ADMIN, as_of=NOW,
        )
        assert outcome.status == "completed"
        assert [r.event for r in failing.audit.records("CASE-001")] == [
            "transition_approval_requested",
            "transition_executed",
            "transition_approved",
        ]

    def test_rejection_survives(self, failing):
        add_case(failing, case_type=CaseType.MEDICAL_MALPRACTICE)
        pending = request(failing, "CASE-001", CasePhase.PREPARATION, metadata=MED_MAL_INTAKE_COMPLETE)
        approval = failing.transitions.reject_transition(pending.approval.id, "admin-1", UserRole.ADMIN)
        assert approval.status == ApprovalStatus.REJECTED
        assert failing.audit.records("CASE-001")[-1].event == "transition_approval_rejected"


class TestQueries:

    def test_available_transitions(self, svc):
        add_case(svc, case_type=CaseType.DIVORCE_FAMILY, phase=CasePhase.PREPARATION, status=CaseStatus.ACTIVE)
        available = svc.transitions.available_transitions("CASE-001", UserRole.ATTORNEY)
        assert [a.to_phase for a in available] == [CasePhase.PROCEEDINGS, CasePhase.CLOSURE]
        proceedings = available[0]
        assert proceedings.requires_approval
        assert not proceedings.validation.valid
        assert UserRole.ATTORNEY in proceedings.allowed_roles
        assert proceedings.to_dict()["to_phase"] == "proceedings"

    def test_phase_requirements_and_progress(self, svc):
        add_case(svc, case_type=CaseType.MEDICAL_MALPRACTICE)
        requirements = svc.transitions.phase_requirements("CASE-001", CasePhase.PREPARATION)
        assert "medicalRecordsReviewed" in requirements.conditional_fields
        progress = svc.transitions.phase_progress(
            "CASE-001", metadata={"clientInformation": "Jane Roe"},
        )
        assert 0 < progress.percent < 100

    def test_validate_phase_completion(self, svc):
        add_case(svc)
        result = svc.transitions.validate_phase_completion("CASE-001", metadata={})
        assert not result.valid

    def test_history_for_unknown_case(self, svc):
        with pytest.raises(CaseNotFoundError):
            svc.transitions.get_history("CASE-NOPE")


class TestCaseInvariants:

    def test_case_type_immutable(self, svc):
        case = add_case(svc)
        with pytest.raises(ImmutableFieldError):
            case.case_type = CaseType.CRIMINAL_DEFENSE
        assert case.case_type == CaseType.CONTRACT_DISPUTE
