"""
Tests for the phase validator.

Tests cover:
- Ordering: adjacent moves, skips, regressions and exceptions
- Required and case-type conditional fields of the target phase
- Completion checks of the phase being left
- Advisory warnings, duration warnings and recommendations
- Status tables, phase requirements and progress
"""
import pytest
from datetime import timedelta

from casepilot.engine import PhaseValidator
from casepilot.models import CasePhase, CaseStatus, CaseType

from tests.conftest import CONTRACT_INTAKE_COMPLETE, NOW, make_case


@pytest.fixture
def validator(workflow):
    return PhaseValidator(workflow)


class TestPhaseOrdering:
    """Adjacency, skip and regression rules."""

    def test_same_phase_is_noop(self, validator):
        case = make_case(phase=CasePhase.PREPARATION)
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION)
        assert result.valid
        assert result.errors == []

    def test_adjacent_move_with_complete_data(self, validator):
        case = make_case(metadata=dict(CONTRACT_INTAKE_COMPLETE))
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert result.valid, result.errors

    def test_skip_rejected(self, validator):
        case = make_case()
        result = validator.validate_phase_transition(case, CasePhase.PROCEEDINGS, as_of=NOW)
        assert not result.valid
        assert "phase skip not permitted: intake -> proceedings for contract_dispute" in result.errors

    @pytest.mark.parametrize("case_type", list(CaseType))
    @pytest.mark.parametrize("from_phase,to_phase", [
        (CasePhase.INTAKE, CasePhase.PROCEEDINGS),
        (CasePhase.INTAKE, CasePhase.RESOLUTION),
        (CasePhase.PREPARATION, CasePhase.RESOLUTION),
    ])
    def test_skip_rejected_for_every_case_type(self, validator, case_type, from_phase, to_phase):
        case = make_case(case_type=case_type, phase=from_phase)
        result = validator.validate_phase_transition(case, to_phase, as_of=NOW)
        assert not result.valid
        assert (
            f"phase skip not permitted: {from_phase.value} -> {to_phase.value} for {case_type.value}"
            in result.errors
        )

    def test_regression_rejected(self, validator):
        case = make_case(phase=CasePhase.PROCEEDINGS, status=CaseStatus.ACTIVE)
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert (
            "phase regression not permitted: proceedings -> preparation for contract_dispute"
            in result.errors
        )

    def test_exception_permits_early_closure(self, validator):
        case = make_case(metadata={"caseRejected": True})
        result = validator.validate_phase_transition(case, CasePhase.CLOSURE, as_of=NOW)
        assert not any("phase skip" in e for e in result.errors)
        assert any("intake-rejected" in w for w in result.warnings)

    def test_exception_conditions_must_hold(self, validator):
        case = make_case(metadata={"caseRejected": False})
        assert validator.find_exception(case, CasePhase.CLOSURE) is None
        result = validator.validate_phase_transition(case, CasePhase.CLOSURE, as_of=NOW)
        assert any(e.startswith("phase skip not permitted") for e in result.errors)

    def test_find_exception_uses_request_metadata(self, validator):
        case = make_case(phase=CasePhase.PREPARATION)
        exception = validator.find_exception(case, CasePhase.CLOSURE, {"caseSettled": True})
        assert exception is not None
        assert exception.id == "preparation-settled"


class TestRequiredFields:

    def test_missing_base_fields_listed_in_order(self, validator):
        case = make_case(metadata={"conflictCheckCompleted": True, "riskAssessmentCompleted": True})
        result = validator.validate_phase_transition(
            case, CasePhase.PREPARATION, {"legalResearchCompleted": True}, as_of=NOW,
        )
        assert (
            "Missing required fields for preparation: documentPreparationStarted, strategyDefined"
            in result.errors
        )

    def test_empty_string_counts_as_missing(self, validator):
        data = dict(CONTRACT_INTAKE_COMPLETE, strategyDefined="")
        case = make_case(metadata=data)
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert "Missing required fields for preparation: strategyDefined" in result.errors

    def test_false_is_present(self, validator):
        data = dict(CONTRACT_INTAKE_COMPLETE, strategyDefined=False)
        case = make_case(metadata=data)
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert result.valid

    def test_conditional_fields_for_case_type(self, validator):
        data = {k: v for k, v in CONTRACT_INTAKE_COMPLETE.items() if k != "damagesCalculated"}
        case = make_case(metadata=data)
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert "Contract disputes require contract analysis and breach identification" in result.errors

    def test_conditional_fields_ignored_for_other_types(self, validator):
        data = {
            k: v for k, v in CONTRACT_INTAKE_COMPLETE.items()
            if k not in ("contractAnalyzed", "breachIdentified", "damagesCalculated")
        }
        case = make_case(case_type=CaseType.LABOR_DISPUTE, metadata=data)
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert result.valid, result.errors

    def test_request_metadata_overrides_case(self, validator):
        case = make_case(metadata=dict(CONTRACT_INTAKE_COMPLETE, strategyDefined=None))
        result = validator.validate_phase_transition(
            case, CasePhase.PREPARATION, {"strategyDefined": True}, as_of=NOW,
        )
        assert result.valid


class TestCompletionChecks:

    def test_blocking_check_of_current_phase(self, validator):
        data = dict(CONTRACT_INTAKE_COMPLETE, conflictCheckCompleted=False)
        case = make_case(metadata=data)
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert "Conflict check must be completed before ending intake phase" in result.errors

    def test_non_blocking_check_warns(self, validator, workflow):
        case = make_case(
            phase=CasePhase.PREPARATION,
            status=CaseStatus.ACTIVE,
            metadata={"clientAgreementSigned": True},
        )
        result = validator.validate_phase_completion(case)
        assert "Some preparation deadlines may not have been met" in result.warnings
        assert "Client agreement must be signed before ending preparation phase" not in result.errors

    def test_phase_completion_reports_missing_fields(self, validator):
        case = make_case(metadata={"clientInformation": "Acme"})
        result = validator.validate_phase_completion(case)
        assert not result.valid
        assert (
            "Cannot complete phase intake. Missing required fields: caseDescription, initialContactDate"
            in result.errors
        )
        assert "Conflict check must be completed before ending intake phase" in result.errors

    def test_conditional_fields_of_current_phase_block_advance(self, validator):
        data = dict(CONTRACT_INTAKE_COMPLETE, arrestDate="2026-01-10")
        case = make_case(case_type=CaseType.CRIMINAL_DEFENSE, metadata=data)
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert "Criminal defense cases require arrest information and police report number" in result.errors

        case.metadata.update(charges="Theft", policeReportNumber="PR-2231")
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert "Criminal defense cases require arrest information and police report number" not in result.errors

    def test_exception_move_skips_current_phase_conditional_fields(self, validator):
        case = make_case(case_type=CaseType.CRIMINAL_DEFENSE, metadata={"caseRejected": True})
        result = validator.validate_phase_transition(case, CasePhase.CLOSURE, as_of=NOW)
        assert "Criminal defense cases require arrest information and police report number" not in result.errors

    def test_regression_skips_completion_checks(self, validator):
        case = make_case(phase=CasePhase.PROCEEDINGS, status=CaseStatus.ACTIVE)
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert not any("hearings must be attended" in e for e in result.errors)


class TestAdvisories:

    def test_warning_unless_field_present(self, validator):
        case = make_case(case_type=CaseType.MEDICAL_MALPRACTICE)
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert "Statute of limitations should be verified for medical malpractice case" in result.warnings

        case.metadata["statuteOfLimitationsChecked"] = True
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert "Statute of limitations should be verified for medical malpractice case" not in result.warnings

    def test_recommendation_for_case_type(self, validator):
        case = make_case(case_type=CaseType.CRIMINAL_DEFENSE)
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert (
            "Consider plea bargain options before proceeding to formal proceedings"
            in result.recommendations
        )

    def test_duration_warning(self, validator):
        case = make_case(phase_started_at=NOW - timedelta(days=50))
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert "intake phase has exceeded maximum duration of 45 days" in result.warnings

    def test_no_duration_warning_within_limit(self, validator):
        case = make_case(phase_started_at=NOW - timedelta(days=45))
        result = validator.validate_phase_transition(case, CasePhase.PREPARATION, as_of=NOW)
        assert not any("exceeded maximum duration" in w for w in result.warnings)


class TestStatusTransitions:

    def test_allowed_pair(self, validator):
        result = validator.validate_status_transition(
            CaseStatus.INTAKE, CaseStatus.ACTIVE, CasePhase.INTAKE,
        )
        assert result.valid

    def test_same_status_is_noop(self, validator):
        assert validator.validate_status_transition(
            CaseStatus.CLOSED, CaseStatus.CLOSED, CasePhase.PROCEEDINGS,
        ).valid

    def test_undefined_pair(self, validator):
        result = validator.validate_status_transition(
            CaseStatus.ACTIVE, CaseStatus.COMPLETED, CasePhase.PROCEEDINGS,
        )
        assert not result.valid
        assert result.errors == [
            "Status transition from active to completed is not defined for phase proceedings"
        ]


class TestRequirementsAndProgress:

    def test_requirements_include_conditional_fields(self, validator):
        req = validator.get_phase_requirements(CasePhase.INTAKE, CaseType.CRIMINAL_DEFENSE)
        assert req.required_fields == ["clientInformation", "caseDescription", "initialContactDate"]
        assert req.conditional_fields == ["arrestDate", "charges", "policeReportNumber"]
        assert req.completion_checks == ["conflictCheckCompleted"]
        assert (CaseStatus.INTAKE, CaseStatus.ACTIVE) in req.allowed_status_transitions

    def test_progress(self, validator):
        case = make_case(metadata={"clientInformation": "Acme", "caseDescription": ""})
        progress = validator.get_phase_progress(case)
        assert progress.total == 3
        assert progress.completed == 1
        assert progress.percent == 33
        assert progress.missing == ["caseDescription", "initialContactDate"]
