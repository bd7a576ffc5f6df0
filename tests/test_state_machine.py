"""
Tests for the case state machine.

Tests cover:
- Case-type permissions replacing generic ones
- Role authorization and gating conditions
- Approval requirements and implicit approval by rank
- Candidate target phases
"""
import pytest

from casepilot.engine import ROLE_RANK, CaseStateMachine, role_rank
from casepilot.models import CasePhase, CaseStatus, CaseType, UserRole

from tests.conftest import make_case


@pytest.fixture
def machine(workflow):
    return CaseStateMachine(workflow)


class TestRoleRank:

    def test_ordering(self):
        assert ROLE_RANK[UserRole.CLIENT] < ROLE_RANK[UserRole.ASSISTANT]
        assert ROLE_RANK[UserRole.ASSISTANT] < ROLE_RANK[UserRole.ATTORNEY]
        assert ROLE_RANK[UserRole.ATTORNEY] < ROLE_RANK[UserRole.ADMIN]

    def test_accepts_strings(self):
        assert role_rank("admin") == 3


class TestPermissions:

    def test_specific_permissions_replace_generic(self, machine):
        permissions = machine.permissions_for(
            CaseType.CRIMINAL_DEFENSE, CasePhase.INTAKE, CasePhase.PREPARATION,
        )
        assert len(permissions) == 1
        assert permissions[0].case_types == [CaseType.CRIMINAL_DEFENSE]

    def test_generic_permission_for_other_types(self, machine):
        permissions = machine.permissions_for(
            CaseType.CONTRACT_DISPUTE, CasePhase.INTAKE, CasePhase.PREPARATION,
        )
        assert len(permissions) == 1
        assert permissions[0].case_types == []

    def test_default_roles_when_undeclared(self, machine):
        roles = machine.allowed_roles(CaseType.CONTRACT_DISPUTE, CasePhase.INTAKE, CasePhase.CLOSURE)
        assert roles == [UserRole.ATTORNEY, UserRole.ADMIN]


class TestCheckTransition:

    def test_unauthorized_role(self, machine):
        case = make_case()
        result = machine.check_transition(case, CasePhase.PREPARATION, UserRole.ASSISTANT)
        assert result.errors == [
            "role assistant is not authorized to move a case from intake to preparation"
        ]

    def test_gate_conditions_unmet(self, machine):
        case = make_case(case_type=CaseType.CRIMINAL_DEFENSE, metadata={"bailHearingScheduled": True})
        result = machine.check_transition(case, CasePhase.PREPARATION, UserRole.ATTORNEY)
        assert not result.valid
        assert result.errors == ["transition conditions not met: evidenceSecured equals True"]

    def test_gate_conditions_met(self, machine):
        case = make_case(case_type=CaseType.CRIMINAL_DEFENSE)
        result = machine.check_transition(
            case, CasePhase.PREPARATION, UserRole.ATTORNEY,
            {"bailHearingScheduled": True, "evidenceSecured": True},
        )
        assert result.valid

    def test_exists_gate(self, machine):
        case = make_case(case_type=CaseType.INHERITANCE_DISPUTE, metadata={"heirsIdentified": True})
        result = machine.check_transition(case, CasePhase.PREPARATION, UserRole.ADMIN)
        assert result.errors == ["transition conditions not met: willLocated exists"]


class TestApprovals:

    def test_approval_role(self, machine):
        assert machine.approval_role(CaseType.CRIMINAL_DEFENSE, CasePhase.PROCEEDINGS) == UserRole.ADMIN
        assert machine.approval_role(CaseType.CRIMINAL_DEFENSE, CasePhase.PREPARATION) is None

    def test_attorney_needs_approval(self, machine):
        assert machine.requires_approval(
            CaseType.MEDICAL_MALPRACTICE, CasePhase.PREPARATION, UserRole.ATTORNEY,
        )

    def test_admin_approves_implicitly(self, machine):
        assert not machine.requires_approval(
            CaseType.MEDICAL_MALPRACTICE, CasePhase.PREPARATION, UserRole.ADMIN,
        )

    def test_no_requirement(self, machine):
        assert not machine.requires_approval(
            CaseType.CONTRACT_DISPUTE, CasePhase.PREPARATION, UserRole.ASSISTANT,
        )


class TestCandidateTargets:

    def test_successor_and_exception(self, machine):
        case = make_case(phase=CasePhase.PREPARATION, status=CaseStatus.ACTIVE)
        assert machine.candidate_targets(case) == [CasePhase.PROCEEDINGS, CasePhase.CLOSURE]

    def test_terminal_phase(self, machine):
        case = make_case(phase=CasePhase.CLOSURE, status=CaseStatus.CLOSED)
        assert machine.candidate_targets(case) == []
