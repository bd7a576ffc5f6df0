"""
Tests for the assignment selector.

Tests cover:
- Workload and expertise scoring of directory users
- Filters (availability, role, exclusion, ceilings, floors)
- Strategy ordering and deterministic tie-breaks
- Recommendations
"""
import pytest
from datetime import timedelta

from casepilot.engine import (
    AssignmentSelector,
    build_candidates,
    determine_preferred_role,
    expertise_score,
    workload_score,
)
from casepilot.exceptions import NoEligibleCandidateError
from casepilot.models import (
    AssignmentCriteria,
    AssignmentStrategy,
    Candidate,
    CaseType,
    TaskPriority,
    TaskStatus,
    UserRole,
)

from tests.conftest import NOW, make_task, make_user


@pytest.fixture
def selector():
    return AssignmentSelector()


def criteria(strategy: AssignmentStrategy, **kwargs) -> AssignmentCriteria:
    return AssignmentCriteria(strategy=strategy, **kwargs)


class TestWorkloadScore:

    def test_priority_weights(self):
        tasks = [
            make_task(id="t1", priority=TaskPriority.URGENT),
            make_task(id="t2", priority=TaskPriority.LOW),
        ]
        assert workload_score(tasks, NOW) == (10 + 20) + (10 + 5)

    def test_overdue_adds_load(self):
        tasks = [make_task(priority=TaskPriority.MEDIUM, due_date=NOW - timedelta(hours=1))]
        assert workload_score(tasks, NOW) == 10 + 10 + 25

    def test_closed_tasks_ignored(self):
        tasks = [make_task(status=TaskStatus.COMPLETED), make_task(status=TaskStatus.CANCELLED)]
        assert workload_score(tasks, NOW) == 0


class TestExpertiseScore:

    def test_matrix_value(self):
        user = make_user("a", UserRole.ATTORNEY)
        assert expertise_score(user, CaseType.CRIMINAL_DEFENSE) == 0.9
        assert expertise_score(user, CaseType.CONTRACT_DISPUTE) == 0.7

    def test_specialization_bonus_capped(self):
        user = make_user("a", UserRole.ATTORNEY, specialization=CaseType.CRIMINAL_DEFENSE)
        assert expertise_score(user, CaseType.CRIMINAL_DEFENSE) == 1.0
        user = make_user("b", UserRole.ATTORNEY, specialization=CaseType.CONTRACT_DISPUTE)
        assert expertise_score(user, CaseType.CONTRACT_DISPUTE) == 0.8

    def test_skill_coverage_averaged(self):
        user = make_user("a", UserRole.ATTORNEY, expertise=["contract law"])
        score = expertise_score(user, CaseType.CONTRACT_DISPUTE, ["contract", "tax"])
        assert score == pytest.approx((0.7 + 0.5) / 2)

    def test_no_case_type(self):
        assert expertise_score(make_user("a"), None) == 0.0


class TestPreferredRole:

    def test_urgent_goes_to_attorney(self):
        assert determine_preferred_role(CaseType.DIVORCE_FAMILY, TaskPriority.URGENT) == UserRole.ATTORNEY

    def test_routine_family_work_to_assistant(self):
        assert determine_preferred_role(CaseType.DIVORCE_FAMILY, TaskPriority.LOW) == UserRole.ASSISTANT


class TestBuildCandidates:

    def test_preserves_order_and_scores(self):
        users = [make_user("att-1"), make_user("asst-1", UserRole.ASSISTANT)]
        open_tasks = {"att-1": [make_task(priority=TaskPriority.HIGH)]}
        pool = build_candidates(users, open_tasks, CaseType.CONTRACT_DISPUTE, [], NOW)
        assert [c.user_id for c in pool] == ["att-1", "asst-1"]
        assert pool[0].workload == 25
        assert pool[0].active_tasks == 1
        assert pool[1].expertise_score == 0.5


class TestSelect:

    def test_workload_balance_prefers_lighter_load(self, selector):
        pool = [
            Candidate(user_id="u1", role=UserRole.ATTORNEY, workload=5, expertise_score=0.9),
            Candidate(user_id="u2", role=UserRole.ATTORNEY, workload=3, expertise_score=0.9),
        ]
        decision = selector.select(pool, criteria(AssignmentStrategy.WORKLOAD_BALANCE))
        assert decision.user_id == "u2"
        assert [s.rank for s in decision.ranked] == [1, 2]

    def test_expertise_based_breaks_ties_by_workload(self, selector):
        pool = [
            Candidate(user_id="u1", role=UserRole.ATTORNEY, workload=40, expertise_score=0.8),
            Candidate(user_id="u2", role=UserRole.ATTORNEY, workload=10, expertise_score=0.8),
            Candidate(user_id="u3", role=UserRole.ATTORNEY, workload=90, expertise_score=0.6),
        ]
        decision = selector.select(pool, criteria(AssignmentStrategy.EXPERTISE_BASED))
        assert [s.candidate.user_id for s in decision.ranked] == ["u2", "u1", "u3"]

    def test_full_tie_keeps_input_order(self, selector):
        pool = [
            Candidate(user_id="first", role=UserRole.ATTORNEY, workload=10, expertise_score=0.5),
            Candidate(user_id="second", role=UserRole.ATTORNEY, workload=10, expertise_score=0.5),
        ]
        for strategy in AssignmentStrategy:
            assert selector.select(pool, criteria(strategy)).user_id == "first"

    def test_priority_based_role_order(self, selector):
        pool = [
            Candidate(user_id="asst", role=UserRole.ASSISTANT, workload=0),
            Candidate(user_id="admin", role=UserRole.ADMIN, workload=0),
            Candidate(user_id="att", role=UserRole.ATTORNEY, workload=80),
        ]
        decision = selector.select(pool, criteria(AssignmentStrategy.PRIORITY_BASED))
        assert [s.candidate.user_id for s in decision.ranked] == ["att", "admin", "asst"]

    def test_filters(self, selector):
        pool = [
            Candidate(user_id="away", role=UserRole.ATTORNEY, available=False),
            Candidate(user_id="busy", role=UserRole.ATTORNEY, workload=100),
            Candidate(user_id="novice", role=UserRole.ATTORNEY, expertise_score=0.2),
            Candidate(user_id="excluded", role=UserRole.ATTORNEY, expertise_score=0.9),
            Candidate(user_id="assistant", role=UserRole.ASSISTANT, expertise_score=0.9),
            Candidate(user_id="ok", role=UserRole.ATTORNEY, workload=10, expertise_score=0.7),
        ]
        decision = selector.select(pool, criteria(
            AssignmentStrategy.EXPERTISE_BASED,
            required_role=UserRole.ATTORNEY,
            max_workload=50,
            min_expertise_score=0.5,
            exclude_user_ids=["excluded"],
        ))
        assert decision.user_id == "ok"
        assert len(decision.ranked) == 1

    def test_no_eligible_candidate(self, selector):
        pool = [Candidate(user_id="away", role=UserRole.ATTORNEY, available=False)]
        with pytest.raises(NoEligibleCandidateError) as exc:
            selector.select(pool, criteria(AssignmentStrategy.WORKLOAD_BALANCE))
        assert exc.value.code == "CP_NO_ELIGIBLE_CANDIDATE"

    def test_empty_pool(self, selector):
        with pytest.raises(NoEligibleCandidateError):
            selector.select([], criteria(AssignmentStrategy.EXPERTISE_BASED))

    def test_factor_scores_reported(self, selector):
        pool = [
            Candidate(user_id="u1", role=UserRole.ATTORNEY, workload=0, expertise_score=1.0),
            Candidate(user_id="u2", role=UserRole.ASSISTANT, workload=50, expertise_score=0.4),
        ]
        decision = selector.select(pool, criteria(
            AssignmentStrategy.EXPERTISE_BASED, preferred_role=UserRole.ATTORNEY,
        ))
        best = decision.selected
        assert best.factor("workload").value == 1.0
        assert best.factor("role_fit").value == 1.0
        assert best.total == pytest.approx(1.0)
        assert decision.ranked[1].factor("role_fit").value == 0.5


class TestRecommend:

    def test_sorted_and_limited(self, selector):
        pool = [
            Candidate(user_id="heavy", role=UserRole.ATTORNEY, workload=120, active_tasks=12),
            Candidate(user_id="light", role=UserRole.ATTORNEY, workload=0, expertise=["contract"]),
            Candidate(user_id="asst", role=UserRole.ASSISTANT, workload=20, active_tasks=2),
        ]
        recs = selector.recommend(
            pool,
            criteria(
                AssignmentStrategy.EXPERTISE_BASED,
                preferred_role=UserRole.ATTORNEY,
                required_expertise=["contract"],
            ),
            limit=2,
        )
        assert [r.user_id for r in recs] == ["light", "asst"]
        light = recs[0]
        # 100 + 15*2 capacity + 20 role + 10 skill
        assert light.score == 160.0
        assert light.confidence == 1.0
        assert "Has relevant expertise: contract" in light.reasoning
        assert light.available_capacity == 15
