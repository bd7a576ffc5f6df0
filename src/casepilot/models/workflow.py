"""
CasePilot Workflow Models

Static, per-phase and per-case-type rule tables consumed by the phase
validator, the state machine and the transition service. Loaded from a
workflow pack; see ``casepilot/packs/defaults/workflow.yaml``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .enums import CasePhase, CaseStatus, CaseType, TaskPriority, UserRole
from .rules import BusinessCondition


@dataclass
class ConditionalRequirement:
    """Extra required fields that apply only to some case types."""
    case_types: list[CaseType]
    required_fields: list[str]
    error_message: str

    def applies_to(self, case_type: CaseType) -> bool:
        return case_type in self.case_types


@dataclass
class StatusRule:
    from_statuses: list[CaseStatus]
    to_statuses: list[CaseStatus]
    allowed: bool = True
    reason: Optional[str] = None

    def covers(self, current: CaseStatus, target: CaseStatus) -> bool:
        return current in self.from_statuses and target in self.to_statuses


@dataclass
class CompletionCheck:
    """
    A truthy flag expected before a phase can be left.

    Blocking checks produce errors; non-blocking ones produce warnings.
    An empty ``case_types`` list applies the check to every case type.
    """
    field: str
    message: str
    blocking: bool = True
    case_types: list[CaseType] = field(default_factory=list)

    def applies_to(self, case_type: CaseType) -> bool:
        return not self.case_types or case_type in self.case_types


@dataclass
class PhaseAdvisory:
    """Warning or recommendation attached to entering a phase."""
    message: str
    case_types: list[CaseType] = field(default_factory=list)
    from_phase: Optional[CasePhase] = None
    unless_field: Optional[str] = None

    def applies_to(self, case_type: CaseType, from_phase: CasePhase) -> bool:
        if self.case_types and case_type not in self.case_types:
            return False
        return self.from_phase is None or self.from_phase == from_phase


@dataclass
class PhaseRules:
    phase: CasePhase
    required_fields: list[str] = field(default_factory=list)
    conditional_rules: list[ConditionalRequirement] = field(default_factory=list)
    status_rules: list[StatusRule] = field(default_factory=list)
    completion_checks: list[CompletionCheck] = field(default_factory=list)
    warnings: list[PhaseAdvisory] = field(default_factory=list)
    recommendations: list[PhaseAdvisory] = field(default_factory=list)


@dataclass
class PhaseException:
    """
    Permits a non-adjacent phase move (skip or regression).

    Gated by ``conditions`` evaluated against the case metadata; an empty
    ``case_types`` list applies to every case type.
    """
    id: str
    from_phase: CasePhase
    to_phase: CasePhase
    reason: str
    case_types: list[CaseType] = field(default_factory=list)
    conditions: list[BusinessCondition] = field(default_factory=list)

    def applies_to(self, case_type: CaseType) -> bool:
        return not self.case_types or case_type in self.case_types


@dataclass
class TransitionPermission:
    """Roles allowed to move a case between two phases."""
    from_phase: CasePhase
    to_phase: CasePhase
    roles: list[UserRole]
    case_types: list[CaseType] = field(default_factory=list)
    conditions: list[BusinessCondition] = field(default_factory=list)

    def applies_to(self, case_type: CaseType) -> bool:
        return not self.case_types or case_type in self.case_types


@dataclass
class ApprovalRequirement:
    case_type: CaseType
    to_phase: CasePhase
    approver_role: UserRole = UserRole.ADMIN


@dataclass
class FollowUpTask:
    """Task created automatically after a case enters a phase."""
    case_type: CaseType
    to_phase: CasePhase
    title: str
    due_in_days: int
    priority: TaskPriority = TaskPriority.MEDIUM
    description: str = ""
    category: Optional[str] = None


@dataclass
class PhaseDurationLimit:
    case_type: CaseType
    phase: CasePhase
    max_days: int
    milestones: list[str] = field(default_factory=list)


@dataclass
class WorkflowConfig:
    """Everything the lifecycle components need from a workflow pack."""
    pack_id: str
    phases: dict[CasePhase, PhaseRules] = field(default_factory=dict)
    exceptions: list[PhaseException] = field(default_factory=list)
    permissions: list[TransitionPermission] = field(default_factory=list)
    approvals: list[ApprovalRequirement] = field(default_factory=list)
    follow_up_tasks: list[FollowUpTask] = field(default_factory=list)
    duration_limits: list[PhaseDurationLimit] = field(default_factory=list)
    default_transition_roles: list[UserRole] = field(
        default_factory=lambda: [UserRole.ATTORNEY, UserRole.ADMIN]
    )
    pack_hash: str = ""

    def rules_for(self, phase: CasePhase) -> PhaseRules:
        return self.phases.get(CasePhase(phase)) or PhaseRules(phase=CasePhase(phase))
