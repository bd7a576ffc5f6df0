"""
CasePilot Exception Hierarchy

Domain-specific exceptions for case lifecycle validation and rule evaluation.
All exceptions carry machine-readable error codes for tracking and logging.

Exception codes follow the pattern: CP_<CATEGORY>_<SPECIFIC>
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class CasePilotError(Exception):
    """
    Base exception for all CasePilot errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (CP_*)
        details: Additional context about the error
        case_id: Associated case ID if applicable
    """
    message: str
    code: str = "CP_INTERNAL_ERROR"
    details: dict[str, Any] = field(default_factory=dict)
    case_id: Optional[str] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.case_id:
            parts.append(f"(case: {self.case_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/API responses."""
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.case_id:
            result["case_id"] = self.case_id
        return result


# =============================================================================
# Pack Errors
# =============================================================================

@dataclass
class PackLoadError(CasePilotError):
    """Failed to read a rule or workflow pack."""
    code: str = "CP_PACK_LOAD_ERROR"


@dataclass
class PackValidationError(CasePilotError):
    """Pack failed schema or reference validation."""
    code: str = "CP_PACK_VALIDATION_ERROR"


# =============================================================================
# Case Errors
# =============================================================================

@dataclass
class CaseNotFoundError(CasePilotError):
    """Requested case does not exist."""
    code: str = "CP_CASE_NOT_FOUND"


@dataclass
class TaskNotFoundError(CasePilotError):
    """Requested task does not exist."""
    code: str = "CP_TASK_NOT_FOUND"


@dataclass
class CaseValidationError(CasePilotError):
    """Missing field, illegal transition or failed conditional rule."""
    code: str = "CP_CASE_VALIDATION_ERROR"


@dataclass
class ImmutableFieldError(CasePilotError):
    """Attempt to change a field that is fixed after creation."""
    code: str = "CP_IMMUTABLE_FIELD"


@dataclass
class ApprovalNotFoundError(CasePilotError):
    """Requested approval request does not exist."""
    code: str = "CP_APPROVAL_NOT_FOUND"


@dataclass
class ApprovalStateError(CasePilotError):
    """Approval request cannot be acted on in its current state."""
    code: str = "CP_APPROVAL_STATE_ERROR"


# =============================================================================
# Rule Errors
# =============================================================================

@dataclass
class RuleNotFoundError(CasePilotError):
    """Requested business rule does not exist."""
    code: str = "CP_RULE_NOT_FOUND"


@dataclass
class RuleConfigurationError(CasePilotError):
    """Business rule is malformed (bad operator, payload or reference)."""
    code: str = "CP_RULE_CONFIGURATION_ERROR"


@dataclass
class ActionExecutionError(CasePilotError):
    """A rule action failed while executing."""
    code: str = "CP_ACTION_EXECUTION_ERROR"


@dataclass
class EscalationPathError(CasePilotError):
    """Escalation path is invalid or no path applies."""
    code: str = "CP_ESCALATION_PATH_ERROR"


@dataclass
class NotificationError(CasePilotError):
    """Notification could not be dispatched."""
    code: str = "CP_NOTIFICATION_ERROR"


# =============================================================================
# Assignment / Deadline Errors
# =============================================================================

@dataclass
class NoEligibleCandidateError(CasePilotError):
    """No candidate survived the assignment filters."""
    code: str = "CP_NO_ELIGIBLE_CANDIDATE"


@dataclass
class DeadlineCalculationError(CasePilotError):
    """Deadline could not be computed from the given inputs."""
    code: str = "CP_DEADLINE_CALC_ERROR"
