"""
CasePilot Deadline Calculator

Two deterministic policies:

- complexity_based: base hours x case-type multiplier x flag multipliers
  x (1 + buffer), floored at a minimum extension, added to ``start``
- dependency_based: latest prerequisite deadline (or ``start`` if later)
  plus a fixed buffer

Both take an explicit start timestamp and never read the clock, so the
same inputs always produce the same deadline. Optionally the result is
rolled forward to the next court business day.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Optional

from ..calendars import HolidayCalendar, US_COURT_CALENDAR
from ..exceptions import DeadlineCalculationError
from ..models import CaseType, DeadlineStrategy

logger = logging.getLogger(__name__)


DEFAULT_CASE_TYPE_MULTIPLIERS: dict[CaseType, float] = {
    CaseType.CRIMINAL_DEFENSE: 1.2,
    CaseType.DIVORCE_FAMILY: 1.5,
    CaseType.MEDICAL_MALPRACTICE: 2.0,
    CaseType.CONTRACT_DISPUTE: 1.0,
    CaseType.LABOR_DISPUTE: 1.3,
    CaseType.INHERITANCE_DISPUTE: 1.4,
    CaseType.ADMINISTRATIVE_CASE: 1.1,
    CaseType.DEMOLITION_CASE: 0.8,
    CaseType.SPECIAL_MATTERS: 1.8,
}

# Applied when the metadata flag of the same name is truthy
DEFAULT_FLAG_MULTIPLIERS: dict[str, float] = {
    "complex": 1.5,
    "requires_research": 1.3,
    "multi_party": 1.2,
    "urgent": 0.5,
}


@dataclass(frozen=True)
class DeadlineConfig:
    base_hours: float = 4.0
    buffer: float = 0.2
    min_extension_hours: float = 24.0
    dependency_buffer_hours: float = 24.0
    roll_to_business_day: bool = False
    case_type_multipliers: dict[CaseType, float] = field(
        default_factory=lambda: dict(DEFAULT_CASE_TYPE_MULTIPLIERS)
    )
    flag_multipliers: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_FLAG_MULTIPLIERS)
    )


@dataclass
class DeadlineResult:
    deadline: datetime
    strategy: DeadlineStrategy
    hours: float
    multiplier: float = 1.0
    rolled_forward: bool = False
    explanation: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "deadline": self.deadline.isoformat(),
            "strategy": self.strategy.value,
            "hours": self.hours,
            "multiplier": self.multiplier,
            "rolled_forward": self.rolled_forward,
            "explanation": list(self.explanation),
        }


class DeadlineCalculator:
    """
    Pure deadline computation.

    Usage:
        calc = DeadlineCalculator()
        result = calc.complexity_deadline(
            start=datetime(2026, 3, 2, 9, tzinfo=timezone.utc),
            case_type=CaseType.CONTRACT_DISPUTE,
            base_hours=40,
            flags={"complex": True},
        )
    """

    def __init__(
        self,
        config: Optional[DeadlineConfig] = None,
        calendar: Optional[HolidayCalendar] = None,
    ) -> None:
        self.config = config or DeadlineConfig()
        self.calendar = calendar or US_COURT_CALENDAR

    def complexity_deadline(
        self,
        start: datetime,
        case_type: Optional[CaseType] = None,
        base_hours: Optional[float] = None,
        flags: Optional[Mapping[str, Any]] = None,
        buffer: Optional[float] = None,
        min_extension_hours: Optional[float] = None,
        roll_to_business_day: Optional[bool] = None,
    ) -> DeadlineResult:
        """
        Deadline scaled by case type and complexity flags.

        Raises:
            DeadlineCalculationError: On negative hours or buffer
        """
        cfg = self.config
        base = cfg.base_hours if base_hours is None else base_hours
        buffer = cfg.buffer if buffer is None else buffer
        floor = cfg.min_extension_hours if min_extension_hours is None else min_extension_hours
        if base < 0 or buffer < 0 or floor < 0:
            raise DeadlineCalculationError(
                message="Deadline inputs must be non-negative",
                details={"base_hours": base, "buffer": buffer, "min_extension_hours": floor},
            )

        explanation = [f"base {base:g}h"]
        multiplier = 1.0
        if case_type is not None:
            type_factor = cfg.case_type_multipliers.get(CaseType(case_type), 1.0)
            multiplier *= type_factor
            explanation.append(f"{CaseType(case_type).value} x{type_factor:g}")
        for flag in sorted((flags or {}).keys()):
            factor = cfg.flag_multipliers.get(flag)
            if factor is not None and flags[flag]:
                multiplier *= factor
                explanation.append(f"{flag} x{factor:g}")

        hours = base * multiplier * (1 + buffer)
        explanation.append(f"buffer {buffer:.0%}")
        if hours < floor:
            explanation.append(f"floored at {floor:g}h")
            hours = floor

        return self._finish(
            start + timedelta(hours=hours),
            DeadlineStrategy.COMPLEXITY_BASED,
            hours,
            multiplier,
            explanation,
            roll_to_business_day,
        )

    def dependency_deadline(
        self,
        start: datetime,
        dependency_deadlines: Iterable[Optional[datetime]],
        buffer_hours: Optional[float] = None,
        roll_to_business_day: Optional[bool] = None,
    ) -> DeadlineResult:
        """Latest of the prerequisite deadlines and ``start``, plus a buffer."""
        buffer_hours = self.config.dependency_buffer_hours if buffer_hours is None else buffer_hours
        if buffer_hours < 0:
            raise DeadlineCalculationError(
                message="Dependency buffer must be non-negative",
                details={"buffer_hours": buffer_hours},
            )
        known = [d for d in dependency_deadlines if d is not None]
        anchor = max([start, *known])
        explanation = [
            f"{len(known)} prerequisite deadline(s)",
            f"anchor {anchor.isoformat()}",
            f"buffer {buffer_hours:g}h",
        ]
        return self._finish(
            anchor + timedelta(hours=buffer_hours),
            DeadlineStrategy.DEPENDENCY_BASED,
            buffer_hours,
            1.0,
            explanation,
            roll_to_business_day,
        )

    def _finish(
        self,
        deadline: datetime,
        strategy: DeadlineStrategy,
        hours: float,
        multiplier: float,
        explanation: list[str],
        roll_to_business_day: Optional[bool],
    ) -> DeadlineResult:
        roll = self.config.roll_to_business_day if roll_to_business_day is None else roll_to_business_day
        rolled = False
        if roll:
            adjusted = self.calendar.roll_forward(deadline)
            if adjusted != deadline:
                explanation.append(f"rolled forward to {adjusted.date().isoformat()}")
                rolled = True
            deadline = adjusted
        logger.debug("Computed %s deadline %s", strategy.value, deadline.isoformat())
        return DeadlineResult(
            deadline=deadline,
            strategy=strategy,
            hours=round(hours, 4),
            multiplier=round(multiplier, 6),
            rolled_forward=rolled,
            explanation=explanation,
        )
