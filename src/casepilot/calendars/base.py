"""
CasePilot Court Calendar Base

Protocol and base implementation for the calendars used to move computed
task deadlines off weekends and court holidays.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Protocol, runtime_checkable


@runtime_checkable
class HolidayCalendar(Protocol):
    """Anything that can tell court days from non-court days."""

    def is_holiday(self, d: date) -> bool:
        ...

    def is_business_day(self, d: date) -> bool:
        ...

    def roll_forward(self, moment: datetime) -> datetime:
        ...


@dataclass
class BaseCalendar(ABC):
    """
    Abstract base class for court calendars.

    Subclasses implement `is_holiday()`; weekend handling and date
    arithmetic live here.
    """

    # Weekend days (0=Monday, 6=Sunday)
    weekend_days: frozenset[int] = field(default_factory=lambda: frozenset({5, 6}))

    @abstractmethod
    def is_holiday(self, d: date) -> bool:
        ...

    def is_weekend(self, d: date) -> bool:
        return d.weekday() in self.weekend_days

    def is_business_day(self, d: date) -> bool:
        return not self.is_weekend(d) and not self.is_holiday(d)

    def next_business_day(self, d: date) -> date:
        """First business day on or after ``d``."""
        current = d
        while not self.is_business_day(current):
            current += timedelta(days=1)
        return current

    def add_business_days(self, start: date, days: int) -> date:
        """
        Add business days to a date.

        Args:
            start: Starting date (not counted)
            days: Number of business days to add (can be negative)

        Returns:
            The resulting date
        """
        if days == 0:
            return start
        step = 1 if days > 0 else -1
        remaining = abs(days)
        current = start
        while remaining > 0:
            current += timedelta(days=step)
            if self.is_business_day(current):
                remaining -= 1
        return current

    def roll_forward(self, moment: datetime) -> datetime:
        """
        Move a deadline to the next business day, keeping its time of day.

        A moment already on a business day is returned unchanged, so
        rolling twice gives the same result as rolling once.
        """
        day = moment.date()
        rolled = self.next_business_day(day)
        if rolled == day:
            return moment
        return moment + timedelta(days=(rolled - day).days)


@dataclass
class NoHolidayCalendar(BaseCalendar):
    """Weekends only. Useful for tests."""

    def is_holiday(self, d: date) -> bool:
        return False


@dataclass
class FixedHolidayCalendar(BaseCalendar):
    """Calendar backed by an explicit set of closure dates."""

    holidays: frozenset[date] = field(default_factory=frozenset)

    def is_holiday(self, d: date) -> bool:
        return d in self.holidays

    @classmethod
    def from_dates(cls, *dates: date) -> FixedHolidayCalendar:
        return cls(holidays=frozenset(dates))


def observed_date(holiday: date) -> date:
    """Saturday holidays are observed Friday, Sunday holidays Monday."""
    if holiday.weekday() == 5:
        return holiday - timedelta(days=1)
    if holiday.weekday() == 6:
        return holiday + timedelta(days=1)
    return holiday
