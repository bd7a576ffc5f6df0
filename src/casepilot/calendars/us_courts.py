"""
US Court Holiday Calendar

Legal holidays on which federal courts are closed: the federal holidays
(with Saturday/Sunday observance) plus any court-specific closure dates.
Used to roll computed deadlines forward to the next court day.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from .base import BaseCalendar, observed_date


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    """nth occurrence (1-based) of a weekday (0=Monday) in a month."""
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset, weeks=n - 1)


def _last_weekday(year: int, month: int, weekday: int) -> date:
    """Last occurrence of a weekday (0=Monday) in a month."""
    if month == 12:
        last = date(year, 12, 31)
    else:
        last = date(year, month + 1, 1) - timedelta(days=1)
    return last - timedelta(days=(last.weekday() - weekday) % 7)


def federal_holidays(year: int) -> dict[date, str]:
    """Observed federal holiday dates for a year, keyed by date."""
    fixed = {
        date(year, 1, 1): "New Year's Day",
        date(year, 7, 4): "Independence Day",
        date(year, 11, 11): "Veterans Day",
        date(year, 12, 25): "Christmas Day",
    }
    if year >= 2021:
        fixed[date(year, 6, 19)] = "Juneteenth"

    holidays: dict[date, str] = {}
    for actual, name in fixed.items():
        observed = observed_date(actual)
        holidays[observed] = name if observed == actual else f"{name} (Observed)"

    holidays[_nth_weekday(year, 1, 0, 3)] = "Martin Luther King Jr. Day"
    holidays[_nth_weekday(year, 2, 0, 3)] = "Washington's Birthday"
    holidays[_last_weekday(year, 5, 0)] = "Memorial Day"
    holidays[_nth_weekday(year, 9, 0, 1)] = "Labor Day"
    holidays[_nth_weekday(year, 10, 0, 2)] = "Columbus Day"
    holidays[_nth_weekday(year, 11, 3, 4)] = "Thanksgiving Day"
    return holidays


@dataclass
class USCourtCalendar(BaseCalendar):
    """
    Federal court calendar.

    ``closures`` holds extra dates a specific court is closed (weather,
    local holidays); they count as holidays alongside the federal ones.
    """

    closures: frozenset[date] = field(default_factory=frozenset)
    _cache: dict[int, dict[date, str]] = field(default_factory=dict, repr=False)

    def _holidays(self, year: int) -> dict[date, str]:
        if year not in self._cache:
            self._cache[year] = federal_holidays(year)
        return self._cache[year]

    def is_holiday(self, d: date) -> bool:
        # New Year's Day falling on a Saturday is observed on Dec 31
        return (
            d in self.closures
            or d in self._holidays(d.year)
            or d in self._holidays(d.year + 1)
        )

    def holiday_name(self, d: date) -> Optional[str]:
        if d in self.closures:
            return "Court closure"
        return self._holidays(d.year).get(d) or self._holidays(d.year + 1).get(d)


US_COURT_CALENDAR = USCourtCalendar()
