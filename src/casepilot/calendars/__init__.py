"""
CasePilot Calendars

Court calendars for rolling deadlines onto business days.

Usage:
    from casepilot.calendars import US_COURT_CALENDAR

    due = US_COURT_CALENDAR.roll_forward(computed_due)
"""
from __future__ import annotations

from .base import (
    BaseCalendar,
    FixedHolidayCalendar,
    HolidayCalendar,
    NoHolidayCalendar,
    observed_date,
)
from .us_courts import US_COURT_CALENDAR, USCourtCalendar, federal_holidays

__all__ = [
    "BaseCalendar",
    "FixedHolidayCalendar",
    "HolidayCalendar",
    "NoHolidayCalendar",
    "observed_date",
    "US_COURT_CALENDAR",
    "USCourtCalendar",
    "federal_holidays",
]
