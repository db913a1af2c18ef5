"""
Business-day arithmetic for settlement dates.

A business day is any day that is neither Saturday, Sunday nor a holiday in
the active ``HolidayCalendar``.  D+N settlement walks forward one calendar
day at a time and counts only business days.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from settlement_kernel.domain.types import SettlementCycle
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.holiday import Holiday

logger = get_logger("services.business_day")

_SATURDAY = 5


@dataclass(frozen=True)
class HolidayCalendar:
    """Exact-date holidays plus (month, day) pairs that recur every year."""

    dates: frozenset[date] = field(default_factory=frozenset)
    recurring: frozenset[tuple[int, int]] = field(default_factory=frozenset)

    @classmethod
    def from_definitions(cls, definitions: Iterable[tuple[date, bool]]) -> "HolidayCalendar":
        dates: set[date] = set()
        recurring: set[tuple[int, int]] = set()
        for holiday_date, is_recurring in definitions:
            if is_recurring:
                recurring.add((holiday_date.month, holiday_date.day))
            else:
                dates.add(holiday_date)
        return cls(frozenset(dates), frozenset(recurring))

    @classmethod
    def from_session(cls, session: Session, country_code: str = "KR") -> "HolidayCalendar":
        rows = session.scalars(
            select(Holiday).where(Holiday.country_code == country_code)
        ).all()
        calendar = cls.from_definitions((row.holiday_date, row.is_recurring) for row in rows)
        logger.debug(
            "holiday_calendar_loaded",
            extra={"country_code": country_code, "holiday_count": len(rows)},
        )
        return calendar

    def merge(self, other: "HolidayCalendar") -> "HolidayCalendar":
        return HolidayCalendar(self.dates | other.dates, self.recurring | other.recurring)

    def is_holiday(self, day: date) -> bool:
        return day in self.dates or (day.month, day.day) in self.recurring


class BusinessDayCalculator:
    """Pure calculator over a fixed holiday calendar."""

    def __init__(self, calendar: HolidayCalendar | None = None):
        self.calendar = calendar or HolidayCalendar()

    def is_business_day(self, day: date) -> bool:
        return day.weekday() < _SATURDAY and not self.calendar.is_holiday(day)

    def step(self, from_date: date, days: int) -> date:
        """
        The ``days``-th business day after ``from_date``.

        ``step(friday, 1)`` is the following Monday when no holiday
        intervenes.  ``days == 0`` returns ``from_date`` unchanged.

        Raises:
            ValueError: ``days`` is negative.
        """
        if days < 0:
            raise ValueError(f"business day offset must be non-negative, got {days}")

        current = from_date
        counted = 0
        while counted < days:
            current += timedelta(days=1)
            if self.is_business_day(current):
                counted += 1
        return current

    def settlement_date(self, event_date: date, cycle: SettlementCycle) -> date:
        """REALTIME settles on the event date; D+N cycles step N business days."""
        cycle = SettlementCycle(cycle)
        if cycle == SettlementCycle.REALTIME:
            return event_date
        return self.step(event_date, cycle.business_days)
