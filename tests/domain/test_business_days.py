"""
Tests for BusinessDayCalculator.

Covers weekend skipping, exact and recurring holidays, D+0/D+1/D+3 cycles
and the holiday calendar loaded from the database.
"""

from datetime import date

import pytest

from settlement_kernel.domain.types import SettlementCycle
from settlement_kernel.models import Holiday
from settlement_kernel.services.business_day_calculator import (
    BusinessDayCalculator,
    HolidayCalendar,
)

FRIDAY = date(2024, 3, 8)
SATURDAY = date(2024, 3, 9)
MONDAY = date(2024, 3, 11)


class TestStep:

    def test_friday_plus_one_is_monday(self):
        assert BusinessDayCalculator().step(FRIDAY, 1) == MONDAY

    def test_weekday_plus_one_is_next_day(self):
        assert BusinessDayCalculator().step(date(2024, 3, 5), 1) == date(2024, 3, 6)

    def test_zero_days_returns_same_date(self):
        assert BusinessDayCalculator().step(SATURDAY, 0) == SATURDAY

    def test_negative_days_rejected(self):
        with pytest.raises(ValueError):
            BusinessDayCalculator().step(FRIDAY, -1)

    def test_weekend_start_counts_from_next_business_day(self):
        assert BusinessDayCalculator().step(SATURDAY, 1) == MONDAY

    def test_holiday_skipped(self):
        calendar = HolidayCalendar.from_definitions([(MONDAY, False)])
        assert BusinessDayCalculator(calendar).step(FRIDAY, 1) == date(2024, 3, 12)

    def test_three_business_days_across_weekend(self):
        # Thu -> Fri, Mon, Tue
        assert BusinessDayCalculator().step(date(2024, 3, 7), 3) == date(2024, 3, 12)

    def test_chuseok_block(self):
        calendar = HolidayCalendar.from_definitions(
            [(date(2024, 9, 16), False), (date(2024, 9, 17), False), (date(2024, 9, 18), False)]
        )
        assert BusinessDayCalculator(calendar).step(date(2024, 9, 13), 1) == date(2024, 9, 19)


class TestHolidayCalendar:

    def test_recurring_holiday_matches_every_year(self):
        calendar = HolidayCalendar.from_definitions([(date(2020, 12, 25), True)])
        assert calendar.is_holiday(date(2024, 12, 25))
        assert calendar.is_holiday(date(2031, 12, 25))

    def test_exact_holiday_matches_one_year(self):
        calendar = HolidayCalendar.from_definitions([(date(2024, 9, 17), False)])
        assert calendar.is_holiday(date(2024, 9, 17))
        assert not calendar.is_holiday(date(2025, 9, 17))

    def test_merge(self):
        a = HolidayCalendar.from_definitions([(date(2024, 1, 1), True)])
        b = HolidayCalendar.from_definitions([(date(2024, 9, 17), False)])
        merged = a.merge(b)
        assert merged.is_holiday(date(2025, 1, 1))
        assert merged.is_holiday(date(2024, 9, 17))

    def test_from_session_filters_by_country(self, session):
        session.add_all([
            Holiday(holiday_date=date(2024, 3, 11), name="Test day", country_code="KR"),
            Holiday(holiday_date=date(2024, 3, 12), name="Elsewhere", country_code="US"),
        ])
        session.flush()

        calendar = HolidayCalendar.from_session(session, "KR")

        assert calendar.is_holiday(date(2024, 3, 11))
        assert not calendar.is_holiday(date(2024, 3, 12))


class TestSettlementDate:

    def test_realtime_settles_same_day(self):
        assert BusinessDayCalculator().settlement_date(SATURDAY, SettlementCycle.REALTIME) == SATURDAY

    def test_d_plus_one(self):
        assert BusinessDayCalculator().settlement_date(FRIDAY, SettlementCycle.D_PLUS_1) == MONDAY

    def test_d_plus_three(self):
        assert BusinessDayCalculator().settlement_date(FRIDAY, SettlementCycle.D_PLUS_3) == date(2024, 3, 13)

    def test_accepts_cycle_value_string(self):
        assert BusinessDayCalculator().settlement_date(FRIDAY, "D_PLUS_1") == MONDAY


def test_holiday_row_matches():
    recurring = Holiday(holiday_date=date(2024, 8, 15), name="Liberation Day", is_recurring=True)
    once = Holiday(holiday_date=date(2024, 9, 17), name="Chuseok", is_recurring=False)
    assert recurring.matches(date(2030, 8, 15))
    assert once.matches(date(2024, 9, 17))
    assert not once.matches(date(2025, 9, 17))
