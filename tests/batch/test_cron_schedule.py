"""
Tests for settlement_batch.schedule -- five-field cron parsing and matching.
"""

from datetime import datetime

import pytest

from settlement_batch.schedule import (
    DEFAULT_CRON,
    CronSpec,
    matches_cron,
    next_cron_match,
    parse_cron,
)


class TestParseCron:

    def test_default_is_daily_at_one(self):
        spec = parse_cron(DEFAULT_CRON)
        assert spec.minutes == frozenset({0})
        assert spec.hours == frozenset({1})
        assert spec.days_of_month == frozenset(range(1, 32))
        assert spec.days_of_week == frozenset(range(7))

    def test_list_range_and_step(self):
        spec = parse_cron("0,30 9-17/4 * * 1-5")
        assert spec.minutes == frozenset({0, 30})
        assert spec.hours == frozenset({9, 13, 17})
        assert spec.days_of_week == frozenset({1, 2, 3, 4, 5})

    def test_star_step(self):
        assert parse_cron("*/15 * * * *").minutes == frozenset({0, 15, 30, 45})

    def test_value_with_step_runs_to_field_end(self):
        assert parse_cron("50/5 * * * *").minutes == frozenset({50, 55})

    @pytest.mark.parametrize(
        "expression",
        [
            "0 1 * *",
            "0 1 * * * *",
            "60 1 * * *",
            "0 24 * * *",
            "0 1 0 * *",
            "0 1 * 13 *",
            "0 1 * * 7",
            "*/0 * * * *",
            "5-1 * * * *",
            "a 1 * * *",
            "0,,1 1 * * *",
        ],
    )
    def test_invalid_expressions(self, expression):
        with pytest.raises(ValueError):
            parse_cron(expression)


class TestMatchesCron:

    def test_matches_minute(self):
        spec = parse_cron("0 1 * * *")
        assert matches_cron(spec, datetime(2024, 3, 5, 1, 0))
        assert not matches_cron(spec, datetime(2024, 3, 5, 1, 1))
        assert not matches_cron(spec, datetime(2024, 3, 5, 2, 0))

    def test_sunday_is_zero(self):
        spec = parse_cron("0 1 * * 0")
        assert matches_cron(spec, datetime(2024, 3, 10, 1, 0))
        assert not matches_cron(spec, datetime(2024, 3, 11, 1, 0))

    def test_empty_spec_defaults_match_everything(self):
        assert matches_cron(CronSpec(), datetime(2024, 2, 29, 23, 59))


class TestNextCronMatch:

    def test_next_day(self):
        spec = parse_cron("0 1 * * *")
        assert next_cron_match(spec, datetime(2024, 3, 5, 1, 0)) == datetime(2024, 3, 6, 1, 0)

    def test_same_day_later(self):
        spec = parse_cron("0 1 * * *")
        assert next_cron_match(spec, datetime(2024, 3, 5, 0, 30, 15)) == datetime(2024, 3, 5, 1, 0)

    def test_impossible_date(self):
        with pytest.raises(ValueError):
            next_cron_match(parse_cron("0 0 30 2 *"), datetime(2024, 1, 1))
