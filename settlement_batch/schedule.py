"""
Five-field cron expressions for the batch trigger.

    minute hour day_of_month month day_of_week

Each field accepts ``*``, single values, ranges (``1-5``), steps (``*/15``,
``0-30/10``) and comma lists of those.  Day of week follows cron: 0 is
Sunday.  Pure functions; the caller supplies the time to test.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

DEFAULT_CRON = "0 1 * * *"


@dataclass(frozen=True)
class CronSpec:
    """Allowed values per field."""

    minutes: frozenset[int] = field(default_factory=lambda: frozenset(range(60)))
    hours: frozenset[int] = field(default_factory=lambda: frozenset(range(24)))
    days_of_month: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 32)))
    months: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 13)))
    days_of_week: frozenset[int] = field(default_factory=lambda: frozenset(range(7)))


def _bounded(value: int, low: int, high: int) -> int:
    if not low <= value <= high:
        raise ValueError(f"Value {value} outside range [{low}, {high}]")
    return value


def _parse_cron_field(text: str, low: int, high: int) -> frozenset[int]:
    """
    Raises:
        ValueError: malformed syntax, zero step, reversed range, or a value
            outside [low, high].
    """
    values: set[int] = set()

    for part in text.split(","):
        part = part.strip()
        if not part:
            raise ValueError(f"Empty cron list element in '{text}'")

        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            step = int(step_text)
            if step <= 0:
                raise ValueError(f"Step must be positive: {step}")

        if part == "*":
            start, end = low, high
        elif "-" in part:
            first, last = part.split("-", 1)
            start, end = _bounded(int(first), low, high), _bounded(int(last), low, high)
            if start > end:
                raise ValueError(f"Range start > end: {start}-{end}")
        else:
            start = _bounded(int(part), low, high)
            # "N/S" runs from N to the top of the field
            end = high if step > 1 else start

        values.update(range(start, end + 1, step))

    return frozenset(values)


def parse_cron(expression: str) -> CronSpec:
    """
    Raises:
        ValueError: not exactly five fields, or any field is invalid.
    """
    parts = expression.strip().split()
    if len(parts) != 5:
        raise ValueError(
            f"Cron expression must have 5 fields, got {len(parts)}: '{expression}'"
        )

    return CronSpec(
        minutes=_parse_cron_field(parts[0], 0, 59),
        hours=_parse_cron_field(parts[1], 0, 23),
        days_of_month=_parse_cron_field(parts[2], 1, 31),
        months=_parse_cron_field(parts[3], 1, 12),
        days_of_week=_parse_cron_field(parts[4], 0, 6),
    )


def matches_cron(spec: CronSpec, moment: datetime) -> bool:
    """True when ``moment``'s wall-clock minute is selected by ``spec``."""
    # datetime.weekday() has Monday == 0; cron has Sunday == 0
    cron_weekday = (moment.weekday() + 1) % 7
    return (
        moment.minute in spec.minutes
        and moment.hour in spec.hours
        and moment.day in spec.days_of_month
        and moment.month in spec.months
        and cron_weekday in spec.days_of_week
    )


def next_cron_match(spec: CronSpec, after: datetime) -> datetime:
    """
    First whole minute strictly after ``after`` that matches.

    Raises:
        ValueError: nothing matches within 366 days (e.g. February 30th).
    """
    candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
    for _ in range(366 * 24 * 60):
        if matches_cron(spec, candidate):
            return candidate
        candidate += timedelta(minutes=1)

    raise ValueError(f"No cron match found within 366 days after {after}")
