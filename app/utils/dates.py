"""Date helpers for billing periods.

Every datetime in the system is naive UTC. MongoDB hands naive UTC values
back by default, so comparisons never mix aware and naive values.
"""

import calendar
import math
from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def add_months(value: datetime, months: int) -> datetime:
    """
    Shift a datetime by whole calendar months.

    The day is clamped to the last day of the target month, so Jan 31 plus
    one month is Feb 28 (or 29).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def days_until(target: datetime, now: datetime | None = None) -> int:
    """Whole days left until ``target``, rounded up."""
    now = now or utc_now()
    return math.ceil((target - now) / timedelta(days=1))


def epoch_millis(value: datetime | None = None) -> int:
    value = value or utc_now()
    return int(value.replace(tzinfo=UTC).timestamp() * 1000)
