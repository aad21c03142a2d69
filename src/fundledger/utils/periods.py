"""Calendar period arithmetic for time series and monthly reports."""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator
from dateutil.relativedelta import relativedelta

from fundledger.domain.entities import Granularity
from fundledger.domain.errors import ValidationError


@dataclass(frozen=True)
class Period:
    """One bucket of a series: ``[start, end)`` with a display key."""

    key: str
    start: date
    end: date


def parse_granularity(value: str | Granularity) -> Granularity:
    if isinstance(value, Granularity):
        return value
    try:
        return Granularity(value.strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unknown granularity '{value}'. Expected one of: "
            + ", ".join(g.value for g in Granularity)
        )


def period_start(day: date, granularity: Granularity, week_start: int = 0) -> date:
    """Calendar-aligned start of the bucket containing ``day``."""
    if granularity is Granularity.DAY:
        return day
    if granularity is Granularity.WEEK:
        return day - timedelta(days=(day.weekday() - week_start) % 7)
    return day.replace(day=1)


def next_period_start(aligned: date, granularity: Granularity) -> date:
    if granularity is Granularity.DAY:
        return aligned + timedelta(days=1)
    if granularity is Granularity.WEEK:
        return aligned + timedelta(days=7)
    return aligned + relativedelta(months=1)


def period_key(aligned: date, granularity: Granularity) -> str:
    if granularity is Granularity.MONTH:
        return aligned.strftime("%Y-%m")
    return aligned.isoformat()


def iter_periods(
    start: date, end: date, granularity: Granularity, week_start: int = 0
) -> Iterator[Period]:
    """Yield consecutive periods covering ``start`` through ``end`` inclusive.

    Boundaries follow the calendar. The first period is clipped so it never
    begins before ``start``; the last one runs to its natural boundary.

    Raises:
        ValidationError: If start is after end
    """
    if start > end:
        raise ValidationError(f"Start date {start} is after end date {end}")

    aligned = period_start(start, granularity, week_start)
    while aligned <= end:
        upcoming = next_period_start(aligned, granularity)
        yield Period(key=period_key(aligned, granularity), start=max(aligned, start), end=upcoming)
        aligned = upcoming


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """Return ``(first day, first day of next month)``.

    Raises:
        ValidationError: If month is outside 1..12
    """
    if not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month}")
    first = date(year, month, 1)
    return first, first + relativedelta(months=1)
