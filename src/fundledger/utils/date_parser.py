"""Date parsing utilities."""

from datetime import date, datetime, time, timedelta, UTC
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def utcnow() -> datetime:
    """Current instant as a naive UTC datetime, the form stored in the ledger."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def start_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min)


def end_of_day(value: date) -> datetime:
    """Exclusive upper bound covering the whole day."""
    return datetime.combine(value + timedelta(days=1), time.min)


def parse_date(date_str: str, week_start: int = 0) -> date:
    """Parse a date string into a date object.

    Supports various formats including relative dates:
    - Absolute dates: "2024-01-15", "January 15, 2024", etc.
    - Relative dates: "today", "yesterday", "last month", "this year", etc.

    Args:
        date_str: Date string in various formats
        week_start: Weekday index that starts a week (0 = Monday)

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()
    this_week = today - timedelta(days=(today.weekday() - week_start) % 7)

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }

    if date_str in relative_dates:
        return relative_dates[date_str]

    if date_str.startswith("last "):
        period = date_str[5:]
        if period == "month":
            return (today - relativedelta(months=1)).replace(day=1)
        elif period == "year":
            return today.replace(month=1, day=1) - relativedelta(years=1)
        elif period == "week":
            return this_week - timedelta(days=7)
        elif period in WEEKDAY_NAMES:
            target_day = WEEKDAY_NAMES.index(period)
            days_ago = (today.weekday() - target_day) % 7
            if days_ago == 0:
                days_ago = 7
            return today - timedelta(days=days_ago)

    elif date_str.startswith("this "):
        period = date_str[5:]
        if period == "month":
            return today.replace(day=1)
        elif period == "year":
            return today.replace(month=1, day=1)
        elif period == "week":
            return this_week

    elif date_str.startswith("next "):
        period = date_str[5:]
        if period == "month":
            return (today + relativedelta(months=1)).replace(day=1)
        elif period == "year":
            return today.replace(month=1, day=1) + relativedelta(years=1)
        elif period == "week":
            return this_week + timedelta(days=7)

    try:
        return date_parser.parse(date_str).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_datetime(value: str) -> datetime:
    """Parse a transaction timestamp.

    Accepts anything ``parse_date`` accepts (taken as midnight) or a full
    timestamp such as "2024-08-01T14:30:00+02:00". Aware values are converted
    to naive UTC.

    Raises:
        ValueError: If the string cannot be parsed
    """
    text = value.strip()
    try:
        parsed = date_parser.isoparse(text)
    except ValueError:
        return start_of_day(parse_date(text))
    return to_naive_utc(parsed)


def get_date_range(period: str, week_start: int = 0) -> tuple[date, date]:
    """Get start and end dates (both inclusive) for a named period.

    Args:
        period: Period string (this-month, this-year, this-week, last-month, last-year, last-week)
        week_start: Weekday index that starts a week (0 = Monday)

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = date.today()
    this_week = today - timedelta(days=(today.weekday() - week_start) % 7)

    if period == "this-month":
        return (today.replace(day=1), today)

    elif period == "this-year":
        return (today.replace(month=1, day=1), today)

    elif period == "this-week":
        return (this_week, today)

    elif period == "last-month":
        start_date = (today - relativedelta(months=1)).replace(day=1)
        end_date = today.replace(day=1) - timedelta(days=1)
        return (start_date, end_date)

    elif period == "last-year":
        start_date = today.replace(month=1, day=1) - relativedelta(years=1)
        end_date = today.replace(month=1, day=1) - timedelta(days=1)
        return (start_date, end_date)

    elif period == "last-week":
        start_date = this_week - timedelta(days=7)
        return (start_date, start_date + timedelta(days=6))

    else:
        raise ValueError(
            f"Unknown period: '{period}'. Supported periods: this-month, this-year, "
            "this-week, last-month, last-year, last-week"
        )
