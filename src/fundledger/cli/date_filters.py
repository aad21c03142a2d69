"""CLI helpers for date range resolution."""

from datetime import date

import click

from fundledger.config import get_settings
from fundledger.utils.date_parser import get_date_range, parse_date, parse_datetime

PERIOD_FLAGS = ("this-month", "this-year", "this-week", "last-month", "last-year", "last-week")


def period_options(func):
    """Attach the --this-month ... --last-week flags to a command."""
    for period in reversed(PERIOD_FLAGS):
        func = click.option(
            f"--{period}",
            period.replace("-", "_"),
            is_flag=True,
            help=f"Limit to {period.replace('-', ' ')}",
        )(func)
    return func


def pop_period_flags(kwargs: dict) -> dict[str, bool]:
    return {period: kwargs.pop(period.replace("-", "_")) for period in PERIOD_FLAGS}


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
    period_flags: dict[str, bool],
    default_range: tuple[date, date] | None = None,
) -> tuple[date | None, date | None]:
    """Resolve CLI date range from period flags or explicit dates."""
    period_count = sum(1 for is_set in period_flags.values() if is_set)
    week_start = get_settings().week_start

    if period_count > 1:
        click.echo(
            "Error: Only one period option (--this-month, --this-year, --this-week, --last-month, --last-year, --last-week) can be specified at a time.",
            err=True,
        )
        ctx.exit(1)

    if period_count > 0 and (start_date or end_date):
        click.echo(
            "Error: Period options (--this-month, --this-year, etc.) cannot be combined with --start-date or --end-date.",
            err=True,
        )
        ctx.exit(1)

    start = None
    end = None

    if period_count == 1:
        for period, is_set in period_flags.items():
            if is_set:
                start, end = get_date_range(period, week_start=week_start)
                break
    else:
        if start_date:
            try:
                start = parse_date(start_date, week_start=week_start)
            except ValueError as e:
                click.echo(f"Error: Invalid start date: {e}", err=True)
                ctx.exit(1)

        if end_date:
            try:
                end = parse_date(end_date, week_start=week_start)
            except ValueError as e:
                click.echo(f"Error: Invalid end date: {e}", err=True)
                ctx.exit(1)

        if start is None and end is None and default_range is not None:
            start, end = default_range

    return start, end


def parse_when_or_exit(ctx, value: str | None):
    """Parse a --date option into a naive UTC datetime, exiting on bad input."""
    if value is None:
        return None
    try:
        return parse_datetime(value)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)
