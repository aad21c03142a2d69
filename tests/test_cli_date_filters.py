"""Tests for CLI date filter helpers."""

from datetime import date, datetime

import click
import pytest

from fundledger.cli.date_filters import (
    PERIOD_FLAGS,
    parse_when_or_exit,
    period_options,
    pop_period_flags,
    resolve_cli_date_range,
)
from fundledger.utils.date_parser import get_date_range


def _ctx() -> click.Context:
    return click.Context(click.Command("test"))


def test_period_options_add_one_flag_per_period():
    @period_options
    @click.command()
    def command(**kwargs):
        pass

    names = {param.name for param in command.params}
    assert names == {period.replace("-", "_") for period in PERIOD_FLAGS}


def test_pop_period_flags_removes_flags_from_kwargs():
    kwargs = {"account": "Checking", **{p.replace("-", "_"): p == "last-week" for p in PERIOD_FLAGS}}

    flags = pop_period_flags(kwargs)

    assert kwargs == {"account": "Checking"}
    assert [p for p, is_set in flags.items() if is_set] == ["last-week"]


def test_rejects_multiple_periods(capsys):
    with pytest.raises(click.exceptions.Exit) as excinfo:
        resolve_cli_date_range(
            _ctx(),
            start_date=None,
            end_date=None,
            period_flags={"this-month": True, "last-month": True},
        )

    assert excinfo.value.exit_code == 1
    assert "Only one period option" in capsys.readouterr().err


def test_rejects_period_with_explicit_dates(capsys):
    with pytest.raises(click.exceptions.Exit) as excinfo:
        resolve_cli_date_range(
            _ctx(),
            start_date="2024-01-01",
            end_date=None,
            period_flags={"this-month": True},
        )

    assert excinfo.value.exit_code == 1
    assert "cannot be combined" in capsys.readouterr().err


def test_period_flag_uses_configured_week_start(monkeypatch):
    from fundledger.config import get_settings

    monkeypatch.setenv("FUNDLEDGER_WEEK_START", "sunday")
    get_settings.cache_clear()

    start, end = resolve_cli_date_range(
        _ctx(), start_date=None, end_date=None, period_flags={"last-week": True}
    )

    assert (start, end) == get_date_range("last-week", week_start=6)
    assert start.weekday() == 6


def test_parses_explicit_dates():
    start, end = resolve_cli_date_range(
        _ctx(), start_date="2024-01-02", end_date="Jan 5 2024", period_flags={}
    )

    assert (start, end) == (date(2024, 1, 2), date(2024, 1, 5))


def test_default_range_only_when_no_dates_given():
    default_range = (date(2020, 1, 1), date(2020, 1, 31))

    assert resolve_cli_date_range(
        _ctx(), start_date=None, end_date=None, period_flags={}, default_range=default_range
    ) == default_range
    assert resolve_cli_date_range(
        _ctx(), start_date="2021-05-01", end_date=None, period_flags={}, default_range=default_range
    ) == (date(2021, 5, 1), None)
    assert resolve_cli_date_range(_ctx(), start_date=None, end_date=None, period_flags={}) == (None, None)


def test_invalid_start_date(capsys):
    with pytest.raises(click.exceptions.Exit) as excinfo:
        resolve_cli_date_range(_ctx(), start_date="not-a-date", end_date=None, period_flags={})

    assert excinfo.value.exit_code == 1
    assert "Invalid start date" in capsys.readouterr().err


def test_parse_when_or_exit():
    assert parse_when_or_exit(_ctx(), None) is None
    assert parse_when_or_exit(_ctx(), "2024-08-01") == datetime(2024, 8, 1)
    assert parse_when_or_exit(_ctx(), "2024-08-01T14:30:00+02:00") == datetime(2024, 8, 1, 12, 30)

    with pytest.raises(click.exceptions.Exit):
        parse_when_or_exit(_ctx(), "someday")
