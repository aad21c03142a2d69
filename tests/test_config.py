"""Tests for environment-driven settings."""

import pytest

from fundledger.config import get_settings, parse_weekday


def test_defaults(tmp_path):
    settings = get_settings()

    assert settings.database_path == str(tmp_path / "default.db")
    assert settings.log_level == "WARNING"
    assert settings.week_start == 0
    assert settings.page_size == 50
    assert settings.currency == "USD"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FUNDLEDGER_LOG_LEVEL", "debug")
    monkeypatch.setenv("FUNDLEDGER_WEEK_START", "Sunday")
    monkeypatch.setenv("FUNDLEDGER_PAGE_SIZE", "20")
    monkeypatch.setenv("FUNDLEDGER_CURRENCY", "sek")
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.log_level == "DEBUG"
    assert settings.week_start == 6
    assert settings.page_size == 20
    assert settings.currency == "SEK"


@pytest.mark.parametrize("value,expected", [("monday", 0), (" Wednesday ", 2), ("6", 6)])
def test_parse_weekday(value, expected):
    assert parse_weekday(value) == expected


def test_parse_weekday_rejects_unknown():
    with pytest.raises(ValueError, match="Unknown weekday"):
        parse_weekday("someday")


def test_unknown_log_level_is_rejected(monkeypatch):
    monkeypatch.setenv("FUNDLEDGER_LOG_LEVEL", "loud")
    get_settings.cache_clear()

    with pytest.raises(ValueError, match="Unknown log level"):
        get_settings()
