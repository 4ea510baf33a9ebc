# tests/unit/test_holiday_provider.py

from datetime import date, datetime, timezone

from src.infrastructure.calendar.holiday_provider import venue_today


def test_summer_night_rolls_over_in_london(monkeypatch):
    monkeypatch.delenv("VENUE_TIMEZONE", raising=False)

    # 23:30 UTC is already 00:30 on the next day under BST.
    assert venue_today(datetime(2026, 7, 1, 23, 30, tzinfo=timezone.utc)) == date(2026, 7, 2)


def test_winter_night_stays_on_the_same_day_in_london(monkeypatch):
    monkeypatch.delenv("VENUE_TIMEZONE", raising=False)

    assert venue_today(datetime(2026, 1, 15, 23, 30, tzinfo=timezone.utc)) == date(2026, 1, 15)


def test_configured_timezone_is_used(monkeypatch):
    monkeypatch.setenv("VENUE_TIMEZONE", "America/New_York")

    assert venue_today(datetime(2026, 7, 2, 2, 0, tzinfo=timezone.utc)) == date(2026, 7, 1)


def test_without_an_instant_uses_the_clock(monkeypatch):
    monkeypatch.setenv("VENUE_TIMEZONE", "UTC")

    before = datetime.now(timezone.utc).date()
    today = venue_today()
    after = datetime.now(timezone.utc).date()

    assert today in (before, after)
