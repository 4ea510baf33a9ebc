# src/infrastructure/calendar/holiday_provider.py

import json
import logging
import os
from datetime import date, datetime
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo

from src.domain.calendar import HolidayCalendar

logger = logging.getLogger(__name__)

BUNDLED_CALENDAR_FILE = Path(__file__).with_name("holidays.json")
DEFAULT_VENUE_TIMEZONE = "Europe/London"


def venue_timezone() -> ZoneInfo:
    return ZoneInfo(os.getenv("VENUE_TIMEZONE", DEFAULT_VENUE_TIMEZONE))


def venue_today(now: datetime | None = None) -> date:
    """Today's date in the venue's local time zone. `now` must be timezone-aware."""
    if now is None:
        return datetime.now(venue_timezone()).date()
    return now.astimezone(venue_timezone()).date()


def load_holiday_calendar(path: str | os.PathLike | None = None) -> HolidayCalendar:
    source = Path(path or os.getenv("HOLIDAY_CALENDAR_FILE") or BUNDLED_CALENDAR_FILE)
    with source.open(encoding="utf-8") as handle:
        calendar = HolidayCalendar.from_dict(json.load(handle))

    logger.info("Loaded holiday calendar from %s covering years %s", source, calendar.years)
    current_year = venue_today().year
    for year in (current_year, current_year + 1):
        if not calendar.covers(year):
            logger.warning(
                "Holiday calendar has no data for %s; dates in that year will use weekday pricing "
                "and Monday closures. Update %s.",
                year,
                source,
            )
    return calendar


@lru_cache(maxsize=1)
def get_holiday_calendar() -> HolidayCalendar:
    return load_holiday_calendar()
