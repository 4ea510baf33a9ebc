# src/domain/calendar.py

"""
Calendar classification for the farm's opening and pricing rules.

Holiday dates are data, not code: a HolidayCalendar is built from per-year
bank-holiday dates and school-holiday ranges supplied by a provider
(see src.infrastructure.calendar.holiday_provider). A year the calendar has
no data for classifies every date as a non-holiday, so the data must be
refreshed before each new year.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, Tuple

SATURDAY = 5
SUNDAY = 6
MONDAY = 0


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date
    name: str = ""

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class HolidayYear:
    year: int
    bank_holidays: frozenset = field(default_factory=frozenset)
    school_holidays: Tuple[DateRange, ...] = ()


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _parse_day(value: str) -> date:
    return date.fromisoformat(value)


class HolidayCalendar:
    """Classifies dates against the loaded holiday data."""

    def __init__(self, years: Iterable[HolidayYear] = ()):
        self._years: Dict[int, HolidayYear] = {item.year: item for item in years}

    @classmethod
    def from_dict(cls, data: dict) -> "HolidayCalendar":
        """
        Build a calendar from the provider's JSON layout:

            {"years": {"2026": {"bank_holidays": ["2026-01-01", ...],
                                "school_holidays": [{"start": ..., "end": ..., "name": ...}]}}}
        """
        years = []
        for year_key, entry in (data.get("years") or {}).items():
            year = int(year_key)
            bank_holidays = frozenset(
                _parse_day(value) for value in entry.get("bank_holidays", [])
            )
            school_holidays = tuple(
                DateRange(
                    start=_parse_day(item["start"]),
                    end=_parse_day(item["end"]),
                    name=item.get("name", ""),
                )
                for item in entry.get("school_holidays", [])
            )
            for item in school_holidays:
                if item.end < item.start:
                    raise ValueError(
                        f"School holiday range ends before it starts: {item.start} -> {item.end}"
                    )
            years.append(
                HolidayYear(
                    year=year,
                    bank_holidays=bank_holidays,
                    school_holidays=school_holidays,
                )
            )
        return cls(years)

    @property
    def years(self) -> Tuple[int, ...]:
        return tuple(sorted(self._years))

    def covers(self, year: int) -> bool:
        return year in self._years

    def is_weekend(self, day: date) -> bool:
        return _as_date(day).weekday() in (SATURDAY, SUNDAY)

    def is_bank_holiday(self, day: date) -> bool:
        day = _as_date(day)
        entry = self._years.get(day.year)
        return entry is not None and day in entry.bank_holidays

    def is_school_holiday(self, day: date) -> bool:
        day = _as_date(day)
        # Christmas ranges are filed under the year they start in.
        for year in (day.year, day.year - 1):
            entry = self._years.get(year)
            if entry is None:
                continue
            if any(day in period for period in entry.school_holidays):
                return True
        return False

    def is_holiday_pricing(self, day: date) -> bool:
        return (
            self.is_weekend(day)
            or self.is_bank_holiday(day)
            or self.is_school_holiday(day)
        )

    def is_closed_day(self, day: date) -> bool:
        day = _as_date(day)
        if day.month == 12 and day.day == 25:
            return True
        if day.month == 1 and day.day == 1:
            return True
        return (
            day.weekday() == MONDAY
            and not self.is_bank_holiday(day)
            and not self.is_school_holiday(day)
        )


def is_past_date(day: date, today: date) -> bool:
    """Same-day bookings are allowed; only days before today are past."""
    return _as_date(day) < today
