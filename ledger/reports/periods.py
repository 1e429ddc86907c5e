"""
Period Selection

Turns a user's month/year choice into a concrete, inclusive date range.

Two ranges are used on purpose:
- The dashboard fetches only the current month (the common path).
- Reports fetch the whole selected year once and switch months in memory,
  trading one wider query for instant month switching.

Everything here is a pure function of its arguments; the only state is
the caller's current selection.
"""

import calendar
import re
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ledger.config import get_settings


_MONTH_KEY = re.compile(r"([0-9]{4})-([0-9]{2})")


class DateRange(BaseModel):
    """An inclusive range of calendar days."""
    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode='after')
    def validate_order(self) -> 'DateRange':
        if self.end < self.start:
            raise ValueError("Range end cannot be before start")
        return self

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


class MonthOption(BaseModel):
    """One entry of the month picker."""
    model_config = ConfigDict(frozen=True)

    month: int = Field(ge=1, le=12)
    label: str


def month_options() -> list[MonthOption]:
    """The twelve months, January first. Independent of any year."""
    return [
        MonthOption(month=number, label=calendar.month_name[number])
        for number in range(1, 13)
    ]


def year_options(
    today: Optional[date] = None,
    window: Optional[int] = None,
) -> list[int]:
    """
    Selectable years, newest first.

    Covers the current year and the `window` years before it
    (LEDGER_YEAR_WINDOW, 5 by default).
    """
    today = today or date.today()
    if window is None:
        window = get_settings().ledger.year_window
    return list(range(today.year, today.year - window - 1, -1))


def _check_month(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    if not date.min.year <= year <= date.max.year:
        raise ValueError(f"Year out of range: {year}")


def month_range(year: int, month: int) -> DateRange:
    """First through last day of a month."""
    _check_month(year, month)
    last_day = calendar.monthrange(year, month)[1]
    return DateRange(start=date(year, month, 1), end=date(year, month, last_day))


def year_range(year: int) -> DateRange:
    """January 1st through December 31st."""
    _check_month(year, 1)
    return DateRange(start=date(year, 1, 1), end=date(year, 12, 31))


def current_month_range(today: Optional[date] = None) -> DateRange:
    """The month containing `today` (dashboard view)."""
    today = today or date.today()
    return month_range(today.year, today.month)


def month_key(year: int, month: int) -> str:
    """Format a month as YYYY-MM."""
    _check_month(year, month)
    return f"{year:04d}-{month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    """
    Parse a YYYY-MM month key into (year, month).

    Raises:
        ValueError: If the key is not a valid YYYY-MM month
    """
    match = _MONTH_KEY.fullmatch(key.strip()) if isinstance(key, str) else None
    if match is None:
        raise ValueError(f"Invalid month key (expected YYYY-MM): {key!r}")
    year, month = int(match.group(1)), int(match.group(2))
    _check_month(year, month)
    return year, month
