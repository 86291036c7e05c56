from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from typing import Optional

from finance_api.errors import InvalidMonth, InvalidYear

MIN_YEAR = 1900
FUTURE_YEAR_WINDOW = 10


def compute_month_range(
    year: int,
    month: int,
    *,
    current_year: Optional[int] = None,
) -> tuple[datetime, datetime]:
    """Return the closed UTC range ``[start, end]`` covering one calendar month.

    ``end`` is one second before the first instant of the following month.
    """
    if current_year is None:
        current_year = datetime.now(timezone.utc).year
    if year < MIN_YEAR or year > current_year + FUTURE_YEAR_WINDOW:
        raise InvalidYear(
            f"Year must be between {MIN_YEAR} and {current_year + FUTURE_YEAR_WINDOW}."
        )
    if month < 1 or month > 12:
        raise InvalidMonth("Month must be between 1 and 12.")

    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = shift_month(start, 1) - timedelta(seconds=1)
    return start, end


def shift_month(value: datetime, months: int) -> datetime:
    month_index = (value.year * 12 + value.month - 1) + months
    year = month_index // 12
    month = month_index % 12 + 1
    return value.replace(year=year, month=month, day=1)


def month_label(month: int) -> str:
    if month < 1 or month > 12:
        raise InvalidMonth("Month must be between 1 and 12.")
    return calendar.month_name[month]
