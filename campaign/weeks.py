"""Campaign week numbering.

Weeks are counted from January 1 of the date's own year and start on
Sunday: the partial week holding January 1 is week 1, the next Sunday opens
week 2, and so on. This is not ISO-8601 week numbering. Every week number
stored on a log comes from ``week_number``.
"""

from datetime import date, datetime, timedelta
from typing import Union

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import InvalidDate

DateInput = Union[date, datetime, str]


def to_day(value: DateInput) -> date:
    """Normalize a date input to its calendar day.

    Args:
        value: A date, a datetime or an ISO-8601 date/datetime string.
            Aware datetimes are converted to the current time zone first.

    Returns:
        The calendar day, time of day discarded.

    Raises:
        InvalidDate: If the value cannot be interpreted as a date.
    """
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            return timezone.localtime(value).date()
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            parsed_date = parse_date(text)
            if parsed_date is not None:
                return parsed_date
            parsed = parse_datetime(text)
        except ValueError:
            # Well-formed but out of range, e.g. 2024-02-30
            raise InvalidDate(value) from None
        if parsed is not None:
            return to_day(parsed)
    raise InvalidDate(value)


def week_number(value: DateInput) -> int:
    """Map a date to its campaign week number.

    Args:
        value: Anything accepted by ``to_day``.

    Returns:
        The week number, starting at 1.

    Raises:
        InvalidDate: If the value cannot be interpreted as a date.
    """
    day = to_day(value)
    new_year = date(day.year, 1, 1)
    day_offset = (day - new_year).days
    # weekday() has Monday = 0; shift to Sunday = 0
    first_weekday_offset = (new_year.weekday() + 1) % 7
    return (day_offset + first_weekday_offset) // 7 + 1


def week_dates(year: int, week: int) -> list[date]:
    """List the days of ``year`` that fall in campaign week ``week``.

    Week 1 and the last week of a year may be shorter than seven days.
    """
    new_year = date(year, 1, 1)
    first_weekday_offset = (new_year.weekday() + 1) % 7
    start = new_year + timedelta(days=(week - 1) * 7 - first_weekday_offset)
    return [
        start + timedelta(days=i)
        for i in range(7)
        if (start + timedelta(days=i)).year == year
    ]
