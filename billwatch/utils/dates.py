"""Calendar helpers shared by clustering, cadence and matching."""

import calendar
import re
from datetime import date, datetime, timedelta

_YMD_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def to_date(value: object) -> date | None:
    """Coerce ``value`` to a calendar date, or ``None`` when it is unparsable.

    Accepts ``date``/``datetime`` objects, ``YYYY-MM-DD`` strings and ISO-8601
    timestamps (a trailing ``Z`` is read as UTC).
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        if _YMD_RE.match(text):
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def add_months(value: date, months: int, *, day: int | None = None) -> date:
    """Shift ``value`` by whole months, clamping the day to the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day or value.day, last_day))
