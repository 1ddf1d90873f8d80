from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from dateutil.relativedelta import relativedelta


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def add_months(value: date, months: int) -> date:
    """Calendar month arithmetic; Jan 31 + 1 month is the last day of February."""
    return value + relativedelta(months=months)


def month_bounds(value: date) -> tuple[date, date]:
    start = value.replace(day=1)
    end = start + relativedelta(months=1, days=-1)
    return start, end


def to_date(value: Any) -> Optional[date]:
    """Normalize stored date values (date, datetime, ISO string, empty) to a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return parse_iso_date(text)
        return to_datetime(text).date()
    raise TypeError(f"Unsupported date value type: {type(value)!r}")


def to_datetime(value: Any) -> Optional[datetime]:
    """Normalize stored timestamps (datetime, ISO string with optional Z) to a datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    raise TypeError(f"Unsupported datetime value type: {type(value)!r}")
