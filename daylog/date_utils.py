"""Shared date helpers for log timestamps."""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def start_of_day(value: datetime | date) -> datetime:
    """Midnight (naive, local) of the given day."""
    return datetime(value.year, value.month, value.day)


def next_day(value: datetime) -> datetime:
    return start_of_day(value) + timedelta(days=1)


def same_day(left: datetime, right: datetime) -> bool:
    return left.date() == right.date()


def add_minutes(value: datetime, minutes: int) -> datetime:
    return value + timedelta(minutes=minutes)


def whole_hours_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 3600)


def format_log_timestamp(value: datetime, full: bool = False) -> str:
    """Render a timestamp the way it is written in a day log."""
    clock = value.strftime("%H:%M") if not value.second else value.strftime("%H:%M:%S")
    if full:
        return f"{value.strftime('%Y-%m-%d')} {clock}"
    return clock


def parse_reference_date(value: Any) -> Optional[datetime]:
    """Coerce a caller-supplied reference date (date, datetime, or ISO text)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    if isinstance(value, date):
        return start_of_day(value)
    if isinstance(value, str):
        token = value.strip()
        if not token:
            return None
        if _DATE_ONLY_RE.match(token):
            return start_of_day(date.fromisoformat(token))
        parsed = datetime.fromisoformat(token.replace("Z", "+00:00"))
        return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed
    raise TypeError(f"Unsupported reference date: {value!r}")
