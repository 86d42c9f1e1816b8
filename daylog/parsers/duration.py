"""Duration literals: ``2h``, ``30m``, ``1h30m``."""
from __future__ import annotations

import re
from typing import Any

from daylog.errors import ParseError

_DURATION_PATTERN = re.compile(r"^(?:(\d+)h)?(?:(\d+)m)?$")


def parse_duration(value: Any) -> int:
    """Parse a duration literal into whole minutes.

    Hours are unbounded. Minutes must be below 60 when hours are also given
    (``1h30m``); a minutes-only literal such as ``90m`` is taken as-is.
    Raises ParseError quoting the literal for anything else.
    """
    if not isinstance(value, str) or not value.strip():
        raise ParseError("Duration cannot be empty")

    match = _DURATION_PATTERN.match(value.strip())
    if not match:
        raise ParseError(f'Invalid duration format: "{value}"')

    hours_raw, minutes_raw = match.groups()
    hours = int(hours_raw) if hours_raw else 0
    minutes = int(minutes_raw) if minutes_raw else 0

    # Covers "0h", "0m" and "0h0m" as well as a degenerate empty match.
    if hours == 0 and minutes == 0:
        raise ParseError(f'Duration must specify hours and/or minutes: "{value}"')

    if hours_raw is not None and minutes >= 60:
        raise ParseError(f'Minutes must be less than 60: "{value}"')

    return hours * 60 + minutes


def format_duration(minutes: int) -> str:
    """Inverse of parse_duration: ``150 -> "2h30m"``, ``45 -> "45m"``."""
    if minutes < 0:
        raise ValueError("Minutes cannot be negative")
    hours, mins = divmod(int(minutes), 60)
    if hours and mins:
        return f"{hours}h{mins}m"
    if hours:
        return f"{hours}h"
    return f"{mins}m"
