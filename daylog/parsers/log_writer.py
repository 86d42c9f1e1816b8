"""Write log entries back out as day-log notation."""
from __future__ import annotations

from typing import Iterable, Optional, Sequence

from daylog.date_utils import format_log_timestamp, same_day
from daylog.models import LogEntry, ParseErrorInfo
from daylog.parsers.duration import format_duration

ERROR_BANNER_HEADER = "# PARSING ERRORS - Fix these issues and save the file"
ERROR_BANNER_FOOTER = "# " + "─" * 56

_MARKER_WORDS = {"end": "@end", "pause": "@pause", "abandon": "@abandon"}

# Only non-default terminal states are written; "completed" is implied by an end.
_WRITTEN_STATES = {"paused", "abandoned"}


def format_entry(entry: LogEntry, *, full_timestamp: bool = False, depth: Optional[int] = None) -> str:
    """Render one entry as a single log line.

    ``depth`` is the nesting depth (two spaces each); it defaults to the
    entry's own indent level.
    """
    parts = [format_log_timestamp(entry.timestamp, full=full_timestamp)]

    if entry.is_marker:
        parts.append(_MARKER_WORDS[entry.kind])
        if entry.remark:
            parts.append(f"# {entry.remark}")
        return " ".join(parts)

    if entry.resumeMarkerValue and not entry.description:
        parts.append("@resume")
    elif entry.description and not (entry.descriptionFromTag and entry.tags):
        parts.append(entry.description)

    if entry.project:
        parts.append(f"@{entry.project}")
    parts.extend(f"+{tag}" for tag in entry.tags)
    if entry.estimateMinutes:
        parts.append(f"~{format_duration(entry.estimateMinutes)}")
    if entry.explicitDurationMinutes:
        parts.append(f"({format_duration(entry.explicitDurationMinutes)})")
    if entry.state in _WRITTEN_STATES:
        parts.append(f"->{entry.state}")
    if entry.remark:
        parts.append(f"# {entry.remark}")

    indent = "  " * (entry.indentLevel if depth is None else depth)
    return indent + " ".join(parts)


def _depths(entries: Sequence[LogEntry]) -> list[int]:
    """Normalize raw indent widths into nesting depths."""
    depths: list[int] = []
    stack: list[tuple[int, int]] = []  # (indentLevel, depth)
    for entry in entries:
        while stack and stack[-1][0] >= entry.indentLevel:
            stack.pop()
        depth = stack[-1][1] + 1 if stack else 0
        depths.append(depth)
        stack.append((entry.indentLevel, depth))
    return depths


def format_entries(entries: Sequence[LogEntry]) -> str:
    """Render a whole log, writing the date whenever the day changes."""
    lines: list[str] = []
    previous = None
    for entry, depth in zip(entries, _depths(entries)):
        full = previous is None or not same_day(entry.timestamp, previous)
        lines.append(format_entry(entry, full_timestamp=full, depth=depth))
        previous = entry.timestamp
    return "\n".join(lines) + ("\n" if lines else "")


def annotate_errors(content: str, errors: Iterable[ParseErrorInfo]) -> str:
    """Prepend a comment banner listing parse errors.

    The banner is made of comment lines, so parsing the annotated text again
    ignores it; only the line numbers shift.
    """
    error_lines = [f"# ERROR: {error.describe()}" for error in errors]
    if not error_lines:
        return content
    banner = [
        ERROR_BANNER_HEADER,
        "# Remove these comment lines when done",
        "#",
        *error_lines,
        "#",
        ERROR_BANNER_FOOTER,
        "",
    ]
    return "\n".join([*banner, strip_error_banner(content)])


def strip_error_banner(content: str) -> str:
    """Remove a banner previously added by annotate_errors."""
    if not content.startswith(ERROR_BANNER_HEADER):
        return content
    lines = content.split("\n")
    for index, line in enumerate(lines):
        if line == ERROR_BANNER_FOOTER:
            rest = lines[index + 1:]
            if rest and rest[0] == "":
                rest = rest[1:]
            return "\n".join(rest)
    return content
