"""Rebuild session spans and the interruption tree from parsed log entries.

These are whole-log transforms: an entry's end time depends on what comes
after it, so they take the complete entry list of one parse run.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from daylog.date_utils import add_minutes
from daylog.models import (
    MARKER_STATES,
    LogEntry,
    PlannedSession,
    ProcessedLogEntry,
    SessionPlan,
)

logger = logging.getLogger("daylog.sessions")


def _next_sibling_or_parent(entries: Sequence[LogEntry], index: int) -> Optional[LogEntry]:
    """First later entry at the same or a shallower indent.

    Deeper entries in between are nested under ``entries[index]`` and do
    not end it.
    """
    indent = entries[index].indentLevel
    for candidate in entries[index + 1:]:
        if candidate.indentLevel <= indent:
            return candidate
    return None


def calculate_end_times(entries: Sequence[LogEntry]) -> list[ProcessedLogEntry]:
    """Infer each entry's end time; output is index-aligned with the input.

    An explicit duration wins. Otherwise the next sibling-or-parent's start
    is the end, and a state marker in that position also sets the state.
    Entries with nothing after them stay open. Markers carry no end time.
    """
    processed: list[ProcessedLogEntry] = []
    for index, entry in enumerate(entries):
        data = entry.model_dump()

        if entry.is_marker:
            processed.append(ProcessedLogEntry(**data))
            continue

        if entry.explicitDurationMinutes:
            data["endTime"] = add_minutes(entry.timestamp, entry.explicitDurationMinutes)
        else:
            following = _next_sibling_or_parent(entries, index)
            if following is not None:
                data["endTime"] = following.timestamp
                if following.is_marker:
                    data["state"] = MARKER_STATES[following.kind]

        processed.append(ProcessedLogEntry(**data))
    return processed


def build_parent_map(entries: Sequence[LogEntry]) -> dict[int, int]:
    """Map each indented entry's index to the index of the entry it interrupts."""
    parent_map: dict[int, int] = {}
    stack: list[int] = []

    for index, entry in enumerate(entries):
        while stack and entries[stack[-1]].indentLevel >= entry.indentLevel:
            stack.pop()
        if stack:
            parent_map[index] = stack[-1]
        stack.append(index)

    return parent_map


def _ranges_overlap(
    start1: datetime,
    end1: Optional[datetime],
    start2: datetime,
    end2: Optional[datetime],
) -> bool:
    # An open range runs to the end of the log.
    first_still_running = end1 is None or start2 < end1
    second_still_running = end2 is None or start1 < end2
    return first_still_running and second_still_running


def find_self_overlaps(
    processed: Sequence[ProcessedLogEntry],
    parent_map: dict[int, int],
) -> list[str]:
    """Describe top-level entries of one log whose time ranges overlap."""
    top_level = [
        entry
        for index, entry in enumerate(processed)
        if index not in parent_map and not entry.is_marker
    ]

    problems: list[str] = []
    for i, first in enumerate(top_level):
        for second in top_level[i + 1:]:
            if _ranges_overlap(first.timestamp, first.endTime, second.timestamp, second.endTime):
                problems.append(
                    f'Sessions overlap: "{first.description}" (line {first.lineNumber}) '
                    f'and "{second.description}" (line {second.lineNumber})'
                )
    return problems


def reconstruct_sessions(
    entries: Sequence[LogEntry],
    *,
    processed: Optional[Sequence[ProcessedLogEntry]] = None,
    parent_map: Optional[dict[int, int]] = None,
) -> SessionPlan:
    """Prepare the insertable sessions of one log, in log order.

    State markers are folded into their predecessors and dropped; parent
    references point into the returned session list. Callers that already
    hold the end times or parent map for ``entries`` can pass them in.
    """
    if processed is None:
        processed = calculate_end_times(entries)
    if parent_map is None:
        parent_map = build_parent_map(entries)

    plan = SessionPlan()
    position_by_entry: dict[int, int] = {}

    for index, entry in enumerate(processed):
        if entry.is_marker:
            continue

        parent_entry = parent_map.get(index)
        parent_index = position_by_entry.get(parent_entry) if parent_entry is not None else None

        position_by_entry[index] = len(plan.sessions)
        plan.sessions.append(
            PlannedSession(
                entryIndex=index,
                startTime=entry.timestamp,
                endTime=entry.endTime,
                description=entry.description,
                project=entry.project,
                tags=list(entry.tags),
                estimateMinutes=entry.estimateMinutes,
                explicitDurationMinutes=entry.explicitDurationMinutes,
                remark=entry.remark,
                state=entry.state or ("completed" if entry.endTime else "working"),
                indentLevel=entry.indentLevel,
                lineNumber=entry.lineNumber,
                parentIndex=parent_index,
                resumeMarkerValue=entry.resumeMarkerValue,
            )
        )

        if entry.indentLevel == 0:
            plan.sessionCount += 1
        else:
            plan.interruptionCount += 1

    logger.debug(
        "Reconstructed %d session(s) and %d interruption(s)",
        plan.sessionCount,
        plan.interruptionCount,
    )
    return plan
