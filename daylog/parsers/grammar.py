"""Turn tokenized day-log lines into LogEntry models.

The parser walks the lines in order and carries a running date context:
time-only timestamps land on ``current_date``, a full ``YYYY-MM-DD HH:MM``
timestamp moves the context to that day, and a clock that goes backward is
read as having crossed midnight. Every line resolves to either an entry or
an error; a bad line is recorded and skipped so that one pass reports every
problem in the file.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Union

from daylog import config
from daylog.date_utils import next_day, start_of_day, whole_hours_between
from daylog.errors import ParseError
from daylog.models import (
    MARKER_DESCRIPTIONS,
    LogEntry,
    ParseErrorInfo,
    ParserSettings,
    ParseResult,
    TokenizedLine,
    TokenType,
)
from daylog.parsers.duration import parse_duration
from daylog.parsers.tokenizer import tokenize

logger = logging.getLogger("daylog.parser")

LineOutcome = Union[LogEntry, ParseErrorInfo]

_STATE_MARKER_KINDS: list[tuple[TokenType, str]] = [
    (TokenType.END_MARKER, "end"),
    (TokenType.PAUSE_MARKER, "pause"),
    (TokenType.ABANDON_MARKER, "abandon"),
]


class LogParser:
    """Single-use parser holding the state of one parse run.

    Build a fresh instance per run (``parse_log`` does this); the date
    context and accumulated entries are never shared between runs.
    """

    def __init__(
        self,
        reference_date: Optional[datetime] = None,
        settings: Optional[ParserSettings] = None,
    ) -> None:
        self.settings = settings or config.default_parser_settings()
        self.current_date = start_of_day(reference_date or datetime.now())
        self.last_timestamp: Optional[datetime] = None
        self.entries: list[LogEntry] = []
        self.errors: list[ParseErrorInfo] = []
        self.warnings: list[str] = []
        self._used = False

    # ── Timestamps ──────────────────────────────────────────────────

    def parse_timestamp(self, value: str, line_number: int) -> datetime:
        date_part, _, time_part = value.rpartition(" ")
        hours, minutes, seconds = self._clock_values(time_part, value, line_number)

        if date_part:
            try:
                day = datetime.strptime(date_part.strip(), "%Y-%m-%d")
            except ValueError:
                raise ParseError(f'Invalid timestamp: "{value}"', line_number) from None
            timestamp = day.replace(hour=hours, minute=minutes, second=seconds)
            self.current_date = start_of_day(day)
            self.last_timestamp = timestamp
            return timestamp

        timestamp = self.current_date.replace(hour=hours, minute=minutes, second=seconds)

        if self.last_timestamp is not None and timestamp < self.last_timestamp:
            self.current_date = next_day(self.current_date)
            timestamp = self.current_date.replace(hour=hours, minute=minutes, second=seconds)
            self.warnings.append(
                f"Line {line_number}: Time went backward ({value}), assuming next day"
            )

        if self.last_timestamp is not None:
            gap_hours = whole_hours_between(self.last_timestamp, timestamp)
            if gap_hours > self.settings.largeGapHours:
                self.warnings.append(
                    f"Line {line_number}: Large time gap detected ({gap_hours} hours)"
                )

        self.last_timestamp = timestamp
        return timestamp

    @staticmethod
    def _clock_values(time_part: str, value: str, line_number: int) -> tuple[int, int, int]:
        pieces = time_part.split(":")
        if len(pieces) not in (2, 3) or not all(p.isdigit() for p in pieces):
            raise ParseError(f'Invalid time format: "{value}"', line_number)
        hours, minutes = int(pieces[0]), int(pieces[1])
        seconds = int(pieces[2]) if len(pieces) == 3 else 0
        if hours > 23 or minutes > 59 or seconds > 59:
            raise ParseError(f'Invalid time values: "{value}"', line_number)
        return hours, minutes, seconds

    # ── Field helpers ───────────────────────────────────────────────

    @staticmethod
    def _minutes(line: TokenizedLine, token_type: TokenType, label: str) -> Optional[int]:
        token = line.first(token_type)
        if token is None:
            return None
        try:
            return parse_duration(token.value)
        except ParseError as exc:
            raise ParseError(f"Invalid {label}: {exc.message}", line.lineNumber) from exc

    def _project(self, line: TokenizedLine) -> Optional[str]:
        projects = line.find_all(TokenType.PROJECT)
        if not projects:
            return None
        if len(projects) > 1:
            self.warnings.append(
                f"Line {line.lineNumber}: Multiple projects given, using @{projects[-1].value}"
            )
        return projects[-1].value

    # ── Resume markers ──────────────────────────────────────────────

    def resolve_resume_marker(self, marker: str, line_number: int) -> str:
        """Resolve ``prev`` or ``N`` against the entries parsed so far.

        ``N`` numbers every top-level line, state markers included, so a
        number that lands on a marker is not a task.
        """
        top_level = [entry for entry in self.entries if entry.indentLevel == 0]

        if marker == "prev":
            for entry in reversed(top_level):
                if entry.description and not entry.is_marker and not entry.descriptionFromTag:
                    return entry.description
            raise ParseError("No previous task to resume", line_number)

        index = int(marker)
        if index < 1 or index > len(top_level) or top_level[index - 1].is_marker:
            raise ParseError(f"Task @{marker} not found", line_number)
        return top_level[index - 1].description

    # ── Lines ───────────────────────────────────────────────────────

    def _build_entry(self, line: TokenizedLine) -> LogEntry:
        timestamp_token = line.first(TokenType.TIMESTAMP)
        if timestamp_token is None:
            raise ParseError("Missing timestamp", line.lineNumber)
        timestamp = self.parse_timestamp(timestamp_token.value, line.lineNumber)

        description_token = line.first(TokenType.DESCRIPTION)
        tags = [t.value for t in line.find_all(TokenType.TAG)]
        remark_token = line.first(TokenType.REMARK)
        remark = remark_token.value if remark_token else None
        state_token = line.first(TokenType.STATE_SUFFIX)
        state = state_token.value if state_token else None

        resume_token = line.first(TokenType.RESUME_MARKER)
        if resume_token is not None:
            project = self._project(line)
            if resume_token.value == "resume":
                # Bare @resume: the caller resolves it against stored paused sessions.
                if description_token is None and not tags and project is None:
                    description = ""
                else:
                    description = description_token.value if description_token else (tags[0] if tags else "")
            else:
                description = self.resolve_resume_marker(resume_token.value, line.lineNumber)
            entry = LogEntry(
                timestamp=timestamp,
                description=description,
                project=project,
                tags=tags,
                estimateMinutes=self._minutes(line, TokenType.ESTIMATE, "estimate"),
                explicitDurationMinutes=self._minutes(line, TokenType.EXPLICIT_DURATION, "duration"),
                remark=remark,
                indentLevel=line.indentLevel,
                lineNumber=line.lineNumber,
                state=state,
                resumeMarkerValue=resume_token.value,
            )
            return entry

        for token_type, kind in _STATE_MARKER_KINDS:
            if line.first(token_type) is not None:
                entry = LogEntry(
                    timestamp=timestamp,
                    description=MARKER_DESCRIPTIONS[kind],
                    tags=[],
                    remark=remark,
                    indentLevel=0,
                    lineNumber=line.lineNumber,
                    kind=kind,
                )
                return entry

        if description_token is None and not tags:
            raise ParseError("Missing description or tags", line.lineNumber)

        from_tag = description_token is None
        entry = LogEntry(
            timestamp=timestamp,
            description=tags[0] if from_tag else description_token.value,
            project=self._project(line),
            tags=tags,
            estimateMinutes=self._minutes(line, TokenType.ESTIMATE, "estimate"),
            explicitDurationMinutes=self._minutes(line, TokenType.EXPLICIT_DURATION, "duration"),
            remark=remark,
            indentLevel=line.indentLevel,
            lineNumber=line.lineNumber,
            state=state,
            descriptionFromTag=from_tag,
        )
        return entry

    def _parse_line(self, line: TokenizedLine) -> LineOutcome:
        """Resolve one line to an entry, or to the error that rejected it."""
        try:
            return self._build_entry(line)
        except ParseError as exc:
            if exc.line is None:
                exc.line = line.lineNumber
            return exc.to_info()

    def parse(self, content: str) -> ParseResult:
        if self._used:
            raise RuntimeError("LogParser instances are single-use; create a new parser per run")
        self._used = True

        tokenized = tokenize(content)
        line_errors: list[ParseErrorInfo] = []

        for line in tokenized.lines:
            if line is None:
                continue
            outcome = self._parse_line(line)
            if isinstance(outcome, ParseErrorInfo):
                line_errors.append(outcome)
            else:
                self.entries.append(outcome)

        self.errors = sorted(
            [*tokenized.errors, *line_errors],
            key=lambda err: err.line if err.line is not None else 0,
        )

        logger.debug(
            "Parsed %d entr%s with %d error(s) and %d warning(s)",
            len(self.entries),
            "y" if len(self.entries) == 1 else "ies",
            len(self.errors),
            len(self.warnings),
        )
        return ParseResult(
            entries=tuple(self.entries),
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
        )


def parse_log(
    content: str,
    reference_date: Optional[datetime] = None,
    settings: Optional[ParserSettings] = None,
) -> ParseResult:
    """Parse a whole day log with a fresh parser."""
    return LogParser(reference_date, settings).parse(content)
