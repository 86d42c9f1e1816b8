"""Pydantic models for parsed day logs."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SessionState = Literal["working", "paused", "completed", "abandoned"]
EntryKind = Literal["task", "end", "pause", "abandon"]

# Sentinel descriptions kept for compatibility with stored logs.
END_DESCRIPTION = "__END__"
PAUSE_DESCRIPTION = "__PAUSE__"
ABANDON_DESCRIPTION = "__ABANDON__"

MARKER_DESCRIPTIONS: dict[str, str] = {
    "end": END_DESCRIPTION,
    "pause": PAUSE_DESCRIPTION,
    "abandon": ABANDON_DESCRIPTION,
}

# State an entry takes when the next sibling is a state marker.
MARKER_STATES: dict[str, str] = {
    "end": "completed",
    "pause": "paused",
    "abandon": "abandoned",
}


# ── Tokens ─────────────────────────────────────────────────────────

class TokenType(str, Enum):
    TIMESTAMP = "TIMESTAMP"
    DESCRIPTION = "DESCRIPTION"
    PROJECT = "PROJECT"
    TAG = "TAG"
    ESTIMATE = "ESTIMATE"
    EXPLICIT_DURATION = "EXPLICIT_DURATION"
    REMARK = "REMARK"
    STATE_SUFFIX = "STATE_SUFFIX"
    RESUME_MARKER = "RESUME_MARKER"
    END_MARKER = "END_MARKER"
    PAUSE_MARKER = "PAUSE_MARKER"
    ABANDON_MARKER = "ABANDON_MARKER"


class Token(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: TokenType
    value: str
    position: int = 0  # 0-based offset into the line, indentation included


class TokenizedLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    tokens: tuple[Token, ...] = ()
    indentLevel: int = Field(default=0, ge=0)
    lineNumber: int = Field(ge=1)
    rawLine: str = ""

    def first(self, token_type: TokenType) -> Optional[Token]:
        return next((t for t in self.tokens if t.type == token_type), None)

    def find_all(self, token_type: TokenType) -> list[Token]:
        return [t for t in self.tokens if t.type == token_type]


# ── Parser output ──────────────────────────────────────────────────

class LogEntry(BaseModel):
    timestamp: datetime
    description: str = ""
    project: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    estimateMinutes: Optional[int] = None
    explicitDurationMinutes: Optional[int] = None
    remark: Optional[str] = None
    indentLevel: int = Field(default=0, ge=0)
    lineNumber: int = Field(ge=1)
    state: Optional[SessionState] = None
    resumeMarkerValue: Optional[str] = None
    kind: EntryKind = "task"
    descriptionFromTag: bool = False  # description was filled in from the first tag

    @property
    def is_marker(self) -> bool:
        return self.kind != "task"


class ProcessedLogEntry(LogEntry):
    endTime: Optional[datetime] = None


class ParseErrorInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    line: Optional[int] = None
    column: Optional[int] = None

    def describe(self) -> str:
        location = f" at line {self.line}" if self.line is not None else ""
        return f"{self.message}{location}"


class ParseResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    entries: tuple[LogEntry, ...] = ()
    errors: tuple[ParseErrorInfo, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


class ParserSettings(BaseModel):
    largeGapHours: int = Field(default=8, ge=0)


# ── Session reconstruction ─────────────────────────────────────────

class PlannedSession(BaseModel):
    """A non-marker entry ready to be inserted by the storage layer."""
    entryIndex: int
    startTime: datetime
    endTime: Optional[datetime] = None
    description: str
    project: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    estimateMinutes: Optional[int] = None
    explicitDurationMinutes: Optional[int] = None
    remark: Optional[str] = None
    state: SessionState = "working"
    indentLevel: int = 0
    lineNumber: int = 1
    parentIndex: Optional[int] = None  # index into SessionPlan.sessions
    resumeMarkerValue: Optional[str] = None


class SessionPlan(BaseModel):
    sessions: list[PlannedSession] = Field(default_factory=list)
    sessionCount: int = 0
    interruptionCount: int = 0
