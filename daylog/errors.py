"""Exception types raised by the day-log parser."""
from __future__ import annotations

from typing import Optional

from daylog.models import ParseErrorInfo


class DaylogError(Exception):
    """Base class for daylog errors."""


class ParseError(DaylogError):
    """Raised when a log line (or a literal inside it) cannot be parsed.

    The grammar catches these at the line boundary and records them, so one
    bad line never stops the rest of the log from being parsed.
    """

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        self.message = message
        self.line = line
        self.column = column
        super().__init__(str(self))

    def __str__(self) -> str:
        pieces = [self.message]
        if self.line is not None:
            pieces.append(f" at line {self.line}")
        if self.column is not None:
            pieces.append(" at" if self.line is None else ",")
            pieces.append(f" column {self.column}")
        return "".join(pieces)

    def to_info(self) -> ParseErrorInfo:
        return ParseErrorInfo(message=self.message, line=self.line, column=self.column)


class ConfigError(DaylogError, ValueError):
    """Raised when a parser settings file exists but is not usable."""
