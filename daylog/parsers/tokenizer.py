"""Split day-log lines into typed tokens.

A line is an optional indent, a timestamp, and a body of free text mixed
with sigil-led tokens::

    09:00 fix bug @projectX +code +urgent ~2h (45m) ->paused # found it

The tokenizer only checks the *shape* of each token. Value checks (time
ranges, duration arithmetic, resume targets) belong to the grammar.
"""
from __future__ import annotations

import logging
import re
from typing import Optional

from pydantic import BaseModel, Field

from daylog.errors import ParseError
from daylog.models import ParseErrorInfo, Token, TokenizedLine, TokenType

logger = logging.getLogger("daylog.tokenizer")

_TIMESTAMP_PATTERN = re.compile(r"(?:(\d{4}-\d{2}-\d{2})\s+)?(\d{1,2}:\d{2}(?::\d{2})?)(?=\s|$)")
_WORD_PATTERN = re.compile(r"\S+")
_SPACE_PATTERN = re.compile(r"\s*")
_COMMENT_LINE_PATTERN = re.compile(r"^\s*#")

_MARKER_PATTERN = re.compile(r"@(resume|prev|end|pause|abandon|\d+)(?=\s|$)")
_PROJECT_PATTERN = re.compile(r"@([A-Za-z0-9_-]+)(?=\s|$)")
_TAG_PATTERN = re.compile(r"\+([A-Za-z0-9_-]+)(?=\s|$)")
_ESTIMATE_PATTERN = re.compile(r"~([0-9hm]+)(?=\s|$)")
_EXPLICIT_DURATION_PATTERN = re.compile(r"\(([0-9hm]+)\)(?=\s|$)")
_STATE_SUFFIX_PATTERN = re.compile(r"->(paused|completed|abandoned)(?=\s|$)")
_REMARK_PATTERN = re.compile(r"#\s+(.*)$")

_MARKER_TYPES: dict[str, TokenType] = {
    "resume": TokenType.RESUME_MARKER,
    "prev": TokenType.RESUME_MARKER,
    "end": TokenType.END_MARKER,
    "pause": TokenType.PAUSE_MARKER,
    "abandon": TokenType.ABANDON_MARKER,
}

# (pattern, token type, error raised when the sigil is present but the shape is wrong)
_SIGIL_RULES: list[tuple[str, re.Pattern[str], TokenType, str]] = [
    ("+", _TAG_PATTERN, TokenType.TAG, "Invalid tag format"),
    ("~", _ESTIMATE_PATTERN, TokenType.ESTIMATE, "Invalid estimate format"),
    ("(", _EXPLICIT_DURATION_PATTERN, TokenType.EXPLICIT_DURATION, "Invalid explicit duration format"),
    ("->", _STATE_SUFFIX_PATTERN, TokenType.STATE_SUFFIX, "Invalid state suffix"),
]


class TokenizeResult(BaseModel):
    """One slot per source line; slot ``i`` holds line ``i + 1``."""
    lines: list[Optional[TokenizedLine]] = Field(default_factory=list)
    errors: list[ParseErrorInfo] = Field(default_factory=list)


def indent_level(line: str) -> int:
    """Number of leading whitespace characters (a tab counts as one)."""
    return len(line) - len(line.lstrip())


def is_comment_line(line: str) -> bool:
    return bool(_COMMENT_LINE_PATTERN.match(line))


def is_empty_line(line: str) -> bool:
    return not line.strip()


def _match_at_sigil(text: str, pos: int, line_number: int) -> Optional[tuple[Token, int]]:
    """Match a sigil-led token at ``pos``.

    Returns None when the word at ``pos`` is plain description text.
    """
    if text[pos] == "#":
        remark = _REMARK_PATTERN.match(text, pos)
        if not remark:
            raise ParseError("Remark must have space after #", line_number, pos + 1)
        # A remark swallows the rest of the line.
        return Token(type=TokenType.REMARK, value=remark.group(1).strip(), position=pos), len(text)

    if text[pos] == "@":
        marker = _MARKER_PATTERN.match(text, pos)
        if marker:
            value = marker.group(1)
            token_type = _MARKER_TYPES.get(value, TokenType.RESUME_MARKER)
            return Token(type=token_type, value=value, position=pos), marker.end()
        project = _PROJECT_PATTERN.match(text, pos)
        if project:
            return Token(type=TokenType.PROJECT, value=project.group(1), position=pos), project.end()
        raise ParseError("Invalid project format", line_number, pos + 1)

    for sigil, pattern, token_type, message in _SIGIL_RULES:
        if not text.startswith(sigil, pos):
            continue
        match = pattern.match(text, pos)
        if not match:
            raise ParseError(message, line_number, pos + 1)
        return Token(type=token_type, value=match.group(1), position=pos), match.end()

    return None


def tokenize_line(line: str, line_number: int) -> Optional[TokenizedLine]:
    """Tokenize one raw line.

    Returns None for blank and comment-only lines. Raises ParseError for a
    structurally malformed line.
    """
    if is_empty_line(line) or is_comment_line(line):
        return None

    text = line.rstrip()
    pos = indent_level(text)

    timestamp = _TIMESTAMP_PATTERN.match(text, pos)
    if not timestamp:
        first_word = _WORD_PATTERN.match(text, pos)
        word = first_word.group(0) if first_word else ""
        if word[:1].isdigit():
            raise ParseError(f'Invalid timestamp format: "{word}"', line_number, pos + 1)
        raise ParseError("Missing timestamp", line_number, pos + 1)

    date_part, time_part = timestamp.groups()
    tokens: list[Token] = [
        Token(
            type=TokenType.TIMESTAMP,
            value=f"{date_part} {time_part}" if date_part else time_part,
            position=pos,
        )
    ]
    pos = timestamp.end()

    # Description text may be split around tokens; keep each run's spacing.
    runs: list[tuple[int, int]] = []
    run_start: Optional[int] = None
    run_end = 0

    while True:
        pos = _SPACE_PATTERN.match(text, pos).end()
        if pos >= len(text):
            break

        matched = _match_at_sigil(text, pos, line_number)
        if matched is None:
            word = _WORD_PATTERN.match(text, pos)
            if run_start is None:
                run_start = pos
            run_end = word.end()
            pos = word.end()
            continue

        if run_start is not None:
            runs.append((run_start, run_end))
            run_start = None
        token, pos = matched
        tokens.append(token)

    if run_start is not None:
        runs.append((run_start, run_end))

    if runs:
        tokens.append(
            Token(
                type=TokenType.DESCRIPTION,
                value=" ".join(text[start:end] for start, end in runs),
                position=runs[0][0],
            )
        )
        tokens.sort(key=lambda t: t.position)

    return TokenizedLine(
        tokens=tuple(tokens),
        indentLevel=indent_level(line),
        lineNumber=line_number,
        rawLine=line,
    )


def split_lines(content: str) -> list[str]:
    """Split on newlines only, so line numbers match what an editor shows."""
    return [line.rstrip("\r") for line in content.split("\n")]


def tokenize(content: str) -> TokenizeResult:
    """Tokenize a whole log, collecting errors instead of stopping at them."""
    result = TokenizeResult()
    for index, line in enumerate(split_lines(content)):
        line_number = index + 1
        try:
            result.lines.append(tokenize_line(line, line_number))
        except ParseError as exc:
            if exc.line is None:
                exc.line = line_number
            result.errors.append(exc.to_info())
            result.lines.append(None)

    logger.debug(
        "Tokenized %d line(s): %d token line(s), %d error(s)",
        len(result.lines),
        sum(1 for line in result.lines if line is not None),
        len(result.errors),
    )
    return result
