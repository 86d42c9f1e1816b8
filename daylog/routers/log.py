"""Day-log parsing API."""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from daylog import config
from daylog.date_utils import parse_reference_date
from daylog.errors import ConfigError
from daylog.models import LogEntry, ParseErrorInfo, PlannedSession, ParseResult
from daylog.observability import record_parse, record_parser_failure, start_span
from daylog.parsers.grammar import parse_log
from daylog.parsers.log_writer import annotate_errors, format_entries
from daylog.session_reconstruction import (
    build_parent_map,
    calculate_end_times,
    find_self_overlaps,
    reconstruct_sessions,
)

logger = logging.getLogger("daylog.api")

log_router = APIRouter(prefix="/api/log", tags=["log"])


class ParseRequest(BaseModel):
    content: str = ""
    referenceDate: Optional[str] = None


class ParseSummary(BaseModel):
    sessions: int = 0
    interruptions: int = 0
    errors: int = 0
    warnings: int = 0


class ParseResponse(BaseModel):
    entries: list[LogEntry] = Field(default_factory=list)
    errors: list[ParseErrorInfo] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    sessions: list[PlannedSession] = Field(default_factory=list)
    parentMap: dict[int, int] = Field(default_factory=dict)
    overlaps: list[str] = Field(default_factory=list)
    summary: ParseSummary = Field(default_factory=ParseSummary)


class FormatRequest(BaseModel):
    entries: list[LogEntry]


class FormatResponse(BaseModel):
    content: str


class AnnotateResponse(BaseModel):
    content: str
    errorCount: int = 0


def _reference_date(raw: Optional[str]) -> Optional[datetime]:
    try:
        return parse_reference_date(raw)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid referenceDate: {raw!r}") from exc


def _run_parse(payload: ParseRequest) -> ParseResult:
    reference = _reference_date(payload.referenceDate)
    try:
        settings = config.load_parser_settings()
    except ConfigError as exc:
        logger.warning("Falling back to default parser settings: %s", exc)
        settings = config.default_parser_settings()

    started = time.perf_counter()
    with start_span("daylog.parse", {"daylog.content_chars": len(payload.content)}):
        try:
            result = parse_log(payload.content, reference, settings)
        except Exception:
            record_parser_failure("parse")
            logger.exception("Unexpected failure while parsing a day log")
            raise
    record_parse(result, (time.perf_counter() - started) * 1000)
    return result


@log_router.post("/parse", response_model=ParseResponse)
async def parse_day_log(payload: ParseRequest):
    result = _run_parse(payload)
    entries = list(result.entries)

    # Reconstruction only makes sense once the log is clean.
    if not result.ok:
        return ParseResponse(
            entries=entries,
            errors=list(result.errors),
            warnings=list(result.warnings),
            summary=ParseSummary(errors=len(result.errors), warnings=len(result.warnings)),
        )

    parent_map = build_parent_map(entries)
    processed = calculate_end_times(entries)
    plan = reconstruct_sessions(entries, processed=processed, parent_map=parent_map)
    overlaps = find_self_overlaps(processed, parent_map)

    return ParseResponse(
        entries=entries,
        warnings=list(result.warnings),
        sessions=plan.sessions,
        parentMap=parent_map,
        overlaps=overlaps,
        summary=ParseSummary(
            sessions=plan.sessionCount,
            interruptions=plan.interruptionCount,
            warnings=len(result.warnings),
        ),
    )


@log_router.post("/format", response_model=FormatResponse)
async def format_day_log(payload: FormatRequest):
    return FormatResponse(content=format_entries(payload.entries))


@log_router.post("/annotate", response_model=AnnotateResponse)
async def annotate_day_log(payload: ParseRequest):
    result = _run_parse(payload)
    return AnnotateResponse(
        content=annotate_errors(payload.content, result.errors),
        errorCount=len(result.errors),
    )
