"""Observability helpers."""

from daylog.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_parse,
    record_parser_failure,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_parse",
    "record_parser_failure",
]
