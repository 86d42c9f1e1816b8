"""OpenTelemetry + Prometheus fallback wiring for daylog."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from daylog import config
from daylog.models import ParseResult

logger = logging.getLogger("daylog.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_parse_counter: Any | None = None
_parse_latency_hist: Any | None = None
_parse_issue_counter: Any | None = None
_parser_failure_counter: Any | None = None

_prom_enabled = False
_prom_parse_counter: Any | None = None
_prom_parse_latency_hist: Any | None = None
_prom_parse_issue_counter: Any | None = None
_prom_parser_failure_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _start_prometheus() -> None:
    global _prom_enabled
    global _prom_parse_counter, _prom_parse_latency_hist, _prom_parse_issue_counter, _prom_parser_failure_counter

    try:
        from prometheus_client import Counter, Histogram, start_http_server

        start_http_server(config.PROM_PORT)
        _prom_parse_counter = Counter(
            "daylog_parse_runs_total",
            "Count of day-log parse runs",
            ["result"],
        )
        _prom_parse_latency_hist = Histogram(
            "daylog_parse_latency_ms",
            "Latency of day-log parse runs",
            ["result"],
        )
        _prom_parse_issue_counter = Counter(
            "daylog_parse_issues_total",
            "Errors and warnings reported by parse runs",
            ["severity"],
        )
        _prom_parser_failure_counter = Counter(
            "daylog_parser_failures_total",
            "Unexpected parser failures",
            ["stage"],
        )
        _prom_enabled = True
        logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Prometheus fallback not started: %s", exc)
        _prom_enabled = False


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _parse_counter, _parse_latency_hist, _parse_issue_counter, _parser_failure_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (DAYLOG_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    service_name = config.OTEL_SERVICE_NAME or "daylog"
    resource = Resource.create({"service.name": service_name, "service.namespace": "daylog"})

    trace_provider = TracerProvider(resource=resource)
    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)

    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    metric_reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=metrics_endpoint or None))
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("daylog")

    _parse_counter = meter.create_counter(
        "daylog_parse_runs_total",
        unit="1",
        description="Count of day-log parse runs",
    )
    _parse_latency_hist = meter.create_histogram(
        "daylog_parse_latency_ms",
        unit="ms",
        description="Latency of day-log parse runs",
    )
    _parse_issue_counter = meter.create_counter(
        "daylog_parse_issues_total",
        unit="1",
        description="Errors and warnings reported by parse runs",
    )
    _parser_failure_counter = meter.create_counter(
        "daylog_parser_failures_total",
        unit="1",
        description="Unexpected parser failures",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = trace.get_tracer("daylog")
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        _start_prometheus()

    logger.info("OpenTelemetry initialized (service=%s endpoint=%s)", service_name, config.OTEL_ENDPOINT)


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception:
        logger.debug("FastAPI instrumentation already removed")
    for provider in (_meter_provider, _trace_provider):
        if provider is None:
            continue
        try:
            provider.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Telemetry provider shutdown failed: %s", exc)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_parse(result: ParseResult, duration_ms: float) -> None:
    outcome = "ok" if result.ok else "errors"
    labels = {"result": outcome}
    latency = max(0.0, float(duration_ms))
    if _enabled and _parse_counter is not None:
        _parse_counter.add(1, labels)
    if _enabled and _parse_latency_hist is not None:
        _parse_latency_hist.record(latency, labels)
    if _enabled and _parse_issue_counter is not None:
        if result.errors:
            _parse_issue_counter.add(len(result.errors), {"severity": "error"})
        if result.warnings:
            _parse_issue_counter.add(len(result.warnings), {"severity": "warning"})
    if _prom_enabled and _prom_parse_counter is not None:
        _prom_parse_counter.labels(result=outcome).inc()
    if _prom_enabled and _prom_parse_latency_hist is not None:
        _prom_parse_latency_hist.labels(result=outcome).observe(latency)
    if _prom_enabled and _prom_parse_issue_counter is not None:
        if result.errors:
            _prom_parse_issue_counter.labels(severity="error").inc(len(result.errors))
        if result.warnings:
            _prom_parse_issue_counter.labels(severity="warning").inc(len(result.warnings))


def record_parser_failure(stage: str) -> None:
    labels = {"stage": stage or "unknown"}
    if _enabled and _parser_failure_counter is not None:
        _parser_failure_counter.add(1, labels)
    if _prom_enabled and _prom_parser_failure_counter is not None:
        _prom_parser_failure_counter.labels(**labels).inc()
