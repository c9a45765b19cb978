"""OpenTelemetry + Prometheus fallback wiring for ccindex."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from ccindex import config

logger = logging.getLogger("ccindex.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_operation_counter: Any | None = None
_operation_latency_hist: Any | None = None
_skipped_lines_counter: Any | None = None

_prom_enabled = False
_prom_operation_counter: Any | None = None
_prom_operation_latency_hist: Any | None = None
_prom_skipped_lines_counter: Any | None = None


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


def _prom_labels(**labels: str) -> dict[str, str]:
    return {key: (value or "").strip() or "unknown" for key, value in labels.items()}


def _start_prometheus_fallback() -> None:
    global _prom_enabled, _prom_operation_counter, _prom_operation_latency_hist, _prom_skipped_lines_counter

    try:
        from prometheus_client import Counter, Histogram, start_http_server

        start_http_server(config.PROM_PORT)
        _prom_operation_counter = Counter(
            "ccindex_index_operations_total",
            "Count of session index builds and updates",
            ["operation", "result"],
        )
        _prom_operation_latency_hist = Histogram(
            "ccindex_index_latency_ms",
            "Latency of session index builds and updates",
            ["operation", "result"],
        )
        _prom_skipped_lines_counter = Counter(
            "ccindex_skipped_lines_total",
            "Session log lines that could not be parsed",
            [],
        )
        _prom_enabled = True
        logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Prometheus fallback not started: %s", exc)
        _prom_enabled = False


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _operation_counter, _operation_latency_hist, _skipped_lines_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if config.PROM_PORT > 0:
        _start_prometheus_fallback()

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (CCINDEX_OTEL_ENABLED=false)")
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

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "ccindex"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "ccindex",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("ccindex")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("ccindex")

    _operation_counter = meter.create_counter(
        "ccindex_index_operations_total",
        unit="1",
        description="Count of session index builds and updates",
    )
    _operation_latency_hist = meter.create_histogram(
        "ccindex_index_latency_ms",
        unit="ms",
        description="Latency of session index builds and updates",
    )
    _skipped_lines_counter = meter.create_counter(
        "ccindex_skipped_lines_total",
        unit="1",
        description="Session log lines that could not be parsed",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception as exc:  # noqa: BLE001
        logger.debug("FastAPI uninstrument failed: %s", exc)
    for provider in (_meter_provider, _trace_provider):
        if provider is None:
            continue
        try:
            provider.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed: %s", exc)
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


def record_index_operation(operation: str, result: str, duration_ms: float, *, session_id: str) -> None:
    labels = {
        "operation": operation or "unknown",
        "result": result or "unknown",
        "session_id": session_id or "unknown",
    }
    if _enabled and _operation_counter is not None:
        _operation_counter.add(1, labels)
    if _enabled and _operation_latency_hist is not None:
        _operation_latency_hist.record(max(0.0, float(duration_ms)), labels)
    # session ids are unbounded, keep them out of Prometheus label sets
    if _prom_enabled and _prom_operation_counter is not None:
        _prom_operation_counter.labels(**_prom_labels(operation=operation, result=result)).inc()
    if _prom_enabled and _prom_operation_latency_hist is not None:
        _prom_operation_latency_hist.labels(**_prom_labels(operation=operation, result=result)).observe(
            max(0.0, float(duration_ms))
        )


def record_skipped_lines(count: int, *, session_id: str) -> None:
    safe_count = max(0, int(count))
    if safe_count == 0:
        return
    if _enabled and _skipped_lines_counter is not None:
        _skipped_lines_counter.add(safe_count, {"session_id": session_id or "unknown"})
    if _prom_enabled and _prom_skipped_lines_counter is not None:
        _prom_skipped_lines_counter.inc(safe_count)
