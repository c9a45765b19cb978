"""Observability helpers."""

from ccindex.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_index_operation,
    record_skipped_lines,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_index_operation",
    "record_skipped_lines",
]
