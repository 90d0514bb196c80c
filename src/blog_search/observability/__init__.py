"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from blog_search.observability.context import get_trace_context, set_trace_context, trace_context
from blog_search.observability.logging import JsonFormatter, configure_logging
from blog_search.observability.metrics import (
    INDEX_DOC_COUNT,
    REQUEST_COUNT,
    SEARCH_CACHE_ENTRIES,
    SEARCH_LATENCY,
    SEARCH_QUERIES,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)
from blog_search.observability.tracing import (
    TraceContextMiddleware,
    configure_trace_exporter,
    create_span,
    get_tracer,
    init_tracing,
    trace_request,
)


__all__ = [
    "INDEX_DOC_COUNT",
    "REQUEST_COUNT",
    "SEARCH_CACHE_ENTRIES",
    "SEARCH_LATENCY",
    "SEARCH_QUERIES",
    "JsonFormatter",
    "TraceContextMiddleware",
    "configure_logging",
    "configure_trace_exporter",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "set_trace_context",
    "trace_context",
    "trace_request",
]
