"""OpenTelemetry spans for index builds, matcher calls and HTTP requests."""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode

from blog_search.observability.context import (
    generate_span_id,
    generate_trace_id,
    reset_trace_context,
    set_trace_context,
    update_span_id,
)


if TYPE_CHECKING:
    from collections.abc import Iterator

    from opentelemetry.trace import Span, Tracer
    from starlette.requests import Request
    from starlette.responses import Response

logger = logging.getLogger(__name__)

TRACE_HEADER = b"x-trace-id"

_state: dict[str, Any] = {"tracer": None}


def init_tracing(
    service_name: str = "blog-search",
    resource_attributes: dict[str, str] | None = None,
) -> TracerProvider:
    """Install a fresh SDK tracer provider tagged with ``service_name``."""
    resource = Resource.create({"service.name": service_name, **(resource_attributes or {})})
    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)
    _state["tracer"] = provider.get_tracer("blog_search")
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def configure_trace_exporter(endpoint: str, provider: TracerProvider | None = None) -> bool:
    """Ship spans to an OTLP/HTTP collector at ``endpoint``.

    Nothing is exported when ``endpoint`` is empty. A provider is created on
    demand if tracing was never initialized.

    Returns:
        True if export was enabled, False otherwise
    """
    if not endpoint:
        return False

    target = provider or trace.get_tracer_provider()
    if not isinstance(target, TracerProvider):
        target = init_tracing()

    try:
        exporter = OTLPSpanExporter(endpoint=endpoint)
    except Exception:
        logger.exception("Could not create OTLP span exporter for %s", endpoint)
        return False

    target.add_span_processor(BatchSpanProcessor(exporter))
    logger.info("Exporting traces to %s", endpoint)
    return True


def get_tracer() -> Tracer:
    tracer = _state["tracer"]
    if tracer is None:
        tracer = _state["tracer"] = trace.get_tracer("blog_search")
    return tracer


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span]:
    """Run the block inside a span and point log records at it.

    Exceptions mark the span as failed and are re-raised.
    """
    with get_tracer().start_as_current_span(name, kind=kind, attributes=attributes) as span:
        span_context = span.get_span_context()
        if span_context.is_valid:
            update_span_id(format(span_context.span_id, "016x"))
        try:
            yield span
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            raise


class TraceContextMiddleware:
    """Pure ASGI middleware binding a trace id to each HTTP request.

    An incoming ``X-Trace-Id`` header is reused so the caller can correlate
    its own logs; otherwise a new id is minted. The id is echoed back on the
    response.
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers", [])).get(TRACE_HEADER, b"").decode("latin-1")
        trace_id = incoming or generate_trace_id()
        token = set_trace_context(trace_id, generate_span_id())

        async def send_with_trace(message: dict) -> None:
            if message["type"] == "http.response.start":
                message["headers"] = [*message.get("headers", []), (TRACE_HEADER, trace_id.encode("latin-1"))]
            await send(message)

        try:
            await self.app(scope, receive, send_with_trace)
        finally:
            reset_trace_context(token)


async def trace_request(request: Request, call_next: Any) -> Response:
    """``BaseHTTPMiddleware`` dispatch wrapping each request in a server span."""
    attributes = {
        "http.method": request.method,
        "http.route": request.url.path,
        "http.target": request.url.path + (f"?{request.url.query}" if request.url.query else ""),
    }
    with create_span(f"{request.method} {request.url.path}", kind=SpanKind.SERVER, attributes=attributes) as span:
        response: Response = await call_next(request)
        span.set_attribute("http.status_code", response.status_code)
        if response.status_code >= 500:
            span.set_status(Status(StatusCode.ERROR, f"HTTP {response.status_code}"))
        return response
