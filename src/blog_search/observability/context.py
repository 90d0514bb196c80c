"""Per-request trace identifiers shared by logs and spans."""

from __future__ import annotations

from contextvars import ContextVar, Token
from uuid import uuid4


trace_context: ContextVar[dict | None] = ContextVar("trace_context", default=None)


def generate_trace_id() -> str:
    return uuid4().hex


def generate_span_id() -> str:
    return uuid4().hex[:16]


def get_trace_context() -> dict:
    """Current ``trace_id``/``span_id`` pair, minted lazily outside a request."""
    ctx = trace_context.get()
    if not ctx or not ctx.get("trace_id"):
        ctx = {"trace_id": generate_trace_id(), "span_id": generate_span_id()}
        trace_context.set(ctx)
    return ctx


def set_trace_context(trace_id: str, span_id: str, **extra: object) -> Token:
    """Bind ids (and any extra fields) to the current task.

    Returns:
        Token for ``reset_trace_context`` once the request finishes
    """
    return trace_context.set({"trace_id": trace_id, "span_id": span_id, **extra})


def reset_trace_context(token: Token) -> None:
    trace_context.reset(token)


def update_span_id(span_id: str) -> None:
    """Point logs at a new span without changing the trace."""
    trace_context.set({**(trace_context.get() or {}), "span_id": span_id})
