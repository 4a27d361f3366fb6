"""Request-scoped tracing context.

Holds the request ID and W3C traceparent for the current request in
contextvars so they can be bound into structlog output and echoed back to
callers.
"""

import uuid
from contextvars import ContextVar
from typing import Any

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
trace_parent_ctx: ContextVar[str | None] = ContextVar("trace_parent", default=None)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_ctx.get()


def set_request_id(value: str | None) -> str:
    """Set the request ID in context, generating one when absent."""
    if not value:
        value = str(uuid.uuid4())
    request_id_ctx.set(value)
    return value


def set_trace_parent(value: str | None) -> None:
    """Set the W3C traceparent header in context."""
    trace_parent_ctx.set(value or None)


def clear_tracing_context() -> None:
    """Clear request-scoped tracing context after request completion."""
    request_id_ctx.set(None)
    trace_parent_ctx.set(None)


def bind_contextvars_to_logging() -> dict[str, Any]:
    """Get all tracing contextvars as a dict for structlog binding."""
    context: dict[str, Any] = {}
    if rid := request_id_ctx.get():
        context["request_id"] = rid
    if tp := trace_parent_ctx.get():
        context["trace_parent"] = tp
    return context
