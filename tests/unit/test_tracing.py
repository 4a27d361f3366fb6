"""Unit tests for tracing context helpers."""

from app.core.tracing import (
    bind_contextvars_to_logging,
    clear_tracing_context,
    get_request_id,
    set_request_id,
    set_trace_parent,
)


def test_set_request_id_generates_when_missing():
    clear_tracing_context()
    generated = set_request_id(None)
    assert get_request_id() == generated


def test_set_request_id_keeps_caller_value():
    assert set_request_id("req-123") == "req-123"
    assert get_request_id() == "req-123"


def test_bind_contextvars_to_logging_returns_expected_keys():
    clear_tracing_context()
    set_request_id("req-xyz")
    set_trace_parent("00-cccccccccccccccccccccccccccccccc-dddddddddddddddd-01")
    ctx = bind_contextvars_to_logging()
    assert ctx["request_id"] == "req-xyz"
    assert ctx["trace_parent"] == "00-cccccccccccccccccccccccccccccccc-dddddddddddddddd-01"


def test_bind_contextvars_to_logging_omits_empty_trace_parent():
    clear_tracing_context()
    set_request_id("req-1")
    set_trace_parent("")
    assert bind_contextvars_to_logging() == {"request_id": "req-1"}


def test_clear_tracing_context_resets_values():
    set_request_id("req-to-clear")
    set_trace_parent("00-eeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee-ffffffffffffffff-01")
    clear_tracing_context()
    assert get_request_id() is None
    assert bind_contextvars_to_logging() == {}
