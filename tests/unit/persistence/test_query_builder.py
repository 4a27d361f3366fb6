"""Unit tests for persistence query builder helpers."""

from __future__ import annotations

from datetime import UTC, datetime

from app.persistence.query_builder import build_optional_equals_where


def test_build_optional_equals_where_with_filters() -> None:
    where_clause, params = build_optional_equals_where(
        {"token_id": "tok-1", "pre_issuance_id": "pre-9"},
        param_aliases={"pre_issuance_id": "pre_id"},
    )

    assert where_clause == "token_id = :token_id AND pre_issuance_id = :pre_id"
    assert params == {"token_id": "tok-1", "pre_id": "pre-9"}


def test_build_optional_equals_where_without_filters() -> None:
    where_clause, params = build_optional_equals_where({"token_id": None, "passed": None})

    assert where_clause == "TRUE"
    assert params == {}


def test_build_optional_equals_where_skips_blank_strings() -> None:
    where_clause, params = build_optional_equals_where({"token_id": "  ", "passed": False})

    assert where_clause == "passed = :passed"
    assert params == {"passed": False}


def test_build_optional_equals_where_with_ranges() -> None:
    lower = datetime(2026, 1, 1, tzinfo=UTC)
    upper = datetime(2026, 2, 1, tzinfo=UTC)

    where_clause, params = build_optional_equals_where(
        {"token_id": "tok-1"},
        ranges={"recorded_at": (lower, upper)},
    )

    assert where_clause == (
        "token_id = :token_id AND recorded_at >= :recorded_at_from "
        "AND recorded_at <= :recorded_at_to"
    )
    assert params == {"token_id": "tok-1", "recorded_at_from": lower, "recorded_at_to": upper}


def test_build_optional_equals_where_open_range() -> None:
    upper = datetime(2026, 2, 1, tzinfo=UTC)

    where_clause, params = build_optional_equals_where(
        {}, ranges={"recorded_at": (None, upper)}
    )

    assert where_clause == "recorded_at <= :recorded_at_to"
    assert params == {"recorded_at_to": upper}
