"""Clock utility for testability."""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return current UTC time. Override in tests."""
    return datetime.now(UTC)


def frozen_clock(instant: datetime) -> Clock:
    """Return a clock that always reports ``instant`` (normalized to UTC)."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    fixed = instant.astimezone(UTC)
    return lambda: fixed
