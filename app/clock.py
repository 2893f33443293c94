"""Time source used by services that enforce expiries."""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (SQLite DateTime columns drop tzinfo)."""
    return datetime.now(UTC).replace(tzinfo=None)
