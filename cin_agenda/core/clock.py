"""Time source used by the scheduling services."""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current timezone-aware UTC time."""
    return datetime.now(UTC)
