from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Default clock for sessions, cache entries and the rate gate."""
    return datetime.now(timezone.utc)


def elapsed_ms(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() * 1000.0
