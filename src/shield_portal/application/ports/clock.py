from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Default wall-clock implementation."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def epoch_ms(moment: datetime) -> int:
    """Wire timestamps are milliseconds since the Unix epoch."""
    return int(moment.timestamp() * 1000)
