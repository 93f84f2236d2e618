"""
Injectable time source.

Services take a ``Clock`` instead of calling ``datetime.now()``: rows
without a timestamp are stamped with ``now()``, import logs record
``created_at``/``completed_at`` from it, and run durations are measured on
its ``monotonic()`` counter.  ``SystemClock`` is the only implementation
that touches the real clock.
"""

import time
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""

    @abstractmethod
    def monotonic(self) -> float:
        """Seconds on a counter that never goes backwards."""

    def elapsed_ms(self, since: float) -> int:
        """Whole milliseconds between ``since`` (a ``monotonic()`` reading) and now."""
        return int((self.monotonic() - since) * 1000)


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(UTC)

    def monotonic(self) -> float:
        return time.monotonic()


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    ``now()`` and ``monotonic()`` both advance with ``advance()``, so a test
    can pin import timestamps and run durations together.
    """

    def __init__(self, fixed_time: datetime | None = None):
        start = fixed_time or datetime(2025, 3, 1, 12, 0, 0, tzinfo=UTC)
        if start.tzinfo is None:
            start = start.replace(tzinfo=UTC)
        self._start = start
        self._offset = 0.0

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._offset)

    def monotonic(self) -> float:
        return self._offset

    def advance(self, seconds: float = 1.0) -> None:
        if seconds < 0:
            raise ValueError("DeterministicClock cannot move backwards")
        self._offset += seconds
