"""
Core Module - System Clock.

============================================================
RESPONSIBILITY
============================================================
Provides a unified, testable clock abstraction for the pipeline.

- Normalization and persistence timestamps come from this clock
- Enables deterministic testing of ingestion timestamps
- Owns the second-granularity rule of the analytics store

============================================================
DESIGN PRINCIPLES
============================================================
- UTC only
- Stored timestamps are naive UTC with no sub-second component
- Mockable for testing
- Thread-safe

============================================================
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Generator, Optional
import threading
import time


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for system clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current UTC datetime."""
        pass

    @abstractmethod
    def timestamp(self) -> float:
        """Get current Unix timestamp."""
        pass

    def today(self) -> date:
        """Get current UTC date."""
        return self.now().date()

    def now_truncated(self) -> datetime:
        """Get current time as naive UTC, truncated to whole seconds."""
        return truncate_to_second(self.now())


# ============================================================
# SYSTEM CLOCK (PRODUCTION)
# ============================================================

class SystemClock(ClockProtocol):
    """
    Production clock using actual system time.

    All times are in UTC.
    """

    def now(self) -> datetime:
        """Get current UTC datetime."""
        return datetime.now(timezone.utc)

    def timestamp(self) -> float:
        """Get current Unix timestamp."""
        return time.time()


# ============================================================
# MOCK CLOCK (TESTING)
# ============================================================

class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Allows time manipulation for deterministic tests.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        """
        Initialize mock clock.

        Args:
            initial_time: Starting time (defaults to current UTC)
        """
        if initial_time is not None and initial_time.tzinfo is None:
            initial_time = initial_time.replace(tzinfo=timezone.utc)
        self._time = initial_time or datetime.now(timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        """Get current (mocked) datetime."""
        with self._lock:
            return self._time

    def timestamp(self) -> float:
        """Get current (mocked) timestamp."""
        with self._lock:
            return self._time.timestamp()

    def set_time(self, new_time: datetime) -> None:
        """Set the current time."""
        with self._lock:
            if new_time.tzinfo is None:
                new_time = new_time.replace(tzinfo=timezone.utc)
            self._time = new_time

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (hours, minutes, days, etc.)
        """
        with self._lock:
            delta = timedelta(seconds=seconds, **kwargs)
            self._time = self._time + delta


# ============================================================
# CLOCK FACTORY
# ============================================================

class ClockFactory:
    """Factory for creating clock instances."""

    _instance: Optional[ClockProtocol] = None
    _lock = threading.Lock()

    @classmethod
    def get_clock(cls) -> ClockProtocol:
        """Get the global clock instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = SystemClock()
            return cls._instance

    @classmethod
    def set_clock(cls, clock: ClockProtocol) -> None:
        """Set the global clock instance."""
        with cls._lock:
            cls._instance = clock

    @classmethod
    def reset(cls) -> None:
        """Reset to default system clock."""
        with cls._lock:
            cls._instance = SystemClock()

    @classmethod
    @contextmanager
    def use_mock(
        cls,
        initial_time: Optional[datetime] = None,
    ) -> Generator[MockClock, None, None]:
        """
        Context manager to use mock clock temporarily.

        Args:
            initial_time: Initial time for mock clock
        """
        original = cls._instance
        mock = MockClock(initial_time)
        cls.set_clock(mock)
        try:
            yield mock
        finally:
            cls._instance = original


# ============================================================
# TIMESTAMP UTILITIES
# ============================================================

def truncate_to_second(dt: datetime) -> datetime:
    """
    Convert to naive UTC and drop the sub-second component.

    The analytics store keeps DateTime columns at second granularity,
    so every stored or compared timestamp goes through here.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp in the variants seen in stored records.

    Accepts "T" or space separators, a trailing "Z", an explicit offset,
    and fractional seconds. The result is truncated naive UTC.

    Raises:
        ValueError: If the string is not a recognizable timestamp
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = text.replace(" ", "T", 1)

    # fromisoformat before 3.11 only takes 0, 3 or 6 fractional digits
    if "." in text:
        head, _, tail = text.partition(".")
        digits = ""
        rest = ""
        for i, ch in enumerate(tail):
            if not ch.isdigit():
                rest = tail[i:]
                break
            digits += ch
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}" if digits else head + rest

    return truncate_to_second(datetime.fromisoformat(text))


def now_utc() -> datetime:
    """Get current UTC time using global clock."""
    return ClockFactory.get_clock().now()


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    # Protocols
    "ClockProtocol",

    # Implementations
    "SystemClock",
    "MockClock",

    # Factory
    "ClockFactory",

    # Utilities
    "truncate_to_second",
    "parse_timestamp",
    "now_utc",
]
