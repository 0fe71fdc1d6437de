"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock interface so that readers, processors and
    services never call ``datetime.now()`` or ``date.today()`` directly.

Architecture position:
    Kernel > Domain -- zero I/O except SystemClock, which is the one
    sanctioned boundary for time.

Failure modes:
    (none)
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need current time receive a Clock instance via
        constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime`` (UTC).
        - ``today()`` returns the civil date in the system's default
          calendar (local time zone for SystemClock).
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    @abstractmethod
    def today(self) -> date:
        """Get the current civil date."""
        ...

    def epoch_millis(self) -> int:
        """Current time as milliseconds since the Unix epoch."""
        return int(self.now().timestamp() * 1000)


class SystemClock(Clock):
    """
    Production clock that returns actual system time.

    Non-goals:
        Not suitable for deterministic tests.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return date.today()


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
        - ``today()`` is the date part of ``now()``.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def today(self) -> date:
        return self.now().date()

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._advance_seconds = 0

    def advance(self, seconds: int = 1) -> None:
        """Advance the clock by the specified seconds."""
        self._advance_seconds += seconds

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        self.advance(1)
        return self.now()
