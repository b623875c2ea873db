"""
Injectable time source.

Nothing in the engine calls ``datetime.now()`` or ``date.today()``
directly: due-date checks ("must be after today"), overdue detection,
reference-code years and audit timestamps all read the injected clock.
``SystemClock`` is the only place real time enters.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta

SECONDS_PER_DAY = 86400


class Clock(ABC):
    """``now()`` is timezone-aware UTC; ``today()`` is its UTC date."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().astimezone(UTC).date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Frozen clock for tests, 2026-01-15 09:00 UTC unless told otherwise.

    Time only moves through ``advance`` and ``advance_days``,
    so two operations in one test share a timestamp unless the test
    advances between them.
    """

    def __init__(self, start: datetime | None = None):
        self._start = start or datetime(2026, 1, 15, 9, 0, 0, tzinfo=UTC)
        self._offset = timedelta()

    def now(self) -> datetime:
        return self._start + self._offset

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self.advance(days * SECONDS_PER_DAY)
