from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Protocol, runtime_checkable
from zoneinfo import ZoneInfo

from leavetrack.config import get_settings


@runtime_checkable
class Clock(Protocol):
    """Source of the current time for leave rules."""

    def now(self) -> datetime:
        """Current instant, timezone-aware."""
        ...

    def today(self) -> date:
        """Current calendar date in the organisation's timezone."""
        ...


class SystemClock:
    """Wall clock in the configured organisation timezone."""

    def __init__(self, timezone: str | None = None) -> None:
        self._tz = ZoneInfo(timezone or get_settings().timezone)

    def now(self) -> datetime:
        return datetime.now(UTC)

    def today(self) -> date:
        return datetime.now(self._tz).date()


class FixedClock:
    """Clock pinned to a given instant. Used by tests and replays."""

    def __init__(self, current: datetime) -> None:
        if current.tzinfo is None:
            current = current.replace(tzinfo=UTC)
        self._current = current

    def now(self) -> datetime:
        return self._current

    def today(self) -> date:
        return self._current.date()

    def set(self, current: datetime) -> None:
        if current.tzinfo is None:
            current = current.replace(tzinfo=UTC)
        self._current = current


_clock: Clock | None = None


def get_clock() -> Clock:
    """FastAPI dependency for the clock."""
    global _clock
    if _clock is None:
        _clock = SystemClock()
    return _clock


def set_clock(clock: Clock | None) -> None:
    """Override the clock (for testing); ``None`` restores the system clock."""
    global _clock
    _clock = clock
