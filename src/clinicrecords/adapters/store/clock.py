"""Monotonic write clock used to resolve server timestamps."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional


class MonotonicClock:
    """UTC clock that never returns the same instant twice.

    ``resolution`` is the smallest step the backend can persist; MongoDB
    keeps milliseconds, the in-memory store keeps microseconds.
    """

    def __init__(
        self,
        resolution: timedelta = timedelta(microseconds=1),
        source: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._resolution = resolution
        self._source = source or (lambda: datetime.now(timezone.utc))
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = self._truncate(self._source())
        if self._last is not None and current <= self._last:
            current = self._last + self._resolution
        self._last = current
        return current

    def _truncate(self, value: datetime) -> datetime:
        if self._resolution >= timedelta(milliseconds=1):
            return value.replace(microsecond=(value.microsecond // 1000) * 1000)
        return value
