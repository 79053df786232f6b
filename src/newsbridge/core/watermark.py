"""
Shared "last checked" watermark.

One instant for the whole process: every city's search reads it, and the
connector advances it exactly once at the end of each cycle. Articles
published before it are not requested again when a lookback window is
configured.

The lock is a ``threading.Lock`` held only for the read or the write itself,
never across an ``await``, so readers in concurrently scheduled city passes
and the single end-of-cycle writer cannot observe a torn update.
"""

from __future__ import annotations

import datetime
import threading


class Watermark:
    """Monotonically non-decreasing timestamp guarded by a lock.

    Examples:
        ```python
        mark = Watermark(datetime.datetime.now(datetime.UTC))
        since = mark.get()
        mark.advance(datetime.datetime.now(datetime.UTC))
        ```
    """

    def __init__(self, initial: datetime.datetime) -> None:
        if initial.tzinfo is None:
            raise ValueError("watermark must be timezone-aware")
        self._value = initial
        self._lock = threading.Lock()

    @classmethod
    def from_lookback(
        cls, lookback: datetime.timedelta, now: datetime.datetime | None = None
    ) -> Watermark:
        """Start at ``now - lookback``."""
        now = now or datetime.datetime.now(datetime.UTC)
        return cls(now - lookback)

    def get(self) -> datetime.datetime:
        """Return the current watermark."""
        with self._lock:
            return self._value

    def advance(self, to: datetime.datetime | None = None) -> datetime.datetime:
        """Move the watermark forward to ``to`` (default: now).

        A value earlier than the current watermark is ignored.

        Returns:
            The watermark after the update.
        """
        to = to or datetime.datetime.now(datetime.UTC)
        if to.tzinfo is None:
            raise ValueError("watermark must be timezone-aware")
        with self._lock:
            if to > self._value:
                self._value = to
            return self._value
