"""
Delivery throttle: a token bucket shared by every city.

Bounds the rate of node creation requests sent to Drupal. One instance is
created per process and handed to every city's pass, so the limit is global
no matter how cities are scheduled. The bucket lives in memory and refills
continuously at ``rate`` tokens per second up to ``burst`` tokens.

Waiting is interruptible: when the shutdown event passed to
[acquire()][newsbridge.core.throttle.DeliveryThrottle.acquire] is set, the
wait ends with
[ThrottleCancelledError][newsbridge.core.exceptions.ThrottleCancelledError].

Examples:
    ```python
    throttle = DeliveryThrottle(rate=10)
    await throttle.acquire(shutdown=service.shutdown_event)
    ```
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Callable

from .exceptions import ThrottleCancelledError


class DeliveryThrottle:
    """Token bucket limiting outbound deliveries.

    Waiters are served one at a time in arrival order.

    Attributes:
        rate: Tokens added per second.
        burst: Bucket capacity; also the number of tokens at start.
    """

    def __init__(
        self,
        rate: float,
        burst: int | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        if burst is not None and burst < 1:
            raise ValueError(f"burst must be at least 1, got {burst}")
        self.rate = float(rate)
        self.burst = burst if burst is not None else max(1, math.ceil(rate))
        self._clock = clock
        self._tokens = float(self.burst)
        self._updated = clock()
        self._lock = asyncio.Lock()

    @property
    def available(self) -> float:
        """Tokens currently in the bucket (after refill)."""
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._updated = now

    async def acquire(self, shutdown: asyncio.Event | None = None) -> None:
        """Take one token, waiting until one is available.

        Args:
            shutdown: Event that aborts the wait when set.

        Raises:
            ThrottleCancelledError: If ``shutdown`` is set before a token
                could be taken.
        """
        async with self._lock:
            while True:
                if shutdown is not None and shutdown.is_set():
                    raise ThrottleCancelledError("shutdown requested while waiting for throttle")

                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return

                delay = (1.0 - self._tokens) / self.rate
                if shutdown is None:
                    await asyncio.sleep(delay)
                    continue
                try:
                    await asyncio.wait_for(shutdown.wait(), timeout=delay)
                except TimeoutError:
                    continue
