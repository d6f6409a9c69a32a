"""Rate limiting for outbound Mochi API calls."""

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable

from logseq_mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)


class SlidingWindowRateLimiter:
    """Sliding-window rate limiter.

    Allows at most ``max_requests`` calls in any ``window_seconds`` window.
    Timestamps are kept in a FIFO queue; expired ones are evicted from the
    front before every call, and a caller that finds the queue full suspends
    until the oldest timestamp leaves the window.

    One instance is created per sync run and shared by every call site.
    Execution is single-threaded, so no lock is needed: there is no await
    between the capacity check and recording the timestamp.
    """

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: float = 10.0,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        """Initialize rate limiter.

        Args:
            max_requests: Maximum number of calls allowed per window
            window_seconds: Window length in seconds
            clock: Monotonic time source (injectable for tests)
            sleep: Coroutine used to wait (injectable for tests)
        """
        if max_requests < 1:
            msg = "max_requests must be at least 1"
            raise ValueError(msg)
        if window_seconds <= 0:
            msg = "window_seconds must be positive"
            raise ValueError(msg)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._timestamps: deque[float] = deque()

    @property
    def in_flight(self) -> int:
        """Number of calls recorded in the current window."""
        self._evict(self._clock())
        return len(self._timestamps)

    def _evict(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    async def acquire(self) -> None:
        """Wait until a call is allowed, then record it."""
        while True:
            now = self._clock()
            self._evict(now)
            if len(self._timestamps) < self.max_requests:
                self._timestamps.append(now)
                return

            delay = self._timestamps[0] + self.window_seconds - now
            logger.debug("rate_limit_wait", delay=round(delay, 3))
            await self._sleep(max(delay, 0.0))
