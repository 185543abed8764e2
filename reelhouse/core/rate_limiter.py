import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable

from loguru import logger


class SlidingWindowRateLimiter:
    """
    In-memory sliding-window limiter, one instance per external provider.

    Keeps the timestamps of requests issued inside the trailing window and makes
    callers wait (cooperatively, via asyncio.sleep) until the window has headroom.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        name: str = "api",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    @property
    def recent_requests(self) -> int:
        """Number of requests recorded inside the current window."""
        self._prune(self._clock())
        return len(self._timestamps)

    async def acquire(self) -> float:
        """Wait for headroom, record the request, and return the seconds spent waiting."""
        waited = 0.0
        async with self._lock:
            while True:
                now = self._clock()
                self._prune(now)
                if len(self._timestamps) < self.max_requests:
                    self._timestamps.append(now)
                    return waited

                wait_time = max(self.window_seconds - (now - self._timestamps[0]), 0.0)
                logger.debug(
                    f"[rate-limit:{self.name}] {len(self._timestamps)}/{self.max_requests} requests in window, "
                    f"waiting {wait_time:.3f}s"
                )
                await self._sleep(wait_time)
                waited += wait_time
