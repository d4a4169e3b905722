"""
Sliding window request throttle for the VNDB API.

VNDB allows 200 requests per 5 minutes per IP; the defaults mirror that.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class RateLimit:
    """Rate limit configuration"""
    calls: int          # Maximum calls per window
    window_seconds: int # Time window in seconds


class RequestThrottle:
    """
    Sliding window rate limiter shared by all catalog requests.

    Example:
        throttle = RequestThrottle(RateLimit(calls=200, window_seconds=300))

        # Wait if needed before API call
        await throttle.wait_if_needed()
        response = await client.post(...)
    """

    def __init__(self, limit: RateLimit, clock: Callable[[], float] = time.monotonic):
        """
        Initialize throttle.

        Args:
            limit: Rate limit applied to every request
            clock: Monotonic time source (injectable for tests)
        """
        self.limit = limit
        self._clock = clock
        self._history: deque = deque()
        self._lock = asyncio.Lock()
        self.backoff_until: Optional[float] = None

    async def wait_if_needed(self) -> float:
        """
        Wait if the rate limit would be exceeded.

        Returns:
            Seconds waited (0 if no wait needed)
        """
        async with self._lock:
            waited = 0.0
            now = self._clock()

            if self.backoff_until is not None:
                if now < self.backoff_until:
                    wait_time = self.backoff_until - now
                    logger.warning(f"VNDB throttled us, backing off for {wait_time:.1f}s")
                    await asyncio.sleep(wait_time)
                    waited += wait_time
                    now = self._clock()
                self.backoff_until = None

            # Clean old calls outside window
            window_start = now - self.limit.window_seconds
            while self._history and self._history[0] < window_start:
                self._history.popleft()

            if len(self._history) >= self.limit.calls:
                # Must wait until oldest call expires
                wait_time = self._history[0] + self.limit.window_seconds - now
                if wait_time > 0:
                    logger.debug(f"Request throttle: waiting {wait_time:.1f}s")
                    await asyncio.sleep(wait_time)
                    waited += wait_time
                self._history.popleft()

            self._history.append(self._clock())
            return waited

    def handle_rate_limit(self, retry_after: Optional[str] = None) -> None:
        """
        Record a 429 response so the next request waits.

        Args:
            retry_after: Retry-After header value in seconds (optional)
        """
        try:
            delay = float(retry_after) if retry_after is not None else 60.0
        except ValueError:
            delay = 60.0
        self.backoff_until = self._clock() + delay
        self._history.clear()
        logger.warning(f"Rate limit hit: next request delayed {delay:.0f}s")

    @property
    def calls_in_window(self) -> int:
        now = self._clock()
        return sum(1 for t in self._history if t >= now - self.limit.window_seconds)
