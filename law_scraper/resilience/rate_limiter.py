"""
Per-worker request pacing with optional jitter.
Each worker owns one limiter, so the delay applies between that worker's
consecutive requests, not globally.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from law_scraper.config import RateLimitConfig

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sleeps a fixed delay (plus jitter) between a worker's requests."""

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize rate limiter with configuration.

        Args:
            config: RateLimitConfig instance, uses defaults if None
            sleep: Coroutine used for the wait
        """
        self.config = config or RateLimitConfig()
        self._sleep = sleep
        self._waits = 0

    def next_delay(self) -> float:
        """Delay for the next wait, jittered by up to ``jitter_percent`` either way."""
        delay = self.config.request_delay
        if self.config.jitter_percent > 0:
            jitter_range = delay * self.config.jitter_percent
            delay += random.uniform(-jitter_range, jitter_range)
        return max(0.0, delay)

    async def wait(self):
        """Wait for the appropriate delay before the next request."""
        delay = self.next_delay()
        if delay <= 0:
            return
        self._waits += 1
        logger.debug("Waiting %.2fs before next request", delay)
        await self._sleep(delay)

    def get_stats(self) -> dict:
        return {
            'request_delay': self.config.request_delay,
            'jitter_percent': self.config.jitter_percent,
            'waits': self._waits,
        }
