"""
Retry handling with exponential backoff.
Runs an attempt function repeatedly and records permanent failures.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from law_scraper.config import RetryConfig
from law_scraper.models import FailureRecord
from law_scraper.resilience.failure_log import FailureLog

logger = logging.getLogger(__name__)


@dataclass
class RetryOutcome:
    """Result of running an operation under the retry policy."""
    success: bool
    result: Any = None
    attempts: int = 0
    last_error: Optional[str] = None


class RetryHandler:
    """Manages retry logic with exponential backoff and failure tracking."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        failure_log: Optional[FailureLog] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize retry handler.

        Args:
            config: RetryConfig instance, uses defaults if None
            failure_log: Where permanent failures are appended
            sleep: Coroutine used for backoff waits
        """
        self.config = config or RetryConfig()
        self.failure_log = failure_log
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """
        Delay before the attempt following ``attempt``.

        Args:
            attempt: 1-based number of the attempt that just failed

        Returns:
            base_delay * backoff_factor ** (attempt - 1), capped at max_delay
        """
        delay = self.config.base_delay * (self.config.backoff_factor ** (attempt - 1))
        return min(delay, self.config.max_delay)

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        label: str = '',
        **kwargs
    ) -> RetryOutcome:
        """
        Execute an attempt coroutine with retry logic.

        ``func`` is called as ``func(attempt, *args, **kwargs)``. An attempt
        succeeds when it returns a value other than None; an exception or a
        None result counts as a failed attempt.

        Returns:
            RetryOutcome with the result or the last error
        """
        max_retries = max(1, self.config.max_retries)
        last_error = None

        for attempt in range(1, max_retries + 1):
            try:
                result = await func(attempt, *args, **kwargs)
                if result is not None:
                    return RetryOutcome(success=True, result=result, attempts=attempt)
                last_error = "Attempt returned no result"
            except Exception as e:
                last_error = str(e) or type(e).__name__
                logger.info("%sAttempt %d/%d failed: %s", f"[{label}] " if label else '',
                            attempt, max_retries, last_error)

            # Don't sleep after last attempt
            if attempt < max_retries:
                delay = self.backoff_delay(attempt)
                logger.debug("Retrying in %.1fs...", delay)
                await self._sleep(delay)

        return RetryOutcome(success=False, attempts=max_retries, last_error=last_error)

    async def record_permanent_failure(self, failure: FailureRecord):
        """Append a law that failed all retries to the failure log."""
        if self.failure_log is None:
            logger.warning("Cannot record failure for %s - no failure log set", failure.law_id)
            return
        await self.failure_log.append(failure)
        logger.info("Recorded permanent failure for %s: %s", failure.law_id, failure.error)

    def get_stats(self) -> dict:
        return {
            'max_retries': self.config.max_retries,
            'base_delay': self.config.base_delay,
            'max_delay': self.config.max_delay,
        }
