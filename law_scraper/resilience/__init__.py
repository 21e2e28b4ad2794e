"""
Resilience components for the law scraper.
"""

from .failure_log import FailureLog
from .progress_tracker import ProgressTracker
from .rate_limiter import RateLimiter
from .retry_handler import RetryHandler, RetryOutcome

__all__ = [
    'FailureLog',
    'ProgressTracker',
    'RateLimiter',
    'RetryHandler',
    'RetryOutcome'
]
