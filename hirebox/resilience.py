"""
Retry and rate limiting for mail provider and scoring model calls.

Only errors the caller marks as retryable are retried. When a throttled
response says how long to wait (``retry_after`` on the exception, taken
from the Retry-After header) that wait is honoured instead of the
computed backoff, capped at ``max_delay``.
"""

import functools
import random
import threading
import time
from collections import deque
from typing import Any, Callable, Optional, Tuple, Type

from hirebox.errors import HireBoxError
from hirebox.logging_config import get_logger

logger = get_logger(__name__)


class RetryError(HireBoxError):
    """Raised when all retry attempts are exhausted."""

    status_code = 503

    def __init__(self, message: str, last_exception: Optional[Exception] = None):
        super().__init__(message)
        self.last_exception = last_exception


def backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retry_after: Optional[float] = None,
) -> float:
    """
    Seconds to wait before retry number ``attempt + 1``.

    base_delay * exponential_base ** attempt with +/-25% jitter, or the
    server's Retry-After when it gave one.
    """
    if retry_after is not None:
        return min(max(float(retry_after), 0.0), max_delay)

    delay = min(base_delay * (exponential_base**attempt), max_delay)
    if jitter:
        delay *= 0.75 + random.random() * 0.5
    return delay


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[Exception, int], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Decorator for retry with exponential backoff.

    Args:
        max_retries: Retries after the first attempt
        base_delay: Initial delay in seconds
        max_delay: Cap for any single wait
        exponential_base: Growth factor per attempt
        jitter: Spread retries by +/-25%
        retryable_exceptions: Exceptions worth another attempt; others propagate at once
        on_retry: Called with (exception, attempt) before each wait
        sleep: Wait function (tests pass a recorder)

    Raises:
        RetryError: The last attempt failed too; the cause is on last_exception
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt == max_retries:
                        logger.error(
                            f"All {max_retries} retries exhausted for {func.__name__}: {e}"
                        )
                        raise RetryError(
                            f"Failed after {max_retries} retries: {e}", last_exception=e
                        )

                    delay = backoff_delay(
                        attempt,
                        base_delay=base_delay,
                        max_delay=max_delay,
                        exponential_base=exponential_base,
                        jitter=jitter,
                        retry_after=getattr(e, "retry_after", None),
                    )
                    logger.warning(
                        f"Retry {attempt + 1}/{max_retries} for {func.__name__} "
                        f"in {delay:.2f}s: {e}"
                    )
                    if on_retry:
                        on_retry(e, attempt + 1)
                    sleep(delay)

        return wrapper

    return decorator


class RateLimiter:
    """
    Sliding one-minute window with a minimum spacing between calls.

    At most ``calls_per_minute`` calls start in any 60 second window and
    consecutive calls are at least 60 / calls_per_minute seconds apart once
    the first ``burst_size`` calls of a quiet period have gone through.
    """

    WINDOW = 60.0

    def __init__(
        self,
        calls_per_minute: int = 60,
        burst_size: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.calls_per_minute = calls_per_minute
        self.burst_size = burst_size or max(1, calls_per_minute // 4)
        self.min_interval = self.WINDOW / calls_per_minute
        self.clock = clock
        self.sleep = sleep

        self._lock = threading.Lock()
        self._calls: deque = deque()

    def _wait_time(self, now: float) -> float:
        while self._calls and self._calls[0] <= now - self.WINDOW:
            self._calls.popleft()

        if len(self._calls) >= self.calls_per_minute:
            return self._calls[0] + self.WINDOW - now

        # Calls inside the burst allowance skip the spacing
        recent = [t for t in self._calls if t > now - self.min_interval * self.burst_size]
        if len(recent) < self.burst_size:
            return 0.0
        return max(0.0, self._calls[-1] + self.min_interval - now)

    def acquire(self, timeout: Optional[float] = None) -> bool:
        """
        Block until a call may start.

        Returns:
            True once acquired, False if that would take longer than timeout
        """
        deadline = None if timeout is None else self.clock() + timeout
        while True:
            with self._lock:
                now = self.clock()
                wait = self._wait_time(now)
                if wait <= 0:
                    self._calls.append(now)
                    return True

            if deadline is not None and now + wait > deadline:
                return False
            self.sleep(wait)


class APIRateLimiters:
    """Shared limiters, one per upstream API."""

    # Anthropic tier-1 allows 50 requests/minute
    claude = RateLimiter(calls_per_minute=50, burst_size=10)

    # Gmail per-user quota is 250 units/s; reads cost 5 units each
    gmail = RateLimiter(calls_per_minute=600, burst_size=50)

    # Graph throttles a mailbox at 10k requests per 10 minutes
    graph = RateLimiter(calls_per_minute=600, burst_size=50)


def resilient_call(
    func: Callable,
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    rate_limiter: Optional[RateLimiter] = None,
    **kwargs,
) -> Any:
    """
    Call func with rate limiting and retry.

    The limiter is acquired before every attempt, retries included.
    """

    @retry_with_backoff(
        max_retries=max_retries,
        base_delay=base_delay,
        retryable_exceptions=retryable_exceptions,
    )
    def _call():
        if rate_limiter:
            rate_limiter.acquire()
        return func(*args, **kwargs)

    return _call()
