"""
Tests for retry backoff and rate limiting.
"""

import pytest


def test_only_retryable_errors_are_retried():
    from hirebox.resilience import retry_with_backoff

    calls = []

    @retry_with_backoff(max_retries=3, retryable_exceptions=(ConnectionError,), sleep=lambda s: None)
    def flaky():
        calls.append(1)
        raise KeyError("not retryable")

    with pytest.raises(KeyError):
        flaky()
    assert len(calls) == 1


def test_retry_recovers_and_waits_between_attempts():
    from hirebox.resilience import retry_with_backoff

    waits = []
    attempts = iter([ConnectionError("reset"), ConnectionError("reset"), "ok"])

    @retry_with_backoff(
        max_retries=3,
        base_delay=1.0,
        jitter=False,
        retryable_exceptions=(ConnectionError,),
        sleep=waits.append,
    )
    def flaky():
        outcome = next(attempts)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert flaky() == "ok"
    assert waits == [1.0, 2.0]


def test_retry_after_overrides_backoff():
    from hirebox.errors import TransientProviderError
    from hirebox.resilience import RetryError, retry_with_backoff

    waits = []

    @retry_with_backoff(
        max_retries=2,
        max_delay=30.0,
        retryable_exceptions=(TransientProviderError,),
        sleep=waits.append,
    )
    def throttled():
        raise TransientProviderError("429", status=429, retry_after=120)

    with pytest.raises(RetryError) as exc_info:
        throttled()

    assert waits == [30.0, 30.0]
    assert exc_info.value.last_exception.status == 429


@pytest.mark.parametrize(
    "attempt, expected",
    [(0, 1.0), (1, 2.0), (3, 8.0), (10, 60.0)],
)
def test_backoff_delay_without_jitter(attempt, expected):
    from hirebox.resilience import backoff_delay

    assert backoff_delay(attempt, base_delay=1.0, jitter=False) == expected


def test_rate_limiter_spaces_calls_after_burst():
    from hirebox.resilience import RateLimiter

    now = [0.0]
    waits = []

    def sleep(seconds):
        waits.append(round(seconds, 3))
        now[0] += seconds

    limiter = RateLimiter(calls_per_minute=60, burst_size=2, clock=lambda: now[0], sleep=sleep)

    for _ in range(3):
        assert limiter.acquire() is True

    # Two burst calls go straight through, the third waits one interval
    assert waits == [1.0]


def test_rate_limiter_timeout():
    from hirebox.resilience import RateLimiter

    now = [0.0]
    limiter = RateLimiter(calls_per_minute=1, burst_size=1, clock=lambda: now[0], sleep=lambda s: None)

    assert limiter.acquire() is True
    assert limiter.acquire(timeout=5) is False
