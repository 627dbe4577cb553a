# pylint: disable=missing-module-docstring,missing-function-docstring

from orchestrator.retry import (
    RetryAttempt,
    get_retry_delay_ms,
    next_attempt,
    reset_attempt,
    should_retry,
)


def test_backoff_schedule():
    attempt = reset_attempt()
    delays = []
    while should_retry(attempt):
        delays.append(get_retry_delay_ms(attempt))
        attempt = next_attempt(attempt)

    assert delays == [1000, 2000, 4000, 8000, 8000]


def test_budget_is_five_reconnects():
    assert should_retry(RetryAttempt(attempt=4)) is True
    assert should_retry(RetryAttempt(attempt=5)) is False


def test_delay_is_capped_for_large_attempts():
    assert get_retry_delay_ms(RetryAttempt(attempt=10_000)) == 8000


def test_next_attempt_is_immutable():
    first = RetryAttempt(attempt=0)
    second = next_attempt(first)
    assert first.attempt == 0
    assert second.attempt == 1
