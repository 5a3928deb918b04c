"""Bounded retries with exponential backoff."""

import pytest

from booking_engine.retry import RetryPolicy, retry_call


class Flaky:
    def __init__(self, failures: int, exc: type = RuntimeError):
        self.failures = failures
        self.exc = exc
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc(f"failure {self.calls}")
        return "ok"


class TestRetry:

    def test_delays_grow_exponentially(self):
        policy = RetryPolicy(max_attempts=4, backoff_seconds=0.5, multiplier=2)
        assert list(policy.delays()) == [0.5, 1.0, 2.0]

    def test_recovers_within_budget(self):
        waits = []
        fn = Flaky(failures=2)
        result = retry_call(RetryPolicy(max_attempts=3, backoff_seconds=0.1), fn, sleep=waits.append)

        assert result == "ok"
        assert fn.calls == 3
        assert waits == [0.1, 0.2]

    def test_gives_up_after_max_attempts(self):
        waits = []
        fn = Flaky(failures=5)
        with pytest.raises(RuntimeError, match="failure 3"):
            retry_call(RetryPolicy(max_attempts=3), fn, sleep=waits.append)
        assert fn.calls == 3
        assert len(waits) == 2

    def test_other_exceptions_are_not_retried(self):
        fn = Flaky(failures=1, exc=KeyError)
        with pytest.raises(KeyError):
            retry_call(RetryPolicy(max_attempts=3), fn, retry_on=(RuntimeError,), sleep=lambda s: None)
        assert fn.calls == 1

    def test_single_attempt_policy(self):
        fn = Flaky(failures=1)
        with pytest.raises(RuntimeError):
            retry_call(RetryPolicy(max_attempts=1), fn, sleep=lambda s: None)
        assert fn.calls == 1

    def test_from_settings(self, settings):
        policy = RetryPolicy.from_settings(settings)
        assert policy.max_attempts == settings.retry_max_attempts
        assert policy.backoff_seconds == settings.retry_backoff_seconds
