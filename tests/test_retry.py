"""Tests for retry policy and endpoint rotation."""

import pytest

from pulse_portfolio_tracker.core.exceptions import MalformedResponse, ProviderUnavailable
from pulse_portfolio_tracker.rpc.retry import RetryConfig, RetryManager, RetryPolicy


def test_linear_backoff_capped():
    """Test delay grows linearly up to max_delay."""
    config = RetryConfig(base_delay=1.0, max_delay=2.5)
    assert config.get_delay(1) == 1.0
    assert config.get_delay(2) == 2.0
    assert config.get_delay(3) == 2.5


def test_retries_transient_errors(no_sleep):
    """Test transient failures are retried until success."""
    sleep, delays = no_sleep
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise ProviderUnavailable("down")
        return "ok"

    policy = RetryPolicy(RetryConfig(max_attempts=3, base_delay=1.0), sleep=sleep)
    assert policy.call(flaky) == "ok"
    assert len(calls) == 3
    assert delays == [1.0, 2.0]


def test_gives_up_after_max_attempts(no_sleep):
    """Test the last error is raised when attempts run out."""
    sleep, delays = no_sleep

    def always_down():
        raise ProviderUnavailable("down")

    policy = RetryPolicy(RetryConfig(max_attempts=2), sleep=sleep)
    with pytest.raises(ProviderUnavailable):
        policy.call(always_down)
    assert len(delays) == 1


def test_permanent_errors_not_retried(no_sleep):
    """Test non-retryable errors propagate immediately."""
    sleep, delays = no_sleep
    calls = []

    def malformed():
        calls.append(1)
        raise MalformedResponse("bad body")

    with pytest.raises(MalformedResponse):
        RetryPolicy(sleep=sleep).call(malformed)
    assert len(calls) == 1
    assert delays == []


def test_retry_manager_rotates_endpoint(no_sleep):
    """Test each retry moves to the next endpoint."""
    sleep, _ = no_sleep

    class FakeProvider:
        def __init__(self):
            self.endpoints = ["a", "b", "c"]
            self.index = 0
            self.seen = []

        def make_request(self, method, params):
            self.seen.append(self.endpoints[self.index])
            if self.index < 2:
                raise ProviderUnavailable("down")
            return "0x1"

        def rotate_endpoint(self):
            self.index = (self.index + 1) % len(self.endpoints)

    provider = FakeProvider()
    manager = RetryManager(provider, RetryPolicy(RetryConfig(max_attempts=3), sleep=sleep))
    assert manager.execute_with_retry("eth_blockNumber", []) == "0x1"
    assert provider.seen == ["a", "b", "c"]
