"""
Unit tests for the fixed-window rate limiter.
"""

import pytest
import threading
from concurrent.futures import ThreadPoolExecutor

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_credentials.app.policy import RateLimitPolicy
from service_credentials.app.ratelimit import FixedWindowCounter, RateLimiter
from shared.clock import ManualClock


class TestFixedWindowCounter:
    """Test cases for FixedWindowCounter."""

    @pytest.fixture
    def clock(self):
        return ManualClock()

    @pytest.fixture
    def counter(self, clock):
        return FixedWindowCounter(clock)

    def test_limit_three_allows_three_then_rejects(self, counter):
        """Test allow, allow, allow, reject within one window."""
        results = [counter.check("k", 3, 1000).allowed for _ in range(4)]

        assert results == [True, True, True, False]

    def test_fresh_window_after_elapse(self, counter, clock):
        """Test the counter restarts once the window has passed."""
        for _ in range(4):
            counter.check("k", 3, 1000)

        clock.advance(1000)
        decision = counter.check("k", 3, 1000)

        assert decision.allowed is True
        assert decision.remaining == 2
        assert counter.peek("k").count == 1

    def test_remaining_and_reset_reported_on_allow(self, counter, clock):
        """Test informational values are present on success."""
        start = clock.now_ms()

        first = counter.check("k", 5, 60000)
        second = counter.check("k", 5, 60000)

        assert first.remaining == 4
        assert second.remaining == 3
        assert second.limit == 5
        assert second.window_reset_at == start + 60000
        assert second.retry_after_seconds is None

    def test_retry_after_rounds_up(self, counter, clock):
        """Test retry-after is the ceiling of the remaining window in seconds."""
        counter.check("k", 1, 10000)
        clock.advance(2500)

        decision = counter.check("k", 1, 10000)

        assert decision.allowed is False
        assert decision.remaining == 0
        assert decision.retry_after_seconds == 8

    def test_keys_are_independent(self, counter):
        """Test one key's usage does not affect another."""
        counter.check("a", 1, 1000)

        assert counter.check("a", 1, 1000).allowed is False
        assert counter.check("b", 1, 1000).allowed is True

    def test_sweep_removes_only_expired_windows(self, counter, clock):
        """Test sweeping drops counters whose window has ended."""
        counter.check("old", 10, 1000)
        clock.advance(500)
        counter.check("new", 10, 1000)
        clock.advance(500)

        removed = counter.sweep()

        assert removed == 1
        assert counter.peek("old") is None
        assert counter.peek("new") is not None

    def test_decision_headers(self, counter):
        """Test header rendering for rejected decisions."""
        counter.check("k", 1, 1000)
        headers = counter.check("k", 1, 1000).headers()

        assert headers["X-RateLimit-Limit"] == "1"
        assert headers["X-RateLimit-Remaining"] == "0"
        assert headers["Retry-After"] == "1"
        assert "X-RateLimit-Reset" in headers

    def test_concurrent_checks_count_every_request(self, counter):
        """Test increments from many threads are never lost."""
        workers, calls = 8, 500
        barrier = threading.Barrier(workers)

        def hammer(_):
            barrier.wait()
            return sum(counter.check("k", 1000, 60_000).allowed for _ in range(calls))

        with ThreadPoolExecutor(max_workers=workers) as pool:
            allowed = sum(pool.map(hammer, range(workers)))

        assert allowed == 1000
        assert counter.peek("k").count == workers * calls


class TestRateLimiter:
    """Test cases for RateLimiter."""

    @pytest.fixture
    def clock(self):
        return ManualClock()

    @pytest.fixture
    def limiter(self, clock):
        policy = RateLimitPolicy(max_requests_per_user=2, max_token_injections_per_ip=1, window_ms=60000)
        return RateLimiter(policy, clock)

    def test_tenant_and_address_quotas_are_separate(self, limiter):
        """Test the two scopes use their own limits and maps."""
        assert limiter.check_address("10.0.0.1").allowed is True
        assert limiter.check_address("10.0.0.1").allowed is False

        assert limiter.check_tenant("10.0.0.1").allowed is True
        assert limiter.check_tenant("10.0.0.1").allowed is True
        assert limiter.check_tenant("10.0.0.1").allowed is False

    def test_sweep_expired(self, limiter, clock):
        """Test sweeping both scopes after the window ends."""
        limiter.check_address("10.0.0.1")
        limiter.check_tenant("u1")
        clock.advance(60000)

        assert limiter.sweep_expired() == 2
        assert limiter.snapshot()["trackedTenants"] == 0

    def test_reset(self, limiter):
        """Test reset forgets every counter."""
        limiter.check_address("10.0.0.1")
        limiter.reset()

        assert limiter.check_address("10.0.0.1").allowed is True

    def test_snapshot(self, limiter):
        """Test snapshot reports configuration and tracked keys."""
        limiter.check_tenant("u1")
        limiter.check_tenant("u2")

        snapshot = limiter.snapshot()

        assert snapshot == {
            "maxRequestsPerUser": 2,
            "maxTokenInjectionsPerIp": 1,
            "windowMs": 60000,
            "trackedTenants": 2,
            "trackedAddresses": 0,
        }
