"""
Unit tests for admin reporting and the service context.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_credentials.app.context import ServiceContext
from service_credentials.app.policy import AccessPolicy, CleanupPolicy
from shared.clock import ManualClock
from shared.metrics import MetricsCollector
from shared.test_helpers import TEST_API_KEY, make_credential, make_policy

HOUR_MS = 60 * 60 * 1000


class TestAdminReporter:
    """Test cases for AdminReporter."""

    @pytest.fixture
    def clock(self):
        return ManualClock()

    @pytest.fixture
    def context(self, clock):
        return ServiceContext(make_policy(), clock=clock)

    def test_snapshot_reflects_store_and_limiter(self, context, clock):
        """Test the snapshot combines both components."""
        context.store.put("u1", make_credential(clock.now_ms()))
        context.limiter.check_tenant("u1")

        snapshot = context.reporter.snapshot()

        assert snapshot.credentials.total_tenants == 1
        assert snapshot.rate_limits["trackedTenants"] == 1
        assert snapshot.taken_at == clock.now_ms()

    def test_health(self, context, clock):
        """Test health shape and counts."""
        context.store.put("u1", make_credential(clock.now_ms()))
        clock.advance(2500)

        health = context.reporter.health()

        assert health["status"] == "healthy"
        assert health["mode"] == "multi-tenant"
        assert health["uptime"] == 2.5
        assert health["users"] == {"total": 1, "active": 1}
        assert health["memory"]["used"] >= 0
        assert health["memory"]["total"] > 0

    def test_metrics_includes_config_only_when_enabled(self, clock):
        """Test the configuration echo follows the admission mode."""
        enabled = ServiceContext(make_policy(), clock=clock).reporter.metrics()
        disabled = ServiceContext(make_policy(enabled=False), clock=clock).reporter.metrics()

        assert enabled["config"]["allowedOrigins"] == ["https://app.example.com"]
        assert TEST_API_KEY not in str(enabled)
        assert disabled["config"] is None

    def test_metrics_token_ages(self, context, clock):
        """Test ages are measured from the last update."""
        context.store.put("u1", make_credential(clock.now_ms(), ttl_ms=10 * HOUR_MS))
        clock.advance(3000)
        context.store.put("u2", make_credential(clock.now_ms(), ttl_ms=10 * HOUR_MS))
        clock.advance(1000)

        tokens = context.reporter.metrics()["tokens"]

        assert tokens["totalUsers"] == 2
        assert tokens["oldestTokenAge"] == 4000
        assert tokens["newestTokenAge"] == 1000
        assert tokens["expiredTokens"] == 0

    def test_metrics_empty_store_ages_are_none(self, context):
        tokens = context.reporter.metrics()["tokens"]

        assert tokens["oldestTokenAge"] is None
        assert tokens["newestTokenAge"] is None

    def test_active_tenants(self, context, clock):
        """Test per-tenant listing with validity and clamped expiry."""
        context.store.put("good", make_credential(clock.now_ms(), ttl_ms=HOUR_MS, scope="calendar"))
        context.store.put("soon", make_credential(clock.now_ms(), ttl_ms=1000))

        listing = context.reporter.active_tenants()

        assert listing["total"] == 2
        assert listing["active"] == 1
        assert listing["expired"] == 1
        users = {user["userId"]: user for user in listing["users"]}
        assert users["good"] == {"userId": "good", "valid": True, "expiresIn": HOUR_MS, "scope": "calendar"}
        assert users["soon"]["valid"] is False

    def test_active_tenants_does_not_bump_access(self, context, clock):
        """Test listing is read-only."""
        context.store.put("u1", make_credential(clock.now_ms(), ttl_ms=72 * HOUR_MS))
        clock.advance(25 * HOUR_MS)

        context.reporter.active_tenants()

        assert context.store.purge_stale() == 1


class TestServiceContext:
    """Test cases for ServiceContext."""

    @pytest.fixture
    def clock(self):
        return ManualClock()

    def test_reset_clears_state(self, clock):
        context = ServiceContext(make_policy(), clock=clock)
        context.store.put("u1", make_credential(clock.now_ms()))
        context.limiter.check_address("10.0.0.1")

        context.reset()

        assert len(context.store) == 0
        assert context.limiter.snapshot()["trackedAddresses"] == 0

    def test_purge_records_metrics(self, clock):
        metrics = MetricsCollector("credentials")
        policy = make_policy(cleanup=CleanupPolicy(interval_ms=1000, stale_threshold_ms=HOUR_MS))
        context = ServiceContext(policy, clock=clock, metrics=metrics)
        context.store.put("u1", make_credential(clock.now_ms()))
        clock.advance(HOUR_MS + 1)

        assert context.purge_stale_credentials() == 1
        assert metrics.get_sample_value("stale_credentials_purged_total") == 1.0
        assert metrics.get_sample_value("credential_tenants") == 0.0

    def test_contexts_are_isolated(self, clock):
        first = ServiceContext(make_policy(), clock=clock)
        second = ServiceContext(make_policy(), clock=clock)

        first.store.put("u1", make_credential(clock.now_ms()))

        assert "u1" not in second.store

    @pytest.mark.asyncio
    async def test_start_purges_immediately_and_stop(self, clock):
        """Test the credential sweep runs at startup and stops cleanly."""
        context = ServiceContext(AccessPolicy(), clock=clock)
        context.store.put("u1", make_credential(clock.now_ms(), ttl_ms=72 * HOUR_MS))
        clock.advance(25 * HOUR_MS)

        await context.start()
        try:
            assert "u1" not in context.store
            assert context.cleanup_status() == {
                "intervalMs": 30 * 60 * 1000,
                "staleThresholdMs": 24 * HOUR_MS,
                "isRunning": True,
            }
        finally:
            await context.stop()

        assert context.cleanup_status()["isRunning"] is False
