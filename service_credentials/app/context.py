"""
Composition root for the credential service.

``ServiceContext`` builds every component from one ``AccessPolicy`` and owns
the two background sweeps. Handlers and middleware receive the context they
need instead of reaching for module-level state, and tests build a fresh
context (usually with a ``ManualClock``) per case.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from shared.clock import Clock, SystemClock
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.periodic import PeriodicTask

from .gate import AccessGate, default_stages
from .policy import AccessPolicy
from .ratelimit import RateLimiter
from .reporting import AdminReporter
from .store import CredentialStore
from .tools import ToolRegistry


class ServiceContext:
    """Owns the store, limiter, gate, reporter and their sweep schedules."""

    def __init__(
        self,
        policy: AccessPolicy,
        clock: Optional[Clock] = None,
        metrics: Optional[MetricsCollector] = None,
        tools: Optional[ToolRegistry] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.policy = policy
        self.clock = clock or SystemClock()
        self.metrics = metrics
        self.logger = get_logger("credentials.context")

        self.store = CredentialStore(
            self.clock,
            expiry_buffer_ms=policy.store.expiry_buffer_ms,
            stale_threshold_ms=policy.cleanup.stale_threshold_ms,
            active_window_ms=policy.store.active_window_ms,
        )
        self.limiter = RateLimiter(policy.rate_limit, self.clock)
        self.gate = AccessGate(default_stages(policy, self.limiter), metrics=metrics)
        self.reporter = AdminReporter(self.store, self.limiter, policy, self.clock)
        self.tools = tools or ToolRegistry()

        self.credential_sweep = PeriodicTask(
            "credential-purge",
            policy.cleanup.interval_ms,
            self.purge_stale_credentials,
            run_immediately=True,
            sleep=sleep,
            logger_name="credentials.cleanup",
        )
        self.counter_sweep = PeriodicTask(
            "rate-limit-sweep",
            policy.rate_limit.cleanup_interval_ms,
            self.limiter.sweep_expired,
            run_immediately=False,
            sleep=sleep,
            logger_name="credentials.cleanup",
        )

    def purge_stale_credentials(self) -> int:
        removed = self.store.purge_stale()
        if self.metrics is not None:
            self.metrics.record_purge(removed)
            self.metrics.set_tenant_count(len(self.store))
        return removed

    async def start(self):
        await self.credential_sweep.start()
        await self.counter_sweep.start()
        self.logger.info(
            "Service context started",
            mode=self.policy.mode,
            cleanup_interval_ms=self.policy.cleanup.interval_ms,
            stale_threshold_ms=self.policy.cleanup.stale_threshold_ms,
        )

    async def stop(self):
        await self.credential_sweep.stop()
        await self.counter_sweep.stop()
        self.logger.info("Service context stopped")

    def reset(self):
        """Drop all cached credentials and rate counters."""
        self.store.clear()
        self.limiter.reset()
        if self.metrics is not None:
            self.metrics.set_tenant_count(0)

    def cleanup_status(self) -> Dict[str, Any]:
        return {
            "intervalMs": self.policy.cleanup.interval_ms,
            "staleThresholdMs": self.policy.cleanup.stale_threshold_ms,
            "isRunning": self.credential_sweep.running,
        }
