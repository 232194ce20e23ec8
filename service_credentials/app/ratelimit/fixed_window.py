"""
Fixed-window rate limiter for the credential service.

Counters reset entirely at the end of each window rather than sliding. This
keeps memory bounded and each check O(1) per key, at the cost of allowing a
short burst across a window boundary.
"""

import math
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from shared.clock import Clock, SystemClock
from shared.logging import get_logger

from ..policy import RateLimitPolicy

TENANT_SCOPE = "tenant"
ADDRESS_SCOPE = "address"


@dataclass
class RateCounter:
    count: int
    window_reset_at: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one check. Carries header values for allowed requests too."""

    allowed: bool
    limit: int
    remaining: int
    window_reset_at: int
    retry_after_seconds: Optional[int] = None

    def headers(self) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.window_reset_at),
        }
        if self.retry_after_seconds is not None:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class FixedWindowCounter:
    """Keyed fixed-window counters. Each check is atomic per key."""

    def __init__(self, clock: Clock):
        self.clock = clock
        self._counters: Dict[str, RateCounter] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._counters)

    def check(self, key: str, limit: int, window_ms: int) -> RateLimitDecision:
        with self._lock:
            now = self.clock.now_ms()
            counter = self._counters.get(key)
            if counter is None or now >= counter.window_reset_at:
                counter = RateCounter(count=0, window_reset_at=now + window_ms)
                self._counters[key] = counter

            counter.count += 1
            count, reset_at = counter.count, counter.window_reset_at

        if count > limit:
            return RateLimitDecision(
                allowed=False,
                limit=limit,
                remaining=0,
                window_reset_at=reset_at,
                retry_after_seconds=math.ceil((reset_at - now) / 1000),
            )

        return RateLimitDecision(
            allowed=True,
            limit=limit,
            remaining=limit - count,
            window_reset_at=reset_at,
        )

    def peek(self, key: str) -> Optional[RateCounter]:
        with self._lock:
            counter = self._counters.get(key)
            return RateCounter(counter.count, counter.window_reset_at) if counter else None

    def sweep(self) -> int:
        """Drop counters whose window has already ended."""
        with self._lock:
            now = self.clock.now_ms()
            expired = [key for key, counter in self._counters.items() if now >= counter.window_reset_at]
            for key in expired:
                del self._counters[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._counters.clear()


class RateLimiter:
    """
    Two independent quotas: general requests per tenant, and credential
    injections per client address.
    """

    def __init__(self, policy: RateLimitPolicy, clock: Optional[Clock] = None):
        self.policy = policy
        self.clock = clock or SystemClock()
        self.by_tenant = FixedWindowCounter(self.clock)
        self.by_address = FixedWindowCounter(self.clock)
        self.logger = get_logger("credentials.rate_limiter")

    def check(self, scope: str, key: str, limit: int, window_ms: int) -> RateLimitDecision:
        counters = self.by_tenant if scope == TENANT_SCOPE else self.by_address
        decision = counters.check(key, limit, window_ms)
        if not decision.allowed:
            self.logger.warning(
                "Rate limit exceeded",
                scope=scope,
                key=key,
                limit=limit,
                retry_after=decision.retry_after_seconds,
            )
        return decision

    def check_tenant(self, tenant_id: str) -> RateLimitDecision:
        return self.check(
            TENANT_SCOPE, tenant_id, self.policy.max_requests_per_user, self.policy.window_ms
        )

    def check_address(self, address: str) -> RateLimitDecision:
        return self.check(
            ADDRESS_SCOPE, address, self.policy.max_token_injections_per_ip, self.policy.window_ms
        )

    def sweep_expired(self) -> int:
        removed = self.by_tenant.sweep() + self.by_address.sweep()
        if removed:
            self.logger.debug("Expired rate limit counters removed", removed=removed)
        return removed

    def reset(self) -> None:
        self.by_tenant.clear()
        self.by_address.clear()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "maxRequestsPerUser": self.policy.max_requests_per_user,
            "maxTokenInjectionsPerIp": self.policy.max_token_injections_per_ip,
            "windowMs": self.policy.window_ms,
            "trackedTenants": len(self.by_tenant),
            "trackedAddresses": len(self.by_address),
        }
