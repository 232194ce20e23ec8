"""
Read-only reporting over the credential store and rate limiter.

Nothing here mutates state. In particular, listing tenants reads a snapshot of
the store, so looking at a tenant does not keep its credential alive.
"""

import os
import platform
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import psutil

from shared.clock import Clock, SystemClock

from ..policy import AccessPolicy
from ..ratelimit import RateLimiter
from ..store import CredentialStats, CredentialStore

BYTES_PER_MB = 1024 * 1024


def _mb(value: int) -> int:
    return round(value / BYTES_PER_MB)


@dataclass(frozen=True)
class AdminSnapshot:
    credentials: CredentialStats
    rate_limits: Dict[str, Any]
    taken_at: int


class AdminReporter:
    """Aggregates store statistics and limiter state for management surfaces."""

    def __init__(
        self,
        store: CredentialStore,
        limiter: RateLimiter,
        policy: AccessPolicy,
        clock: Optional[Clock] = None,
        server_name: str = "calendar-mcp-access-layer",
        started_at_ms: Optional[int] = None,
    ):
        self.store = store
        self.limiter = limiter
        self.policy = policy
        self.clock = clock or SystemClock()
        self.server_name = server_name
        self.started_at_ms = self.clock.now_ms() if started_at_ms is None else started_at_ms
        self._process = psutil.Process(os.getpid())

    def uptime_seconds(self) -> float:
        return max(self.clock.now_ms() - self.started_at_ms, 0) / 1000

    def snapshot(self) -> AdminSnapshot:
        return AdminSnapshot(
            credentials=self.store.stats(),
            rate_limits=self.limiter.snapshot(),
            taken_at=self.clock.now_ms(),
        )

    def health(self) -> Dict[str, Any]:
        stats = self.store.stats()
        memory = self._process.memory_info()
        return {
            "status": "healthy",
            "server": self.server_name,
            "mode": self.policy.mode,
            "uptime": self.uptime_seconds(),
            "memory": {
                "used": _mb(memory.rss),
                "total": _mb(psutil.virtual_memory().total),
            },
            "users": {
                "total": stats.total_tenants,
                "active": stats.active_tenants,
            },
        }

    def metrics(self) -> Dict[str, Any]:
        snapshot = self.snapshot()
        stats = snapshot.credentials
        now = snapshot.taken_at
        memory = self._process.memory_info()
        cpu = self._process.cpu_times()

        return {
            "server": {
                "name": self.server_name,
                "mode": self.policy.mode,
                "uptime": self.uptime_seconds(),
                "pythonVersion": platform.python_version(),
                "platform": platform.system().lower(),
            },
            "tokens": {
                "totalUsers": stats.total_tenants,
                "activeUsers": stats.active_tenants,
                "expiredTokens": stats.expired_count,
                "oldestTokenAge": None if stats.oldest_last_updated is None else now - stats.oldest_last_updated,
                "newestTokenAge": None if stats.newest_last_updated is None else now - stats.newest_last_updated,
            },
            "rateLimits": snapshot.rate_limits,
            "memory": {
                "rss": _mb(memory.rss),
                "vms": _mb(memory.vms),
            },
            "process": {
                "pid": self._process.pid,
                "cpuTimes": {"user": cpu.user, "system": cpu.system},
            },
            "config": self.policy.public_view() if self.policy.enabled else None,
        }

    def active_tenants(self) -> Dict[str, Any]:
        now = self.clock.now_ms()
        users: List[Dict[str, Any]] = []

        for tenant_id, entry in self.store.snapshot():
            credential = entry.credential
            users.append({
                "userId": tenant_id,
                "valid": not self.store.is_expired(credential, now),
                "expiresIn": max(credential.expires_at - now, 0),
                "scope": credential.scope,
            })

        valid = sum(1 for user in users if user["valid"])
        return {
            "total": len(users),
            "active": valid,
            "expired": len(users) - valid,
            "users": users,
        }
