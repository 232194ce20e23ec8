"""
Rate limiting package for the credential service.

Holds fixed-window counters that enforce per-tenant request budgets and
per-address credential-injection budgets.
"""

from .fixed_window import (
    ADDRESS_SCOPE,
    TENANT_SCOPE,
    FixedWindowCounter,
    RateCounter,
    RateLimitDecision,
    RateLimiter,
)

__all__ = [
    "ADDRESS_SCOPE",
    "TENANT_SCOPE",
    "FixedWindowCounter",
    "RateCounter",
    "RateLimitDecision",
    "RateLimiter",
]
