"""
Admission-control policy.

``AccessPolicy`` is the immutable snapshot every component reads. It is built
once at startup from ``GateSettings`` and never mutated afterwards.
"""

import secrets
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from shared.config import GateSettings
from shared.errors import ConfigurationError
from shared.logging import get_logger

MIN_API_KEY_LENGTH = 32
API_KEY_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class RateLimitPolicy(_Frozen):
    max_requests_per_user: int = 100
    max_token_injections_per_ip: int = 10
    window_ms: int = 15 * 60 * 1000
    cleanup_interval_ms: int = 60 * 1000


class TokenValidationPolicy(_Frozen):
    min_expiry_buffer_ms: int = 5 * 60 * 1000
    expiry_warning_threshold_ms: int = 10 * 60 * 1000


class CleanupPolicy(_Frozen):
    interval_ms: int = 30 * 60 * 1000
    stale_threshold_ms: int = 24 * 60 * 60 * 1000


class StorePolicy(_Frozen):
    expiry_buffer_ms: int = 5 * 60 * 1000
    active_window_ms: int = 60 * 60 * 1000


class AccessPolicy(_Frozen):
    """Read-only configuration for the admission layer."""

    enabled: bool = False
    api_key: str = ""
    allowed_origins: Tuple[str, ...] = ()
    max_request_bytes: int = 10 * 1024 * 1024
    rate_limit: RateLimitPolicy = RateLimitPolicy()
    token_validation: TokenValidationPolicy = TokenValidationPolicy()
    cleanup: CleanupPolicy = CleanupPolicy()
    store: StorePolicy = StorePolicy()
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: GateSettings) -> "AccessPolicy":
        origins = tuple(
            origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()
        )
        return cls(
            enabled=settings.enabled,
            api_key=settings.api_key,
            allowed_origins=origins,
            max_request_bytes=settings.max_request_bytes,
            rate_limit=RateLimitPolicy(
                max_requests_per_user=settings.max_requests_per_user,
                max_token_injections_per_ip=settings.max_token_injections_per_ip,
                window_ms=settings.rate_limit_window_ms,
                cleanup_interval_ms=settings.rate_limit_cleanup_interval_ms,
            ),
            token_validation=TokenValidationPolicy(
                min_expiry_buffer_ms=settings.min_expiry_buffer_ms,
                expiry_warning_threshold_ms=settings.expiry_warning_threshold_ms,
            ),
            cleanup=CleanupPolicy(
                interval_ms=settings.cleanup_interval_ms,
                stale_threshold_ms=settings.stale_threshold_ms,
            ),
            store=StorePolicy(expiry_buffer_ms=settings.expiry_buffer_ms),
            google_client_id=settings.google_client_id,
            google_client_secret=settings.google_client_secret,
        )

    @property
    def mode(self) -> str:
        return "multi-tenant" if self.enabled else "standard"

    @property
    def allows_any_origin(self) -> bool:
        return "*" in self.allowed_origins

    def is_origin_allowed(self, origin: Optional[str]) -> bool:
        """Exact match against the allow-list, or wildcard."""
        if not self.enabled:
            return True
        if self.allows_any_origin:
            return True
        return bool(origin) and origin in self.allowed_origins

    def validate_for_startup(self) -> "AccessPolicy":
        """
        Reject configurations that cannot run safely.

        Only enforced when admission control is enabled; the open mode keeps
        working with defaults.
        """
        logger = get_logger("credentials.policy")
        if not self.enabled:
            return self

        if len(self.api_key) < MIN_API_KEY_LENGTH:
            raise ConfigurationError(
                f"MCP_API_KEY must be set and at least {MIN_API_KEY_LENGTH} characters long "
                "when CONVEX_MODE is enabled"
            )

        positive = {
            "RATE_LIMIT_REQUESTS_PER_USER": self.rate_limit.max_requests_per_user,
            "RATE_LIMIT_TOKEN_INJECTIONS_PER_IP": self.rate_limit.max_token_injections_per_ip,
            "RATE_LIMIT_WINDOW_MS": self.rate_limit.window_ms,
            "RATE_LIMIT_CLEANUP_INTERVAL_MS": self.rate_limit.cleanup_interval_ms,
            "CLEANUP_INTERVAL_MS": self.cleanup.interval_ms,
            "CLEANUP_STALE_THRESHOLD_MS": self.cleanup.stale_threshold_ms,
            "MAX_REQUEST_BYTES": self.max_request_bytes,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ConfigurationError(f"{name} must be greater than 0")

        if not self.allowed_origins:
            logger.warning("No ALLOWED_ORIGINS specified; cross-origin requests will be rejected")

        logger.info(
            "Admission control enabled",
            allowed_origins=list(self.allowed_origins),
            max_requests_per_user=self.rate_limit.max_requests_per_user,
            max_token_injections_per_ip=self.rate_limit.max_token_injections_per_ip,
            window_ms=self.rate_limit.window_ms,
        )
        return self

    def public_view(self) -> Dict[str, Any]:
        """Configuration echo for management surfaces. Never includes secrets."""
        return {
            "enabled": self.enabled,
            "mode": self.mode,
            "allowedOrigins": list(self.allowed_origins),
            "maxRequestBytes": self.max_request_bytes,
            "rateLimits": {
                "maxRequestsPerUser": self.rate_limit.max_requests_per_user,
                "maxTokenInjectionsPerIp": self.rate_limit.max_token_injections_per_ip,
                "windowMs": self.rate_limit.window_ms,
            },
            "tokenValidation": {
                "minExpiryBufferMs": self.token_validation.min_expiry_buffer_ms,
                "expiryWarningThresholdMs": self.token_validation.expiry_warning_threshold_ms,
            },
            "cleanup": {
                "intervalMs": self.cleanup.interval_ms,
                "staleThresholdMs": self.cleanup.stale_threshold_ms,
            },
        }


def load_policy(settings: Optional[GateSettings] = None) -> AccessPolicy:
    """Build and validate the policy from the environment (or given settings)."""
    return AccessPolicy.from_settings(settings or GateSettings()).validate_for_startup()


def generate_api_key(length: int = 64) -> str:
    """Generate a random secret suitable for MCP_API_KEY."""
    return "".join(secrets.choice(API_KEY_ALPHABET) for _ in range(length))
