"""
Unit tests for admission policy loading and validation.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_credentials.app.policy import (
    MIN_API_KEY_LENGTH,
    AccessPolicy,
    RateLimitPolicy,
    generate_api_key,
    load_policy,
)
from shared.config import get_gate_settings
from shared.errors import ConfigurationError
from shared.test_helpers import TEST_API_KEY


class TestAccessPolicy:
    """Test cases for AccessPolicy."""

    def test_defaults(self):
        """Test default quotas and thresholds."""
        policy = AccessPolicy()

        assert policy.enabled is False
        assert policy.mode == "standard"
        assert policy.max_request_bytes == 10 * 1024 * 1024
        assert policy.rate_limit.max_requests_per_user == 100
        assert policy.rate_limit.max_token_injections_per_ip == 10
        assert policy.rate_limit.window_ms == 15 * 60 * 1000
        assert policy.cleanup.interval_ms == 30 * 60 * 1000
        assert policy.cleanup.stale_threshold_ms == 24 * 60 * 60 * 1000
        assert policy.store.expiry_buffer_ms == 5 * 60 * 1000

    def test_from_settings_parses_origins(self):
        """Test the comma-separated origin list is split and trimmed."""
        settings = get_gate_settings(
            enabled=True,
            api_key=TEST_API_KEY,
            allowed_origins=" https://a.example.com , https://b.example.com,,",
            max_requests_per_user=7,
        )

        policy = AccessPolicy.from_settings(settings)

        assert policy.allowed_origins == ("https://a.example.com", "https://b.example.com")
        assert policy.rate_limit.max_requests_per_user == 7
        assert policy.mode == "multi-tenant"

    def test_settings_read_from_environment(self, monkeypatch):
        """Test environment variable names map onto settings."""
        monkeypatch.setenv("CONVEX_MODE", "true")
        monkeypatch.setenv("MCP_API_KEY", TEST_API_KEY)
        monkeypatch.setenv("RATE_LIMIT_WINDOW_MS", "1000")
        monkeypatch.setenv("ALLOWED_ORIGINS", "*")

        policy = load_policy()

        assert policy.enabled is True
        assert policy.rate_limit.window_ms == 1000
        assert policy.allows_any_origin is True

    def test_policy_is_frozen(self):
        policy = AccessPolicy()

        with pytest.raises(Exception):
            policy.enabled = True

    def test_is_origin_allowed(self):
        policy = AccessPolicy(enabled=True, api_key=TEST_API_KEY, allowed_origins=("https://a.example.com",))

        assert policy.is_origin_allowed("https://a.example.com") is True
        assert policy.is_origin_allowed("https://b.example.com") is False
        assert policy.is_origin_allowed(None) is False
        assert AccessPolicy().is_origin_allowed("anything") is True

    def test_validate_requires_long_api_key(self):
        """Test enabled mode refuses a short or missing key."""
        with pytest.raises(ConfigurationError):
            AccessPolicy(enabled=True, api_key="short").validate_for_startup()

        with pytest.raises(ConfigurationError):
            AccessPolicy(enabled=True).validate_for_startup()

    def test_validate_rejects_non_positive_limits(self):
        policy = AccessPolicy(
            enabled=True,
            api_key=TEST_API_KEY,
            rate_limit=RateLimitPolicy(window_ms=0),
        )

        with pytest.raises(ConfigurationError, match="RATE_LIMIT_WINDOW_MS"):
            policy.validate_for_startup()

    def test_validate_skipped_when_disabled(self):
        policy = AccessPolicy(enabled=False, api_key="")

        assert policy.validate_for_startup() is policy

    def test_public_view_hides_secret(self):
        policy = AccessPolicy(enabled=True, api_key=TEST_API_KEY, allowed_origins=("*",))

        view = policy.public_view()

        assert TEST_API_KEY not in str(view)
        assert view["allowedOrigins"] == ["*"]
        assert view["rateLimits"]["maxRequestsPerUser"] == 100


class TestGenerateApiKey:
    """Test cases for generate_api_key."""

    def test_length_and_uniqueness(self):
        first = generate_api_key()
        second = generate_api_key()

        assert len(first) == 64
        assert len(first) >= MIN_API_KEY_LENGTH
        assert first != second
