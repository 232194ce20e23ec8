"""Adapters from cached credentials to provider client libraries."""

from .google_oauth import GOOGLE_TOKEN_URI, build_google_credentials, expiry_from_epoch_ms

__all__ = ["GOOGLE_TOKEN_URI", "build_google_credentials", "expiry_from_epoch_ms"]
