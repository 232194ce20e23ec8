"""
Credential storage for the access layer.

Credentials live only in process memory, keyed by tenant identity, and are
evicted once they go unused for longer than the staleness threshold.
"""

from .credential_store import CredentialStore, validate_credential
from .models import CacheEntry, Credential, CredentialStats

__all__ = [
    "CacheEntry",
    "Credential",
    "CredentialStats",
    "CredentialStore",
    "validate_credential",
]
