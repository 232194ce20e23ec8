"""
Data model for cached OAuth credentials.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Credential:
    """OAuth token bundle for one tenant. ``expires_at`` is epoch milliseconds."""

    access_token: str
    refresh_token: str
    expires_at: int
    scope: str
    token_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at,
            "scope": self.scope,
            "tokenType": self.token_type,
        }


@dataclass
class CacheEntry:
    """Store-owned bookkeeping around a credential."""

    credential: Credential
    last_updated: int
    last_accessed: int


@dataclass(frozen=True)
class CredentialStats:
    """Point-in-time summary of the store."""

    total_tenants: int
    active_tenants: int
    expired_count: int
    oldest_last_updated: Optional[int]
    newest_last_updated: Optional[int]
