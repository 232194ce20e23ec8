"""
Tenant-keyed in-memory credential cache.
"""

import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from shared.clock import Clock, SystemClock
from shared.errors import ValidationError
from shared.logging import get_logger

from .models import CacheEntry, Credential, CredentialStats

DEFAULT_EXPIRY_BUFFER_MS = 5 * 60 * 1000
DEFAULT_STALE_THRESHOLD_MS = 24 * 60 * 60 * 1000
DEFAULT_ACTIVE_WINDOW_MS = 60 * 60 * 1000

_STRING_FIELDS = (
    ("access_token", "accessToken"),
    ("refresh_token", "refreshToken"),
    ("scope", "scope"),
    ("token_type", "tokenType"),
)


def validate_credential(credential: Any) -> Credential:
    """
    Check every credential field, raising ``ValidationError`` naming the first
    offending one. Nothing is stored until the whole credential passes.
    """
    if not isinstance(credential, Credential):
        raise ValidationError("Credential must be a Credential instance", field="credential")

    for attr, wire_name in _STRING_FIELDS[:2]:
        _require_string(getattr(credential, attr), wire_name)

    expires_at = credential.expires_at
    if isinstance(expires_at, bool) or not isinstance(expires_at, int) or expires_at <= 0:
        raise ValidationError("Invalid expiresAt: must be a positive integer", field="expiresAt")

    for attr, wire_name in _STRING_FIELDS[2:]:
        _require_string(getattr(credential, attr), wire_name)

    return credential


def _require_string(value: Any, field: str) -> None:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"Invalid {field}: must be a non-empty string", field=field)


class CredentialStore:
    """
    Caches OAuth credentials per tenant without persisting them.

    Every read-modify-write of the map happens under a single short-lived lock,
    so each operation is atomic per key. A ``put`` racing a ``purge_stale``
    for the same tenant is last-writer-wins: a write stamps ``last_accessed``
    with the current time, which can never fall behind the purge threshold.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        *,
        expiry_buffer_ms: int = DEFAULT_EXPIRY_BUFFER_MS,
        stale_threshold_ms: int = DEFAULT_STALE_THRESHOLD_MS,
        active_window_ms: int = DEFAULT_ACTIVE_WINDOW_MS,
    ):
        self.clock = clock or SystemClock()
        self.expiry_buffer_ms = expiry_buffer_ms
        self.stale_threshold_ms = stale_threshold_ms
        self.active_window_ms = active_window_ms
        self.logger = get_logger("credentials.store")
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, tenant_id: object) -> bool:
        return tenant_id in self._entries

    def put(self, tenant_id: str, credential: Credential) -> None:
        """Validate and store a credential, replacing any previous entry wholesale."""
        if not isinstance(tenant_id, str) or not tenant_id:
            raise ValidationError("Invalid tenantId: must be a non-empty string", field="tenantId")
        validate_credential(credential)

        with self._lock:
            now = self.clock.now_ms()
            self._entries[tenant_id] = CacheEntry(
                credential=credential,
                last_updated=now,
                last_accessed=now,
            )

        self.logger.info("Credential stored", tenant_id=tenant_id, expires_at=credential.expires_at)

    def get(self, tenant_id: str) -> Optional[Credential]:
        """Return the tenant's credential, refreshing its last-access time on a hit."""
        if not tenant_id:
            return None

        with self._lock:
            entry = self._entries.get(tenant_id)
            if entry is None:
                return None
            # lastAccessed only ever moves forward
            entry.last_accessed = max(entry.last_accessed, self.clock.now_ms())
            return entry.credential

    def remove(self, tenant_id: str) -> bool:
        """Delete the tenant's entry. Removing an absent tenant is not an error."""
        with self._lock:
            removed = self._entries.pop(tenant_id, None) is not None

        if removed:
            self.logger.info("Credential removed", tenant_id=tenant_id)
        return removed

    def has_valid_credential(self, tenant_id: str) -> bool:
        credential = self.get(tenant_id)
        return credential is not None and not self.is_expired(credential)

    def is_expired(self, credential: Credential, now: Optional[int] = None) -> bool:
        """True once the credential is within the expiry buffer of its deadline."""
        if now is None:
            now = self.clock.now_ms()
        return credential.expires_at <= now + self.expiry_buffer_ms

    def list_tenant_ids(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def snapshot(self) -> List[Tuple[str, CacheEntry]]:
        """Copies of every entry. Does not count as an access."""
        with self._lock:
            return [(tenant_id, replace(entry)) for tenant_id, entry in self._entries.items()]

    def purge_stale(self) -> int:
        """Evict entries idle for longer than the staleness threshold."""
        with self._lock:
            threshold = self.clock.now_ms() - self.stale_threshold_ms
            stale = [
                tenant_id
                for tenant_id, entry in self._entries.items()
                if entry.last_accessed < threshold
            ]
            for tenant_id in stale:
                del self._entries[tenant_id]

        if stale:
            self.logger.info("Cleaned up stale credential entries", removed=len(stale))
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CredentialStats:
        with self._lock:
            now = self.clock.now_ms()
            entries = list(self._entries.values())

        active_since = now - self.active_window_ms
        updated = [entry.last_updated for entry in entries]

        return CredentialStats(
            total_tenants=len(entries),
            active_tenants=sum(1 for entry in entries if entry.last_accessed >= active_since),
            expired_count=sum(1 for entry in entries if self.is_expired(entry.credential, now)),
            oldest_last_updated=min(updated) if updated else None,
            newest_last_updated=max(updated) if updated else None,
        )
