"""
Convert cached credentials into google-auth credential objects.
"""

from datetime import datetime, timezone
from typing import Optional

from google.oauth2.credentials import Credentials

from ..store import Credential

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def expiry_from_epoch_ms(expires_at: int) -> datetime:
    """google-auth compares expiry against naive UTC datetimes."""
    return datetime.fromtimestamp(expires_at / 1000, tz=timezone.utc).replace(tzinfo=None)


def build_google_credentials(
    credential: Credential,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
) -> Credentials:
    """Per-tenant OAuth client credentials for calling Google APIs."""
    return Credentials(
        token=credential.access_token,
        refresh_token=credential.refresh_token,
        token_uri=GOOGLE_TOKEN_URI,
        client_id=client_id,
        client_secret=client_secret,
        scopes=credential.scope.split(),
        expiry=expiry_from_epoch_ms(credential.expires_at),
    )
