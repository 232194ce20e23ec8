"""
API key extraction and comparison.
"""

from typing import Mapping, Optional

API_KEY_HEADER = "x-api-key"
AUTHORIZATION_HEADER = "authorization"
BEARER_SCHEME = "bearer"


def extract_api_key(headers: Mapping[str, str]) -> Optional[str]:
    """
    Pull the caller's key from lower-cased request headers.

    Precedence: ``X-API-Key`` first, then ``Authorization: Bearer <key>``.
    Empty values count as absent.
    """
    key = headers.get(API_KEY_HEADER)
    if key:
        return key

    authorization = headers.get(AUTHORIZATION_HEADER)
    if not authorization:
        return None

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        return None
    token = token.strip()
    return token or None


def constant_time_equals(provided: str, expected: str) -> bool:
    """
    Compare two secrets without leaking where they first differ.

    Lengths are compared before anything else; equal-length inputs are then
    XOR-accumulated over every byte.
    """
    a = provided.encode("utf-8")
    b = expected.encode("utf-8")
    if len(a) != len(b):
        return False

    result = 0
    for x, y in zip(a, b):
        result |= x ^ y
    return result == 0


def is_valid_api_key(provided: Optional[str], expected: str) -> bool:
    if not provided or not expected:
        return False
    return constant_time_equals(provided, expected)
