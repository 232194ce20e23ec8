"""
Admission control for the credential service.

Requests pass origin, security-header, API-key, rate-limit and payload-size
stages in that order before any handler sees them.
"""

from .api_keys import constant_time_equals, extract_api_key, is_valid_api_key
from .middleware import build_request_context, classify_route, create_gate_dispatch
from .pipeline import (
    CONTINUE,
    AccessGate,
    Continue,
    GateOutcome,
    GateResponse,
    RequestContext,
    RouteKind,
    Stage,
    Terminate,
    compose,
)
from .stages import (
    api_key_stage,
    default_stages,
    origin_stage,
    payload_size_stage,
    rate_limit_stage,
    security_headers_stage,
)

__all__ = [
    "CONTINUE",
    "AccessGate",
    "Continue",
    "GateOutcome",
    "GateResponse",
    "RequestContext",
    "RouteKind",
    "Stage",
    "Terminate",
    "api_key_stage",
    "build_request_context",
    "classify_route",
    "compose",
    "constant_time_equals",
    "create_gate_dispatch",
    "default_stages",
    "extract_api_key",
    "is_valid_api_key",
    "origin_stage",
    "payload_size_stage",
    "rate_limit_stage",
    "security_headers_stage",
]
