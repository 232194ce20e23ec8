"""
The admission stages, in the order the gate runs them.

Each factory closes over the policy it needs and returns a ``Stage`` whose
check is a plain function of the request context.
"""

from typing import List

from shared.errors import (
    AuthenticationError,
    OriginDeniedError,
    PayloadTooLargeError,
    RateLimitError,
)

from ..policy import AccessPolicy
from ..ratelimit import RateLimiter
from .api_keys import extract_api_key, is_valid_api_key
from .pipeline import CONTINUE, RequestContext, RouteKind, Stage, StageResult, Terminate

ALLOWED_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization, X-API-Key, X-User-Id"
PREFLIGHT_MAX_AGE = "86400"

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self'; style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data:;"
    ),
}


def origin_stage(policy: AccessPolicy) -> Stage:
    def check(ctx: RequestContext) -> StageResult:
        headers = ctx.response_headers

        if not policy.enabled:
            headers["Access-Control-Allow-Origin"] = "*"
            headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
            headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
            return CONTINUE

        origin = ctx.header("origin")
        if ctx.method != "OPTIONS" and not policy.is_origin_allowed(origin):
            return Terminate.from_error(OriginDeniedError(details={"origin": origin}))

        if origin and origin in policy.allowed_origins:
            headers["Access-Control-Allow-Origin"] = origin
            headers["Access-Control-Allow-Credentials"] = "true"
        elif policy.allows_any_origin:
            headers["Access-Control-Allow-Origin"] = "*"

        headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
        headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
        headers["Access-Control-Max-Age"] = PREFLIGHT_MAX_AGE

        if ctx.method == "OPTIONS":
            return Terminate.preflight()
        return CONTINUE

    return Stage("origin", check)


def security_headers_stage() -> Stage:
    def check(ctx: RequestContext) -> StageResult:
        ctx.response_headers.update(SECURITY_HEADERS)
        return CONTINUE

    return Stage("security_headers", check)


def api_key_stage(policy: AccessPolicy) -> Stage:
    def check(ctx: RequestContext) -> StageResult:
        if not policy.enabled or ctx.route is RouteKind.PUBLIC:
            return CONTINUE

        if not is_valid_api_key(extract_api_key(ctx.headers), policy.api_key):
            return Terminate.from_error(AuthenticationError("Invalid or missing API key"))
        return CONTINUE

    return Stage("api_key", check)


def rate_limit_stage(policy: AccessPolicy, limiter: RateLimiter) -> Stage:
    def check(ctx: RequestContext) -> StageResult:
        if not policy.enabled:
            return CONTINUE

        if ctx.route is RouteKind.CREDENTIAL_INJECTION:
            decision = limiter.check_address(ctx.client_address)
            message = "Too many token injection attempts. Please try again later."
        elif ctx.route is RouteKind.TOOL_INVOCATION and ctx.tenant_id:
            decision = limiter.check_tenant(ctx.tenant_id)
            message = "Too many requests. Please try again later."
        else:
            return CONTINUE

        ctx.response_headers.update(decision.headers())
        if not decision.allowed:
            return Terminate.from_error(
                RateLimitError(message, retry_after=decision.retry_after_seconds)
            )
        return CONTINUE

    return Stage("rate_limit", check)


def payload_size_stage(max_request_bytes: int) -> Stage:
    def check(ctx: RequestContext) -> StageResult:
        if (ctx.content_length or 0) > max_request_bytes:
            return Terminate.from_error(PayloadTooLargeError(max_request_bytes))
        return CONTINUE

    return Stage("payload_size", check)


def default_stages(policy: AccessPolicy, limiter: RateLimiter) -> List[Stage]:
    """Origin, security headers, API key, rate limit, payload size."""
    return [
        origin_stage(policy),
        security_headers_stage(),
        api_key_stage(policy),
        rate_limit_stage(policy, limiter),
        payload_size_stage(policy.max_request_bytes),
    ]
