"""
HTTP adapter for the access gate.

Translates a Starlette request into a ``RequestContext``, runs the gate, and
turns terminal ``GateResponse`` values back into HTTP responses.
"""

from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from shared.logging import clear_context, set_request_context, set_request_id

from .pipeline import AccessGate, GateResponse, RequestContext, RouteKind

TENANT_HEADER = "x-user-id"


def classify_route(path: str) -> RouteKind:
    if path == "/api/tokens" or path.startswith("/api/tokens/"):
        return RouteKind.CREDENTIAL_INJECTION
    if path == "/api/tools" or path.startswith("/api/tools/"):
        return RouteKind.TOOL_INVOCATION
    if path.startswith("/api/users/") or path.startswith("/api/cleanup/"):
        return RouteKind.ADMIN
    return RouteKind.PUBLIC


def resolve_client_address(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def parse_content_length(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return max(int(value), 0)
    except ValueError:
        return None


def build_request_context(request: Request) -> RequestContext:
    route = classify_route(request.url.path)
    headers = dict(request.headers)
    tenant_id = headers.get(TENANT_HEADER) if route is RouteKind.TOOL_INVOCATION else None

    return RequestContext(
        method=request.method,
        path=request.url.path,
        route=route,
        headers=headers,
        client_address=resolve_client_address(request),
        tenant_id=tenant_id or None,
        content_length=parse_content_length(headers.get("content-length")),
    )


def render_gate_response(result: GateResponse) -> Response:
    if result.body is None:
        return Response(status_code=result.status_code, headers=result.headers)
    return JSONResponse(status_code=result.status_code, content=result.body, headers=result.headers)


def create_gate_dispatch(gate: AccessGate) -> Callable:
    """Build the ``http`` middleware function that routes requests through ``gate``."""

    async def access_gate(request: Request, call_next):
        ctx = build_request_context(request)
        set_request_id(request.headers.get("x-request-id"))
        set_request_context(tenant_id=ctx.tenant_id, client_address=ctx.client_address)

        async def handler(_: RequestContext):
            return await call_next(request)

        try:
            result = await gate.run(ctx, handler)
            response = render_gate_response(result) if isinstance(result, GateResponse) else result

            for name, value in ctx.response_headers.items():
                if name not in response.headers:
                    response.headers[name] = value
            return response
        finally:
            clear_context()

    return access_gate
