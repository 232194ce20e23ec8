"""
Credential service for the Calendar MCP Access Layer.

Caches per-tenant Google OAuth credentials in memory and admits every request
through the access gate before it reaches a handler.
"""

import asyncio
import json
import math
import os
import platform
import sys
from typing import Any, Awaitable, Callable, Dict, Optional

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from fastapi import Request
from pydantic import ValidationError as PydanticValidationError

from shared.base_service import BaseService
from shared.clock import Clock
from shared.config import ServiceConfig
from shared.errors import AuthenticationError, ValidationError, utc_timestamp

from . import __version__
from .adapters import build_google_credentials
from .context import ServiceContext
from .gate import create_gate_dispatch
from .models import (
    TokenInjectionRequest,
    TokenInjectionResponse,
    TokenRemovalResponse,
    TokenStatusResponse,
    ToolInvocationResponse,
    ToolListResponse,
    dump,
)
from .policy import AccessPolicy, load_policy
from .tools import ToolRegistry

SERVER_NAME = "calendar-mcp-access-layer"
DEFAULT_PORT = 3000
MS_PER_MINUTE = 60 * 1000


def json_success(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp a response body with the current timestamp."""
    return {**payload, "timestamp": utc_timestamp()}


def _minutes_remaining(ms: int) -> int:
    return math.ceil(ms / MS_PER_MINUTE)


async def read_json_body(request: Request, default: Any = None) -> Any:
    raw = await request.body()
    if not raw:
        if default is not None:
            return default
        raise ValidationError("Request body is required", error="Bad Request")
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON in request body", error="Bad Request")


def describe_validation_errors(exc: PydanticValidationError) -> str:
    return ", ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


class CredentialService(BaseService):
    """Credential cache and admission service."""

    version = __version__

    def __init__(
        self,
        policy: Optional[AccessPolicy] = None,
        clock: Optional[Clock] = None,
        tools: Optional[ToolRegistry] = None,
        config: Optional[ServiceConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.policy = policy or load_policy()
        # The gate must exist before the base class registers middleware
        self.context = ServiceContext(self.policy, clock=clock, tools=tools, sleep=sleep)

        super().__init__("credentials", int(os.getenv("PORT", DEFAULT_PORT)), config)
        self.context.metrics = self.metrics
        self.context.gate.metrics = self.metrics

        @self.app.on_event("startup")
        async def _startup():
            await self.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.stop()

        self._setup_token_routes()
        self._setup_tool_routes()
        self._setup_management_routes()

    @property
    def store(self):
        return self.context.store

    @property
    def clock(self):
        return self.context.clock

    def _setup_service_middleware(self):
        """Every request passes through the access gate."""
        self.app.middleware("http")(create_gate_dispatch(self.context.gate))

    def _setup_token_routes(self):
        """Set up credential injection routes."""

        async def inject_tokens(request: Request):
            """Inject or replace a tenant's OAuth credential."""
            body = await read_json_body(request)
            try:
                data = TokenInjectionRequest.model_validate(body)
            except PydanticValidationError as exc:
                self.metrics.record_credential_operation("inject", "invalid")
                raise ValidationError(describe_validation_errors(exc))

            validation = self.policy.token_validation
            now = self.clock.now_ms()
            time_until_expiry = data.expires_at - now

            if time_until_expiry <= 0:
                self.metrics.record_credential_operation("inject", "expired")
                raise ValidationError(
                    "Token has already expired. Please refresh the token before injecting.",
                    field="expiresAt",
                    error="Invalid Token",
                )

            if time_until_expiry < validation.min_expiry_buffer_ms:
                self.metrics.record_credential_operation("inject", "expiring")
                raise ValidationError(
                    f"Token expires in {_minutes_remaining(time_until_expiry)} minutes. "
                    "Please refresh before injecting.",
                    field="expiresAt",
                    error="Token Expiring Soon",
                )

            warning = None
            if time_until_expiry < validation.expiry_warning_threshold_ms:
                warning = (
                    f"Token will expire in {_minutes_remaining(time_until_expiry)} minutes. "
                    "Consider refreshing soon."
                )

            self.store.put(data.user_id, data.to_credential())
            self.metrics.record_credential_operation("inject", "stored")
            self.metrics.set_tenant_count(len(self.store))

            return json_success(dump(TokenInjectionResponse(
                userId=data.user_id,
                expiresAt=data.expires_at,
                expiresIn=time_until_expiry,
                warning=warning,
            )))

        self.app.add_api_route("/api/tokens", inject_tokens, methods=["POST", "PUT"])

        @self.app.get("/api/tokens/{user_id}/status")
        async def token_status(user_id: str):
            """
            Report whether a tenant has a usable credential.

            The presence flag is sent as ``hasTokens`` and the tenant as
            ``userId``, matching what existing Calendar MCP clients read.
            """
            credential = self.store.get(user_id)
            if credential is None:
                return json_success(dump(TokenStatusResponse(
                    userId=user_id,
                    hasTokens=False,
                    valid=False,
                    message="No tokens found for user",
                )))

            expired = self.store.is_expired(credential)
            expires_in = credential.expires_at - self.clock.now_ms()
            return json_success(dump(TokenStatusResponse(
                userId=user_id,
                hasTokens=True,
                valid=not expired,
                expiresAt=credential.expires_at,
                expiresIn=max(expires_in, 0),
                expired=expired,
                scope=credential.scope,
            )))

        @self.app.delete("/api/tokens/{user_id}")
        async def remove_tokens(user_id: str):
            """Remove a tenant's credential. Removing twice is not an error."""
            removed = self.store.remove(user_id)
            self.metrics.record_credential_operation("remove", "removed" if removed else "absent")
            self.metrics.set_tenant_count(len(self.store))
            return json_success(dump(TokenRemovalResponse(
                userId=user_id,
                message=(
                    "Tokens removed successfully"
                    if removed
                    else "No tokens found for user (already removed)"
                ),
            )))

    def _setup_tool_routes(self):
        """Set up per-tenant tool invocation routes."""

        @self.app.get("/api/tools")
        async def list_tools():
            names = self.context.tools.names()
            return json_success(dump(ToolListResponse(tools=names, total=len(names))))

        @self.app.post("/api/tools/{tool_name}")
        async def invoke_tool(tool_name: str, request: Request):
            """Run a registered tool with the calling tenant's credentials."""
            user_id = request.headers.get("x-user-id")
            if not user_id:
                raise ValidationError("X-User-Id header is required", field="X-User-Id")

            self.context.tools.get(tool_name)
            arguments = await read_json_body(request, default={})
            if not isinstance(arguments, dict):
                raise ValidationError("Tool arguments must be a JSON object", field="arguments")

            credential = self.store.get(user_id)
            if credential is None:
                raise AuthenticationError(
                    f"No valid tokens found for user: {user_id}. "
                    "Please inject tokens via POST /api/tokens endpoint.",
                    details={"userId": user_id},
                )

            google_credentials = build_google_credentials(
                credential,
                client_id=self.policy.google_client_id,
                client_secret=self.policy.google_client_secret,
            )
            result = await self.context.tools.dispatch(tool_name, arguments, google_credentials)
            return json_success(ToolInvocationResponse(
                tool=tool_name, userId=user_id, result=result
            ).model_dump())

    def _setup_management_routes(self):
        """Set up health, metrics and admin routes."""

        @self.app.get("/")
        async def root():
            return json_success({
                "service": "credentials",
                "message": "Calendar MCP Access Layer - Credential Service",
                "version": self.version,
                "mode": self.policy.mode,
            })

        @self.app.get("/health")
        async def health():
            """Unauthenticated liveness with store counts."""
            self.metrics.record_health_check("healthy")
            return json_success(self.context.reporter.health())

        @self.app.get("/metrics")
        async def metrics():
            """Unauthenticated stats snapshot with configuration echo."""
            return json_success(self.context.reporter.metrics())

        @self.app.get("/version")
        async def version():
            return json_success({
                "server": SERVER_NAME,
                "version": self.version,
                "pythonVersion": platform.python_version(),
            })

        @self.app.get("/api/config")
        async def config():
            return json_success(self.policy.public_view())

        @self.app.get("/api/users/active")
        async def active_users():
            """
            List cached tenants. Requires the API key when admission control is on.

            Tenants are listed under ``users``, each keyed by ``userId``.
            """
            return json_success(self.context.reporter.active_tenants())

        @self.app.get("/api/cleanup/status")
        async def cleanup_status():
            return json_success(self.context.cleanup_status())

    async def start(self):
        """Start background sweeps."""
        await self.context.start()
        self.logger.info("Credential service started", mode=self.policy.mode)

    async def stop(self):
        """Stop background sweeps."""
        await self.context.stop()
        self.logger.info("Credential service stopped")


def create_app():
    """Create credential service application."""
    service = CredentialService()
    return service.app


if __name__ == "__main__":
    service = CredentialService()
    service.run()
