"""
Tool registry: the seam where calendar operations plug into the service.

A tool handler is an async callable taking the caller's arguments and the
tenant's Google credentials. The service resolves the tenant's cached
credential before dispatch; handlers never see other tenants' tokens.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

from google.oauth2.credentials import Credentials

from shared.errors import NotFoundError
from shared.logging import get_logger

ToolHandler = Callable[[Dict[str, Any], Credentials], Awaitable[Any]]

TENANT_ARGUMENT_KEYS = ("userId", "user_id")


def strip_tenant_arguments(arguments: Dict[str, Any]) -> Dict[str, Any]:
    """Tenant identity comes from the request, never from tool arguments."""
    return {key: value for key, value in arguments.items() if key not in TENANT_ARGUMENT_KEYS}


class ToolRegistry:
    """Name to handler mapping."""

    def __init__(self):
        self._tools: Dict[str, ToolHandler] = {}
        self.logger = get_logger("credentials.tools")

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, name: str, handler: Optional[ToolHandler] = None):
        """Register ``handler`` under ``name``. Usable as a decorator."""
        if handler is None:
            def decorator(func: ToolHandler) -> ToolHandler:
                self.register(name, func)
                return func
            return decorator

        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        self._tools[name] = handler
        return handler

    def get(self, name: str) -> ToolHandler:
        handler = self._tools.get(name)
        if handler is None:
            raise NotFoundError(f"Unknown tool: {name}", details={"tool": name})
        return handler

    def names(self) -> List[str]:
        return sorted(self._tools)

    async def dispatch(self, name: str, arguments: Dict[str, Any], credentials: Credentials) -> Any:
        handler = self.get(name)
        self.logger.info("Dispatching tool", tool=name)
        return await handler(strip_tenant_arguments(arguments), credentials)
