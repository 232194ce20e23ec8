"""
Shared logging configuration for the Calendar MCP Access Layer.

Log events are rendered as JSON lines by structlog. Every event carries the
correlation context bound for the current request (request id, tenant id and
client address), and credential material is scrubbed before rendering.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
tenant_id_var: ContextVar[Optional[str]] = ContextVar('tenant_id', default=None)
client_address_var: ContextVar[Optional[str]] = ContextVar('client_address', default=None)

# Keys whose values must never reach a log sink
SENSITIVE_KEYS = frozenset({
    "api_key",
    "apikey",
    "x-api-key",
    "authorization",
    "access_token",
    "accesstoken",
    "refresh_token",
    "refreshtoken",
    "client_secret",
})

REDACTED = "[REDACTED]"

_service_name: Optional[str] = None


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Route structlog output for ``service_name`` to stdout as JSON lines."""
    global _service_name
    _service_name = service_name
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            add_service_context,
            add_correlation_context,
            redact_sensitive_fields,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    # Logger names follow "<service>.<component>"
    logger_name = event_dict.get("logger") or ""
    service = logger_name.split(".")[0] if "." in logger_name else _service_name
    if service:
        event_dict.setdefault("service", service)
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach whatever request context is bound for the current task."""
    for key, var in (
        ("request_id", request_id_var),
        ("tenant_id", tenant_id_var),
        ("client_address", client_address_var),
    ):
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def redact_sensitive_fields(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Replace secret-bearing values (API keys, OAuth tokens) with a marker."""
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id, generating one when the caller sent none."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_request_context(tenant_id: Optional[str] = None, client_address: Optional[str] = None):
    """Bind tenant and client address for the current request."""
    if tenant_id:
        tenant_id_var.set(tenant_id)
    if client_address:
        client_address_var.set(client_address)


def clear_context():
    request_id_var.set(None)
    tenant_id_var.set(None)
    client_address_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
