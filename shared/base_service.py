"""
Base service class for Calendar MCP Access Layer services.
"""

import time
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config import ServiceConfig, get_config
from shared.errors import (
    AccessLayerException,
    ErrorResponse,
    InternalServiceError,
    NotFoundError,
    ValidationError,
)
from shared.logging import configure_logging, get_logger
from shared.metrics import get_metrics_collector


def error_response(exc: AccessLayerException) -> JSONResponse:
    """Render an access-layer error as its JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
        headers=exc.headers(),
    )


class BaseService:
    """Base service class with common functionality."""

    version = "1.0.0"

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name)

        configure_logging(service_name, self.config.log_level)

        self.app = self._create_app()

        self._setup_middleware()
        self._setup_error_handlers()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"Calendar MCP Access Layer - {self.service_name.title()} Service",
            version=self.version,
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
        )

    def _setup_service_middleware(self):
        """Register service-specific middleware. Runs inside request timing."""

    def _setup_middleware(self):
        """Set up middleware."""
        self._setup_service_middleware()

        # Added last so it wraps everything, including requests stopped early
        @self.app.middleware("http")
        async def add_request_timing(request: Request, call_next):
            start_time = time.time()

            response = await call_next(request)

            duration = time.time() - start_time

            self.metrics.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=duration
            )

            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2)
            )

            return response

    def _setup_error_handlers(self):
        """Map the error taxonomy onto HTTP responses."""

        @self.app.exception_handler(AccessLayerException)
        async def access_layer_exception_handler(request: Request, exc: AccessLayerException):
            if exc.status_code >= 500:
                self.logger.error("Access layer error", code=exc.code, message=exc.message)
            else:
                self.logger.warning(
                    "Request rejected",
                    code=exc.code,
                    message=exc.message,
                    status_code=exc.status_code,
                )
            self.metrics.record_error(exc.code)
            return error_response(exc)

        @self.app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            problems = [
                f"{'.'.join(str(part) for part in err.get('loc', ())[1:])}: {err.get('msg')}"
                for err in exc.errors()
            ]
            return error_response(ValidationError(", ".join(problems) or "Invalid request"))

        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(request: Request, exc: StarletteHTTPException):
            if exc.status_code == 404:
                return error_response(NotFoundError(str(exc.detail)))
            body = ErrorResponse(error=str(exc.detail), code="HTTP_ERROR", message=str(exc.detail))
            return JSONResponse(status_code=exc.status_code, content=body.model_dump(), headers=exc.headers)

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            return error_response(InternalServiceError())

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/metrics/prometheus")
        async def prometheus_metrics():
            """Prometheus metrics endpoint."""
            return Response(content=self.metrics.render(), media_type=self.metrics.content_type)

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
