"""
Shared utilities for the Calendar MCP Access Layer.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- clock: Wall-clock and virtual clocks (epoch milliseconds)
- periodic: Cancellable periodic background tasks
- base_service: FastAPI service scaffolding

Any cross-service logic should live here to avoid import cycles across
service packages. Runtime modules in shared/ never import from service_*
packages; only test_helpers reaches into them, lazily, to build fixtures.
"""
