"""
Shared metrics configuration for the Calendar MCP Access Layer.
"""

from typing import Dict, Any, Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    CONTENT_TYPE_LATEST,
    generate_latest,
)


class MetricsCollector:
    """
    Centralized metrics collector for services.

    Each collector owns its own registry so several service instances (one per
    test, for example) can coexist in a process without duplicate
    registrations.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        if self.service_name == "credentials":
            self._setup_credential_metrics()

    def _setup_credential_metrics(self):
        """Set up credential-service metrics."""
        self._metrics["gate_rejections_total"] = Counter(
            "gate_rejections_total",
            "Requests stopped by an admission stage",
            ["stage", "status_code"],
            registry=self.registry
        )

        self._metrics["rate_limit_rejections_total"] = Counter(
            "rate_limit_rejections_total",
            "Requests rejected by the fixed-window limiter",
            ["scope"],
            registry=self.registry
        )

        self._metrics["credential_operations_total"] = Counter(
            "credential_operations_total",
            "Credential store operations",
            ["operation", "outcome"],
            registry=self.registry
        )

        self._metrics["credential_tenants"] = Gauge(
            "credential_tenants",
            "Tenants with a cached credential",
            registry=self.registry
        )

        self._metrics["stale_credentials_purged_total"] = Counter(
            "stale_credentials_purged_total",
            "Credential entries evicted for inactivity",
            registry=self.registry
        )

    def render(self) -> bytes:
        """Render the registry in Prometheus exposition format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_gate_rejection(self, stage: str, status_code: int):
        self.increment_counter("gate_rejections_total", stage=stage, status_code=str(status_code))

    def record_rate_limit_rejection(self, scope: str):
        self.increment_counter("rate_limit_rejections_total", scope=scope)

    def record_credential_operation(self, operation: str, outcome: str):
        self.increment_counter("credential_operations_total", operation=operation, outcome=outcome)

    def record_purge(self, removed: int):
        if removed and "stale_credentials_purged_total" in self._metrics:
            self._metrics["stale_credentials_purged_total"].inc(removed)

    def set_tenant_count(self, count: int):
        if "credential_tenants" in self._metrics:
            self._metrics["credential_tenants"].set(count)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()

    def get_sample_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read a sample back from the registry (used by health views and tests)."""
        return self.registry.get_sample_value(name, labels or {})


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
