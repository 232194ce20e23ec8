"""
Credential admission service for the Calendar MCP Access Layer.

The service caches per-tenant OAuth credentials in memory (nothing is written
to disk) and gates every request through an ordered admission pipeline:

- Origin checking and preflight handling
- Defensive security headers
- API-key authentication with constant-time comparison
- Fixed-window rate limiting keyed by tenant and by client address
- Declared payload-size limiting

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.policy: Immutable admission-control policy snapshot.
- app.context: Explicit service context composing every component.
- app.store: Tenant-keyed credential cache.
- app.ratelimit: Fixed-window counters.
- app.gate: Admission pipeline, stages, and the HTTP adapter.
- app.reporting: Read-only health, metrics, and admin views.
- app.tools: Tool registry and per-tenant dispatch.
- app.adapters: Conversion to Google OAuth client credentials.
"""

__version__ = "1.0.0"
