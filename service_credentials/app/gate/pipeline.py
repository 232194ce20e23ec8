"""
Ordered, short-circuiting admission pipeline.

A stage looks at the request context and answers either ``CONTINUE`` or a
``Terminate`` carrying the final response. ``compose`` folds an ordered list of
stages around a handler so that stage *n*'s continuation is stage *n+1* and the
last continuation is the handler itself. Once a stage terminates, nothing
downstream runs.
"""

import functools
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Union

from shared.errors import AccessLayerException
from shared.logging import get_logger


class RouteKind(str, Enum):
    PUBLIC = "public"
    CREDENTIAL_INJECTION = "credential_injection"
    TOOL_INVOCATION = "tool_invocation"
    ADMIN = "admin"


class GateOutcome(str, Enum):
    CONTINUE = "continue"
    DENY = "deny"
    PREFLIGHT = "preflight"


@dataclass
class GateResponse:
    """Transport-neutral terminal response. ``body`` is None for empty replies."""

    status_code: int
    body: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class RequestContext:
    """
    What the stages see of a request. Header names are lower-cased.

    Stages add outgoing headers to ``response_headers``; the transport adapter
    copies them onto whatever response is finally sent.
    """

    method: str
    path: str
    route: RouteKind = RouteKind.PUBLIC
    headers: Dict[str, str] = field(default_factory=dict)
    client_address: str = "unknown"
    tenant_id: Optional[str] = None
    content_length: Optional[int] = None
    response_headers: Dict[str, str] = field(default_factory=dict)
    terminated_by: Optional[str] = None
    outcome: GateOutcome = GateOutcome.CONTINUE

    def __post_init__(self):
        self.method = self.method.upper()
        self.headers = {name.lower(): value for name, value in self.headers.items()}

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


class Continue:
    """Marker result: hand the request to the next stage."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CONTINUE"


CONTINUE = Continue()


@dataclass(frozen=True)
class Terminate:
    """Stop the pipeline and answer with ``response``."""

    response: GateResponse
    outcome: GateOutcome = GateOutcome.DENY

    @classmethod
    def from_error(cls, exc: AccessLayerException) -> "Terminate":
        return cls(
            GateResponse(
                status_code=exc.status_code,
                body=exc.to_response().model_dump(),
                headers=exc.headers(),
            )
        )

    @classmethod
    def preflight(cls) -> "Terminate":
        return cls(GateResponse(status_code=204), GateOutcome.PREFLIGHT)


StageResult = Union[Continue, Terminate]
StageCheck = Callable[[RequestContext], Union[StageResult, Awaitable[StageResult]]]
Handler = Callable[[RequestContext], Awaitable[Any]]


@dataclass(frozen=True)
class Stage:
    name: str
    check: StageCheck


async def _resolve(result: Union[StageResult, Awaitable[StageResult]]) -> StageResult:
    if inspect.isawaitable(result):
        result = await result
    if not isinstance(result, (Continue, Terminate)):
        raise TypeError(f"Stage returned {result!r}; expected CONTINUE or Terminate")
    return result


def compose(stages: Sequence[Stage], handler: Handler) -> Handler:
    """Fold ``stages`` around ``handler`` into a single evaluator."""

    def link(next_step: Handler, stage: Stage) -> Handler:
        async def step(ctx: RequestContext):
            result = await _resolve(stage.check(ctx))
            if isinstance(result, Terminate):
                ctx.terminated_by = stage.name
                ctx.outcome = result.outcome
                return result.response
            return await next_step(ctx)

        return step

    return functools.reduce(link, reversed(stages), handler)


class AccessGate:
    """Runs every request through the configured stages before its handler."""

    def __init__(self, stages: Sequence[Stage], metrics=None):
        self.stages = tuple(stages)
        self.metrics = metrics
        self.logger = get_logger("credentials.gate")

    @property
    def stage_names(self):
        return [stage.name for stage in self.stages]

    async def run(self, ctx: RequestContext, handler: Handler) -> Any:
        """
        Evaluate the pipeline. Returns the handler's result, or a
        ``GateResponse`` when a stage stopped the request.
        """
        result = await compose(self.stages, handler)(ctx)

        if ctx.outcome is GateOutcome.DENY:
            status_code = result.status_code
            self.logger.warning(
                "Request stopped by admission stage",
                stage=ctx.terminated_by,
                status_code=status_code,
                method=ctx.method,
                path=ctx.path,
            )
            if self.metrics is not None:
                self.metrics.record_gate_rejection(ctx.terminated_by, status_code)
                if ctx.terminated_by == "rate_limit":
                    scope = "address" if ctx.route is RouteKind.CREDENTIAL_INJECTION else "tenant"
                    self.metrics.record_rate_limit_rejection(scope)

        return result
