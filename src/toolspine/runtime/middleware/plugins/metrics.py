"""Metrics middleware for requests refused before execution."""

from __future__ import annotations

from dataclasses import dataclass

from starlette.requests import Request
from starlette.responses import Response

from toolspine.foundation.errors import ErrorCode
from toolspine.runtime.metrics import RuntimeMetrics

from ..middleware import Context, Next


@dataclass(slots=True)
class MetricsMiddleware:
    """Count rejections recorded by inner middleware.

    Executions themselves are recorded by the tool runtime, which knows
    their status and duration; this only covers requests that never got
    that far.
    """

    metrics: RuntimeMetrics

    async def __call__(self, request: Request, ctx: Context, next: Next) -> Response:
        response = await next(request, ctx)
        if (code := ctx.get("rejection")) is not None:
            self.metrics.record_rejection(str(code), rate_limited=code == ErrorCode.RATE_LIMIT_EXCEEDED)
        return response
