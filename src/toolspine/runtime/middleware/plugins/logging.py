"""Request logging middleware."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from starlette.requests import Request
from starlette.responses import Response

from toolspine.runtime.observability import BoundLogger, get_logger

from ..middleware import Context, Next


@dataclass(slots=True)
class LoggingMiddleware:
    """Log each request with status and timing.

    Logs at INFO for 2xx/3xx, WARNING for 4xx, ERROR for 5xx and
    exceptions. Duration is stored in context as 'duration_ms'.
    """

    log: BoundLogger = field(default_factory=lambda: get_logger("toolspine.http"))

    async def __call__(self, request: Request, ctx: Context, next: Next) -> Response:
        log = self.log.bind(request_id=ctx.request_id, method=request.method, path=request.url.path)
        start = time.perf_counter()
        try:
            response = await next(request, ctx)
        except Exception:
            ctx["duration_ms"] = (time.perf_counter() - start) * 1000
            log.exception("request failed", duration_ms=round(ctx["duration_ms"], 2))
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        ctx["duration_ms"] = duration_ms
        fields = {"status": response.status_code, "duration_ms": round(duration_ms, 2)}
        if (code := ctx.get("rejection")) is not None:
            fields["rejected"] = str(code)
        if response.status_code >= 500:
            log.error("request completed", **fields)
        elif response.status_code >= 400:
            log.warning("request completed", **fields)
        else:
            log.info("request completed", **fields)
        return response
