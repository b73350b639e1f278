"""Sliding-window rate limiting per caller."""

from __future__ import annotations

import inspect
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import NamedTuple

from starlette.requests import Request
from starlette.responses import Response

from toolspine.foundation.errors import ErrorCode, ErrorInfo, ErrorType
from toolspine.runtime.responses import error_response

from ..middleware import Context, Next


class Decision(NamedTuple):
    allowed: bool
    remaining: int
    retry_after_ms: int


@dataclass(slots=True)
class SlidingWindowLimiter:
    """At most `max_requests` admissions per caller in any `window_seconds` span.

    Each caller keeps a deque of admission timestamps; entries older than
    the window are evicted before every decision, so the limit applies to
    a true sliding window. Check-and-record is atomic under one lock.
    The caller map is bounded by `max_callers`: idle windows are purged
    first, then the oldest callers are dropped.

    Example:
        >>> limiter = SlidingWindowLimiter(max_requests=2, window_seconds=60)
        >>> [limiter.hit("caller").allowed for _ in range(3)]
        [True, True, False]
    """

    max_requests: int = 100
    window_seconds: float = 900.0
    max_callers: int = 10_000
    clock: Callable[[], float] = time.monotonic
    _windows: dict[str, deque[float]] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def hit(self, caller: str) -> Decision:
        """Record an attempt by `caller` and say whether it is admitted."""
        with self._lock:
            now = self.clock()
            bucket = self._windows.get(caller)
            if bucket is None:
                self._make_room(now)
                bucket = self._windows[caller] = deque()
            cutoff = now - self.window_seconds
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()

            if len(bucket) >= self.max_requests:
                wait = bucket[0] + self.window_seconds - now
                return Decision(False, 0, max(1, int(wait * 1000)))

            bucket.append(now)
            return Decision(True, self.max_requests - len(bucket), 0)

    def _make_room(self, now: float) -> None:
        if len(self._windows) < self.max_callers:
            return
        cutoff = now - self.window_seconds
        for key in [k for k, b in self._windows.items() if not b or b[-1] <= cutoff]:
            del self._windows[key]
        while len(self._windows) >= self.max_callers:
            del self._windows[next(iter(self._windows))]

    @property
    def tracked_callers(self) -> int:
        return len(self._windows)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


@dataclass(slots=True)
class RateLimitMiddleware:
    """Reject callers over budget with 429 RATE_LIMIT_EXCEEDED.

    Callers are identified by the fingerprint set by AuthMiddleware, or by
    client address when auth is off. `on_limited` is called with the
    caller id for every rejection.
    """

    limiter: SlidingWindowLimiter
    on_limited: Callable[[str], object] | None = None

    async def __call__(self, request: Request, ctx: Context, next: Next) -> Response:
        caller = str(ctx.get("caller") or (request.client.host if request.client else "anonymous"))
        decision = self.limiter.hit(caller)
        limit_headers = {
            "X-RateLimit-Limit": str(self.limiter.max_requests),
            "X-RateLimit-Remaining": str(decision.remaining),
        }
        if not decision.allowed:
            ctx["rejection"] = ErrorCode.RATE_LIMIT_EXCEEDED
            if self.on_limited is not None and inspect.isawaitable(outcome := self.on_limited(caller)):
                await outcome
            info = ErrorInfo.create(
                ErrorCode.RATE_LIMIT_EXCEEDED,
                "Too many requests, please try again later",
                ErrorType.CLIENT,
                retryable=True,
                retry_after=decision.retry_after_ms,
            )
            retry_seconds = str(max(1, -(-decision.retry_after_ms // 1000)))
            return error_response(info, 429, headers={**limit_headers, "Retry-After": retry_seconds})

        ctx["rate_limit_remaining"] = decision.remaining
        response = await next(request, ctx)
        response.headers.update(limit_headers)
        return response
