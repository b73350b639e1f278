"""Core middleware types and chain composition for HTTP requests.

Middleware follows continuation-passing style: each middleware receives
the request, a request-scoped context and a `next` function to call
downstream. A middleware that refuses a request returns its own response
without calling `next`.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass(slots=True)
class Context:
    """Request-scoped state shared between middleware.

    Carries the correlation id plus whatever middleware learn on the way:
    - caller: api key hash or client address
    - rate_limit_remaining: budget left in the current window
    - rejection: error code when a middleware refused the request

    Example:
        >>> ctx = Context(request_id="abc123")
        >>> ctx["caller"] = "9f86d081"
        >>> ctx.get("caller")
        '9f86d081'
    """

    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    data: dict[str, object] = field(default_factory=dict)

    def __getitem__(self, key: str) -> object:
        return self.data[key]

    def __setitem__(self, key: str, value: object) -> None:
        self.data[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def get(self, key: str, default: object = None) -> object:
        return self.data.get(key, default)

    @classmethod
    def for_request(cls, request: Request) -> Context:
        """Context correlated with the caller's X-Request-ID, if sent."""
        incoming = request.headers.get(REQUEST_ID_HEADER)
        return cls(request_id=incoming) if incoming else cls()


Handler = Callable[[Request, Context], Awaitable[Response]]
Next = Handler


@runtime_checkable
class Middleware(Protocol):
    """Protocol for request middleware.

    Example:
        >>> class TimingMiddleware:
        ...     async def __call__(self, request, ctx, next):
        ...         start = time.perf_counter()
        ...         response = await next(request, ctx)
        ...         ctx["duration_ms"] = (time.perf_counter() - start) * 1000
        ...         return response
    """

    async def __call__(self, request: Request, ctx: Context, next: Next) -> Response: ...


def compose(middleware: Sequence[Middleware], handler: Handler) -> Handler:
    """Wrap `handler` in `middleware` (first = outermost)."""
    chain: Handler = handler
    for mw in reversed(middleware):
        def make_wrapper(m: Middleware, nxt: Next) -> Handler:
            async def wrapped(request: Request, ctx: Context) -> Response:
                return await m(request, ctx, nxt)
            return wrapped
        chain = make_wrapper(mw, chain)
    return chain
