"""Request middleware for the tool HTTP surface.

Composable pre/post hooks around `POST /api/execute`: request logging,
rejection metrics, API-key auth and per-caller rate limiting.

Example:
    >>> from toolspine.runtime.middleware import (
    ...     AuthMiddleware, LoggingMiddleware, RateLimitMiddleware, SlidingWindowLimiter, compose
    ... )
    >>> # Order matters: logging -> auth -> rate limit -> handler
    >>> chain = compose(
    ...     [LoggingMiddleware(), AuthMiddleware(api_keys=("k1",)),
    ...      RateLimitMiddleware(SlidingWindowLimiter(max_requests=10, window_seconds=60))],
    ...     handler,
    ... )
"""

from .middleware import REQUEST_ID_HEADER, Context, Handler, Middleware, Next, compose
from .plugins import (
    AuthMiddleware,
    Decision,
    LoggingMiddleware,
    MetricsMiddleware,
    RateLimitMiddleware,
    SlidingWindowLimiter,
    extract_api_key,
    verify_api_key,
)

__all__ = [
    # Core
    "Middleware", "Next", "Handler", "Context", "compose", "REQUEST_ID_HEADER",
    # Plugins
    "AuthMiddleware", "extract_api_key", "verify_api_key",
    "LoggingMiddleware", "MetricsMiddleware",
    "RateLimitMiddleware", "SlidingWindowLimiter", "Decision",
]
