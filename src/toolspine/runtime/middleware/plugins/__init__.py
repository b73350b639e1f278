"""Built-in request middleware: authentication, rate limiting, metrics, logging."""

from .auth import AuthMiddleware, extract_api_key, verify_api_key
from .logging import LoggingMiddleware
from .metrics import MetricsMiddleware
from .rate_limit import Decision, RateLimitMiddleware, SlidingWindowLimiter

__all__ = [
    "AuthMiddleware",
    "extract_api_key",
    "verify_api_key",
    "LoggingMiddleware",
    "MetricsMiddleware",
    "RateLimitMiddleware",
    "SlidingWindowLimiter",
    "Decision",
]
