"""Observability: structured logging and redaction."""

from .logging import (
    LEVELS,
    BoundLogger,
    CaptureRenderer,
    ConsoleRenderer,
    JsonRenderer,
    LogEntry,
    LogRenderer,
    NullRenderer,
    configure_logging,
    get_logger,
)
from .redact import REDACTED, is_secret_key, redact, sanitize_config

__all__ = [
    # Logging
    "BoundLogger", "LogEntry", "LogRenderer", "ConsoleRenderer", "JsonRenderer", "NullRenderer",
    "CaptureRenderer", "configure_logging", "get_logger", "LEVELS",
    # Redaction
    "REDACTED", "redact", "sanitize_config", "is_secret_key",
]
