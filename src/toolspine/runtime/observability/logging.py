"""Structured logging for tool runtimes.

Loggers are immutable values carrying bound context (tool, version,
execution id, request id). Every entry is redacted before it reaches a
renderer, so credentials passed as context never hit the output.

Renderers:
    console  Aligned single-line output for local development
    json     One orjson-encoded object per line for log shippers
    none     Drops everything

Quick Start:
    >>> from toolspine.runtime.observability import configure_logging, get_logger
    >>> configure_logging(format="json", level="INFO")
    >>> log = get_logger("toolspine.runtime", tool="echo")
    >>> log.info("execution completed", duration_ms=1.2, api_key="sk-123")
    # {"timestamp": "...", "level": "info", "event": "execution completed", "api_key": "***REDACTED***", ...}
"""

from __future__ import annotations

import sys
import time
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol, TextIO, runtime_checkable

import orjson

from toolspine.foundation.errors import JsonDict, JsonValue

from .redact import redact

LEVELS: dict[str, int] = {"debug": 10, "info": 20, "warning": 30, "error": 40}

# Context added by `scope()`; visible to every logger in the current task
_scoped: ContextVar[JsonDict] = ContextVar("toolspine_log_scope", default={})


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: float
    level: str
    event: str
    context: JsonDict

    @property
    def when(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=UTC)

    def record(self) -> JsonDict:
        """Flat mapping as written by the JSON renderer."""
        return {"timestamp": self.when.isoformat(), "level": self.level, "event": self.event, **self.context}


@runtime_checkable
class LogRenderer(Protocol):
    def render(self, entry: LogEntry) -> None: ...


@dataclass(slots=True)
class _LogConfig:
    renderer: LogRenderer | None = None
    threshold: int = LEVELS["info"]


_config = _LogConfig()


# ═══════════════════════════════════════════════════════════════════════════════
# Logger
# ═══════════════════════════════════════════════════════════════════════════════


class BoundLogger:
    """Logger with bound context. `bind()` returns a new logger.

    Example:
        >>> log = get_logger("toolspine.http", tool="echo").bind(request_id="r1")
        >>> log.warning("execution rejected", code="VALIDATION_ERROR")
    """

    __slots__ = ("context",)

    def __init__(self, context: JsonDict | None = None) -> None:
        self.context: JsonDict = dict(context or {})

    def __repr__(self) -> str:
        return f"BoundLogger({self.context!r})"

    def bind(self, **kw: JsonValue) -> BoundLogger:
        return BoundLogger({**self.context, **kw})

    def debug(self, event: str, **kw: JsonValue) -> None:
        self._emit("debug", event, kw)

    def info(self, event: str, **kw: JsonValue) -> None:
        self._emit("info", event, kw)

    def warning(self, event: str, **kw: JsonValue) -> None:
        self._emit("warning", event, kw)

    def error(self, event: str, **kw: JsonValue) -> None:
        self._emit("error", event, kw)

    def exception(self, event: str, **kw: JsonValue) -> None:
        """Error entry with the traceback of the exception being handled."""
        self._emit("error", event, {**kw, "exc_info": traceback.format_exc().rstrip()})

    @staticmethod
    @contextmanager
    def scope(**kw: JsonValue) -> Iterator[None]:
        """Add context to every entry logged inside the block, from any logger."""
        token = _scoped.set({**_scoped.get(), **kw})
        try:
            yield
        finally:
            _scoped.reset(token)

    def _emit(self, level: str, event: str, extra: JsonDict) -> None:
        if LEVELS[level] < _config.threshold:
            return
        context = redact({**_scoped.get(), **self.context, **extra})
        _renderer().render(LogEntry(time.time(), level, event, context))


def get_logger(name: str | None = None, **context: JsonValue) -> BoundLogger:
    """Logger with `context` bound and, when given, `name` under the `logger` key."""
    if name:
        context["logger"] = name
    return BoundLogger(context)


# ═══════════════════════════════════════════════════════════════════════════════
# Renderers
# ═══════════════════════════════════════════════════════════════════════════════

_STYLE = {"debug": "\033[2m", "info": "\033[36m", "warning": "\033[33m", "error": "\033[1;31m"}
_RESET = "\033[0m"

# Keys shown right after the level, ahead of the event
_LEADING = ("tool", "execution_id")


def _plain(value: object) -> str:
    if isinstance(value, str):
        return value if value and " " not in value else repr(value)
    if isinstance(value, (dict, list, tuple)):
        return orjson.dumps(value, default=str).decode()
    return str(value)


@dataclass(slots=True)
class ConsoleRenderer:
    """`HH:MM:SS.mmm LEVEL [tool exec] event key=value ...` on stderr."""

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool | None = None

    def __post_init__(self) -> None:
        if self.colors is None:
            self.colors = bool(getattr(self.output, "isatty", lambda: False)())

    def render(self, entry: LogEntry) -> None:
        ctx = dict(entry.context)
        trace = ctx.pop("exc_info", None)
        label = entry.level.upper().ljust(7)
        if self.colors:
            label = f"{_STYLE[entry.level]}{label}{_RESET}"
        tags = " ".join(str(ctx.pop(k)) for k in _LEADING if k in ctx)
        line = f"{entry.when.strftime('%H:%M:%S.%f')[:-3]} {label} "
        line += f"[{tags}] {entry.event}" if tags else entry.event
        if ctx:
            line += " " + " ".join(f"{k}={_plain(v)}" for k, v in sorted(ctx.items()))
        self.output.write(line + "\n")
        if trace:
            self.output.write(f"{trace}\n")


@dataclass(slots=True)
class JsonRenderer:
    output: TextIO = field(default_factory=lambda: sys.stdout)

    def render(self, entry: LogEntry) -> None:
        self.output.write(orjson.dumps(entry.record(), option=orjson.OPT_NON_STR_KEYS, default=str).decode() + "\n")


class NullRenderer:
    __slots__ = ()

    def render(self, entry: LogEntry) -> None:
        return None


@dataclass(slots=True)
class CaptureRenderer:
    """Keeps entries in memory for assertions."""

    entries: list[LogEntry] = field(default_factory=list)

    def render(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def events(self) -> list[str]:
        return [e.event for e in self.entries]


# ═══════════════════════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════════════════════


def configure_logging(
    format: str = "console",  # noqa: A002 - matches LoggingSettings.format
    level: str = "INFO",
    *,
    output: TextIO | None = None,
    colors: bool | None = None,
    renderer: LogRenderer | None = None,
) -> LogRenderer:
    """Install the process-wide renderer and level threshold.

    Raises:
        ValueError: Unknown `format` or `level`
    """
    if (threshold := LEVELS.get(level.lower())) is None:
        raise ValueError(f"Unknown level: {level}. Use one of {', '.join(LEVELS)}")
    if renderer is None:
        match format:
            case "console":
                renderer = ConsoleRenderer(output=output or sys.stderr, colors=colors)
            case "json":
                renderer = JsonRenderer(output=output or sys.stdout)
            case "none":
                renderer = NullRenderer()
            case _:
                raise ValueError(f"Unknown format: {format}. Use 'console', 'json' or 'none'")
    _config.renderer, _config.threshold = renderer, threshold
    return renderer


def _renderer() -> LogRenderer:
    if _config.renderer is None:
        _config.renderer = ConsoleRenderer()
    return _config.renderer
