"""Tool execution runtime.

A Tool owns its schema, configuration, metrics, rate limiter and HTTP
surface. Lifecycle is `stopped -> starting -> running -> stopping ->
stopped`, with `failed` on a startup/shutdown error (restartable). Only a
running tool executes requests.

Per execution, in order:
    input validation -> config (cached by set_config, else per request)
    -> execute function under a time budget -> result normalization
    -> metrics, history and events

Quick Start:
    >>> tool = create_tool(
    ...     metadata={"name": "echo", "version": "1.0.0", "description": "Echo a message"},
    ...     input={"message": string_field().required()},
    ...     execute=lambda data, config, ctx: {"echo": data["message"]},
    ... )
    >>> await tool.start()
    >>> (await tool.execute({"message": "hi"})).data
    {'echo': 'hi'}
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import time
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Annotated, Any, Literal, Self

import uvicorn
from pydantic import BaseModel, ConfigDict, Field

from toolspine.foundation.config import ToolspineSettings, get_settings
from toolspine.foundation.errors import (
    ConfigurationError,
    ErrorCode,
    ErrorInfo,
    ErrorType,
    ToolspineError,
    ValidationError,
    classify_exception,
    code_for,
)
from toolspine.schema import ToolSchema, ValidationEngine, ValidationOptions, generate_tool_documentation
from toolspine.schema.nodes import ValidationCode

from .context import ExecutionContext, ExecutionFlags, PerformanceContext, SecurityContext
from .metrics import ExecutionRecord, MetricsSnapshot, RuntimeMetrics
from .middleware import SlidingWindowLimiter
from .observability import configure_logging, get_logger, redact, sanitize_config
from .result import ExecutionResult, ExecutionStatus, Timing, normalize_output, now_utc

if TYPE_CHECKING:
    from starlette.applications import Starlette

ExecuteFn = Callable[[dict[str, Any], Mapping[str, Any], ExecutionContext], Any]
ConfigValidator = Callable[[Mapping[str, Any]], Any]
SetupFn = Callable[[Mapping[str, Any]], Any]
Hook = Callable[[], Any]
Listener = Callable[..., Any]


class ToolState(StrEnum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED = "failed"


class ToolEvent(StrEnum):
    STATE_CHANGE = "state_change"
    BEFORE_EXECUTION = "before_execution"
    AFTER_EXECUTION = "after_execution"
    ERROR = "error"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"


class ToolMetadata(BaseModel):
    """Identity and description of a tool, surfaced in /health, /schema and /."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    name: Annotated[str, Field(min_length=1, max_length=64, pattern=r"^[a-z0-9][a-z0-9._-]*$")]
    version: Annotated[str, Field(pattern=r"^\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.-]+)?$")]
    description: Annotated[str, Field(min_length=1)]
    capabilities: tuple[str, ...] = ()
    author: str | None = None
    license: str | None = None
    homepage: str | None = None
    repository: str | None = None
    tags: tuple[str, ...] = ()


class HealthReport(BaseModel):
    """Body of `GET /health`."""

    model_config = ConfigDict(frozen=True)

    status: Literal["healthy", "degraded", "unhealthy"]
    state: ToolState
    name: str
    version: str
    capabilities: tuple[str, ...] = ()
    tool_metadata: dict[str, Any] = Field(default_factory=dict)
    uptime_seconds: float = 0.0
    last_execution_at: float | None = None
    metrics: dict[str, float] = Field(default_factory=dict)
    checks: dict[str, Any] = Field(default_factory=dict)
    timestamp: str

    @property
    def status_code(self) -> int:
        return 503 if self.status == "unhealthy" else 200


async def _call_hook(fn: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async callable and return its (awaited) result."""
    result = fn(*args)
    if inspect.isawaitable(result):
        return await result
    return result


def _consume(task: asyncio.Future[Any]) -> None:
    if not task.cancelled():
        task.exception()


class Tool:
    """A schema-validated function behind an HTTP runtime.

    Args:
        metadata: Tool identity
        schema: Input/config definitions and cross-field rules
        execute: `(input, config, context) -> result`, sync or async
        settings: Runtime settings (defaults to get_settings())
        engine: Validation engine (one per tool when omitted)
        config_validator: Extra config check; return False/str or raise to reject
        setup: Called with the validated config whenever set_config succeeds
        on_startup/on_shutdown: Lifecycle hooks, sync or async
        health_check: Returns bool, None or {"status": ..., "details": ...}
        timeout_ms: Execution budget overriding settings.timeout
    """

    def __init__(
        self,
        metadata: ToolMetadata,
        schema: ToolSchema,
        execute: ExecuteFn,
        *,
        settings: ToolspineSettings | None = None,
        engine: ValidationEngine | None = None,
        config_validator: ConfigValidator | None = None,
        setup: SetupFn | None = None,
        on_startup: Iterable[Hook] = (),
        on_shutdown: Iterable[Hook] = (),
        health_check: Hook | None = None,
        timeout_ms: float | None = None,
    ) -> None:
        self.metadata = metadata
        self.schema = schema
        self.settings = settings or get_settings()
        self.engine = engine or ValidationEngine(settings=self.settings.validation)
        self._execute = execute
        self._config_validator = config_validator
        self._setup = setup
        self._startup_hooks = list(on_startup)
        self._shutdown_hooks = list(on_shutdown)
        self._health_check = health_check
        self._timeout_s = timeout_ms / 1000 if timeout_ms else self.settings.timeout.execution_seconds
        self._options = ValidationOptions.from_settings(self.settings.validation)
        self._sensitive = frozenset(n for n, d in schema.config.items() if d.is_sensitive)
        self._overridable = frozenset(n for n, d in schema.config.items() if d.allow_runtime_override)

        self._state = ToolState.STOPPED
        self._lifecycle = asyncio.Lock()
        self._listeners: defaultdict[ToolEvent, list[Listener]] = defaultdict(list)
        self._config: Mapping[str, Any] | None = None
        self._started_at: float | None = None
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._app: Starlette | None = None

        monitoring, limits = self.settings.monitoring, self.settings.rate_limit
        self.metrics = RuntimeMetrics(monitoring.history_size, monitoring.recent_errors)
        self.limiter = SlidingWindowLimiter(
            max_requests=limits.max_requests,
            window_seconds=limits.window_seconds,
            max_callers=limits.max_tracked_callers,
        ) if limits.enabled else None
        self.log = get_logger("toolspine.runtime", tool=metadata.name, version=metadata.version)

    def __repr__(self) -> str:
        return f"Tool(name={self.metadata.name!r}, version={self.metadata.version!r}, state={self._state.value})"

    @property
    def state(self) -> ToolState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is ToolState.RUNNING

    @property
    def config(self) -> Mapping[str, Any] | None:
        """Validated configuration cached by set_config (read-only)."""
        return self._config

    @property
    def timeout_ms(self) -> float:
        return self._timeout_s * 1000

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self._started_at if self._started_at is not None else 0.0

    @property
    def app(self) -> Starlette:
        """ASGI application serving this tool."""
        if self._app is None:
            from toolspine.server.http import create_app
            self._app = create_app(self)
        return self._app

    # ─────────────────────────────────────────────────────────────────────────
    # Events
    # ─────────────────────────────────────────────────────────────────────────

    def on(self, event: ToolEvent | str, listener: Listener) -> Self:
        """Register a sync or async listener. Listener errors are logged, never raised."""
        self._listeners[ToolEvent(event)].append(listener)
        return self

    def off(self, event: ToolEvent | str, listener: Listener | None = None) -> Self:
        """Remove one listener, or all listeners of `event` when omitted."""
        listeners = self._listeners[ToolEvent(event)]
        if listener is None:
            listeners.clear()
        elif listener in listeners:
            listeners.remove(listener)
        return self

    async def emit(self, event: ToolEvent | str, *args: Any) -> None:
        event = ToolEvent(event)
        for listener in list(self._listeners.get(event, ())):
            try:
                await _call_hook(listener, *args)
            except Exception:
                self.log.exception("event listener failed", listener_event=event.value)

    async def _set_state(self, state: ToolState) -> None:
        previous, self._state = self._state, state
        self.log.debug("state changed", previous=previous.value, state=state.value)
        await self.emit(ToolEvent.STATE_CHANGE, previous, state)

    # ─────────────────────────────────────────────────────────────────────────
    # Configuration
    # ─────────────────────────────────────────────────────────────────────────

    async def set_config(self, config: Mapping[str, Any] | None = None) -> Mapping[str, Any]:
        """Validate, freeze and cache configuration, then run the setup hook.

        Raises:
            ConfigurationError: Config failed schema or custom validation
        """
        resolved = await self._resolve_config(config)
        if self._setup is not None:
            await _call_hook(self._setup, resolved)
        self._config = resolved
        self.log.info("configuration applied", config=sanitize_config(resolved, self._sensitive))
        return resolved

    async def _resolve_config(self, config: Mapping[str, Any] | None) -> Mapping[str, Any]:
        result = self.engine.validate_config(config, self.schema.config, self._options)
        if not result.success:
            raise ConfigurationError(
                "Configuration validation failed",
                details={
                    "errors": [e.model_dump(mode="json", exclude_none=True) for e in result.errors],
                    "missing_keys": [
                        e.dotted_path for e in result.errors if e.code is ValidationCode.REQUIRED_FIELD_MISSING
                    ],
                },
            )
        resolved = MappingProxyType(copy.deepcopy(result.data or {}))
        if self._config_validator is not None:
            verdict = await _call_hook(self._config_validator, resolved)
            if verdict is False or isinstance(verdict, str):
                raise ConfigurationError(verdict if isinstance(verdict, str) else "Custom configuration validation failed")
        return resolved

    async def _config_for(self, supplied: Mapping[str, Any] | None) -> Mapping[str, Any]:
        if self._config is None:
            return await self._resolve_config(supplied)
        overrides = {k: v for k, v in (supplied or {}).items() if k in self._overridable}
        if not overrides:
            # Each request gets its own copy; nested values are otherwise shared
            return MappingProxyType(copy.deepcopy(dict(self._config)))
        return await self._resolve_config({**self._config, **overrides})

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def start(self, *, listen: bool = False, host: str | None = None, port: int | None = None) -> Self:
        """Run startup hooks, resolve config if possible, optionally bind the HTTP server.

        Raises:
            RuntimeError: Tool is not stopped or failed
        """
        async with self._lifecycle:
            if self._state not in (ToolState.STOPPED, ToolState.FAILED):
                raise RuntimeError(f"Cannot start tool '{self.metadata.name}' in state {self._state.value}")
            await self._set_state(ToolState.STARTING)
            try:
                self.metrics.reset()
                if self.limiter is not None:
                    self.limiter.reset()
                for hook in self._startup_hooks:
                    await _call_hook(hook)
                if self._config is None:
                    try:
                        await self.set_config(None)
                    except ConfigurationError as exc:
                        self.log.info("configuration deferred to requests", reason=exc.message)
                if self.settings.security.require_auth and not self.settings.security.api_keys:
                    self.log.warning("authentication required but no API keys configured")
                if listen:
                    await self._listen(host, port)
            except Exception as exc:
                await self._set_state(ToolState.FAILED)
                self.log.exception("startup failed")
                await self.emit(ToolEvent.ERROR, ErrorInfo.from_exception(exc), None)
                raise
            self._started_at = time.time()
            await self._set_state(ToolState.RUNNING)
            self.log.info("tool started", listening=listen)
        return self

    async def stop(self) -> Self:
        """Stop the HTTP server (if any) and run shutdown hooks. Idempotent when stopped."""
        async with self._lifecycle:
            if self._state is ToolState.STOPPED:
                return self
            if self._state not in (ToolState.RUNNING, ToolState.FAILED):
                raise RuntimeError(f"Cannot stop tool '{self.metadata.name}' in state {self._state.value}")
            await self._set_state(ToolState.STOPPING)
            try:
                await self._shutdown_server()
                for hook in self._shutdown_hooks:
                    await _call_hook(hook)
            except Exception as exc:
                await self._set_state(ToolState.FAILED)
                self.log.exception("shutdown failed")
                await self.emit(ToolEvent.ERROR, ErrorInfo.from_exception(exc), None)
                raise
            self._started_at = None
            await self._set_state(ToolState.STOPPED)
            self.log.info("tool stopped")
        return self

    async def restart(self) -> Self:
        listening = self._server is not None
        await self.stop()
        return await self.start(listen=listening)

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Serve until interrupted (blocking)."""
        asyncio.run(self._serve_forever(host, port))

    async def _serve_forever(self, host: str | None, port: int | None) -> None:
        configure_logging(self.settings.logging.format, self.settings.logging.level)
        await self.start(listen=True, host=host, port=port)
        try:
            if self._serve_task is not None:
                await self._serve_task
        finally:
            await self.stop()

    async def _listen(self, host: str | None, port: int | None) -> None:
        server_settings = self.settings.server
        self._server = uvicorn.Server(uvicorn.Config(
            self.app,
            host=host or server_settings.host,
            port=server_settings.port if port is None else port,
            log_config=None,
            access_log=False,
            lifespan="off",
        ))
        self._serve_task = asyncio.create_task(self._server.serve())
        while not self._server.started:
            if self._serve_task.done():
                try:
                    self._serve_task.result()
                except SystemExit as exc:
                    raise RuntimeError("HTTP server failed to start") from exc
                raise RuntimeError("HTTP server exited during startup")
            await asyncio.sleep(0.01)
        self.log.info("listening", host=self._server.config.host, port=self._server.config.port)

    async def _shutdown_server(self) -> None:
        if self._server is None or self._serve_task is None:
            return
        self._server.should_exit = True
        try:
            await asyncio.wait_for(asyncio.shield(self._serve_task), self.settings.server.graceful_shutdown_seconds)
        except TimeoutError:
            self._server.force_exit = True
            await self._serve_task
        finally:
            self._server = self._serve_task = None

    # ─────────────────────────────────────────────────────────────────────────
    # Execution
    # ─────────────────────────────────────────────────────────────────────────

    async def execute(
        self,
        input_data: Any,
        config: Mapping[str, Any] | None = None,
        *,
        request_id: str | None = None,
        caller: str | None = None,
        source_ip: str | None = None,
        user_agent: str | None = None,
        rate_limit_remaining: int | None = None,
        debug: bool = False,
        dry_run: bool = False,
        metadata: Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        """Validate, execute and normalize one invocation. Never raises for tool failures."""
        started_at = now_utc()
        context = ExecutionContext(
            tool_id=self.metadata.name,
            tool_version=self.metadata.version,
            request_id=request_id,
            environment=self.settings.environment,
            security=SecurityContext(
                api_key_hash=caller, source_ip=source_ip, user_agent=user_agent,
                rate_limit_remaining=rate_limit_remaining,
            ),
            performance=PerformanceContext(timeout_ms=int(self.timeout_ms)),
            flags=ExecutionFlags(debug=debug, dry_run=dry_run),
            metadata=dict(metadata or {}),
        )
        log = self.log.bind(execution_id=context.execution_id, request_id=request_id)

        if not dry_run and self._state is not ToolState.RUNNING:
            error = ErrorInfo.create(
                ErrorCode.TOOL_NOT_RUNNING,
                f"Tool is not running (state: {self._state.value})",
                ErrorType.SERVER,
                retryable=True,
            )
            return self._finish(context, started_at, error=error, record=False)

        await self.emit(ToolEvent.BEFORE_EXECUTION, context)
        validation_ms = 0.0
        status, data, error = ExecutionStatus.SUCCESS, None, None
        warnings: list[str] = []
        result_meta: dict[str, Any] = {}
        try:
            inputs = self.engine.validate_input(input_data, self.schema.input, self._options, rules=self.schema.rules)
            validation_ms = inputs.duration_ms
            if not inputs.success:
                raise ValidationError(
                    "Input validation failed",
                    [e.model_dump(mode="json", exclude_none=True) for e in inputs.errors],
                )
            resolved = await self._config_for(config)
            status, data, error, warnings, result_meta = await self._invoke(inputs.data or {}, resolved, context)
        except ToolspineError as exc:
            status, error = ExecutionStatus.ERROR, exc.to_info()
        except Exception as exc:
            log.exception("internal error during execution")
            status, error = ExecutionStatus.ERROR, ErrorInfo.create(
                ErrorCode.INTERNAL_ERROR,
                "An internal error occurred",
                ErrorType.SYSTEM,
                details={"exception": type(exc).__name__, "message": str(exc)} if self._verbose(context) else None,
            )

        if error is not None and error.details is not None:
            error = error.model_copy(update={"details": redact(error.details, extra_keys=self._sensitive)})
        result = self._finish(
            context, started_at, status=status, data=data, error=error, warnings=warnings,
            metadata=result_meta, validation_ms=validation_ms, record=not dry_run,
        )
        self._log_result(log, result)
        if error is not None:
            await self.emit(ToolEvent.ERROR, error, context)
        await self.emit(ToolEvent.AFTER_EXECUTION, context, result)
        return result

    async def test(self, input_data: Any, config: Mapping[str, Any] | None = None) -> ExecutionResult:
        """Dry run: executes in any state with `flags.dry_run` set, not recorded in metrics."""
        return await self.execute(input_data, config, dry_run=True, debug=True)

    async def _invoke(
        self, data: dict[str, Any], config: Mapping[str, Any], context: ExecutionContext,
    ) -> tuple[ExecutionStatus, Any, ErrorInfo | None, list[str], dict[str, Any]]:
        task = asyncio.ensure_future(self._call_execute(data, config, context))
        try:
            output = await asyncio.wait_for(asyncio.shield(task), timeout=self._timeout_s)
        except TimeoutError:
            # Stop waiting; the function gets a cancellation request but is not awaited.
            task.cancel()
            task.add_done_callback(_consume)
            timeout_ms = round(self.timeout_ms)
            error = ErrorInfo.create(
                ErrorCode.EXECUTION_TIMEOUT,
                f"Tool execution timed out after {timeout_ms}ms",
                ErrorType.TIMEOUT,
                details={"timeout_ms": timeout_ms},
            )
            return ExecutionStatus.TIMEOUT, None, error, [], {}
        except asyncio.CancelledError:
            task.cancel()
            raise
        except ToolspineError as exc:
            return ExecutionStatus.ERROR, None, exc.to_info(), [], {}
        except Exception as exc:
            error_type = classify_exception(exc)
            verbose = self._verbose(context)
            error = ErrorInfo.create(
                code_for(error_type),
                "Tool execution failed" if error_type is ErrorType.EXECUTION and not verbose else str(exc) or type(exc).__name__,
                error_type,
                details={"exception": type(exc).__name__, "message": str(exc)} if verbose else None,
            )
            return ExecutionStatus.ERROR, None, error, [], {}

        data_out, error, warnings, meta = normalize_output(output)
        if error is not None:
            return ExecutionStatus.ERROR, None, error, warnings, meta
        return ExecutionStatus.SUCCESS, data_out, None, warnings, meta

    async def _call_execute(self, data: dict[str, Any], config: Mapping[str, Any], context: ExecutionContext) -> Any:
        if inspect.iscoroutinefunction(self._execute):
            return await self._execute(data, config, context)
        result = await asyncio.to_thread(self._execute, data, config, context)
        if inspect.isawaitable(result):
            return await result
        return result

    def _verbose(self, context: ExecutionContext) -> bool:
        return self.settings.is_development or context.flags.debug

    def _finish(
        self,
        context: ExecutionContext,
        started_at: datetime,
        *,
        status: ExecutionStatus | None = None,
        data: Any = None,
        error: ErrorInfo | None = None,
        warnings: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        validation_ms: float = 0.0,
        record: bool = True,
    ) -> ExecutionResult:
        elapsed_ms = context.elapsed_ms
        if status is None:
            status = ExecutionStatus.SUCCESS if error is None else ExecutionStatus.ERROR
        result = ExecutionResult(
            execution_id=context.execution_id,
            status=status,
            data=({} if data is None else data) if error is None else None,
            error=error,
            timing=Timing(
                started_at=started_at,
                completed_at=now_utc(),
                execution_time_ms=elapsed_ms,
                validation_time_ms=validation_ms,
            ),
            metadata=metadata or {},
            warnings=warnings or [],
        )
        if record:
            self.metrics.record(ExecutionRecord(
                execution_id=context.execution_id,
                status=status.value,
                duration_ms=elapsed_ms,
                timestamp=time.time(),
                error_code=error.code if error else None,
                error_message=error.message if error else None,
                caller=context.security.api_key_hash,
            ))
        return result

    def _log_result(self, log: Any, result: ExecutionResult) -> None:
        fields = {"status": result.status.value, "duration_ms": round(result.timing.execution_time_ms, 2)}
        if result.error is None:
            log.info("execution completed", **fields)
            return
        fields |= {"code": result.error.code, "error": result.error.message}
        if result.error.type in (ErrorType.VALIDATION, ErrorType.CONFIGURATION, ErrorType.CLIENT):
            log.warning("execution rejected", **fields)
        else:
            log.error("execution failed", **fields)

    # ─────────────────────────────────────────────────────────────────────────
    # Introspection
    # ─────────────────────────────────────────────────────────────────────────

    async def health(self) -> HealthReport:
        """Health derived from state, the custom check and the recent error rate."""
        status: Literal["healthy", "degraded", "unhealthy"] = "healthy" if self.is_running else "unhealthy"
        checks: dict[str, Any] = {"state": self._state.value}
        if self.is_running and self._health_check is not None:
            status, checks["custom"] = await self._run_health_check()

        snapshot = self.metrics.snapshot()
        threshold = self.settings.monitoring.degraded_error_rate
        if status == "healthy" and snapshot.total_executions and snapshot.error_rate_percent > threshold:
            status = "degraded"
            checks["error_rate"] = {"status": "degraded", "error_rate_percent": snapshot.error_rate_percent,
                                    "threshold_percent": threshold}
        return HealthReport(
            status=status,
            state=self._state,
            name=self.metadata.name,
            version=self.metadata.version,
            capabilities=self.metadata.capabilities,
            tool_metadata=self.metadata.model_dump(mode="json", exclude_none=True),
            uptime_seconds=round(self.uptime_seconds, 3),
            last_execution_at=snapshot.last_execution_at,
            metrics={
                "total_executions": snapshot.total_executions,
                "error_rate_percent": snapshot.error_rate_percent,
                "average_execution_time_ms": snapshot.average_execution_time_ms,
            },
            checks=checks,
            timestamp=now_utc().isoformat(),
        )

    async def _run_health_check(self) -> tuple[Literal["healthy", "degraded", "unhealthy"], dict[str, Any]]:
        assert self._health_check is not None
        try:
            verdict = await asyncio.wait_for(
                _call_hook(self._health_check), self.settings.timeout.health_check_seconds,
            )
        except Exception as exc:
            self.log.warning("health check failed", error=str(exc) or type(exc).__name__)
            return "unhealthy", {"status": "unhealthy", "code": ErrorCode.HEALTH_CHECK_FAILED,
                                 "error": str(exc) or type(exc).__name__}
        match verdict:
            case None | True:
                return "healthy", {"status": "healthy"}
            case False:
                return "unhealthy", {"status": "unhealthy"}
            case {"status": "healthy" | "degraded" | "unhealthy" as reported}:
                return reported, {"status": reported, "details": verdict.get("details") or {}}
            case _:
                return "unhealthy", {"status": "unhealthy", "error": f"Unrecognized health check result: {verdict!r}"}

    def metrics_snapshot(self) -> MetricsSnapshot:
        return self.metrics.snapshot()

    def describe(self) -> dict[str, Any]:
        """Metadata plus field names, as served by `GET /`."""
        return {
            **self.metadata.model_dump(mode="json", exclude_none=True),
            "state": self._state.value,
            "fields": self.schema.field_names,
        }

    def documentation(self) -> dict[str, Any]:
        """OpenAPI 3.0.3 document served by `GET /schema`."""
        return generate_tool_documentation(self.schema, self.metadata.model_dump(mode="json", exclude_none=True))

