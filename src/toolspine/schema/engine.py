"""Validation engine: runs compiled schemas against raw data.

Ordinary invalid input never raises; it is returned as a list of
FieldError records. Only malformed schemas (ConfigurationError /
SchemaCompilationError) propagate.

Example:
    >>> engine = ValidationEngine()
    >>> result = engine.validate_input({"name": ""}, {"name": string_field().required().min_length(2)})
    >>> result.success, [e.code for e in result.errors]
    (False, ['TOO_SMALL'])
"""

from __future__ import annotations

import os
import threading
import time
from collections import deque
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from toolspine.foundation.config import ValidationSettings

from .compiler import DEFAULT_CACHE_SIZE, DEFAULT_CACHE_TTL, SchemaCompiler, Scope
from .fields import FieldBase, FieldKind, parse_field
from .nodes import FieldError, ValidationCode, ValidationState


class ValidationOptions(BaseModel):
    """Per-call validation switches.

    Attributes:
        abort_early: Stop at the first error
        transform: Apply field transforms/sanitization to valid values
        strip_unknown: Drop undeclared top-level fields instead of rejecting them
        custom_messages: Message overrides keyed by "<dotted path>.<constraint>"
        env: Environment source for config `env_var` lookups (None = os.environ)
    """

    model_config = ConfigDict(frozen=True)

    abort_early: bool = False
    transform: bool = True
    strip_unknown: bool = False
    custom_messages: dict[str, str] = Field(default_factory=dict)
    env: dict[str, str] | None = None

    @classmethod
    def from_settings(cls, settings: ValidationSettings) -> ValidationOptions:
        return cls(
            abort_early=settings.abort_early,
            transform=settings.transform,
            strip_unknown=settings.strip_unknown,
        )


class ValidationResult(BaseModel):
    """Outcome of one validation call. `data` is set only on success."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: dict[str, Any] | None = None
    errors: list[FieldError] = Field(default_factory=list)
    duration_ms: float = 0.0
    from_cache: bool = False

    @property
    def error_summary(self) -> str:
        return "; ".join(
            f"{e.dotted_path}: {e.message}" if e.path else e.message for e in self.errors
        )


class ValidationMetrics(BaseModel):
    """Rolling performance snapshot of an engine."""

    model_config = ConfigDict(frozen=True)

    total_validations: int
    failed_validations: int
    cache_hits: int
    cache_misses: int
    total_duration_ms: float
    window_average_ms: float
    current_cache_size: int
    max_cache_size: int

    @computed_field
    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hits + self.cache_misses
        return round(self.cache_hits / lookups * 100, 2) if lookups else 0.0

    @computed_field
    @property
    def average_duration_ms(self) -> float:
        return round(self.total_duration_ms / self.total_validations, 4) if self.total_validations else 0.0


# Kinds that only appear in configuration schemas
_CONFIG_KINDS = frozenset({FieldKind.API_KEY, FieldKind.SECRET, FieldKind.URL})


class ValidationEngine:
    """Validates input/config data against field definitions via a shared compiler.

    Args:
        compiler: Compiler (and cache) to use; one is created when omitted
        settings: Supplies default options and cache sizing
    """

    __slots__ = ("_compiler", "_defaults", "_lock", "_window", "_total", "_failed", "_hits",
                 "_misses", "_duration_ms")

    def __init__(
        self,
        compiler: SchemaCompiler | None = None,
        *,
        settings: ValidationSettings | None = None,
    ) -> None:
        settings = settings or ValidationSettings()
        self._compiler = compiler or SchemaCompiler(
            max_size=settings.cache_size or DEFAULT_CACHE_SIZE,
            ttl=settings.cache_ttl_seconds or DEFAULT_CACHE_TTL,
        )
        self._defaults = ValidationOptions.from_settings(settings)
        self._lock = threading.Lock()
        self._window: deque[float] = deque(maxlen=settings.metrics_window)
        self._total = self._failed = self._hits = self._misses = 0
        self._duration_ms = 0.0

    @property
    def compiler(self) -> SchemaCompiler:
        return self._compiler

    @property
    def default_options(self) -> ValidationOptions:
        return self._defaults

    # ─────────────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────────────

    def validate_input(
        self,
        data: Any,
        fields: Mapping[str, Any] | None,
        options: ValidationOptions | None = None,
        *,
        rules: Iterable[Any] | None = None,
    ) -> ValidationResult:
        """Validate request input, then evaluate cross-field rules on the validated data."""
        return self._run(data, fields, "input", options or self._defaults, rules)

    def validate_config(
        self,
        data: Any,
        fields: Mapping[str, Any] | None,
        options: ValidationOptions | None = None,
    ) -> ValidationResult:
        """Validate configuration. Precedence: explicit value > env_var > default."""
        return self._run({} if data is None else data, fields, "config", options or self._defaults, None)

    def validate_tool_data(
        self,
        data: Mapping[str, Any],
        schema: Any,
        options: ValidationOptions | None = None,
    ) -> ValidationResult:
        """Validate `{"input": ..., "config": ...}` against a ToolSchema.

        Error paths are prefixed with "input"/"config"; cross-field errors
        keep their empty path. Data is `{"input": ..., "config": ...}`.
        """
        start = time.perf_counter()
        config = self.validate_config(data.get("config"), schema.config, options)
        inputs = self.validate_input(data.get("input"), schema.input, options, rules=schema.rules)
        errors = [_prefixed(e, "config") for e in config.errors] + [_prefixed(e, "input") for e in inputs.errors]
        success = config.success and inputs.success
        return ValidationResult(
            success=success,
            data={"input": inputs.data, "config": config.data} if success else None,
            errors=errors,
            duration_ms=(time.perf_counter() - start) * 1000,
            from_cache=config.from_cache and inputs.from_cache,
        )

    def validate_field(
        self,
        definition: Any,
        value: Any,
        name: str = "field",
        options: ValidationOptions | None = None,
        *,
        scope: Scope | None = None,
    ) -> ValidationResult:
        """Validate one value against one definition. Config kinds use config rules."""
        parsed: FieldBase = parse_field(definition, name=name)  # type: ignore[assignment]
        if scope is None:
            scope = "config" if FieldKind(parsed.kind) in _CONFIG_KINDS else "input"  # type: ignore[attr-defined]
        data = {} if value is None else {name: value}
        return self._run(data, {name: parsed}, scope, options or self._defaults, None)

    def get_metrics(self) -> ValidationMetrics:
        with self._lock:
            window = list(self._window)
            return ValidationMetrics(
                total_validations=self._total,
                failed_validations=self._failed,
                cache_hits=self._hits,
                cache_misses=self._misses,
                total_duration_ms=round(self._duration_ms, 4),
                window_average_ms=round(sum(window) / len(window), 4) if window else 0.0,
                current_cache_size=self._compiler.size,
                max_cache_size=self._compiler.max_size,
            )

    def reset(self) -> None:
        """Clear the compiler cache and all counters."""
        self._compiler.clear()
        with self._lock:
            self._window.clear()
            self._total = self._failed = self._hits = self._misses = 0
            self._duration_ms = 0.0

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    def _run(
        self,
        data: Any,
        fields: Mapping[str, Any] | None,
        scope: Scope,
        options: ValidationOptions,
        rules: Iterable[Any] | None,
    ) -> ValidationResult:
        start = time.perf_counter()
        compiled, from_cache = self._compiler.compile(fields, scope=scope, rules=rules)
        state = ValidationState(
            abort_early=options.abort_early,
            transform=options.transform,
            custom_messages=options.custom_messages,
            include_values=scope == "input",
        )
        env = None
        if scope == "config":
            env = options.env if options.env is not None else os.environ
        out = compiled.validate(data, state, strip_unknown=options.strip_unknown, env=env)
        duration_ms = (time.perf_counter() - start) * 1000
        success = not state.errors
        self._record(duration_ms, from_cache, success)
        return ValidationResult(
            success=success,
            data=out if success else None,
            errors=state.errors,
            duration_ms=duration_ms,
            from_cache=from_cache,
        )

    def _record(self, duration_ms: float, from_cache: bool, success: bool) -> None:
        with self._lock:
            self._total += 1
            self._duration_ms += duration_ms
            self._window.append(duration_ms)
            if from_cache:
                self._hits += 1
            else:
                self._misses += 1
            if not success:
                self._failed += 1


def _prefixed(error: FieldError, scope: str) -> FieldError:
    if error.code is ValidationCode.CROSS_FIELD_VALIDATION_FAILED:
        return error
    return error.model_copy(update={"path": [scope, *error.path]})


def field_not_found(name: str, scope: str) -> ValidationResult:
    return ValidationResult(
        success=False,
        errors=[FieldError(
            code=ValidationCode.FIELD_NOT_FOUND,
            path=[name],
            message=f"Field '{name}' not found in {scope} schema",
        )],
    )
