"""Tool construction: `create_tool()` and the fluent ToolBuilder.

Both validate the assembled definition before a Tool exists: metadata is
complete, an execute function is present, field names are identifiers and
unique per scope, and the schema compiles.

Example:
    >>> tool = (
    ...     ToolBuilder()
    ...     .metadata(name="weather", version="1.0.0", description="Current weather")
    ...     .input_field("city", string_field().required().min_length(2))
    ...     .config_field("api_key", api_key_field().env_var("WEATHER_API_KEY"))
    ...     .execute(fetch_weather)
    ...     .build()
    ... )
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any, Self

from pydantic import ValidationError as PydanticValidationError

from toolspine.foundation.config import ToolspineSettings
from toolspine.foundation.errors import ConfigurationError
from toolspine.schema import ToolSchema, ValidationEngine, parse_field
from toolspine.schema.fields import FieldDefinition
from toolspine.schema.rules import CrossFieldRule, parse_rule

from .tool import ConfigValidator, ExecuteFn, Hook, SetupFn, Tool, ToolMetadata

FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_field_name(name: str, scope: str) -> str:
    if not isinstance(name, str) or not FIELD_NAME.match(name):
        raise ConfigurationError(
            f"Invalid {scope} field name {name!r}: must start with a letter or underscore "
            "and contain only letters, digits and underscores"
        )
    return name


def parse_metadata(metadata: ToolMetadata | Mapping[str, Any]) -> ToolMetadata:
    if isinstance(metadata, ToolMetadata):
        return metadata
    try:
        return ToolMetadata.model_validate(dict(metadata))
    except PydanticValidationError as e:
        problems = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        raise ConfigurationError(f"Invalid tool metadata: {problems}") from e


class ToolBuilder:
    """Stateful, chainable assembly of a Tool.

    Unlike field builders, every call mutates this builder and returns it.
    `build()` validates the whole definition and compiles the schema once
    so malformed constraints fail at build time.
    """

    __slots__ = ("_metadata", "_input", "_config", "_rules", "_execute", "_config_validator",
                 "_setup", "_startup", "_shutdown", "_health_check", "_settings", "_engine",
                 "_timeout_ms")

    def __init__(self) -> None:
        self._metadata: ToolMetadata | None = None
        self._input: dict[str, FieldDefinition] = {}
        self._config: dict[str, FieldDefinition] = {}
        self._rules: list[CrossFieldRule] = []
        self._execute: ExecuteFn | None = None
        self._config_validator: ConfigValidator | None = None
        self._setup: SetupFn | None = None
        self._startup: list[Hook] = []
        self._shutdown: list[Hook] = []
        self._health_check: Hook | None = None
        self._settings: ToolspineSettings | None = None
        self._engine: ValidationEngine | None = None
        self._timeout_ms: float | None = None

    def metadata(self, metadata: ToolMetadata | Mapping[str, Any] | None = None, **fields: Any) -> Self:
        if isinstance(metadata, ToolMetadata) and not fields:
            self._metadata = metadata
            return self
        base = metadata.model_dump() if isinstance(metadata, ToolMetadata) else dict(metadata or {})
        self._metadata = parse_metadata({**base, **fields})
        return self

    def input_field(self, name: str, definition: Any) -> Self:
        self._add(self._input, "input", name, definition)
        return self

    def config_field(self, name: str, definition: Any) -> Self:
        self._add(self._config, "config", name, definition)
        return self

    def input(self, fields: Mapping[str, Any]) -> Self:
        for name, definition in fields.items():
            self.input_field(name, definition)
        return self

    def config(self, fields: Mapping[str, Any]) -> Self:
        for name, definition in fields.items():
            self.config_field(name, definition)
        return self

    def rule(self, rule: Any) -> Self:
        self._rules.append(parse_rule(rule))
        return self

    def rules(self, rules: Iterable[Any]) -> Self:
        for rule in rules:
            self.rule(rule)
        return self

    def execute(self, fn: ExecuteFn) -> Self:
        self._execute = fn
        return self

    def validate_config(self, fn: ConfigValidator) -> Self:
        self._config_validator = fn
        return self

    def setup(self, fn: SetupFn) -> Self:
        self._setup = fn
        return self

    def on_startup(self, fn: Hook) -> Self:
        self._startup.append(fn)
        return self

    def on_shutdown(self, fn: Hook) -> Self:
        self._shutdown.append(fn)
        return self

    def health_check(self, fn: Hook) -> Self:
        self._health_check = fn
        return self

    def timeout(self, ms: float) -> Self:
        if ms <= 0:
            raise ConfigurationError(f"Timeout must be positive, got {ms}")
        self._timeout_ms = ms
        return self

    def settings(self, settings: ToolspineSettings) -> Self:
        self._settings = settings
        return self

    def engine(self, engine: ValidationEngine) -> Self:
        self._engine = engine
        return self

    def build(self) -> Tool:
        """Validate and assemble the Tool.

        Raises:
            ConfigurationError: Missing metadata/execute, or a schema that does not compile
        """
        if self._metadata is None:
            raise ConfigurationError("Tool metadata is required (name, version, description)")
        if self._execute is None or not callable(self._execute):
            raise ConfigurationError("Tool execute function is required")
        schema = ToolSchema.of(self._input, self._config, self._rules)
        engine = self._engine or ValidationEngine(settings=self._settings.validation if self._settings else None)
        engine.compiler.compile(schema.input, scope="input", rules=schema.rules)
        engine.compiler.compile(schema.config, scope="config")
        return Tool(
            self._metadata,
            schema,
            self._execute,
            settings=self._settings,
            engine=engine,
            config_validator=self._config_validator,
            setup=self._setup,
            on_startup=self._startup,
            on_shutdown=self._shutdown,
            health_check=self._health_check,
            timeout_ms=self._timeout_ms,
        )

    @staticmethod
    def _add(target: dict[str, FieldDefinition], scope: str, name: str, definition: Any) -> None:
        check_field_name(name, scope)
        if name in target:
            raise ConfigurationError(f"{scope.capitalize()} field '{name}' is already defined")
        target[name] = parse_field(definition, name=name)


def create_tool(
    metadata: ToolMetadata | Mapping[str, Any],
    execute: ExecuteFn,
    *,
    input: Mapping[str, Any] | None = None,  # noqa: A002 - mirrors the wire name
    config: Mapping[str, Any] | None = None,
    rules: Iterable[Any] | None = None,
    schema: ToolSchema | None = None,
    config_validator: ConfigValidator | None = None,
    setup: SetupFn | None = None,
    on_startup: Iterable[Hook] = (),
    on_shutdown: Iterable[Hook] = (),
    health_check: Hook | None = None,
    timeout_ms: float | None = None,
    settings: ToolspineSettings | None = None,
    engine: ValidationEngine | None = None,
) -> Tool:
    """Build a Tool in one call. Accepts either a ToolSchema or input/config/rules.

    Example:
        >>> tool = create_tool(
        ...     {"name": "echo", "version": "1.0.0", "description": "Echo"},
        ...     lambda data, config, ctx: {"echo": data["message"]},
        ...     input={"message": string_field().required()},
        ... )
    """
    builder = ToolBuilder().metadata(metadata).execute(execute)
    if schema is not None:
        input, config, rules = schema.input, schema.config, schema.rules
    builder.input(input or {}).config(config or {}).rules(rules or ())
    if config_validator is not None:
        builder.validate_config(config_validator)
    if setup is not None:
        builder.setup(setup)
    for hook in on_startup:
        builder.on_startup(hook)
    for hook in on_shutdown:
        builder.on_shutdown(hook)
    if health_check is not None:
        builder.health_check(health_check)
    if timeout_ms is not None:
        builder.timeout(timeout_ms)
    if settings is not None:
        builder.settings(settings)
    if engine is not None:
        builder.engine(engine)
    return builder.build()
