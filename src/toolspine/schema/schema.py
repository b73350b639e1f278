"""Tool schemas and the SchemaBuilder convenience wrapper.

A ToolSchema partitions field definitions into `input` and `config` maps plus
an ordered tuple of cross-field rules over the input. It is frozen once
built; a Tool owns exactly one.

Example:
    >>> schema = (
    ...     create_schema()
    ...     .add_input("message", string_field().required())
    ...     .add_input("count", number_field().min(1).max(10).default(1))
    ...     .add_config("api_key", api_key_field())
    ... )
    >>> schema.validate_input({"message": "hi"}).data
    {'message': 'hi', 'count': 1}
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .engine import ValidationEngine, ValidationMetrics, ValidationOptions, ValidationResult, field_not_found
from .docs import generate_example_request, generate_tool_documentation
from .fields import FieldDefinition, parse_field, parse_fields
from .rules import CrossFieldRule, parse_rule, parse_rules


class ToolSchema(BaseModel):
    """Input and config definitions plus cross-field rules."""

    model_config = ConfigDict(frozen=True)

    input: Mapping[str, FieldDefinition] = Field(default_factory=lambda: MappingProxyType({}))
    config: Mapping[str, FieldDefinition] = Field(default_factory=lambda: MappingProxyType({}))
    rules: tuple[CrossFieldRule, ...] = ()

    @field_validator("input", "config", mode="after")
    @classmethod
    def _freeze(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(v))

    @field_serializer("input", "config")
    def _dump_fields(self, v: Mapping[str, Any]) -> dict[str, Any]:
        return dict(v)

    @classmethod
    def of(
        cls,
        input: Mapping[str, Any] | None = None,  # noqa: A002 - mirrors the wire name
        config: Mapping[str, Any] | None = None,
        rules: Iterable[Any] | None = None,
    ) -> ToolSchema:
        """Build from builders, definitions or raw mappings."""
        return cls.model_construct(
            input=MappingProxyType(parse_fields(input)),
            config=MappingProxyType(parse_fields(config)),
            rules=parse_rules(rules),
        )

    @property
    def field_names(self) -> dict[str, list[str]]:
        return {"input": list(self.input), "config": list(self.config)}


class SchemaBuilder:
    """Accumulates a ToolSchema and validates against it directly.

    Unlike field builders this one is stateful; `build()` snapshots the
    current fields into a frozen ToolSchema.
    """

    __slots__ = ("_input", "_config", "_rules", "_engine")

    def __init__(self, engine: ValidationEngine | None = None) -> None:
        self._input: dict[str, FieldDefinition] = {}
        self._config: dict[str, FieldDefinition] = {}
        self._rules: list[CrossFieldRule] = []
        self._engine = engine or ValidationEngine()

    def add_input(self, name: str, definition: Any) -> Self:
        self._input[name] = parse_field(definition, name=name)
        return self

    def add_config(self, name: str, definition: Any) -> Self:
        self._config[name] = parse_field(definition, name=name)
        return self

    def add_rule(self, rule: Any) -> Self:
        self._rules.append(parse_rule(rule))
        return self

    def build(self) -> ToolSchema:
        return ToolSchema.model_construct(
            input=MappingProxyType(dict(self._input)),
            config=MappingProxyType(dict(self._config)),
            rules=tuple(self._rules),
        )

    def validate_input(self, data: Any, options: ValidationOptions | None = None) -> ValidationResult:
        return self._engine.validate_input(data, self._input, options, rules=self._rules)

    def validate_config(self, data: Any, options: ValidationOptions | None = None) -> ValidationResult:
        return self._engine.validate_config(data, self._config, options)

    def validate_tool_data(self, data: Mapping[str, Any], options: ValidationOptions | None = None) -> ValidationResult:
        return self._engine.validate_tool_data(data, self.build(), options)

    def test_field(self, name: str, value: Any, scope: str = "input") -> ValidationResult:
        """Validate a single value against one declared field."""
        fields = self._input if scope == "input" else self._config
        if (definition := fields.get(name)) is None:
            return field_not_found(name, scope)
        return self._engine.validate_field(definition, value, name, scope="input" if scope == "input" else "config")

    def get_metrics(self) -> ValidationMetrics:
        return self._engine.get_metrics()

    def reset(self) -> None:
        self._engine.reset()

    def generate_documentation(self, metadata: Mapping[str, Any] | None = None) -> dict[str, Any]:
        return generate_tool_documentation(self.build(), metadata)

    def generate_example_request(self) -> dict[str, Any]:
        return generate_example_request(self.build())


def create_schema(engine: ValidationEngine | None = None) -> SchemaBuilder:
    return SchemaBuilder(engine)


def create_validator(schema: ToolSchema | Mapping[str, Any], engine: ValidationEngine | None = None) -> SchemaBuilder:
    """SchemaBuilder preloaded from a ToolSchema or `{"input", "config", "rules"}` mapping."""
    if not isinstance(schema, ToolSchema):
        schema = ToolSchema.of(schema.get("input"), schema.get("config"), schema.get("rules"))
    builder = SchemaBuilder(engine)
    for name, d in schema.input.items():
        builder.add_input(name, d)
    for name, d in schema.config.items():
        builder.add_config(name, d)
    for rule in schema.rules:
        builder.add_rule(rule)
    return builder


def validate_field(
    definition: Any,
    value: Any,
    name: str = "field",
    options: ValidationOptions | None = None,
) -> ValidationResult:
    """One-off validation of a single value with a throwaway engine."""
    return ValidationEngine().validate_field(definition, value, name, options)
