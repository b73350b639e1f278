"""Field definitions: immutable descriptions of one input or config value.

Each supported kind is a frozen pydantic model; together they form a tagged
union discriminated on `kind`. Definitions carry no behavior beyond parsing
themselves, compilation into validators lives in `compiler`/`nodes`.

Raw mappings are accepted anywhere a definition is expected:

    >>> parse_field({"kind": "number", "minimum": 1, "maximum": 10})
    NumberField(kind='number', ..., minimum=1.0, maximum=10.0, ...)
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from enum import StrEnum
from types import MappingProxyType
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_serializer, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from toolspine.foundation.errors import ConfigurationError, JsonPrimitive


class FieldKind(StrEnum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"
    ARRAY = "array"
    OBJECT = "object"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    FILE = "file"
    API_KEY = "apiKey"
    SECRET = "secret"
    URL = "url"
    JSON = "json"


class Transform(StrEnum):
    """String transformation applied after a value validates."""
    TRIM = "trim"
    LOWERCASE = "lowercase"
    UPPERCASE = "uppercase"
    NORMALIZE = "normalize"


class StringFormat(StrEnum):
    EMAIL = "email"
    URL = "url"
    UUID = "uuid"
    IPV4 = "ipv4"
    IPV6 = "ipv6"
    BASE64 = "base64"
    JWT = "jwt"
    SLUG = "slug"
    COLOR_HEX = "color-hex"
    SEMVER = "semver"
    DATE = "date"
    TIME = "time"
    DATE_TIME = "date-time"


class TimezonePolicy(StrEnum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    UTC_ONLY = "utc-only"


# ═══════════════════════════════════════════════════════════════════════════════
# Base Definition
# ═══════════════════════════════════════════════════════════════════════════════


class FieldBase(BaseModel):
    """Attributes shared by every field kind.

    Attributes:
        required: Whether the value must be present
        default: Value injected when absent (see has_default)
        has_default: Distinguishes `default=None` from "no default"
        sensitive: Redact from logs, metrics and error details
        sanitize: Strip markup and control characters after validation
        transform: String transformation applied after validation
        error_message: Replaces the message of every error on this field
        env_var: Environment variable consulted for config values
        category/priority: Grouping for generated documentation
        allow_runtime_override: Config value may be supplied per request
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    required: bool = False
    default: Any = None
    has_default: bool = False
    description: str | None = None
    example: Any = None
    label: str | None = None
    sensitive: bool = False
    sanitize: bool = False
    transform: Transform | None = None
    error_message: str | None = None

    env_var: str | None = None
    category: str | None = None
    priority: int | None = None
    allow_runtime_override: bool = False

    @model_validator(mode="before")
    @classmethod
    def _detect_default(cls, data: Any) -> Any:
        """A mapping that names `default` has one, even when it is None."""
        if isinstance(data, Mapping) and "default" in data and "has_default" not in data:
            return {**data, "has_default": True}
        return data

    @field_validator("default", "example", mode="after")
    @classmethod
    def _own_copy(cls, v: Any) -> Any:
        """Definitions never share mutable defaults or examples with their caller."""
        return copy.deepcopy(v)

    @property
    def is_sensitive(self) -> bool:
        return self.sensitive


# ═══════════════════════════════════════════════════════════════════════════════
# Kinds
# ═══════════════════════════════════════════════════════════════════════════════


class StringField(FieldBase):
    kind: Literal["string"] = "string"
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    format: StringFormat | None = None


class NumberField(FieldBase):
    kind: Literal["number"] = "number"
    minimum: float | None = None
    maximum: float | None = None
    integer: bool = False
    precision: int | None = None


class BooleanField(FieldBase):
    kind: Literal["boolean"] = "boolean"


class EnumField(FieldBase):
    kind: Literal["enum"] = "enum"
    values: tuple[JsonPrimitive, ...] = ()
    labels: tuple[str, ...] | None = None


class ArrayField(FieldBase):
    kind: Literal["array"] = "array"
    items: FieldDefinition | None = None
    min_items: int | None = None
    max_items: int | None = None
    unique_items: bool = False


class ObjectField(FieldBase):
    """Nested object. `additional_properties`: None strips, False rejects, True keeps."""
    kind: Literal["object"] = "object"
    properties: Mapping[str, FieldDefinition] = Field(default_factory=lambda: MappingProxyType({}))
    required_properties: tuple[str, ...] = ()
    additional_properties: bool | None = None

    @field_validator("properties", mode="after")
    @classmethod
    def _freeze_properties(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(v))

    @field_serializer("properties")
    def _dump_properties(self, v: Mapping[str, Any]) -> dict[str, Any]:
        return dict(v)


class DateField(FieldBase):
    kind: Literal["date"] = "date"
    min_date: str | None = None
    max_date: str | None = None


class DateTimeField(FieldBase):
    kind: Literal["datetime"] = "datetime"
    min_date: str | None = None
    max_date: str | None = None
    timezone: TimezonePolicy | None = None


class TimeField(FieldBase):
    """Time of day, HH:MM or HH:MM:SS."""
    kind: Literal["time"] = "time"


class FileField(FieldBase):
    """File descriptor `{name, size, type, content?, encoding?}`."""
    kind: Literal["file"] = "file"
    mime_types: tuple[str, ...] | None = None
    max_size: int | None = None


class SecretField(FieldBase):
    """API key or other secret string. Always sensitive."""
    kind: Literal["apiKey", "secret"] = "apiKey"
    required: bool = True
    sensitive: bool = True
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None

    @property
    def is_sensitive(self) -> bool:
        return True


class UrlField(FieldBase):
    kind: Literal["url"] = "url"
    protocols: tuple[str, ...] = ("http", "https")


class JsonField(FieldBase):
    """Any JSON object/array, or a string that parses as JSON."""
    kind: Literal["json"] = "json"


FieldDefinition = Annotated[
    Union[
        StringField,
        NumberField,
        BooleanField,
        EnumField,
        ArrayField,
        ObjectField,
        DateField,
        DateTimeField,
        TimeField,
        FileField,
        SecretField,
        UrlField,
        JsonField,
    ],
    Field(discriminator="kind"),
]

ArrayField.model_rebuild()
ObjectField.model_rebuild()

# Concrete model per kind tag, used by the builder DSL and the compiler dispatch check
KIND_MODELS: dict[FieldKind, type[FieldBase]] = {
    FieldKind.STRING: StringField,
    FieldKind.NUMBER: NumberField,
    FieldKind.BOOLEAN: BooleanField,
    FieldKind.ENUM: EnumField,
    FieldKind.ARRAY: ArrayField,
    FieldKind.OBJECT: ObjectField,
    FieldKind.DATE: DateField,
    FieldKind.DATETIME: DateTimeField,
    FieldKind.TIME: TimeField,
    FieldKind.FILE: FileField,
    FieldKind.API_KEY: SecretField,
    FieldKind.SECRET: SecretField,
    FieldKind.URL: UrlField,
    FieldKind.JSON: JsonField,
}

_DEFINITION_ADAPTER: TypeAdapter[FieldDefinition] = TypeAdapter(FieldDefinition)


# ═══════════════════════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════════════════════


def parse_field(value: Any, *, name: str | None = None) -> FieldDefinition:
    """Coerce a built definition, builder or raw mapping into a definition.

    Raw mappings may use `type` in place of `kind`. Anything that does not
    parse raises ConfigurationError.
    """
    if isinstance(value, FieldBase):
        return value  # type: ignore[return-value]
    if callable(build := getattr(value, "build", None)):
        return parse_field(build(), name=name)
    if not isinstance(value, Mapping):
        raise ConfigurationError(
            f"Field '{name or '?'}' must be a field definition, got {type(value).__name__}",
            details={"field": name},
        )
    data = dict(value)
    if "kind" not in data and "type" in data:
        data["kind"] = data.pop("type")
    try:
        return _DEFINITION_ADAPTER.validate_python(data)
    except PydanticValidationError as e:
        problems = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in e.errors(include_url=False, include_input=False)
        ]
        raise ConfigurationError(
            f"Invalid definition for field '{name or '?'}': {problems[0]['msg'] if problems else e}",
            details={"field": name, "problems": problems},
        ) from e


def parse_fields(fields: Mapping[str, Any] | None) -> dict[str, FieldDefinition]:
    """Parse a name -> definition mapping, preserving declaration order."""
    if not fields:
        return {}
    out: dict[str, FieldDefinition] = {}
    for name, value in fields.items():
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"Field names must be non-empty strings, got {name!r}")
        out[name] = parse_field(value, name=name)
    return out


def field_to_dict(definition: FieldBase) -> dict[str, Any]:
    """JSON-compatible snapshot of a definition, used for cache keys."""
    return definition.model_dump(mode="json")
