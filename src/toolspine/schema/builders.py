"""Fluent builder DSL for field definitions.

Every chain call returns a new builder wrapping an updated attribute record,
so a partially configured builder can be shared and branched freely. The
terminal `.build()` produces a frozen definition.

Example:
    >>> name = string_field().required().min_length(2).transform("trim")
    >>> count = number_field().min(1).max(10).integer().default(1)
    >>> user = object_field({"name": name, "age": number_field().min(0)}, required=["name"])
    >>> user.build().properties["name"].min_length
    2

Kind-specific methods only exist on the matching builder: `number_field()`
has `.min/.max/.integer/.precision`, `string_field()` has
`.min_length/.max_length/.pattern/.format`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, ClassVar, Generic, Self, TypeVar

from pydantic import ValidationError as PydanticValidationError

from toolspine.foundation.errors import ConfigurationError, JsonPrimitive

from .fields import (
    ArrayField,
    BooleanField,
    DateField,
    DateTimeField,
    EnumField,
    FieldBase,
    FileField,
    JsonField,
    NumberField,
    ObjectField,
    SecretField,
    StringField,
    StringFormat,
    TimeField,
    TimezonePolicy,
    Transform,
    UrlField,
    parse_field,
    parse_fields,
)

F = TypeVar("F", bound=FieldBase)


# ═══════════════════════════════════════════════════════════════════════════════
# Base Builders
# ═══════════════════════════════════════════════════════════════════════════════


class FieldBuilder(Generic[F]):
    """Immutable accumulator of field attributes."""

    __slots__ = ("_attrs",)

    model: ClassVar[type[FieldBase]]

    def __init__(self, attrs: Mapping[str, Any] | None = None) -> None:
        self._attrs: Mapping[str, Any] = MappingProxyType(dict(attrs or {}))

    def _with(self, **changes: Any) -> Self:
        return type(self)({**self._attrs, **changes})

    @property
    def attrs(self) -> Mapping[str, Any]:
        """Read-only view of the accumulated attributes."""
        return self._attrs

    def required(self) -> Self:
        return self._with(required=True)

    def optional(self) -> Self:
        return self._with(required=False)

    def description(self, text: str) -> Self:
        return self._with(description=text)

    def default(self, value: Any) -> Self:
        """Set a default value. Also marks the field optional."""
        return self._with(default=value, has_default=True, required=False)

    def example(self, value: Any) -> Self:
        return self._with(example=value)

    def label(self, text: str) -> Self:
        return self._with(label=text)

    def sensitive(self) -> Self:
        return self._with(sensitive=True)

    def sanitize(self) -> Self:
        return self._with(sanitize=True)

    def transform(self, transformation: Transform | str) -> Self:
        return self._with(transform=Transform(transformation))

    def error_message(self, message: str) -> Self:
        return self._with(error_message=message)

    def build(self) -> F:
        """Snapshot the attributes into a frozen definition."""
        try:
            return self.model(**self._attrs)  # type: ignore[return-value]
        except PydanticValidationError as e:
            first = e.errors(include_url=False, include_input=False)[0]
            raise ConfigurationError(
                f"Invalid {self.model.__name__}: {first['msg']}",
                details={"attribute": ".".join(str(p) for p in first["loc"])},
            ) from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}({dict(self._attrs)!r})"


class ConfigFieldBuilder(FieldBuilder[F]):
    """Adds config-only attributes: env source, grouping, runtime override."""

    __slots__ = ()

    def env_var(self, name: str) -> Self:
        return self._with(env_var=name)

    def category(self, name: str) -> Self:
        return self._with(category=name)

    def priority(self, value: int) -> Self:
        return self._with(priority=value)

    def allow_runtime_override(self) -> Self:
        return self._with(allow_runtime_override=True)

    def secret(self) -> Self:
        return self._with(sensitive=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Input Field Builders
# ═══════════════════════════════════════════════════════════════════════════════


class StringFieldBuilder(FieldBuilder[StringField]):
    __slots__ = ()
    model = StringField

    def min_length(self, length: int) -> Self:
        return self._with(min_length=length)

    def max_length(self, length: int) -> Self:
        return self._with(max_length=length)

    def pattern(self, regex: str) -> Self:
        return self._with(pattern=regex)

    def format(self, fmt: StringFormat | str) -> Self:
        return self._with(format=StringFormat(fmt))


class NumberFieldBuilder(FieldBuilder[NumberField]):
    __slots__ = ()
    model = NumberField

    def min(self, value: float) -> Self:
        return self._with(minimum=value)

    def max(self, value: float) -> Self:
        return self._with(maximum=value)

    def integer(self) -> Self:
        return self._with(integer=True)

    def precision(self, places: int) -> Self:
        return self._with(precision=places)


class BooleanFieldBuilder(FieldBuilder[BooleanField]):
    __slots__ = ()
    model = BooleanField


class EnumFieldBuilder(FieldBuilder[EnumField]):
    __slots__ = ()
    model = EnumField

    def labels(self, labels: Iterable[str]) -> Self:
        return self._with(labels=tuple(labels))


class ArrayFieldBuilder(FieldBuilder[ArrayField]):
    __slots__ = ()
    model = ArrayField

    def min_items(self, count: int) -> Self:
        return self._with(min_items=count)

    def max_items(self, count: int) -> Self:
        return self._with(max_items=count)

    def unique(self) -> Self:
        return self._with(unique_items=True)


class ObjectFieldBuilder(FieldBuilder[ObjectField]):
    __slots__ = ()
    model = ObjectField

    def required_properties(self, names: Iterable[str]) -> Self:
        return self._with(required_properties=tuple(names))

    def additional_properties(self, allowed: bool = True) -> Self:
        return self._with(additional_properties=allowed)

    def strict(self) -> Self:
        """Reject properties that are not declared."""
        return self._with(additional_properties=False)


class DateFieldBuilder(FieldBuilder[DateField]):
    __slots__ = ()
    model = DateField

    def min_date(self, date: str) -> Self:
        return self._with(min_date=date)

    def max_date(self, date: str) -> Self:
        return self._with(max_date=date)


class DateTimeFieldBuilder(FieldBuilder[DateTimeField]):
    __slots__ = ()
    model = DateTimeField

    def min_date(self, date: str) -> Self:
        return self._with(min_date=date)

    def max_date(self, date: str) -> Self:
        return self._with(max_date=date)

    def timezone(self, policy: TimezonePolicy | str) -> Self:
        return self._with(timezone=TimezonePolicy(policy))


class TimeFieldBuilder(FieldBuilder[TimeField]):
    __slots__ = ()
    model = TimeField


class FileFieldBuilder(FieldBuilder[FileField]):
    __slots__ = ()
    model = FileField

    def mime_types(self, types: Iterable[str]) -> Self:
        return self._with(mime_types=tuple(types))

    def max_size(self, size_bytes: int) -> Self:
        return self._with(max_size=size_bytes)


class JsonFieldBuilder(FieldBuilder[JsonField]):
    __slots__ = ()
    model = JsonField


# ═══════════════════════════════════════════════════════════════════════════════
# Config Field Builders
# ═══════════════════════════════════════════════════════════════════════════════


class SecretFieldBuilder(ConfigFieldBuilder[SecretField]):
    __slots__ = ()
    model = SecretField

    def min_length(self, length: int) -> Self:
        return self._with(min_length=length)

    def max_length(self, length: int) -> Self:
        return self._with(max_length=length)

    def pattern(self, regex: str) -> Self:
        return self._with(pattern=regex)


class ConfigStringFieldBuilder(ConfigFieldBuilder[StringField]):
    __slots__ = ()
    model = StringField

    def min_length(self, length: int) -> Self:
        return self._with(min_length=length)

    def max_length(self, length: int) -> Self:
        return self._with(max_length=length)

    def pattern(self, regex: str) -> Self:
        return self._with(pattern=regex)


class UrlConfigFieldBuilder(ConfigFieldBuilder[UrlField]):
    __slots__ = ()
    model = UrlField

    def protocols(self, schemes: Iterable[str]) -> Self:
        return self._with(protocols=tuple(s.lower().rstrip(":") for s in schemes))


class ConfigEnumFieldBuilder(ConfigFieldBuilder[EnumField]):
    __slots__ = ()
    model = EnumField

    def labels(self, labels: Iterable[str]) -> Self:
        return self._with(labels=tuple(labels))


class ConfigNumberFieldBuilder(ConfigFieldBuilder[NumberField]):
    __slots__ = ()
    model = NumberField

    def min(self, value: float) -> Self:
        return self._with(minimum=value)

    def max(self, value: float) -> Self:
        return self._with(maximum=value)

    def integer(self) -> Self:
        return self._with(integer=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Factories
# ═══════════════════════════════════════════════════════════════════════════════


def string_field() -> StringFieldBuilder:
    return StringFieldBuilder()


def number_field() -> NumberFieldBuilder:
    return NumberFieldBuilder()


def boolean_field() -> BooleanFieldBuilder:
    return BooleanFieldBuilder()


def enum_field(values: Iterable[JsonPrimitive]) -> EnumFieldBuilder:
    return EnumFieldBuilder({"values": tuple(values)})


def array_field(items: Any = None) -> ArrayFieldBuilder:
    """Array of `items`, which may be a built definition, a builder or a raw mapping."""
    return ArrayFieldBuilder({"items": parse_field(items, name="items") if items is not None else None})


def object_field(
    properties: Mapping[str, Any] | None = None,
    required: Iterable[str] | None = None,
) -> ObjectFieldBuilder:
    """Object with nested property definitions and an optional required subset."""
    attrs: dict[str, Any] = {"properties": parse_fields(properties)}
    if required is not None:
        attrs["required_properties"] = tuple(required)
    return ObjectFieldBuilder(attrs)


def date_field() -> DateFieldBuilder:
    return DateFieldBuilder()


def datetime_field() -> DateTimeFieldBuilder:
    return DateTimeFieldBuilder()


def time_field() -> TimeFieldBuilder:
    return TimeFieldBuilder()


def file_field(
    mime_types: Iterable[str] | None = None,
    max_size: int | None = None,
) -> FileFieldBuilder:
    attrs: dict[str, Any] = {}
    if mime_types is not None:
        attrs["mime_types"] = tuple(mime_types)
    if max_size is not None:
        attrs["max_size"] = max_size
    return FileFieldBuilder(attrs)


def json_field() -> JsonFieldBuilder:
    return JsonFieldBuilder()


def api_key_field() -> SecretFieldBuilder:
    return SecretFieldBuilder({"kind": "apiKey"})


def secret_field() -> SecretFieldBuilder:
    return SecretFieldBuilder({"kind": "secret"})


def config_string_field() -> ConfigStringFieldBuilder:
    return ConfigStringFieldBuilder()


def config_number_field() -> ConfigNumberFieldBuilder:
    return ConfigNumberFieldBuilder()


def url_config_field() -> UrlConfigFieldBuilder:
    return UrlConfigFieldBuilder()


def config_enum_field(values: Iterable[JsonPrimitive]) -> ConfigEnumFieldBuilder:
    return ConfigEnumFieldBuilder({"values": tuple(values)})


def email_field() -> StringFieldBuilder:
    return string_field().format(StringFormat.EMAIL)


def url_field() -> StringFieldBuilder:
    return string_field().format(StringFormat.URL)


def uuid_field() -> StringFieldBuilder:
    return string_field().format(StringFormat.UUID)
