"""Validator nodes: one class per field kind.

A node is built once per definition by the compiler. Construction performs
the eager constraint checks (malformed definitions raise
SchemaCompilationError); `validate` runs the per-field algorithm:

    1. absent + default  -> inject a copy of the default, stop
    2. absent + required -> REQUIRED_FIELD_MISSING, stop
    3. type check        -> INVALID_TYPE, stop
    4. constraint checks -> every violation is collected
    5. transform/sanitize, only when the field produced no errors
"""

from __future__ import annotations

import copy
import math
import re
import unicodedata
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Any, ClassVar
from urllib.parse import urlsplit

import orjson
from pydantic import BaseModel, ConfigDict

from toolspine.foundation.errors import SchemaCompilationError

from .fields import (
    ArrayField,
    DateField,
    DateTimeField,
    EnumField,
    FieldBase,
    FieldKind,
    FileField,
    NumberField,
    ObjectField,
    SecretField,
    StringField,
    StringFormat,
    TimezonePolicy,
    Transform,
    UrlField,
)
from .rules import MISSING

PathT = tuple[str | int, ...]


class ValidationCode(StrEnum):
    REQUIRED_FIELD_MISSING = "REQUIRED_FIELD_MISSING"
    INVALID_TYPE = "INVALID_TYPE"
    TOO_SMALL = "TOO_SMALL"
    TOO_BIG = "TOO_BIG"
    INVALID_STRING = "INVALID_STRING"
    INVALID_ENUM_VALUE = "INVALID_ENUM_VALUE"
    NOT_INTEGER = "NOT_INTEGER"
    INVALID_PRECISION = "INVALID_PRECISION"
    NOT_UNIQUE = "NOT_UNIQUE"
    INVALID_DATE = "INVALID_DATE"
    INVALID_URL = "INVALID_URL"
    INVALID_FILE = "INVALID_FILE"
    INVALID_JSON = "INVALID_JSON"
    UNEXPECTED_FIELDS = "UNEXPECTED_FIELDS"
    CROSS_FIELD_VALIDATION_FAILED = "CROSS_FIELD_VALIDATION_FAILED"
    FIELD_NOT_FOUND = "FIELD_NOT_FOUND"


class FieldError(BaseModel):
    """One validation failure.

    `path` locates the failure within nested structures; it is empty for
    whole-schema errors (unexpected fields, cross-field rules). `value` is
    only populated for non-sensitive input fields.
    """

    model_config = ConfigDict(frozen=True)

    code: ValidationCode
    path: list[str | int]
    message: str
    expected: str | None = None
    received: str | None = None
    value: Any = None

    @property
    def dotted_path(self) -> str:
        return ".".join(str(p) for p in self.path)


@dataclass(slots=True)
class ValidationState:
    """Mutable accumulator for one validation call."""

    abort_early: bool = False
    transform: bool = True
    custom_messages: Mapping[str, str] = field(default_factory=dict)
    include_values: bool = True
    errors: list[FieldError] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return self.abort_early and bool(self.errors)

    def fail(
        self,
        definition: FieldBase | None,
        path: PathT,
        code: ValidationCode,
        message: str,
        constraint: str,
        *,
        expected: str | None = None,
        received: str | None = None,
        value: Any = MISSING,
    ) -> None:
        dotted = ".".join(str(p) for p in path)
        custom = self.custom_messages.get(f"{dotted}.{constraint}") if dotted else self.custom_messages.get(constraint)
        if custom is None and definition is not None:
            custom = definition.error_message
        safe = (
            self.include_values
            and value is not MISSING
            and (definition is None or not definition.is_sensitive)
        )
        self.errors.append(FieldError(
            code=code,
            path=list(path),
            message=custom or message,
            expected=expected,
            received=received,
            value=value if safe else None,
        ))


def type_name(value: Any) -> str:
    """JSON-flavoured name of a value's type for error messages."""
    match value:
        case None:
            return "null"
        case bool():
            return "boolean"
        case int() | float():
            return "nan" if isinstance(value, float) and math.isnan(value) else "number"
        case str():
            return "string"
        case Mapping():
            return "object"
        case list() | tuple():
            return "array"
    return type(value).__name__


def canonical(value: Any) -> bytes:
    """Order-independent serialization, used for uniqueness and cache keys."""
    return orjson.dumps(value, option=orjson.OPT_SORT_KEYS, default=str)


# ═══════════════════════════════════════════════════════════════════════════════
# Node Base
# ═══════════════════════════════════════════════════════════════════════════════


class Node(ABC):
    """Executable validator for one field definition."""

    __slots__ = ("definition", "path")

    expected: ClassVar[str]

    def __init__(self, definition: FieldBase, path: PathT) -> None:
        self.definition = definition
        self.path = path
        self.prepare()

    def prepare(self) -> None:
        """Eager constraint checks and precompilation. Raise SchemaCompilationError."""

    def invalid(self, message: str) -> SchemaCompilationError:
        return SchemaCompilationError(
            f"Invalid definition at '{'.'.join(str(p) for p in self.path) or '<root>'}': {message}",
            list(self.path),
        )

    def check_bounds(self, low: float | None, high: float | None, what: str, *, non_negative: bool = True) -> None:
        if non_negative and ((low is not None and low < 0) or (high is not None and high < 0)):
            raise self.invalid(f"{what} bounds must not be negative")
        if low is not None and high is not None and low > high:
            raise self.invalid(f"minimum {what} ({low}) is greater than maximum ({high})")

    @abstractmethod
    def accepts(self, value: Any) -> bool:
        """Type check. A mismatch stops further checks on the value."""

    @abstractmethod
    def check(self, value: Any, path: PathT, state: ValidationState) -> Any:
        """Collect every constraint violation. Returns the (possibly converted) value."""

    def finalize(self, value: Any) -> Any:
        """Post-validation transformation, applied only to error-free values."""
        return value

    def coerce_env(self, raw: str) -> Any:
        """Convert an environment string into this kind's native type."""
        return raw

    def validate(self, value: Any, path: PathT, state: ValidationState, *, required: bool | None = None) -> Any:
        d = self.definition
        if value is MISSING or value is None:
            if d.has_default:
                return copy.deepcopy(d.default)
            if d.required if required is None else required:
                state.fail(d, path, ValidationCode.REQUIRED_FIELD_MISSING, "Field is required", "required",
                           expected=self.expected, received="undefined" if value is MISSING else "null")
            return MISSING
        if not self.accepts(value):
            received = type_name(value)
            state.fail(d, path, ValidationCode.INVALID_TYPE, f"Expected {self.expected}, received {received}",
                       "type", expected=self.expected, received=received, value=value)
            return value
        before = len(state.errors)
        value = self.check(value, path, state)
        if state.transform and len(state.errors) == before:
            value = self.finalize(value)
        return value


# ═══════════════════════════════════════════════════════════════════════════════
# Strings
# ═══════════════════════════════════════════════════════════════════════════════

_TAGS = re.compile(r"<[^>]*>")
_CONTROL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")

_FORMAT_PATTERNS: dict[StringFormat, re.Pattern[str]] = {
    StringFormat.EMAIL: re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$"),
    StringFormat.UUID: re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I),
    StringFormat.IPV4: re.compile(r"^((25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)\.){3}(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)$"),
    StringFormat.IPV6: re.compile(
        r"^(([0-9a-f]{1,4}:){7}[0-9a-f]{1,4}|(([0-9a-f]{1,4}:){0,7}[0-9a-f]{0,4})?::(([0-9a-f]{1,4}:){0,7}[0-9a-f]{0,4})?)$",
        re.I,
    ),
    StringFormat.BASE64: re.compile(r"^(?:[A-Za-z0-9+/]{4})*(?:[A-Za-z0-9+/]{2}==|[A-Za-z0-9+/]{3}=)?$"),
    StringFormat.JWT: re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*$"),
    StringFormat.SLUG: re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$"),
    StringFormat.COLOR_HEX: re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$"),
    StringFormat.SEMVER: re.compile(
        r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
    ),
    StringFormat.TIME: re.compile(r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d(\.\d+)?)?$"),
}

_DATE_SHAPE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATETIME_SHAPE = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?$", re.I)


def parse_date(raw: str) -> date | None:
    if not _DATE_SHAPE.match(raw):
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def parse_datetime(raw: str) -> datetime | None:
    if not _DATETIME_SHAPE.match(raw):
        return None
    try:
        return datetime.fromisoformat(raw[:-1] + "+00:00" if raw[-1] in "zZ" else raw)
    except ValueError:
        return None


def _valid_url(raw: str, schemes: Sequence[str] | None = None) -> bool:
    try:
        parts = urlsplit(raw)
    except ValueError:
        return False
    if not parts.scheme or not parts.netloc:
        return False
    return schemes is None or parts.scheme.lower() in schemes


def _format_ok(fmt: StringFormat, value: str) -> bool:
    match fmt:
        case StringFormat.URL:
            return _valid_url(value)
        case StringFormat.DATE:
            return parse_date(value) is not None
        case StringFormat.DATE_TIME:
            return parse_datetime(value) is not None
        case _:
            return _FORMAT_PATTERNS[fmt].match(value) is not None


def apply_transform(value: str, transform: Transform | None, sanitize: bool) -> str:
    if sanitize:
        value = _CONTROL.sub("", _TAGS.sub("", value))
    match transform:
        case Transform.TRIM:
            return value.strip()
        case Transform.LOWERCASE:
            return value.lower()
        case Transform.UPPERCASE:
            return value.upper()
        case Transform.NORMALIZE:
            return _WHITESPACE.sub(" ", unicodedata.normalize("NFC", value)).strip()
    return value


class _TextNode(Node):
    """Shared length/pattern handling for string-valued kinds."""

    __slots__ = ("regex",)

    expected = "string"

    def prepare(self) -> None:
        d = self.definition
        self.check_bounds(d.min_length, d.max_length, "length")  # type: ignore[attr-defined]
        self.regex = None
        if (pattern := d.pattern) is not None:  # type: ignore[attr-defined]
            try:
                self.regex = re.compile(pattern)
            except re.error as e:
                raise self.invalid(f"invalid pattern {pattern!r}: {e}") from e

    def accepts(self, value: Any) -> bool:
        return isinstance(value, str)

    def check_text(self, value: str, path: PathT, state: ValidationState, min_length: int | None) -> None:
        d = self.definition
        shown = MISSING if d.is_sensitive else value
        if min_length is not None and len(value) < min_length:
            state.fail(d, path, ValidationCode.TOO_SMALL,
                       f"String must contain at least {min_length} character(s)", "min_length",
                       expected=f">= {min_length} characters", value=shown)
        if (max_length := d.max_length) is not None and len(value) > max_length:  # type: ignore[attr-defined]
            state.fail(d, path, ValidationCode.TOO_BIG,
                       f"String must contain at most {max_length} character(s)", "max_length",
                       expected=f"<= {max_length} characters", value=shown)
        if self.regex is not None and self.regex.search(value) is None:
            state.fail(d, path, ValidationCode.INVALID_STRING,
                       f"String does not match pattern {self.regex.pattern}", "pattern",
                       expected=self.regex.pattern, value=shown)

    def finalize(self, value: str) -> str:
        return apply_transform(value, self.definition.transform, self.definition.sanitize)


class StringNode(_TextNode):
    __slots__ = ()

    def check(self, value: str, path: PathT, state: ValidationState) -> str:
        d: StringField = self.definition  # type: ignore[assignment]
        self.check_text(value, path, state, d.min_length)
        if d.format is not None and not _format_ok(d.format, value):
            state.fail(d, path, ValidationCode.INVALID_STRING, f"Invalid {d.format.value}", "format",
                       expected=d.format.value, value=value)
        return value


class SecretNode(_TextNode):
    """API keys and secrets: non-empty strings, never echoed in errors."""

    __slots__ = ()

    def check(self, value: str, path: PathT, state: ValidationState) -> str:
        d: SecretField = self.definition  # type: ignore[assignment]
        self.check_text(value, path, state, 1 if d.min_length is None else d.min_length)
        return value


class TimeNode(Node):
    __slots__ = ()
    expected = "time"

    def accepts(self, value: Any) -> bool:
        return isinstance(value, str)

    def check(self, value: str, path: PathT, state: ValidationState) -> str:
        if _FORMAT_PATTERNS[StringFormat.TIME].match(value) is None:
            state.fail(self.definition, path, ValidationCode.INVALID_STRING,
                       "Invalid time, expected HH:MM or HH:MM:SS", "format", expected="HH:MM:SS", value=value)
        return value


class UrlNode(Node):
    __slots__ = ("schemes",)
    expected = "url"

    def prepare(self) -> None:
        d: UrlField = self.definition  # type: ignore[assignment]
        if not d.protocols:
            raise self.invalid("protocols must not be empty")
        self.schemes = tuple(p.lower().rstrip(":") for p in d.protocols)

    def accepts(self, value: Any) -> bool:
        return isinstance(value, str)

    def check(self, value: str, path: PathT, state: ValidationState) -> str:
        if not _valid_url(value, self.schemes):
            state.fail(self.definition, path, ValidationCode.INVALID_URL,
                       f"Invalid URL, allowed protocols: {', '.join(self.schemes)}", "protocols",
                       expected=" | ".join(self.schemes), value=value)
        return value


# ═══════════════════════════════════════════════════════════════════════════════
# Scalars
# ═══════════════════════════════════════════════════════════════════════════════


# Integers that survive a JSON round trip through orjson
_INT_MIN, _INT_MAX = -(2**63), 2**64 - 1

_TRUTHY = frozenset({"true", "1", "yes", "on"})
_FALSY = frozenset({"false", "0", "no", "off"})


class NumberNode(Node):
    __slots__ = ()
    expected = "number"

    def prepare(self) -> None:
        d: NumberField = self.definition  # type: ignore[assignment]
        self.check_bounds(d.minimum, d.maximum, "value", non_negative=False)
        if d.precision is not None and d.precision < 0:
            raise self.invalid("precision must not be negative")

    def accepts(self, value: Any) -> bool:
        if isinstance(value, bool):
            return False
        return isinstance(value, int) or (isinstance(value, float) and math.isfinite(value))

    def check(self, value: int | float, path: PathT, state: ValidationState) -> int | float:
        d: NumberField = self.definition  # type: ignore[assignment]
        if isinstance(value, int) and not _INT_MIN <= value <= _INT_MAX:
            code = ValidationCode.TOO_BIG if value > 0 else ValidationCode.TOO_SMALL
            state.fail(d, path, code, "Number is outside the supported integer range", "range",
                       expected=f"{_INT_MIN} to {_INT_MAX}", value=str(value))
            return value
        if d.minimum is not None and value < d.minimum:
            state.fail(d, path, ValidationCode.TOO_SMALL,
                       f"Number must be greater than or equal to {_num(d.minimum)}", "min",
                       expected=f">= {_num(d.minimum)}", value=value)
        if d.maximum is not None and value > d.maximum:
            state.fail(d, path, ValidationCode.TOO_BIG,
                       f"Number must be less than or equal to {_num(d.maximum)}", "max",
                       expected=f"<= {_num(d.maximum)}", value=value)
        if d.integer and isinstance(value, float) and not value.is_integer():
            state.fail(d, path, ValidationCode.NOT_INTEGER, "Expected integer, received float", "integer",
                       expected="integer", value=value)
        if d.precision is not None and round(value, d.precision) != value:
            state.fail(d, path, ValidationCode.INVALID_PRECISION,
                       f"Number must have at most {d.precision} decimal place(s)", "precision",
                       expected=f"<= {d.precision} decimals", value=value)
        return value

    def coerce_env(self, raw: str) -> Any:
        text = raw.strip()
        for parse in (int, float):
            try:
                return parse(text)
            except ValueError:
                continue
        return raw


def _num(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class BooleanNode(Node):
    __slots__ = ()
    expected = "boolean"

    def accepts(self, value: Any) -> bool:
        return isinstance(value, bool)

    def check(self, value: bool, path: PathT, state: ValidationState) -> bool:
        return value

    def coerce_env(self, raw: str) -> Any:
        text = raw.strip().lower()
        if text in _TRUTHY:
            return True
        if text in _FALSY:
            return False
        return raw


def _same(a: Any, b: Any) -> bool:
    """Equality that keeps booleans distinct from 0/1."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    return a == b


class EnumNode(Node):
    __slots__ = ()
    expected = "enum"

    def prepare(self) -> None:
        d: EnumField = self.definition  # type: ignore[assignment]
        if not d.values:
            raise self.invalid("enum must declare at least one value")
        if d.labels is not None and len(d.labels) != len(d.values):
            raise self.invalid("enum labels must match values one to one")

    def accepts(self, value: Any) -> bool:
        return isinstance(value, (str, int, float, bool))

    def check(self, value: Any, path: PathT, state: ValidationState) -> Any:
        d: EnumField = self.definition  # type: ignore[assignment]
        if not any(_same(value, v) for v in d.values):
            options = " | ".join(repr(v) for v in d.values)
            state.fail(d, path, ValidationCode.INVALID_ENUM_VALUE,
                       f"Invalid enum value. Expected {options}, received {value!r}", "enum",
                       expected=options, value=value)
        return value

    def coerce_env(self, raw: str) -> Any:
        d: EnumField = self.definition  # type: ignore[assignment]
        for v in d.values:
            if str(v) == raw:
                return v
        return raw


# ═══════════════════════════════════════════════════════════════════════════════
# Dates
# ═══════════════════════════════════════════════════════════════════════════════


class DateNode(Node):
    __slots__ = ("low", "high")
    expected = "date"

    def prepare(self) -> None:
        d: DateField = self.definition  # type: ignore[assignment]
        self.low, self.high = self._bound(d.min_date, "min_date"), self._bound(d.max_date, "max_date")
        if self.low is not None and self.high is not None and self.low > self.high:
            raise self.invalid("min_date is after max_date")

    def _bound(self, raw: str | None, name: str) -> date | None:
        if raw is None:
            return None
        if (parsed := parse_date(raw)) is None:
            raise self.invalid(f"{name} {raw!r} is not a YYYY-MM-DD date")
        return parsed

    def accepts(self, value: Any) -> bool:
        return isinstance(value, str)

    def check(self, value: str, path: PathT, state: ValidationState) -> str:
        d = self.definition
        if (parsed := parse_date(value)) is None:
            state.fail(d, path, ValidationCode.INVALID_DATE, "Invalid date, expected YYYY-MM-DD", "format",
                       expected="YYYY-MM-DD", value=value)
            return value
        if self.low is not None and parsed < self.low:
            state.fail(d, path, ValidationCode.TOO_SMALL, f"Date must be on or after {self.low.isoformat()}",
                       "min_date", expected=f">= {self.low.isoformat()}", value=value)
        if self.high is not None and parsed > self.high:
            state.fail(d, path, ValidationCode.TOO_BIG, f"Date must be on or before {self.high.isoformat()}",
                       "max_date", expected=f"<= {self.high.isoformat()}", value=value)
        return value


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


class DateTimeNode(Node):
    __slots__ = ("low", "high")
    expected = "datetime"

    def prepare(self) -> None:
        d: DateTimeField = self.definition  # type: ignore[assignment]
        self.low, self.high = self._bound(d.min_date, "min_date"), self._bound(d.max_date, "max_date")
        if self.low is not None and self.high is not None and self.low > self.high:
            raise self.invalid("min_date is after max_date")

    def _bound(self, raw: str | None, name: str) -> datetime | None:
        if raw is None:
            return None
        parsed = parse_datetime(raw)
        if parsed is None and (day := parse_date(raw)) is not None:
            parsed = datetime(day.year, day.month, day.day)
        if parsed is None:
            raise self.invalid(f"{name} {raw!r} is not an ISO 8601 date or datetime")
        return _aware(parsed)

    def accepts(self, value: Any) -> bool:
        return isinstance(value, str)

    def check(self, value: str, path: PathT, state: ValidationState) -> str:
        d: DateTimeField = self.definition  # type: ignore[assignment]
        if (parsed := parse_datetime(value)) is None:
            state.fail(d, path, ValidationCode.INVALID_DATE, "Invalid datetime, expected ISO 8601", "format",
                       expected="ISO 8601 datetime", value=value)
            return value
        match d.timezone:
            case TimezonePolicy.REQUIRED if parsed.tzinfo is None:
                state.fail(d, path, ValidationCode.INVALID_DATE, "Datetime must include a timezone offset",
                           "timezone", expected="timezone offset", value=value)
            case TimezonePolicy.UTC_ONLY if parsed.tzinfo is None or parsed.utcoffset():
                state.fail(d, path, ValidationCode.INVALID_DATE, "Datetime must be in UTC", "timezone",
                           expected="UTC", value=value)
        moment = _aware(parsed)
        if self.low is not None and moment < self.low:
            state.fail(d, path, ValidationCode.TOO_SMALL, f"Datetime must be on or after {self.low.isoformat()}",
                       "min_date", expected=f">= {self.low.isoformat()}", value=value)
        if self.high is not None and moment > self.high:
            state.fail(d, path, ValidationCode.TOO_BIG, f"Datetime must be on or before {self.high.isoformat()}",
                       "max_date", expected=f"<= {self.high.isoformat()}", value=value)
        return value


# ═══════════════════════════════════════════════════════════════════════════════
# Files & JSON
# ═══════════════════════════════════════════════════════════════════════════════


def _mime_allowed(mime: str, allowed: Sequence[str]) -> bool:
    mime = mime.lower()
    for pattern in allowed:
        pattern = pattern.lower()
        if pattern == mime or pattern == "*/*":
            return True
        if pattern.endswith("/*") and mime.startswith(pattern[:-1]):
            return True
    return False


class FileNode(Node):
    __slots__ = ()
    expected = "file"

    def prepare(self) -> None:
        d: FileField = self.definition  # type: ignore[assignment]
        if d.max_size is not None and d.max_size <= 0:
            raise self.invalid("max_size must be positive")
        if d.mime_types is not None and not d.mime_types:
            raise self.invalid("mime_types must not be empty")

    def accepts(self, value: Any) -> bool:
        return isinstance(value, Mapping)

    def check(self, value: Mapping[str, Any], path: PathT, state: ValidationState) -> Any:
        d: FileField = self.definition  # type: ignore[assignment]
        name, size, mime = value.get("name"), value.get("size"), value.get("type")
        if not isinstance(name, str) or not name:
            state.fail(d, path, ValidationCode.INVALID_FILE, "File must have a name", "name", expected="name")
        if not isinstance(size, int) or isinstance(size, bool) or size < 0:
            state.fail(d, path, ValidationCode.INVALID_FILE, "File must have a non-negative integer size", "size",
                       expected="size")
        elif d.max_size is not None and size > d.max_size:
            state.fail(d, path, ValidationCode.INVALID_FILE,
                       f"File size {size} exceeds maximum of {d.max_size} bytes", "max_size",
                       expected=f"<= {d.max_size} bytes")
        if not isinstance(mime, str) or not mime:
            state.fail(d, path, ValidationCode.INVALID_FILE, "File must have a MIME type", "type", expected="type")
        elif d.mime_types is not None and not _mime_allowed(mime, d.mime_types):
            state.fail(d, path, ValidationCode.INVALID_FILE,
                       f"File type {mime!r} is not allowed", "mime_types", expected=" | ".join(d.mime_types))
        return dict(value)


class JsonNode(Node):
    """Objects and arrays pass through; strings must decode as JSON."""

    __slots__ = ()
    expected = "json"

    def accepts(self, value: Any) -> bool:
        return isinstance(value, (str, Mapping, list, tuple))

    def check(self, value: Any, path: PathT, state: ValidationState) -> Any:
        if not isinstance(value, str):
            return copy.deepcopy(value)
        try:
            return orjson.loads(value)
        except orjson.JSONDecodeError:
            state.fail(self.definition, path, ValidationCode.INVALID_JSON, "String is not valid JSON", "json",
                       expected="JSON", value=value)
            return value


# ═══════════════════════════════════════════════════════════════════════════════
# Containers
# ═══════════════════════════════════════════════════════════════════════════════


def _loads_or_raw(raw: str) -> Any:
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        return raw


class ArrayNode(Node):
    __slots__ = ("item",)
    expected = "array"

    def prepare(self) -> None:
        d: ArrayField = self.definition  # type: ignore[assignment]
        self.check_bounds(d.min_items, d.max_items, "items")
        self.item = build_node(d.items, (*self.path, "items")) if d.items is not None else None

    def accepts(self, value: Any) -> bool:
        return isinstance(value, (list, tuple))

    def check(self, value: Sequence[Any], path: PathT, state: ValidationState) -> list[Any]:
        d: ArrayField = self.definition  # type: ignore[assignment]
        out: list[Any] = []
        for index, element in enumerate(value):
            if self.item is None:
                out.append(copy.deepcopy(element))
                continue
            result = self.item.validate(element, (*path, index), state)
            out.append(element if result is MISSING else result)
            if state.aborted:
                return out
        if d.min_items is not None and len(value) < d.min_items:
            state.fail(d, path, ValidationCode.TOO_SMALL,
                       f"Array must contain at least {d.min_items} element(s)", "min_items",
                       expected=f">= {d.min_items} items")
        if d.max_items is not None and len(value) > d.max_items:
            state.fail(d, path, ValidationCode.TOO_BIG,
                       f"Array must contain at most {d.max_items} element(s)", "max_items",
                       expected=f"<= {d.max_items} items")
        if d.unique_items and len({canonical(v) for v in out}) != len(out):
            state.fail(d, path, ValidationCode.NOT_UNIQUE, "Array items must be unique", "unique",
                       expected="unique items")
        return out

    def coerce_env(self, raw: str) -> Any:
        return _loads_or_raw(raw)


class ObjectNode(Node):
    __slots__ = ("children", "required_names")
    expected = "object"

    def prepare(self) -> None:
        d: ObjectField = self.definition  # type: ignore[assignment]
        if undeclared := [n for n in d.required_properties if n not in d.properties]:
            raise self.invalid(f"required properties not declared: {', '.join(undeclared)}")
        self.children = {name: build_node(child, (*self.path, name)) for name, child in d.properties.items()}
        self.required_names = frozenset(d.required_properties)

    def accepts(self, value: Any) -> bool:
        return isinstance(value, Mapping)

    def check(self, value: Mapping[str, Any], path: PathT, state: ValidationState) -> dict[str, Any]:
        d: ObjectField = self.definition  # type: ignore[assignment]
        out = validate_members(self.children, value, path, state, required=self.required_names)
        if state.aborted:
            return out
        extra = [k for k in value if k not in self.children]
        if extra:
            match d.additional_properties:
                case True:
                    out.update({k: copy.deepcopy(value[k]) for k in extra})
                case False:
                    state.fail(d, path, ValidationCode.UNEXPECTED_FIELDS,
                               f"Unrecognized key(s) in object: {', '.join(repr(k) for k in extra)}",
                               "additional_properties", expected="declared properties only")
        return out

    def coerce_env(self, raw: str) -> Any:
        return _loads_or_raw(raw)


def validate_members(
    children: Mapping[str, Node],
    value: Mapping[str, Any],
    path: PathT,
    state: ValidationState,
    *,
    required: frozenset[str] = frozenset(),
    source: Callable[[str, Node], Any] | None = None,
) -> dict[str, Any]:
    """Validate each declared member, dropping absent optional ones from the output."""
    out: dict[str, Any] = {}
    for name, node in children.items():
        raw = value.get(name, MISSING) if source is None else source(name, node)
        result = node.validate(raw, (*path, name), state, required=True if name in required else None)
        if result is not MISSING:
            out[name] = result
        if state.aborted:
            break
    return out


# ═══════════════════════════════════════════════════════════════════════════════
# Dispatch
# ═══════════════════════════════════════════════════════════════════════════════


NODE_TYPES: dict[FieldKind, type[Node]] = {
    FieldKind.STRING: StringNode,
    FieldKind.NUMBER: NumberNode,
    FieldKind.BOOLEAN: BooleanNode,
    FieldKind.ENUM: EnumNode,
    FieldKind.ARRAY: ArrayNode,
    FieldKind.OBJECT: ObjectNode,
    FieldKind.DATE: DateNode,
    FieldKind.DATETIME: DateTimeNode,
    FieldKind.TIME: TimeNode,
    FieldKind.FILE: FileNode,
    FieldKind.API_KEY: SecretNode,
    FieldKind.SECRET: SecretNode,
    FieldKind.URL: UrlNode,
    FieldKind.JSON: JsonNode,
}

if _unhandled := set(FieldKind) - NODE_TYPES.keys():
    raise TypeError(f"No validator node for field kind(s): {sorted(_unhandled)}")


def build_node(definition: FieldBase, path: PathT) -> Node:
    """Select and construct the node for a definition's kind."""
    try:
        node_type = NODE_TYPES[FieldKind(definition.kind)]  # type: ignore[attr-defined]
    except (AttributeError, ValueError) as e:
        raise SchemaCompilationError(f"Unknown field kind at '{'.'.join(map(str, path))}'", list(path)) from e
    return node_type(definition, path)
