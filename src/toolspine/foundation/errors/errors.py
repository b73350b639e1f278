"""Error taxonomy, codes and exceptions of the tool runtime.

Provides error kinds, error codes and the exception hierarchy raised at the
seams of the runtime. Every exception converts to the same
`ErrorInfo` envelope so callers can implement uniform retry logic.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class ErrorType(StrEnum):
    """Error classification shared by results, exceptions and HTTP envelopes."""
    VALIDATION = "validation_error"
    CONFIGURATION = "configuration_error"
    EXECUTION = "execution_error"
    NETWORK = "network_error"
    TIMEOUT = "timeout_error"
    CLIENT = "client_error"
    SERVER = "server_error"
    SYSTEM = "system_error"


class ErrorCode(StrEnum):
    """Machine-readable error codes surfaced by the runtime."""
    TOOL_ERROR = "TOOL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    VALIDATION_SYSTEM_ERROR = "VALIDATION_SYSTEM_ERROR"
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INVALID_JSON = "INVALID_JSON"
    INVALID_REQUEST = "INVALID_REQUEST"
    EXECUTION_TIMEOUT = "EXECUTION_TIMEOUT"
    TOOL_NOT_RUNNING = "TOOL_NOT_RUNNING"
    ENDPOINT_NOT_FOUND = "ENDPOINT_NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SCHEMA_GENERATION_ERROR = "SCHEMA_GENERATION_ERROR"
    METRICS_ERROR = "METRICS_ERROR"
    HEALTH_CHECK_FAILED = "HEALTH_CHECK_FAILED"


# Error kinds that are never worth retrying, regardless of origin
_NEVER_RETRYABLE: frozenset[ErrorType] = frozenset({
    ErrorType.VALIDATION,
    ErrorType.CONFIGURATION,
    ErrorType.SYSTEM,
})

_RETRYABLE: frozenset[ErrorType] = frozenset({
    ErrorType.NETWORK,
    ErrorType.TIMEOUT,
})

# Suggested retry delay for transient kinds
_RETRY_AFTER_MS: dict[ErrorType, int] = {
    ErrorType.NETWORK: 1000,
    ErrorType.TIMEOUT: 2000,
}

# Flattened pattern -> kind mapping, checked in insertion order
_PATTERN_TYPES: dict[str, ErrorType] = {
    "timeout": ErrorType.TIMEOUT,
    "timedout": ErrorType.TIMEOUT,
    "connection": ErrorType.NETWORK,
    "network": ErrorType.NETWORK,
    "dns": ErrorType.NETWORK,
    "socket": ErrorType.NETWORK,
    "validation": ErrorType.VALIDATION,
    "config": ErrorType.CONFIGURATION,
    "environ": ErrorType.CONFIGURATION,
}
_PATTERN_KEYS = tuple(_PATTERN_TYPES.keys())


@lru_cache(maxsize=256)
def _classify_cached(exc_key: str) -> ErrorType:
    haystack = exc_key.lower()
    for pattern in _PATTERN_KEYS:
        if pattern in haystack:
            return _PATTERN_TYPES[pattern]
    return ErrorType.EXECUTION


def classify_exception(exc: BaseException) -> ErrorType:
    """Map an exception to an error kind via its class and message."""
    if isinstance(exc, ToolspineError):
        return exc.error_type
    if isinstance(exc, TimeoutError):
        return ErrorType.TIMEOUT
    if isinstance(exc, ConnectionError):
        return ErrorType.NETWORK
    return _classify_cached(f"{type(exc).__name__} {exc}")


def is_retryable(error_type: ErrorType) -> bool:
    """Whether errors of this kind may succeed on retry."""
    return error_type in _RETRYABLE


def retry_after_ms(error_type: ErrorType) -> int | None:
    """Suggested retry delay for transient error kinds."""
    return _RETRY_AFTER_MS.get(error_type)


_TYPE_CODES: dict[ErrorType, ErrorCode] = {
    ErrorType.VALIDATION: ErrorCode.VALIDATION_ERROR,
    ErrorType.CONFIGURATION: ErrorCode.CONFIGURATION_ERROR,
    ErrorType.NETWORK: ErrorCode.NETWORK_ERROR,
    ErrorType.TIMEOUT: ErrorCode.EXECUTION_TIMEOUT,
    ErrorType.SYSTEM: ErrorCode.INTERNAL_ERROR,
}


def code_for(error_type: ErrorType) -> ErrorCode:
    """Default error code for an error kind."""
    return _TYPE_CODES.get(error_type, ErrorCode.EXECUTION_ERROR)


def status_code_for(error_type: ErrorType) -> int:
    """HTTP-equivalent status for an error kind."""
    match error_type:
        case ErrorType.VALIDATION | ErrorType.CONFIGURATION | ErrorType.CLIENT:
            return 400
        case ErrorType.TIMEOUT:
            return 408
        case ErrorType.NETWORK:
            return 502
        case _:
            return 500


class ErrorInfo(BaseModel):
    """Structured error carried by execution results.

    Attributes:
        code: Machine-readable error code
        message: Human-readable message
        type: Error kind (see ErrorType)
        retryable: Whether a retry might succeed
        retry_after_ms: Suggested delay before retrying
        details: Optional extra data (redacted before it leaves the runtime)
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "title": "Execution Error",
            "examples": [{
                "code": "RATE_LIMIT_EXCEEDED",
                "message": "Too many requests, please try again later",
                "type": "client_error",
                "retryable": True,
                "retry_after_ms": 60000,
            }],
        },
    )

    code: Annotated[str, Field(min_length=1)]
    message: Annotated[str, Field(min_length=1)]
    type: ErrorType = ErrorType.EXECUTION
    retryable: bool = False
    retry_after_ms: int | None = None
    details: Any = None

    @field_validator("message", mode="before")
    @classmethod
    def _ensure_message(cls, v: str | Exception) -> str:
        """Exceptions are accepted and stringified."""
        return str(v) if isinstance(v, Exception) else v

    @computed_field
    @property
    def severity(self) -> str:
        """Log level used when this error is reported."""
        if self.type in (ErrorType.TIMEOUT, ErrorType.NETWORK) or self.code == ErrorCode.RATE_LIMIT_EXCEEDED:
            return "warning"
        if self.type is ErrorType.SYSTEM:
            return "critical"
        return "error"

    @classmethod
    def create(
        cls,
        code: str,
        message: str,
        error_type: ErrorType = ErrorType.EXECUTION,
        *,
        retryable: bool | None = None,
        retry_after: int | None = None,
        details: Any = None,
    ) -> Self:
        """Factory applying the retry defaults of the error kind."""
        if retryable is None:
            retryable = is_retryable(error_type)
        if error_type in _NEVER_RETRYABLE:
            retryable = False
        if retryable and retry_after is None:
            retry_after = retry_after_ms(error_type)
        return cls(
            code=code,
            message=message,
            type=error_type,
            retryable=retryable,
            retry_after_ms=retry_after if retryable else None,
            details=details,
        )

    @classmethod
    def from_exception(cls, exc: BaseException, *, include_details: bool = False) -> Self:
        """Envelope for a foreign exception, typed by classify_exception."""
        if isinstance(exc, ToolspineError):
            return exc.to_info()
        error_type = classify_exception(exc)
        return cls.create(
            code_for(error_type),
            str(exc) or type(exc).__name__,
            error_type,
            details={"exception": type(exc).__name__} if include_details else None,
        )


class ToolspineError(Exception):
    """Base exception for runtime, schema and tool failures."""

    code: str = ErrorCode.TOOL_ERROR
    error_type: ErrorType = ErrorType.EXECUTION

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: Any = None,
        *,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details
        self.retryable = is_retryable(self.error_type) if retryable is None else retryable

    def to_info(self) -> ErrorInfo:
        """Convert to the result envelope error."""
        return ErrorInfo.create(
            str(self.code),
            self.message,
            self.error_type,
            retryable=self.retryable,
            details=self.details,
        )


class ValidationError(ToolspineError):
    """Input or configuration data failed validation. Never retryable."""

    code = ErrorCode.VALIDATION_ERROR
    error_type = ErrorType.VALIDATION

    def __init__(self, message: str, errors: list[Any] | None = None, *, field: str | None = None) -> None:
        details: dict[str, Any] = {}
        if field is not None:
            details["field"] = field
        if errors:
            details["errors"] = errors
        super().__init__(message, details=details or None, retryable=False)
        self.errors = errors or []


class ConfigurationError(ToolspineError):
    """Setup or environment problem. Never retryable."""

    code = ErrorCode.CONFIGURATION_ERROR
    error_type = ErrorType.CONFIGURATION

    def __init__(self, message: str, missing_keys: list[str] | None = None, *, code: str | None = None, details: Any = None) -> None:
        if details is None and missing_keys:
            details = {"missing_keys": missing_keys}
        super().__init__(message, code=code, details=details, retryable=False)
        self.missing_keys = missing_keys or []


class SchemaCompilationError(ConfigurationError):
    """A field definition set could not be compiled into validators."""

    def __init__(self, message: str, path: list[str | int] | None = None) -> None:
        super().__init__(
            message,
            code=ErrorCode.VALIDATION_SYSTEM_ERROR,
            details={"path": path} if path else None,
        )
        self.path = path or []


class ExecutionError(ToolspineError):
    """The tool's execute function failed."""

    code = ErrorCode.EXECUTION_ERROR
    error_type = ErrorType.EXECUTION

    def __init__(self, message: str, cause: BaseException | None = None, *, code: str | None = None, retryable: bool | None = None) -> None:
        super().__init__(
            message,
            code=code,
            details={"cause": str(cause)} if cause is not None else None,
            retryable=retryable,
        )
        self.__cause__ = cause


class TimeoutExceededError(ToolspineError):
    """An awaited operation exceeded its time budget."""

    code = ErrorCode.EXECUTION_TIMEOUT
    error_type = ErrorType.TIMEOUT

    def __init__(self, message: str, timeout_ms: float) -> None:
        super().__init__(message, details={"timeout_ms": timeout_ms})
        self.timeout_ms = timeout_ms


class NetworkError(ToolspineError):
    """An external call failed at the transport level."""

    code = ErrorCode.NETWORK_ERROR
    error_type = ErrorType.NETWORK
