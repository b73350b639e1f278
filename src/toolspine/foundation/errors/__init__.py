"""Unified error handling for toolspine.

- ErrorType/ErrorCode: Error kinds and machine-readable codes
- ErrorInfo: Structured error carried by execution results
- ToolspineError and subclasses: Exceptions raised at runtime seams
"""

from .errors import (
    ConfigurationError,
    ErrorCode,
    ErrorInfo,
    ErrorType,
    ExecutionError,
    NetworkError,
    SchemaCompilationError,
    TimeoutExceededError,
    ToolspineError,
    ValidationError,
    classify_exception,
    code_for,
    is_retryable,
    retry_after_ms,
    status_code_for,
)
from .types import JsonDict, JsonMapping, JsonPrimitive, JsonValue

__all__ = [
    # Taxonomy
    "ErrorType", "ErrorCode", "ErrorInfo", "classify_exception", "code_for", "is_retryable", "retry_after_ms",
    "status_code_for",
    # Exceptions
    "ToolspineError", "ValidationError", "ConfigurationError", "SchemaCompilationError",
    "ExecutionError", "TimeoutExceededError", "NetworkError",
    # JSON aliases
    "JsonPrimitive", "JsonValue", "JsonDict", "JsonMapping",
]
