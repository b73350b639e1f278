"""Standardized execution result and its HTTP envelope.

Whatever the execute function returns is normalized into an
ExecutionResult; exactly one of `data`/`error` is populated depending on
`status`. `to_response()` flattens it into the wire shape served by
`POST /api/execute`.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from toolspine.foundation.errors import ErrorCode, ErrorInfo, ErrorType, status_code_for


class ExecutionStatus(StrEnum):
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class Timing(BaseModel):
    model_config = ConfigDict(frozen=True)

    started_at: datetime
    completed_at: datetime
    execution_time_ms: float = Field(ge=0)
    validation_time_ms: float = Field(default=0.0, ge=0)


class ExecutionResult(BaseModel):
    """Outcome of one invocation."""

    model_config = ConfigDict(frozen=True)

    execution_id: str
    status: ExecutionStatus
    data: Any = None
    error: ErrorInfo | None = None
    timing: Timing
    metadata: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _exactly_one_payload(self) -> Self:
        if self.status is ExecutionStatus.SUCCESS:
            if self.error is not None or self.data is None:
                raise ValueError("success results carry data and no error")
        elif self.error is None or self.data is not None:
            raise ValueError(f"{self.status.value} results carry an error and no data")
        return self

    @property
    def ok(self) -> bool:
        return self.status is ExecutionStatus.SUCCESS

    @property
    def status_code(self) -> int:
        """HTTP-equivalent status."""
        if self.error is None:
            return 200
        match self.error.code:
            case ErrorCode.AUTHENTICATION_REQUIRED | ErrorCode.AUTHENTICATION_ERROR:
                return 401
            case ErrorCode.RATE_LIMIT_EXCEEDED:
                return 429
            case ErrorCode.TOOL_NOT_RUNNING:
                return 503
            case ErrorCode.ENDPOINT_NOT_FOUND:
                return 404
        return status_code_for(self.error.type)

    def to_response(self) -> ExecuteResponse:
        response = ExecuteResponse(
            execution_id=self.execution_id,
            status=self.status,
            execution_time_ms=round(self.timing.execution_time_ms, 3),
            timestamp=self.timing.completed_at.isoformat(),
            warnings=self.warnings or None,
        )
        if self.error is None:
            return response.model_copy(update={"output_data": self.data})
        return response.model_copy(update={
            "error_code": self.error.code,
            "error_message": self.error.message,
            "error_type": self.error.type,
            "error_details": self.error.details,
            "retryable": self.error.retryable,
            "retry_after_ms": self.error.retry_after_ms,
        })


class ExecuteResponse(BaseModel):
    """Wire envelope of `POST /api/execute`."""

    model_config = ConfigDict(frozen=True)

    execution_id: str
    status: ExecutionStatus
    output_data: Any = None
    error_code: str | None = None
    error_message: str | None = None
    error_type: ErrorType | None = None
    error_details: Any = None
    retryable: bool | None = None
    retry_after_ms: int | None = None
    execution_time_ms: float = 0.0
    timestamp: str
    warnings: list[str] | None = None

    def payload(self) -> dict[str, Any]:
        """JSON body: absent optional members are omitted, output_data is kept on success."""
        body = self.model_dump(mode="json", exclude_none=True)
        if self.status is ExecutionStatus.SUCCESS:
            body.setdefault("output_data", None)
        return body


def now_utc() -> datetime:
    return datetime.now(UTC)


_ENVELOPE_KEYS = frozenset({"status", "data", "error", "warnings", "metadata"})


def normalize_output(value: Any) -> tuple[Any, ErrorInfo | None, list[str], dict[str, Any]]:
    """Interpret an execute function's return value.

    Returns (data, error, warnings, metadata). Results shaped like an
    envelope (`{"status": "success"|"error", "data"|"error": ...}`) are
    unwrapped; pydantic models are dumped; None becomes an empty object.
    """
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json"), None, [], {}
    if (
        isinstance(value, Mapping)
        and value.get("status") in ("success", "error")
        and set(value) <= _ENVELOPE_KEYS
    ):
        warnings = [str(w) for w in value.get("warnings") or ()]
        metadata = dict(value.get("metadata") or {})
        if value["status"] == "error":
            raw = value.get("error") or {}
            if isinstance(raw, Mapping):
                try:
                    error_type = ErrorType(raw.get("type", ErrorType.EXECUTION))
                except ValueError:
                    error_type = ErrorType.EXECUTION
                error = ErrorInfo.create(
                    str(raw.get("code") or ErrorCode.EXECUTION_ERROR),
                    str(raw.get("message") or "Execution failed"),
                    error_type,
                    retryable=raw.get("retryable"),
                    retry_after=raw.get("retry_after_ms"),
                    details=raw.get("details"),
                )
            else:
                error = ErrorInfo.create(ErrorCode.EXECUTION_ERROR, str(raw) or "Execution failed")
            return None, error, warnings, metadata
        data = value.get("data")
        return ({} if data is None else data), None, warnings, metadata
    return ({} if value is None else value), None, [], {}
