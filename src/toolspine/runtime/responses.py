"""JSON responses in the execution envelope shape."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import orjson
from starlette.responses import JSONResponse

from toolspine.foundation.errors import ErrorInfo

from .context import new_execution_id
from .result import ExecuteResponse, ExecutionStatus, now_utc


class ORJSONResponse(JSONResponse):
    """JSONResponse rendered with orjson (datetimes, dataclasses, non-str keys)."""

    def render(self, content: Any) -> bytes:
        return orjson.dumps(content, option=orjson.OPT_NON_STR_KEYS, default=str)


def envelope_error(info: ErrorInfo, *, execution_id: str | None = None) -> ExecuteResponse:
    """Envelope for a request refused before (or instead of) execution."""
    return ExecuteResponse(
        execution_id=execution_id or new_execution_id(),
        status=ExecutionStatus.ERROR,
        error_code=info.code,
        error_message=info.message,
        error_type=info.type,
        error_details=info.details,
        retryable=info.retryable,
        retry_after_ms=info.retry_after_ms,
        timestamp=now_utc().isoformat(),
    )


def error_response(
    info: ErrorInfo,
    status_code: int,
    *,
    headers: Mapping[str, str] | None = None,
) -> ORJSONResponse:
    return ORJSONResponse(envelope_error(info).payload(), status_code=status_code, headers=dict(headers or {}))
