"""Tests for the error taxonomy and result envelope."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError as PydanticValidationError

from toolspine.foundation.errors import (
    ConfigurationError,
    ErrorCode,
    ErrorInfo,
    ErrorType,
    ExecutionError,
    NetworkError,
    SchemaCompilationError,
    ValidationError,
    classify_exception,
    code_for,
    status_code_for,
)
from toolspine.runtime.result import ExecutionResult, ExecutionStatus, Timing, normalize_output


def _timing() -> Timing:
    now = datetime.now(UTC)
    return Timing(started_at=now, completed_at=now, execution_time_ms=1.0)


# ═════════════════════════════════════════════════════════════════════════════
# Classification
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (TimeoutError(), ErrorType.TIMEOUT),
        (ConnectionRefusedError(), ErrorType.NETWORK),
        (RuntimeError("dns lookup failed"), ErrorType.NETWORK),
        (KeyError("x"), ErrorType.EXECUTION),
        (ValidationError("bad"), ErrorType.VALIDATION),
    ],
)
def test_classify_exception(exc: BaseException, expected: ErrorType) -> None:
    assert classify_exception(exc) is expected


def test_codes_and_status_codes() -> None:
    assert code_for(ErrorType.TIMEOUT) == ErrorCode.EXECUTION_TIMEOUT
    assert code_for(ErrorType.CLIENT) == ErrorCode.EXECUTION_ERROR
    assert status_code_for(ErrorType.CONFIGURATION) == 400
    assert status_code_for(ErrorType.TIMEOUT) == 408
    assert status_code_for(ErrorType.NETWORK) == 502
    assert status_code_for(ErrorType.SYSTEM) == 500


def test_retry_defaults() -> None:
    network = ErrorInfo.create(ErrorCode.NETWORK_ERROR, "down", ErrorType.NETWORK)
    assert network.retryable and network.retry_after_ms == 1000

    forced = ErrorInfo.create(ErrorCode.VALIDATION_ERROR, "bad", ErrorType.VALIDATION, retryable=True)
    assert not forced.retryable and forced.retry_after_ms is None


def test_exceptions_carry_codes() -> None:
    assert ValidationError("bad", [{"code": "X"}]).to_info().details == {"errors": [{"code": "X"}]}
    assert ConfigurationError("missing", ["apiKey"]).details == {"missing_keys": ["apiKey"]}
    assert SchemaCompilationError("broken", ["a"]).code == ErrorCode.VALIDATION_SYSTEM_ERROR
    assert NetworkError("down").to_info().retryable
    assert ExecutionError("failed", ValueError("cause")).details == {"cause": "cause"}


def test_from_exception() -> None:
    info = ErrorInfo.from_exception(ConnectionResetError("peer reset"))
    assert info.code == ErrorCode.NETWORK_ERROR
    assert info.type is ErrorType.NETWORK
    assert info.severity == "warning"


# ═════════════════════════════════════════════════════════════════════════════
# Result Envelope
# ═════════════════════════════════════════════════════════════════════════════


def test_success_and_error_are_exclusive() -> None:
    error = ErrorInfo.create(ErrorCode.EXECUTION_ERROR, "failed")
    with pytest.raises(PydanticValidationError):
        ExecutionResult(execution_id="e", status=ExecutionStatus.SUCCESS, data={}, error=error, timing=_timing())
    with pytest.raises(PydanticValidationError):
        ExecutionResult(execution_id="e", status=ExecutionStatus.ERROR, timing=_timing())


def test_response_payload_omits_absent_members() -> None:
    ok = ExecutionResult(execution_id="e", status=ExecutionStatus.SUCCESS, data={"a": 1}, timing=_timing())
    payload = ok.to_response().payload()
    assert payload["output_data"] == {"a": 1}
    assert "error_code" not in payload and "warnings" not in payload

    error = ErrorInfo.create(ErrorCode.RATE_LIMIT_EXCEEDED, "slow down", ErrorType.CLIENT, retryable=True, retry_after=500)
    failed = ExecutionResult(execution_id="e", status=ExecutionStatus.ERROR, error=error, timing=_timing())
    body = failed.to_response().payload()
    assert failed.status_code == 429
    assert body["error_code"] == "RATE_LIMIT_EXCEEDED"
    assert body["retry_after_ms"] == 500
    assert "output_data" not in body


def test_normalize_output() -> None:
    assert normalize_output(None) == ({}, None, [], {})
    assert normalize_output([1, 2]) == ([1, 2], None, [], {})
    # A plain result that happens to carry a status key is data, not an envelope
    assert normalize_output({"status": "success", "count": 2})[0] == {"status": "success", "count": 2}

    data, error, warnings, metadata = normalize_output(
        {"status": "success", "data": {"x": 1}, "warnings": ["w"], "metadata": {"source": "cache"}}
    )
    assert (data, error, warnings, metadata) == ({"x": 1}, None, ["w"], {"source": "cache"})

    _, error, _, _ = normalize_output({"status": "error", "error": "plain message"})
    assert error.code == ErrorCode.EXECUTION_ERROR and error.message == "plain message"


def test_normalize_output_keeps_unknown_error_types() -> None:
    _, error, _, _ = normalize_output({"status": "error", "error": {"code": "UPSTREAM", "type": "upstream_error"}})
    assert error.code == "UPSTREAM"
    assert error.type is ErrorType.EXECUTION
