"""Tests for structured logging and secret redaction."""

import io

import orjson
import pytest

from toolspine.runtime.observability import (
    REDACTED,
    CaptureRenderer,
    JsonRenderer,
    configure_logging,
    get_logger,
    redact,
    sanitize_config,
)


# ═════════════════════════════════════════════════════════════════════════════
# Redaction
# ═════════════════════════════════════════════════════════════════════════════


def test_redact_secret_looking_keys() -> None:
    value = {"api_key": "sk-1", "Authorization": "Bearer x", "name": "echo", "nested": [{"password": "p"}]}
    assert redact(value) == {
        "api_key": REDACTED,
        "Authorization": REDACTED,
        "name": "echo",
        "nested": [{"password": REDACTED}],
    }


def test_redact_extra_keys_and_nulls() -> None:
    assert redact({"region": "eu", "token": None}, extra_keys=["region"]) == {"region": REDACTED, "token": None}


def test_sanitize_config_uses_sensitive_names() -> None:
    assert sanitize_config({"apiKey": "sk", "endpoint": "https://x"}, sensitive=["endpoint"]) == {
        "apiKey": REDACTED,
        "endpoint": REDACTED,
    }
    assert sanitize_config(None) == {}


# ═════════════════════════════════════════════════════════════════════════════
# Logging
# ═════════════════════════════════════════════════════════════════════════════


def test_bound_context_and_redaction(captured_logs: CaptureRenderer) -> None:
    log = get_logger("toolspine.test", tool="echo").bind(request_id="r1")
    log.info("execution completed", api_key="sk-123", duration_ms=1.5)

    entry = captured_logs.entries[-1]
    assert entry.event == "execution completed"
    assert entry.level == "info"
    assert entry.context["tool"] == "echo"
    assert entry.context["request_id"] == "r1"
    assert entry.context["logger"] == "toolspine.test"
    assert entry.context["api_key"] == REDACTED


def test_level_filtering() -> None:
    renderer = CaptureRenderer()
    configure_logging(renderer=renderer, level="WARNING")
    log = get_logger()
    log.info("hidden")
    log.warning("shown")
    assert renderer.events() == ["shown"]


def test_scope_applies_to_all_loggers(captured_logs: CaptureRenderer) -> None:
    log = get_logger()
    with log.scope(execution_id="exec_1"):
        get_logger("other").info("inside")
    log.info("outside")

    inside, outside = captured_logs.entries[-2:]
    assert inside.context["execution_id"] == "exec_1"
    assert "execution_id" not in outside.context


def test_exception_includes_traceback(captured_logs: CaptureRenderer) -> None:
    log = get_logger()
    try:
        raise ValueError("boom")
    except ValueError:
        log.exception("failed")
    assert "ValueError: boom" in captured_logs.entries[-1].context["exc_info"]


def test_json_renderer_writes_lines() -> None:
    buffer = io.StringIO()
    configure_logging(renderer=JsonRenderer(output=buffer))
    get_logger("toolspine.test").info("hello", count=2)

    line = orjson.loads(buffer.getvalue().splitlines()[-1])
    assert line["event"] == "hello"
    assert line["count"] == 2


def test_unknown_format_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown format"):
        configure_logging("xml")
