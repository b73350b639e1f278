"""Shared fixtures: isolated settings, captured logs and a small echo tool."""

from __future__ import annotations

from typing import Any

import pytest

from toolspine import (
    ToolspineSettings,
    api_key_field,
    clear_settings_cache,
    configure_logging,
    create_tool,
    number_field,
    string_field,
)
from toolspine.foundation.config import LoggingSettings, RateLimitSettings, SecuritySettings
from toolspine.runtime.observability import CaptureRenderer


@pytest.fixture(autouse=True)
def captured_logs() -> object:
    """Route all log output into memory and forget cached settings."""
    clear_settings_cache()
    renderer = CaptureRenderer()
    configure_logging(renderer=renderer, level="DEBUG")
    yield renderer
    configure_logging("none")
    clear_settings_cache()


def make_settings(**overrides: Any) -> ToolspineSettings:
    """Settings independent of the process environment, with request logging off."""
    values: dict[str, Any] = {
        "environment": "production",
        "logging": LoggingSettings(log_requests=False),
        "security": SecuritySettings(),
        "rate_limit": RateLimitSettings(),
    }
    values.update(overrides)
    return ToolspineSettings(**values)


async def echo(data: dict[str, Any], config: Any, ctx: Any) -> dict[str, Any]:
    return {"message": data["message"], "count": data["count"]}


@pytest.fixture
def settings_factory() -> Any:
    return make_settings


@pytest.fixture
def settings() -> ToolspineSettings:
    return make_settings()


@pytest.fixture
def echo_tool(settings: ToolspineSettings) -> Any:
    """Tool with a required message, a bounded count and an api key in config."""
    return create_tool(
        {"name": "echo", "version": "1.0.0", "description": "Echo a message"},
        echo,
        input={
            "message": string_field().required(),
            "count": number_field().integer().min(1).max(10).default(1),
        },
        config={"apiKey": api_key_field()},
        settings=settings,
    )
