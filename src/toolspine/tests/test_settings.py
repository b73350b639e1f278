"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from toolspine.foundation.config import (
    RateLimitSettings,
    SecuritySettings,
    ToolspineSettings,
    clear_settings_cache,
    get_settings,
)


def test_defaults() -> None:
    settings = ToolspineSettings(_env_file=None)
    assert settings.server.port == 3000
    assert settings.rate_limit.max_requests == 100
    assert settings.rate_limit.window_seconds == 900.0
    assert settings.timeout.execution_seconds == 30.0
    assert settings.validation.cache_size == 1000


def test_environment_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOOLSPINE_ENVIRONMENT", "PRODUCTION")
    monkeypatch.setenv("TOOLSPINE_RATELIMIT_MAX_REQUESTS", "5")
    monkeypatch.setenv("TOOLSPINE_SECURITY_API_KEYS", '["k1", "k2"]')

    settings = ToolspineSettings(_env_file=None)
    assert settings.is_production
    assert settings.rate_limit.max_requests == 5
    assert [k.get_secret_value() for k in settings.security.api_keys] == ["k1", "k2"]
    assert settings.security.auth_enabled


def test_api_keys_are_not_printed() -> None:
    security = SecuritySettings(api_keys=["super-secret"])
    assert "super-secret" not in repr(security)


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(PydanticValidationError):
        RateLimitSettings(max_requests=0)


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    assert get_settings() is first

    monkeypatch.setenv("TOOLSPINE_SERVER_PORT", "8080")
    clear_settings_cache()
    assert get_settings().server.port == 8080
