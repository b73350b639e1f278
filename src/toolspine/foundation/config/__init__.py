"""Runtime configuration loaded from TOOLSPINE_* environment variables."""

from .settings import (
    CorsSettings,
    LoggingSettings,
    MonitoringSettings,
    RateLimitSettings,
    SecuritySettings,
    ServerSettings,
    TimeoutSettings,
    ToolspineSettings,
    ValidationSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "ToolspineSettings", "get_settings", "clear_settings_cache",
    "ServerSettings", "SecuritySettings", "RateLimitSettings", "TimeoutSettings",
    "MonitoringSettings", "CorsSettings", "ValidationSettings", "LoggingSettings",
]
