"""
Configuration Package for the Uptime Monitor

Settings management with environment variable and .env support.
"""

from config.settings import (
    Settings,
    Environment,
    LogLevel,
    DatabaseType,
    DatabaseSettings,
    MonitoringSettings,
    NotificationSettings,
    LoggingSettings,
    get_settings,
)

__all__ = [
    "Settings",
    "Environment",
    "LogLevel",
    "DatabaseType",
    "DatabaseSettings",
    "MonitoringSettings",
    "NotificationSettings",
    "LoggingSettings",
    "get_settings",
]
