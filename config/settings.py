"""
Settings Module for the Uptime Monitor

Configuration management using Pydantic Settings.
Supports environment variables, .env files, and runtime configuration.
Includes validation, type checking, and sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional
from enum import Enum

from pydantic import (
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment enumeration."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging level enumeration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DatabaseType(str, Enum):
    """Supported database types."""
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"


class BaseSettingsConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True
    )


class DatabaseSettings(BaseSettingsConfig):
    """
    Database Configuration Settings

    PostgreSQL for production, SQLite for development and tests.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        extra="ignore"
    )

    type: DatabaseType = Field(
        default=DatabaseType.SQLITE,
        description="Database type: postgresql or sqlite"
    )

    # PostgreSQL settings
    host: str = Field(
        default="localhost",
        description="Database host address"
    )
    port: int = Field(
        default=5432,
        ge=1,
        le=65535,
        description="Database port number"
    )
    name: str = Field(
        default="uptime_monitor",
        min_length=1,
        max_length=64,
        description="Database name"
    )
    user: str = Field(
        default="postgres",
        min_length=1,
        max_length=64,
        description="Database username"
    )
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password"
    )

    # SQLite settings
    sqlite_path: Path = Field(
        default=Path("data/uptime_monitor.db"),
        description="Path to SQLite database file"
    )

    # Connection pool settings
    pool_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Connection pool size"
    )
    max_overflow: int = Field(
        default=20,
        ge=0,
        le=100,
        description="Maximum overflow connections"
    )
    pool_timeout: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Pool connection timeout in seconds"
    )
    pool_recycle: int = Field(
        default=1800,
        ge=60,
        le=7200,
        description="Connection recycle time in seconds"
    )
    pool_pre_ping: bool = Field(
        default=True,
        description="Enable connection health check before use"
    )

    echo: bool = Field(
        default=False,
        description="Echo SQL queries (debug mode)"
    )

    @property
    def is_sqlite(self) -> bool:
        return self.type == DatabaseType.SQLITE

    @property
    def url(self) -> str:
        """Generate database URL based on configuration."""
        if self.type == DatabaseType.SQLITE:
            return f"sqlite+aiosqlite:///{self.sqlite_path}"

        elif self.type == DatabaseType.POSTGRESQL:
            password = self.password.get_secret_value()
            return (
                f"postgresql+asyncpg://{self.user}:{password}"
                f"@{self.host}:{self.port}/{self.name}"
            )

        raise ValueError(f"Unsupported database type: {self.type}")

    @field_validator("sqlite_path")
    @classmethod
    def validate_sqlite_path(cls, v: Path) -> Path:
        """Validate and normalize SQLite path."""
        if not v.suffix:
            v = v.with_suffix(".db")
        return v


class MonitoringSettings(BaseSettingsConfig):
    """
    Monitoring Engine Configuration Settings

    Controls the check cadence, batch size, probe defaults
    and the failure / slowness thresholds.
    """

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_",
        env_file=".env",
        extra="ignore"
    )

    # Cadence
    check_interval: int = Field(
        default=5,
        ge=1,
        le=1440,
        description="Minutes between check cycles"
    )
    batch_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Monitors probed concurrently within one batch"
    )
    scheduler_tick: float = Field(
        default=1.0,
        gt=0,
        le=60.0,
        description="Scheduler wake-up period in seconds"
    )
    heartbeat_interval: int = Field(
        default=600,  # 10 minutes
        ge=10,
        le=86400,
        description="Seconds between health heartbeat jobs"
    )

    # Thresholds
    downtime_threshold: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Consecutive failures before a monitor is marked down"
    )
    response_time_threshold: int = Field(
        default=5000,
        ge=1,
        description="Response time in milliseconds above which a response is slow"
    )
    dedupe_slow_responses: bool = Field(
        default=True,
        description="Suppress a slow_response incident while one is already open"
    )

    # HTTP client settings
    default_timeout: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Probe timeout in seconds when the monitor has none"
    )
    user_agent: str = Field(
        default="UptimeMonitor/1.0",
        description="User-Agent header sent with each probe"
    )
    follow_redirects: bool = Field(
        default=False,
        description="Follow HTTP redirects while probing"
    )
    verify_ssl: bool = Field(
        default=True,
        description="Verify TLS certificates while probing"
    )


class NotificationSettings(BaseSettingsConfig):
    """
    Notification Channel Settings

    SMTP for email, an incoming webhook for Slack and a bot
    token plus chat id for Telegram.
    """

    model_config = SettingsConfigDict(
        env_prefix="ALERT_",
        env_file=".env",
        extra="ignore"
    )

    # Email (SMTP)
    email_host: Optional[str] = Field(
        default=None,
        description="SMTP server host"
    )
    email_port: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port"
    )
    email_user: Optional[str] = Field(
        default=None,
        description="SMTP username"
    )
    email_password: SecretStr = Field(
        default=SecretStr(""),
        description="SMTP password"
    )
    email_from: Optional[str] = Field(
        default=None,
        description="Sender address (defaults to the SMTP username)"
    )
    email_to: Optional[str] = Field(
        default=None,
        description="Recipient address for alert emails"
    )

    # Slack
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack incoming webhook URL"
    )

    # Telegram
    telegram_bot_token: SecretStr = Field(
        default=SecretStr(""),
        description="Telegram bot token"
    )
    telegram_chat_id: Optional[int] = Field(
        default=None,
        description="Telegram chat that receives alerts"
    )

    webhook_timeout: float = Field(
        default=10.0,
        gt=0,
        le=120.0,
        description="Timeout in seconds for outgoing notification requests"
    )

    @property
    def email_configured(self) -> bool:
        return bool(self.email_host and self.email_user and self.email_to)

    @property
    def slack_configured(self) -> bool:
        return bool(self.slack_webhook_url)

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token.get_secret_value() and self.telegram_chat_id)

    @field_validator("slack_webhook_url", "email_host", "email_to", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Any:
        """Treat empty environment values as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class LoggingSettings(BaseSettingsConfig):
    """
    Logging Configuration Settings

    Console, rotating file and error file sinks, with optional
    structured (JSON) output.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore"
    )

    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Minimum logging level"
    )

    # Console logging
    console_enabled: bool = Field(
        default=True,
        description="Enable console logging"
    )
    console_colored: bool = Field(
        default=True,
        description="Enable colored console output"
    )

    # File logging
    file_enabled: bool = Field(
        default=True,
        description="Enable file logging"
    )
    file_path: Path = Field(
        default=Path("logs/uptime_monitor.log"),
        description="Log file path"
    )
    file_rotation: str = Field(
        default="10 MB",
        description="Log rotation size (e.g., '10 MB', '1 day')"
    )
    file_retention: str = Field(
        default="30 days",
        description="Log retention period"
    )
    file_compression: str = Field(
        default="gz",
        description="Compression format for rotated logs"
    )

    # Error logging (separate file for errors)
    error_file_enabled: bool = Field(
        default=True,
        description="Enable separate error log file"
    )
    error_file_path: Path = Field(
        default=Path("logs/errors.log"),
        description="Error log file path"
    )

    # JSON logging
    json_enabled: bool = Field(
        default=False,
        description="Serialize file log records as JSON"
    )


class Settings(BaseSettingsConfig):
    """
    Main Settings Class

    Aggregates all settings sections and provides the main
    configuration interface for the application.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    app_name: str = Field(
        default="Uptime Monitor",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )

    # Nested settings
    database: DatabaseSettings = Field(
        default_factory=DatabaseSettings
    )
    monitoring: MonitoringSettings = Field(
        default_factory=MonitoringSettings
    )
    notifications: NotificationSettings = Field(
        default_factory=NotificationSettings
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING

    @model_validator(mode="after")
    def configure_for_environment(self) -> "Settings":
        """Apply environment-specific configuration."""
        if self.is_production:
            self.debug = False
            self.database.echo = False

        elif self.is_development:
            if self.logging.level == LogLevel.INFO:
                self.logging.level = LogLevel.DEBUG

        return self

    def to_dict(self, *, exclude_secrets: bool = True) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        data = self.model_dump()

        if exclude_secrets:
            def remove_secrets(obj: Any) -> Any:
                if isinstance(obj, dict):
                    return {
                        k: remove_secrets(v)
                        for k, v in obj.items()
                        if "password" not in k.lower()
                        and "secret" not in k.lower()
                        and "token" not in k.lower()
                        and "webhook" not in k.lower()
                    }
                elif isinstance(obj, list):
                    return [remove_secrets(item) for item in obj]
                return obj

            data = remove_secrets(data)

        return data


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure a single settings instance
    is used throughout the application lifecycle.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
