"""
============================================================================
UPTIME MONITOR - LOGGING UTILITY
============================================================================
Logging built on loguru: console, rotating file and error file sinks,
per-component bound loggers and a few specialised helpers.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import sys
import time
import asyncio
from functools import wraps
from typing import Optional, TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from config.settings import Settings


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "{extra[name]} | {name}:{function}:{line} - {message}"
)


# ============================================================================
# LOGGER CONFIGURATION
# ============================================================================

def setup_logging(settings: "Settings") -> None:
    """
    Configure loguru sinks from the logging settings.

    Replaces any previously installed sinks, so it is safe to call
    again after the settings change.
    """
    log_settings = settings.logging
    log_level = log_settings.level.value

    logger.remove()
    logger.configure(extra={"name": settings.app_name})

    # Console Handler
    if log_settings.console_enabled:
        logger.add(
            sys.stdout,
            format=CONSOLE_FORMAT,
            level=log_level,
            colorize=log_settings.console_colored,
            backtrace=True,
            diagnose=settings.debug,
        )

    # File Handler
    if log_settings.file_enabled:
        log_settings.file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_settings.file_path,
            format=FILE_FORMAT,
            level=log_level,
            rotation=log_settings.file_rotation,
            retention=log_settings.file_retention,
            compression=log_settings.file_compression,
            serialize=log_settings.json_enabled,
            enqueue=True,
            backtrace=True,
            diagnose=settings.debug,
        )

    # Error log file (separate file for errors)
    if log_settings.error_file_enabled:
        log_settings.error_file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_settings.error_file_path,
            format=FILE_FORMAT,
            level="ERROR",
            rotation="1 day",
            retention="7 days",
            compression=log_settings.file_compression,
            enqueue=True,
            backtrace=True,
            diagnose=settings.debug,
        )

    logger.info("Logging system initialized")
    logger.info(f"Log level: {log_level}")
    logger.info(f"Console logging: {log_settings.console_enabled}")
    logger.info(f"File logging: {log_settings.file_enabled}")


def get_logger(name: Optional[str] = None):
    """
    Get logger instance with optional name.

    Args:
        name: Logger name (usually the component name)

    Returns:
        Logger instance
    """
    if name:
        return logger.bind(name=name)
    return logger


# ============================================================================
# LOG DECORATORS
# ============================================================================

def log_execution_time(func):
    """
    Decorator to log function execution time.

    Args:
        func: Function to decorate

    Returns:
        Decorated function
    """

    @wraps(func)
    async def async_wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
            execution_time = time.perf_counter() - start_time
            logger.debug(
                f"Function {func.__name__} executed in {execution_time:.4f} seconds"
            )
            return result
        except Exception as e:
            execution_time = time.perf_counter() - start_time
            logger.error(
                f"Function {func.__name__} failed after {execution_time:.4f} seconds: {e}"
            )
            raise

    @wraps(func)
    def sync_wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            result = func(*args, **kwargs)
            execution_time = time.perf_counter() - start_time
            logger.debug(
                f"Function {func.__name__} executed in {execution_time:.4f} seconds"
            )
            return result
        except Exception as e:
            execution_time = time.perf_counter() - start_time
            logger.error(
                f"Function {func.__name__} failed after {execution_time:.4f} seconds: {e}"
            )
            raise

    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper


# ============================================================================
# SPECIALIZED LOGGERS
# ============================================================================

class MonitorLogger:
    """
    Specialized logger for monitoring operations.
    """

    def __init__(self):
        self.logger = get_logger("Monitor")

    def log_check(
        self,
        monitor_id: int,
        url: str,
        success: bool,
        response_time: Optional[float] = None,
        status_code: Optional[int] = None,
    ):
        """Log a monitoring check. Response time is in milliseconds."""
        if success:
            self.logger.info(
                f"✓ Monitor {monitor_id} ({url}) is UP - "
                f"{status_code} in {response_time or 0:.0f}ms"
            )
        else:
            self.logger.warning(
                f"✗ Monitor {monitor_id} ({url}) check failed - "
                f"status {status_code if status_code is not None else 'n/a'}"
            )

    def log_downtime(self, monitor_id: int, url: str, error: Optional[str] = None):
        """Log downtime event."""
        self.logger.error(f"🔴 Downtime detected for monitor {monitor_id} ({url}): {error}")

    def log_recovery(self, monitor_id: int, url: str, downtime: str):
        """Log recovery event."""
        self.logger.info(
            f"🟢 Recovery detected for monitor {monitor_id} ({url}) - Downtime: {downtime}"
        )


# ============================================================================
# END OF LOGGER MODULE
# ============================================================================
