"""
Utilities Package for the Uptime Monitor

Logging setup and small helpers shared by every layer.
"""

from utils.helpers import TimeHelper, StringHelper, DataHelper
from utils.logger import setup_logging, get_logger, log_execution_time, MonitorLogger

__all__ = [
    "TimeHelper",
    "StringHelper",
    "DataHelper",
    "setup_logging",
    "get_logger",
    "log_execution_time",
    "MonitorLogger",
]
