"""
Exceptions Package for the Uptime Monitor

Provides the exception hierarchy for error handling
throughout the application.
"""

from exceptions.base import (
    UptimeMonitorException,
    ConfigurationError,
    InitializationError,
)

from exceptions.database import (
    DatabaseException,
    StorageFailure,
    DatabaseConnectionError,
    DatabaseQueryError,
    DatabaseNotFoundError,
)

from exceptions.monitoring import (
    MonitoringException,
    ProbeFailure,
    ProbeTimeoutError,
    ProbeConnectionError,
    NotifierDeliveryFailed,
    InvalidIncidentTransitionError,
    IncidentNotFoundError,
    MonitorNotFoundError,
)

__all__ = [
    # Base exceptions
    "UptimeMonitorException",
    "ConfigurationError",
    "InitializationError",

    # Database exceptions
    "DatabaseException",
    "StorageFailure",
    "DatabaseConnectionError",
    "DatabaseQueryError",
    "DatabaseNotFoundError",

    # Monitoring exceptions
    "MonitoringException",
    "ProbeFailure",
    "ProbeTimeoutError",
    "ProbeConnectionError",
    "NotifierDeliveryFailed",
    "InvalidIncidentTransitionError",
    "IncidentNotFoundError",
    "MonitorNotFoundError",
]
