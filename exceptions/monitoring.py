"""
Monitoring Exception Classes for the Uptime Monitor

Covers probe failures, notifier delivery failures and incident
state-machine violations.
"""

from __future__ import annotations

from typing import Any, Optional

from exceptions.base import UptimeMonitorException
from exceptions.database import DatabaseNotFoundError


class MonitoringException(UptimeMonitorException):
    """Parent class for engine-level exceptions."""

    default_error_code = 3000


class ProbeFailure(MonitoringException):
    """
    Probe Failure

    A transport-level failure of one probe (DNS, refused connection,
    TLS, protocol error). Non-fatal: the Prober returns it as part of
    the probe result and the Evaluator counts it as a failed check.
    """

    default_error_code = 3001
    error_type: str = "ProbeFailure"

    def __init__(
        self,
        message: str = "Probe failed",
        url: Optional[str] = None,
        error_type: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        if error_type:
            self.error_type = error_type

        if url:
            self.details["url"] = url


class ProbeTimeoutError(ProbeFailure):
    """The probe did not complete before its deadline."""

    default_error_code = 3002
    error_type = "Timeout"


class ProbeConnectionError(ProbeFailure):
    """The target could not be reached (DNS failure, connection refused)."""

    default_error_code = 3003
    error_type = "ConnectError"


class NotifierDeliveryFailed(MonitoringException):
    """
    Notifier Delivery Failed

    Raised by a notification channel adapter. The Notifier converts it
    into a failed delivery result and an audit-trail entry; it never
    leaves the Notifier.
    """

    default_error_code = 3100

    def __init__(
        self,
        message: str = "Notification delivery failed",
        channel: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        if channel:
            self.details["channel"] = channel


class InvalidIncidentTransitionError(MonitoringException):
    """Raised when an incident transition is not allowed from its current state."""

    default_error_code = 3200

    def __init__(
        self,
        message: str,
        incident_id: Optional[int] = None,
        current_status: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        if incident_id is not None:
            self.details["incident_id"] = incident_id

        if current_status:
            self.details["current_status"] = current_status


class IncidentNotFoundError(DatabaseNotFoundError):
    """Incident lookup by id found nothing."""

    default_error_code = 3201

    def __init__(self, incident_id: Any, **kwargs: Any) -> None:
        super().__init__(
            f"Incident {incident_id} not found",
            model="Incident",
            record_id=incident_id,
            **kwargs
        )


class MonitorNotFoundError(DatabaseNotFoundError):
    """Monitor lookup by id found nothing."""

    default_error_code = 3300

    def __init__(self, monitor_id: Any, **kwargs: Any) -> None:
        super().__init__(
            f"Monitor {monitor_id} not found",
            model="Monitor",
            record_id=monitor_id,
            **kwargs
        )
