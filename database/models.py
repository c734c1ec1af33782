"""
============================================================================
UPTIME MONITOR - DATABASE MODELS
============================================================================
SQLAlchemy ORM models for the uptime monitoring engine: monitors,
incidents, the incident notification audit trail and their owners.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    Float, JSON, Enum, ForeignKey, Index, func
)
from sqlalchemy.orm import relationship, declarative_base

from utils.helpers import TimeHelper


# ============================================================================
# BASE MODEL CONFIGURATION
# ============================================================================

Base = declarative_base()


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.
    Timestamps are naive UTC.
    """
    created_at = Column(
        DateTime,
        nullable=False,
        default=TimeHelper.utc_now,
        server_default=func.now(),
        index=True
    )
    updated_at = Column(
        DateTime,
        nullable=False,
        default=TimeHelper.utc_now,
        onupdate=TimeHelper.utc_now,
        server_default=func.now()
    )


# ============================================================================
# ENUMERATIONS
# ============================================================================

class MonitorStatus(str, enum.Enum):
    """Monitor health status"""
    UP = "up"
    DOWN = "down"
    PAUSED = "paused"
    UNKNOWN = "unknown"


class HTTPMethod(str, enum.Enum):
    """HTTP methods a monitor may probe with"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"


class IncidentType(str, enum.Enum):
    """Incident type enumeration"""
    DOWNTIME = "downtime"
    SLOW_RESPONSE = "slow_response"
    STATUS_CODE_MISMATCH = "status_code_mismatch"
    TIMEOUT = "timeout"


class IncidentStatus(str, enum.Enum):
    """Incident lifecycle state"""
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class NotificationChannel(str, enum.Enum):
    """Notification channel enumeration"""
    EMAIL = "email"
    SLACK = "slack"
    TELEGRAM = "telegram"


class NotificationEvent(str, enum.Enum):
    """What a notification announces"""
    OPENED = "opened"
    RECOVERED = "recovered"


# ============================================================================
# USER MODEL
# ============================================================================

class User(Base, TimestampMixin):
    """
    Owner of monitors and the actor recorded on manual incident resolution.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, unique=True, index=True)

    monitors = relationship(
        "Monitor",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert user to dictionary"""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ============================================================================
# MONITOR MODEL
# ============================================================================

class Monitor(Base, TimestampMixin):
    """
    A monitored HTTP target together with its check state and uptime counters.
    """
    __tablename__ = "monitors"

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Target
    name = Column(String(255), nullable=False)
    url = Column(Text, nullable=False)
    method = Column(Enum(HTTPMethod), nullable=False, default=HTTPMethod.GET)
    headers = Column(JSON, nullable=False, default=dict)
    timeout = Column(Integer, nullable=False, default=30)
    expected_status_code = Column(Integer, nullable=False, default=200)
    interval = Column(Integer, nullable=False, default=5)

    # Status
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    status = Column(
        Enum(MonitorStatus),
        nullable=False,
        default=MonitorStatus.UNKNOWN,
        index=True
    )
    consecutive_failures = Column(Integer, nullable=False, default=0)

    # Uptime Tracking
    total_checks = Column(Integer, nullable=False, default=0)
    successful_checks = Column(Integer, nullable=False, default=0)
    failed_checks = Column(Integer, nullable=False, default=0)
    uptime_percentage = Column(Float, nullable=False, default=100.0)

    last_checked = Column(DateTime, nullable=True)
    last_response_time = Column(Integer, nullable=True)

    # Alert Configuration
    alert_email = Column(Boolean, nullable=False, default=True)
    alert_slack = Column(Boolean, nullable=False, default=False)
    alert_telegram = Column(Boolean, nullable=False, default=False)

    # Relationships
    user = relationship("User", back_populates="monitors")
    incidents = relationship(
        "Incident",
        back_populates="monitor",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        Index("idx_monitor_user_active", "user_id", "is_active"),
    )

    def calculate_uptime(self) -> float:
        """Recompute uptime_percentage from the counters, rounded to 2 places."""
        if not self.total_checks:
            self.uptime_percentage = 100.0
        else:
            self.uptime_percentage = round(
                self.successful_checks / self.total_checks * 100, 2
            )
        return self.uptime_percentage

    def uptime_string(self) -> str:
        """e.g. "99.5% (199/200)" """
        return (
            f"{self.uptime_percentage:g}% "
            f"({self.successful_checks}/{self.total_checks})"
        )

    def request_headers(self) -> List[Tuple[str, str]]:
        """Headers as (name, value) pairs in their stored order."""
        return [(str(k), str(v)) for k, v in (self.headers or {}).items()]

    @property
    def is_down(self) -> bool:
        return self.status == MonitorStatus.DOWN

    def to_dict(self) -> Dict[str, Any]:
        """Convert monitor to dictionary"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "url": self.url,
            "method": self.method.value if self.method else None,
            "status": self.status.value if self.status else None,
            "is_active": self.is_active,
            "interval": self.interval,
            "consecutive_failures": self.consecutive_failures,
            "uptime": self.uptime_string(),
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
            "last_response_time": self.last_response_time,
        }

    def __repr__(self) -> str:
        return f"<Monitor id={self.id} name={self.name!r} status={self.status}>"


# ============================================================================
# INCIDENT MODEL
# ============================================================================

class Incident(Base, TimestampMixin):
    """
    One period of trouble for a monitor, from detection to resolution.
    """
    __tablename__ = "incidents"

    id = Column(Integer, primary_key=True, autoincrement=True)

    monitor_id = Column(
        Integer,
        ForeignKey("monitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    type = Column(Enum(IncidentType), nullable=False)
    status = Column(
        Enum(IncidentStatus),
        nullable=False,
        default=IncidentStatus.OPEN,
        index=True
    )

    start_time = Column(DateTime, nullable=False, default=TimeHelper.utc_now, index=True)
    end_time = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=True)  # minutes

    # Details
    status_code = Column(Integer, nullable=True)
    response_time = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    expected_status_code = Column(Integer, nullable=True)

    resolved_by = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Relationships
    monitor = relationship("Monitor", back_populates="incidents")
    notifications = relationship(
        "IncidentNotification",
        order_by="IncidentNotification.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin"
    )

    __table_args__ = (
        Index("idx_incident_monitor_status", "monitor_id", "status"),
    )

    @property
    def is_open(self) -> bool:
        return self.status in (IncidentStatus.OPEN, IncidentStatus.ACKNOWLEDGED)

    def acknowledge(self) -> None:
        self.status = IncidentStatus.ACKNOWLEDGED

    def resolve(self, resolved_by: Optional[int] = None) -> None:
        """Close the incident now and record its duration in whole minutes."""
        self.status = IncidentStatus.RESOLVED
        self.end_time = TimeHelper.utc_now()
        self.duration = TimeHelper.minutes_between(self.start_time, self.end_time)
        if resolved_by is not None:
            self.resolved_by = resolved_by

    def duration_string(self) -> str:
        return TimeHelper.format_duration_minutes(self.duration)

    def details(self) -> Dict[str, Any]:
        """Populated detail fields only."""
        values = {
            "status_code": self.status_code,
            "response_time": self.response_time,
            "error_message": self.error_message,
            "expected_status_code": self.expected_status_code,
        }
        return {k: v for k, v in values.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        """Convert incident to dictionary"""
        return {
            "id": self.id,
            "monitor_id": self.monitor_id,
            "type": self.type.value,
            "status": self.status.value,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration,
            "details": self.details(),
            "resolved_by": self.resolved_by,
            "notifications": [n.to_dict() for n in self.notifications],
        }

    def __repr__(self) -> str:
        return (
            f"<Incident id={self.id} monitor_id={self.monitor_id} "
            f"type={self.type} status={self.status}>"
        )


# ============================================================================
# INCIDENT NOTIFICATION MODEL
# ============================================================================

class IncidentNotification(Base):
    """
    Append-only record of one delivery attempt for an incident.
    """
    __tablename__ = "incident_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)

    incident_id = Column(
        Integer,
        ForeignKey("incidents.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    channel = Column(Enum(NotificationChannel), nullable=False)
    event = Column(Enum(NotificationEvent), nullable=False)
    sent_at = Column(DateTime, nullable=False, default=TimeHelper.utc_now)
    success = Column(Boolean, nullable=False, default=False)
    error = Column(Text, nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel": self.channel.value,
            "event": self.event.value,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "success": self.success,
            "error": self.error,
        }
