"""
Database Package for the Uptime Monitor

Provides database connectivity, models, and repository patterns
for data persistence using SQLAlchemy with async support.
"""

from database.manager import (
    DatabaseManager,
    BaseRepository,
    UserRepository,
    MonitorRepository,
    IncidentRepository,
)

from database.models import (
    Base,
    User,
    Monitor,
    Incident,
    IncidentNotification,
    MonitorStatus,
    HTTPMethod,
    IncidentType,
    IncidentStatus,
    NotificationChannel,
    NotificationEvent,
)

__all__ = [
    # Manager
    "DatabaseManager",

    # Models
    "Base",
    "User",
    "Monitor",
    "Incident",
    "IncidentNotification",
    "MonitorStatus",
    "HTTPMethod",
    "IncidentType",
    "IncidentStatus",
    "NotificationChannel",
    "NotificationEvent",

    # Repositories
    "BaseRepository",
    "UserRepository",
    "MonitorRepository",
    "IncidentRepository",
]
