"""
============================================================================
UPTIME MONITOR - INCIDENT TRACKER
============================================================================
Owns the incident lifecycle:

    open ──acknowledge──▶ acknowledged
      │                        │
      └────────resolve─────────┴──▶ resolved   (terminal)

A monitor has at most one open or acknowledged incident at a time. Opening
is serialised per monitor with an asyncio.Lock, so a scheduled cycle and a
manual "check now" running side by side cannot both open one. Lifecycle
writes only land while the stored row is still open, so a resolved
incident stays resolved.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, TYPE_CHECKING

from database.manager import IncidentRepository, MonitorRepository
from database.models import (
    Incident,
    IncidentStatus,
    IncidentType,
    Monitor,
    NotificationEvent,
)
from exceptions.monitoring import IncidentNotFoundError, InvalidIncidentTransitionError
from utils.helpers import TimeHelper
from utils.logger import get_logger

if TYPE_CHECKING:
    from monitoring.alerts import Notifier


logger = get_logger("IncidentTracker")


DETAIL_FIELDS = ("status_code", "response_time", "error_message", "expected_status_code")


class IncidentTracker:
    """
    Creates, acknowledges and resolves incidents and asks the notifier
    to announce openings and recoveries.
    """

    def __init__(
        self,
        incidents: IncidentRepository,
        monitors: MonitorRepository,
        notifier: Optional["Notifier"] = None,
    ):
        self.incidents = incidents
        self.monitors = monitors
        self.notifier = notifier
        # monitor id -> [lock, number of holders and waiters]
        self._locks: Dict[int, List[Any]] = {}

    @asynccontextmanager
    async def _monitor_lock(self, monitor_id: int) -> AsyncIterator[None]:
        """Serialise work on one monitor; the entry is dropped once unused."""
        entry = self._locks.get(monitor_id)
        if entry is None:
            entry = self._locks[monitor_id] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[monitor_id]

    async def _get_or_raise(self, incident_id: int) -> Incident:
        incident = await self.incidents.get_by_id(incident_id)
        if incident is None:
            raise IncidentNotFoundError(incident_id)
        return incident

    async def _notify(self, monitor: Monitor, incident: Incident, event: NotificationEvent) -> None:
        if self.notifier is None:
            logger.debug(f"[Incidents] No notifier configured; {event.value} for #{incident.id} not sent")
            return
        await self.notifier.deliver(monitor, incident, event)

    # ------------------------------------------------------------------
    # OPEN
    # ------------------------------------------------------------------

    async def open_incident(
        self,
        monitor: Monitor,
        incident_type: IncidentType,
        details: Optional[Dict[str, Any]] = None,
        dedupe: bool = True,
    ) -> Optional[Incident]:
        """
        Open a new incident for *monitor* unless one is already open.

        Returns
        -------
        Incident | None
            The new incident, or None when an open or acknowledged
            incident already exists (and *dedupe* is set).
        """
        details = details or {}

        async with self._monitor_lock(monitor.id):
            if dedupe:
                existing = await self.incidents.find_open_incident(monitor.id)
                if existing is not None:
                    logger.info(
                        f"[Incidents] ℹ️ Incident #{existing.id} ({existing.type.value}) already open "
                        f"for {monitor.name}; {incident_type.value} suppressed"
                    )
                    return None

            incident = Incident(
                monitor_id=monitor.id,
                type=incident_type,
                status=IncidentStatus.OPEN,
                start_time=TimeHelper.utc_now(),
                notifications=[],
                **{key: details.get(key) for key in DETAIL_FIELDS},
            )
            await self.incidents.create(incident)

        logger.warning(
            f"[Incidents] 🚨 Incident #{incident.id} opened for {monitor.name} - "
            f"type: {incident_type.value}"
        )
        await self._notify(monitor, incident, NotificationEvent.OPENED)
        return incident

    # ------------------------------------------------------------------
    # ACKNOWLEDGE
    # ------------------------------------------------------------------

    async def acknowledge(self, incident_id: int) -> Incident:
        """
        Move an open incident to acknowledged.

        Acknowledging an acknowledged incident changes nothing. A resolved
        incident cannot be acknowledged.
        """
        incident = await self._get_or_raise(incident_id)

        if incident.status == IncidentStatus.RESOLVED:
            raise InvalidIncidentTransitionError(
                "Cannot acknowledge a resolved incident",
                incident_id=incident.id,
                current_status=incident.status.value,
            )

        if incident.status == IncidentStatus.ACKNOWLEDGED:
            logger.debug(f"[Incidents] Incident #{incident.id} already acknowledged")
            return incident

        incident.acknowledge()
        if not await self.incidents.save(incident, expected_statuses=(IncidentStatus.OPEN,)):
            # The stored row moved on after it was read.
            current = await self._get_or_raise(incident_id)
            if current.status == IncidentStatus.ACKNOWLEDGED:
                return current
            raise InvalidIncidentTransitionError(
                "Cannot acknowledge a resolved incident",
                incident_id=current.id,
                current_status=current.status.value,
            )

        logger.info(f"[Incidents] Incident #{incident.id} acknowledged")
        return incident

    # ------------------------------------------------------------------
    # RESOLVE
    # ------------------------------------------------------------------

    async def resolve(self, incident_id: int, resolved_by: Optional[int] = None) -> Incident:
        """Manually resolve an open or acknowledged incident."""
        incident = await self._get_or_raise(incident_id)

        if incident.status == IncidentStatus.RESOLVED:
            raise InvalidIncidentTransitionError(
                "Incident is already resolved",
                incident_id=incident.id,
                current_status=incident.status.value,
            )

        incident.resolve(resolved_by=resolved_by)
        if not await self.incidents.save(incident):
            raise InvalidIncidentTransitionError(
                "Incident is already resolved",
                incident_id=incident.id,
                current_status=IncidentStatus.RESOLVED.value,
            )

        logger.info(
            f"[Incidents] ✓ Incident #{incident.id} resolved manually "
            f"after {incident.duration_string()}"
        )

        monitor = await self.monitors.get_by_id(incident.monitor_id)
        if monitor is not None:
            await self._notify(monitor, incident, NotificationEvent.RECOVERED)
        return incident

    async def resolve_open_incidents(
        self,
        monitor: Monitor,
        incident_type: Optional[IncidentType] = None,
    ) -> List[Incident]:
        """
        Resolve every open or acknowledged incident of *monitor*,
        optionally only those of *incident_type*.

        Returns
        -------
        list[Incident]
            The incidents that were resolved, oldest first.
        """
        open_incidents = await self.incidents.find_open_incidents(monitor.id, incident_type)
        resolved: List[Incident] = []

        for incident in open_incidents:
            incident.resolve()
            if not await self.incidents.save(incident):
                logger.debug(f"[Incidents] Incident #{incident.id} was resolved elsewhere")
                continue
            resolved.append(incident)
            logger.info(
                f"[Incidents] ✓ Incident #{incident.id} resolved for {monitor.name} "
                f"after {incident.duration_string()}"
            )
            await self._notify(monitor, incident, NotificationEvent.RECOVERED)

        return resolved
