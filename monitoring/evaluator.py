"""
============================================================================
UPTIME MONITOR - CHECK EVALUATOR
============================================================================
Turns one probe outcome into monitor state:

    • updates the uptime counters and last-check fields
    • debounces failures: a monitor goes DOWN only after
      ``downtime_threshold`` consecutive failed checks
    • asks the IncidentTracker to open or resolve incidents
    • persists the check-owned columns of the monitor

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from database.manager import MonitorRepository
from database.models import Incident, IncidentType, Monitor, MonitorStatus
from monitoring.prober import ProbeResult
from utils.helpers import TimeHelper
from utils.logger import get_logger, MonitorLogger

if TYPE_CHECKING:
    from monitoring.incidents import IncidentTracker


logger = get_logger("Evaluator")


class SuppressionReason(str, enum.Enum):
    """Why a failed or slow check did not open an incident."""
    THRESHOLD_NOT_REACHED = "threshold_not_reached"
    DUPLICATE_INCIDENT = "duplicate_incident"


@dataclass
class EvaluationResult:
    """Everything one evaluation decided, for logging and tests."""
    monitor_id: int
    is_up: bool
    previous_status: Optional[MonitorStatus]
    status: Optional[MonitorStatus] = None
    consecutive_failures: int = 0
    opened: Optional[Incident] = None
    resolved: List[Incident] = field(default_factory=list)
    suppressed: Optional[SuppressionReason] = None
    persisted: bool = False

    @property
    def status_changed(self) -> bool:
        return self.status != self.previous_status


class Evaluator:
    """
    Applies the up/down rules to a probe result.

    A check is UP when the probe completed and its status code equals the
    monitor's expected status code. Anything else is a failed check.
    """

    def __init__(
        self,
        tracker: "IncidentTracker",
        monitors: MonitorRepository,
        downtime_threshold: int = 3,
        response_time_threshold: int = 5000,
        dedupe_slow_responses: bool = True,
    ):
        if downtime_threshold < 1:
            raise ValueError("downtime_threshold must be at least 1")

        self.tracker = tracker
        self.monitors = monitors
        self.downtime_threshold = downtime_threshold
        self.response_time_threshold = response_time_threshold
        self.dedupe_slow_responses = dedupe_slow_responses
        self._monitor_logger = MonitorLogger()

    async def evaluate(self, monitor: Monitor, probe: ProbeResult) -> EvaluationResult:
        """
        Apply *probe* to *monitor*, drive incidents and persist the monitor.

        Storage errors from the tracker or the repository propagate.
        """
        previous_status = monitor.status

        monitor.total_checks = (monitor.total_checks or 0) + 1
        monitor.last_checked = TimeHelper.utc_now()
        monitor.last_response_time = probe.elapsed_ms

        is_up = probe.completed and probe.status_code == monitor.expected_status_code
        result = EvaluationResult(
            monitor_id=monitor.id,
            is_up=is_up,
            previous_status=previous_status,
        )

        if is_up:
            await self._handle_success(monitor, probe, result)
        else:
            await self._handle_failure(monitor, probe, result)

        monitor.calculate_uptime()
        result.status = monitor.status
        result.consecutive_failures = monitor.consecutive_failures

        result.persisted = await self.monitors.save_check_state(monitor)
        if not result.persisted:
            logger.warning(
                f"[Evaluator] Monitor {monitor.id} was removed during the check; "
                f"check state not saved"
            )

        self._monitor_logger.log_check(
            monitor.id,
            monitor.url,
            is_up,
            response_time=probe.elapsed_ms,
            status_code=probe.status_code,
        )
        return result

    # ------------------------------------------------------------------
    # SUCCESS PATH
    # ------------------------------------------------------------------

    async def _handle_success(
        self,
        monitor: Monitor,
        probe: ProbeResult,
        result: EvaluationResult,
    ) -> None:
        monitor.successful_checks = (monitor.successful_checks or 0) + 1
        monitor.consecutive_failures = 0

        # Paused and unknown count as not up: a monitor resumed with an
        # incident still open recovers on its first good check.
        if result.previous_status != MonitorStatus.UP:
            resolved = await self.tracker.resolve_open_incidents(monitor)
            result.resolved.extend(resolved)
            for incident in resolved:
                self._monitor_logger.log_recovery(
                    monitor.id, monitor.url, incident.duration_string()
                )

        monitor.status = MonitorStatus.UP

        if probe.elapsed_ms > self.response_time_threshold:
            logger.warning(
                f"[Evaluator] 🐢 {monitor.name} responded in {probe.elapsed_ms}ms "
                f"(threshold {self.response_time_threshold}ms)"
            )
            await self._request_incident(
                monitor,
                IncidentType.SLOW_RESPONSE,
                {
                    "status_code": probe.status_code,
                    "response_time": probe.elapsed_ms,
                },
                result,
                dedupe=self.dedupe_slow_responses,
            )
        elif self.dedupe_slow_responses:
            # A fast response ends any open slow_response incident.
            result.resolved.extend(
                await self.tracker.resolve_open_incidents(
                    monitor, incident_type=IncidentType.SLOW_RESPONSE
                )
            )

    # ------------------------------------------------------------------
    # FAILURE PATH
    # ------------------------------------------------------------------

    async def _handle_failure(
        self,
        monitor: Monitor,
        probe: ProbeResult,
        result: EvaluationResult,
    ) -> None:
        monitor.failed_checks = (monitor.failed_checks or 0) + 1
        monitor.consecutive_failures = (monitor.consecutive_failures or 0) + 1

        if monitor.consecutive_failures < self.downtime_threshold:
            remaining = self.downtime_threshold - monitor.consecutive_failures
            logger.info(
                f"[Evaluator] ⏳ {monitor.name} - waiting for {remaining} more failure(s) "
                f"before opening an incident "
                f"({monitor.consecutive_failures}/{self.downtime_threshold})"
            )
            result.suppressed = SuppressionReason.THRESHOLD_NOT_REACHED
            return

        monitor.status = MonitorStatus.DOWN

        if probe.completed:
            incident_type = IncidentType.STATUS_CODE_MISMATCH
            details: Dict[str, Any] = {
                "status_code": probe.status_code,
                "response_time": probe.elapsed_ms,
                "expected_status_code": monitor.expected_status_code,
            }
            reason = f"status {probe.status_code}, expected {monitor.expected_status_code}"
        else:
            incident_type = IncidentType.TIMEOUT
            details = {"error_message": probe.error_message}
            reason = probe.error_message

        opened = await self._request_incident(monitor, incident_type, details, result)
        if opened is not None:
            self._monitor_logger.log_downtime(monitor.id, monitor.url, reason)

    async def _request_incident(
        self,
        monitor: Monitor,
        incident_type: IncidentType,
        details: Dict[str, Any],
        result: EvaluationResult,
        dedupe: bool = True,
    ) -> Optional[Incident]:
        incident = await self.tracker.open_incident(
            monitor, incident_type, details, dedupe=dedupe
        )
        if incident is None:
            result.suppressed = SuppressionReason.DUPLICATE_INCIDENT
        else:
            result.opened = incident
        return incident
