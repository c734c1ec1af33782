"""
============================================================================
UPTIME MONITOR - MONITORING ENGINE
============================================================================
Wires the check pipeline together.

Architecture
------------
MonitoringEngine               ← one check cycle, or one on-demand check
├── run_cycle()                ← fetch active monitors, fan out in batches
│   └── BatchExecutor          ← fixed-size groups via asyncio.gather
├── check_monitor()            ← one monitor through the pipeline
│   ├── HTTPProber             ← single timed HTTP request via httpx
│   └── Evaluator              ← counters, debounce, status, persistence
│       └── IncidentTracker    ← open / resolve with the dedup guard
│           └── Notifier       ← email / Slack / Telegram + audit trail
└── check_monitor_now()        ← same pipeline for one monitor by id

The engine itself has no loop; the Scheduler calls ``run_cycle`` every
MONITOR_CHECK_INTERVAL minutes. A failure while checking one monitor is
logged and counted and never stops the rest of the cycle.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from config.settings import Settings, get_settings
from database.manager import DatabaseManager, IncidentRepository, MonitorRepository
from database.models import Monitor
from exceptions.base import UptimeMonitorException
from exceptions.database import StorageFailure
from exceptions.monitoring import MonitorNotFoundError
from monitoring.batch import BatchExecutor
from monitoring.evaluator import EvaluationResult, Evaluator
from monitoring.incidents import IncidentTracker
from monitoring.prober import HTTPProber
from utils.helpers import TimeHelper
from utils.logger import get_logger, log_execution_time

if TYPE_CHECKING:
    from monitoring.alerts import Notifier


logger = get_logger("MonitoringEngine")


# ============================================================================
# CYCLE REPORT
# ============================================================================

@dataclass
class CycleReport:
    """Summary of one check cycle."""
    checked: int = 0
    up: int = 0
    down: int = 0
    errors: int = 0
    batches: List[int] = field(default_factory=list)
    started_at: datetime = field(default_factory=TimeHelper.utc_now)
    duration: float = 0.0
    fetch_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checked": self.checked,
            "up": self.up,
            "down": self.down,
            "errors": self.errors,
            "batches": list(self.batches),
            "started_at": self.started_at.isoformat(),
            "duration": round(self.duration, 3),
            "fetch_error": self.fetch_error,
        }


# ============================================================================
# MONITORING ENGINE
# ============================================================================

class MonitoringEngine:
    """
    Runs check cycles over all active monitors and single on-demand checks.

    All state is accessed only from the single asyncio event loop; no
    threading primitives are needed.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        notifier: Optional["Notifier"] = None,
        settings: Optional[Settings] = None,
        prober: Optional[HTTPProber] = None,
    ):
        """
        Parameters
        ----------
        db_manager : DatabaseManager
            Shared database manager (connection pool owner).
        notifier : Notifier | None
            If supplied, incident openings and recoveries are announced
            through it. If None the engine still works but incidents are
            only logged.
        settings : Settings | None
            Defaults to the cached application settings.
        prober : HTTPProber | None
            Defaults to an HTTPProber built from *settings*.
        """
        self.settings = settings or get_settings()
        self.db_manager = db_manager
        self.notifier = notifier

        monitoring = self.settings.monitoring

        self.monitors = MonitorRepository(db_manager)
        self.incidents = IncidentRepository(db_manager)
        self.prober = prober or HTTPProber(self.settings)
        self.tracker = IncidentTracker(self.incidents, self.monitors, notifier)
        self.evaluator = Evaluator(
            self.tracker,
            self.monitors,
            downtime_threshold=monitoring.downtime_threshold,
            response_time_threshold=monitoring.response_time_threshold,
            dedupe_slow_responses=monitoring.dedupe_slow_responses,
        )
        self.batch_executor = BatchExecutor(batch_size=monitoring.batch_size)

        self._in_flight = 0
        self._cycle_count = 0
        self.last_report: Optional[CycleReport] = None

        logger.info(
            f"MonitoringEngine created — "
            f"batch_size={monitoring.batch_size}, "
            f"downtime_threshold={monitoring.downtime_threshold}, "
            f"response_time_threshold={monitoring.response_time_threshold}ms"
        )

    @property
    def in_flight_checks(self) -> int:
        return self._in_flight

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    # ------------------------------------------------------------------
    # SINGLE CHECK
    # ------------------------------------------------------------------

    async def check_monitor(self, monitor: Monitor) -> EvaluationResult:
        """Probe *monitor* once and evaluate the outcome."""
        self._in_flight += 1
        try:
            probe = await self.prober.probe(monitor)
            return await self.evaluator.evaluate(monitor, probe)
        finally:
            self._in_flight -= 1

    @log_execution_time
    async def check_monitor_now(self, monitor_id: int) -> Monitor:
        """
        Run the check pipeline for one monitor outside the regular cadence.

        Returns
        -------
        Monitor
            The monitor with its updated check state.

        Raises
        ------
        MonitorNotFoundError
            No monitor has that id.
        """
        monitor = await self.monitors.get_by_id(monitor_id)
        if monitor is None:
            raise MonitorNotFoundError(monitor_id)

        logger.info(f"[Engine] Manual check requested for {monitor.name} (#{monitor.id})")
        await self.check_monitor(monitor)
        return monitor

    # ------------------------------------------------------------------
    # CYCLE
    # ------------------------------------------------------------------

    async def run_cycle(self) -> CycleReport:
        """
        Check every active monitor once.

        Returns
        -------
        CycleReport
            Counts for the cycle. Storage failures are reported, not raised.
        """
        self._cycle_count += 1
        report = CycleReport()
        start = time.perf_counter()

        try:
            monitors = await self.monitors.list_active_monitors()
        except StorageFailure as e:
            logger.error(f"[Engine] Could not load active monitors: {e.log_format()}")
            report.fetch_error = e.message
            report.duration = time.perf_counter() - start
            self.last_report = report
            return report

        if not monitors:
            logger.info("[Engine] No active monitors to check")
            report.duration = time.perf_counter() - start
            self.last_report = report
            return report

        logger.info(
            f"[Engine] --- Checking {len(monitors)} monitors at "
            f"{TimeHelper.format_datetime(report.started_at)} ---"
        )

        results = await self.batch_executor.run(monitors, self.check_monitor)
        report.batches = list(self.batch_executor.last_batch_sizes)

        for item in results:
            report.checked += 1
            monitor = item.item

            if item.error is not None:
                report.errors += 1
                self._log_check_error(monitor, item.error)
            elif item.result.is_up:
                report.up += 1
            else:
                report.down += 1

        report.duration = time.perf_counter() - start
        self.last_report = report

        logger.info(
            f"[Engine] --- Check completed: {report.checked} checked, "
            f"{report.up} up, {report.down} failing, {report.errors} errors "
            f"in {report.duration:.2f}s ---"
        )
        return report

    @staticmethod
    def _log_check_error(monitor: Monitor, error: BaseException) -> None:
        if isinstance(error, UptimeMonitorException):
            logger.error(
                f"[Engine] Check for monitor {monitor.id} ({monitor.url}) failed: "
                f"{error.log_format()}"
            )
        else:
            logger.opt(exception=error).error(
                f"[Engine] Check for monitor {monitor.id} ({monitor.url}) raised: {error}"
            )

    def get_stats(self) -> Dict[str, Any]:
        """Return engine diagnostics."""
        return {
            "cycles": self._cycle_count,
            "in_flight_checks": self._in_flight,
            "last_report": self.last_report.to_dict() if self.last_report else None,
        }
