"""
============================================================================
UPTIME MONITOR - BACKGROUND TASK SCHEDULER
============================================================================
A lightweight, asyncio-native task scheduler that drives the monitoring
engine. It does NOT use APScheduler or Celery; all jobs run as coroutines
in the same event loop, keeping the deployment simple (single process, no
broker needed).

Registered Jobs
---------------
1.  check_cycle        (every MONITOR_CHECK_INTERVAL minutes)
    Runs one MonitoringEngine cycle over all active monitors. The first
    run is due immediately, so a cycle fires as soon as the scheduler
    starts.

2.  health_heartbeat   (every MONITOR_HEARTBEAT_INTERVAL seconds)
    Writes a heartbeat entry to the log so operators can verify the
    service is still alive even during quiet periods.

A job whose previous run is still in progress when it comes due again is
skipped for that slot (and counted), so cycles never overlap.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
import time
from datetime import datetime
from typing import Optional, Dict, Any, Callable, List, TYPE_CHECKING
from dataclasses import dataclass, field

from config.settings import Settings, get_settings
from utils.helpers import TimeHelper
from utils.logger import get_logger

if TYPE_CHECKING:
    from monitoring.engine import MonitoringEngine


logger = get_logger("Scheduler")


# ============================================================================
# JOB DEFINITION
# ============================================================================

@dataclass
class ScheduledJob:
    """
    Describes a single periodic background job.

    Attributes
    ----------
    name : str
        Human-readable identifier (used in logs).
    interval_seconds : float
        How often the job runs.
    coroutine_factory : Callable
        An async callable (no arguments) that performs the work.
    enabled : bool
        Can be toggled at runtime.
    last_run : Optional[float]
        Epoch timestamp of the last successful execution.
    next_run : float
        Epoch timestamp when the job should next execute.
    run_count : int
        Total number of successful executions since startup.
    error_count : int
        Total number of failed executions since startup.
    skipped_count : int
        Slots skipped because the previous run was still in progress.
    task : Optional[asyncio.Task]
        The currently or most recently running execution.
    """
    name: str
    interval_seconds: float
    coroutine_factory: Callable
    enabled: bool = True
    last_run: Optional[float] = None
    next_run: float = field(default_factory=time.time)
    run_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self.task is not None and not self.task.done()


# ============================================================================
# SCHEDULER
# ============================================================================

class Scheduler:
    """
    Asyncio-based periodic job scheduler.

    Usage
    -----
        scheduler = Scheduler(engine, settings)
        await scheduler.start()
        # ... later ...
        await scheduler.stop()
    """

    def __init__(
        self,
        engine: "MonitoringEngine",
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.engine = engine

        self._jobs: Dict[str, ScheduledJob] = {}
        self._running = False
        self._loop_task: Optional[asyncio.Task] = None
        self._tick_interval = self.settings.monitoring.scheduler_tick
        self._started_at: Optional[float] = None

        self._register_builtin_jobs()

        logger.info(
            f"Scheduler created with {len(self._jobs)} built-in jobs"
        )

    # ------------------------------------------------------------------
    # JOB REGISTRATION
    # ------------------------------------------------------------------

    def register_job(
        self,
        name: str,
        interval_seconds: float,
        coroutine_factory: Callable,
        enabled: bool = True,
        run_immediately: bool = True,
    ) -> None:
        """
        Register a new periodic job.

        Parameters
        ----------
        name : str
            Unique job name.
        interval_seconds : float
            Period in seconds.
        coroutine_factory : Callable
            An async callable that takes no arguments.
        enabled : bool
            Whether the job starts enabled.
        run_immediately : bool
            Whether the first run is due at once or after one interval.
        """
        if interval_seconds <= 0:
            raise ValueError(f"Job '{name}' needs a positive interval")

        if name in self._jobs:
            logger.warning(f"[Scheduler] Job '{name}' already registered, overwriting")

        now = time.time()
        self._jobs[name] = ScheduledJob(
            name=name,
            interval_seconds=interval_seconds,
            coroutine_factory=coroutine_factory,
            enabled=enabled,
            next_run=now if run_immediately else now + interval_seconds,
        )
        logger.debug(f"[Scheduler] Registered job '{name}' (interval={interval_seconds}s)")

    def get_job(self, name: str) -> Optional[ScheduledJob]:
        return self._jobs.get(name)

    def enable_job(self, name: str) -> bool:
        """Enable a job by name. Returns True if found."""
        if name in self._jobs:
            self._jobs[name].enabled = True
            return True
        return False

    def disable_job(self, name: str) -> bool:
        """Disable a job by name. Returns True if found."""
        if name in self._jobs:
            self._jobs[name].enabled = False
            return True
        return False

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scheduler loop."""
        if self._running:
            logger.warning("Scheduler is already running")
            return
        self._running = True
        self._started_at = time.time()
        self._loop_task = asyncio.create_task(self._main_loop())
        logger.info("✓ Scheduler started")

    async def stop(self) -> None:
        """Stop the scheduler loop and cancel any job still running."""
        self._running = False
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        running = [job.task for job in self._jobs.values() if job.is_running]
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
            logger.info(f"[Scheduler] Cancelled {len(running)} running job(s)")

        logger.info("✓ Scheduler stopped")

    # ------------------------------------------------------------------
    # MAIN LOOP
    # ------------------------------------------------------------------

    async def _main_loop(self) -> None:
        """
        Wake up every _tick_interval seconds and launch due jobs.
        """
        logger.info("[Scheduler] Main loop started")
        while self._running:
            self._dispatch_due_jobs(time.time())

            try:
                await asyncio.sleep(self._tick_interval)
            except asyncio.CancelledError:
                break

        logger.info("[Scheduler] Main loop exited")

    def _dispatch_due_jobs(self, now: float) -> List[asyncio.Task]:
        """
        Launch every enabled job whose next_run has arrived.

        A job still running from its previous slot is skipped.

        Returns
        -------
        list[asyncio.Task]
            Tasks launched by this call.
        """
        launched: List[asyncio.Task] = []

        for job in self._jobs.values():
            if not job.enabled or now < job.next_run:
                continue

            # Advance next_run immediately so we don't re-trigger
            job.next_run = now + job.interval_seconds

            if job.is_running:
                job.skipped_count += 1
                logger.warning(
                    f"[Scheduler] Job '{job.name}' is still running; skipping this run "
                    f"(skipped {job.skipped_count} so far)"
                )
                continue

            job.task = asyncio.create_task(self._execute_job(job))
            launched.append(job.task)

        return launched

    # ------------------------------------------------------------------
    # JOB EXECUTION
    # ------------------------------------------------------------------

    async def _execute_job(self, job: ScheduledJob) -> None:
        """
        Run a single job, capture timing and errors.
        """
        start_time = time.time()
        try:
            logger.debug(f"[Scheduler] Running job '{job.name}'…")
            await job.coroutine_factory()
            elapsed = time.time() - start_time

            job.run_count += 1
            job.last_run = time.time()
            logger.debug(
                f"[Scheduler] Job '{job.name}' completed in {elapsed:.2f}s "
                f"(run #{job.run_count})"
            )

        except Exception as e:
            job.error_count += 1
            elapsed = time.time() - start_time
            logger.opt(exception=True).error(
                f"[Scheduler] Job '{job.name}' FAILED after {elapsed:.2f}s: {e}"
            )

    # ------------------------------------------------------------------
    # DIAGNOSTICS
    # ------------------------------------------------------------------

    def get_job_stats(self) -> List[Dict[str, Any]]:
        """Return status of all registered jobs."""
        stats = []
        for job in self._jobs.values():
            stats.append({
                "name": job.name,
                "interval_seconds": job.interval_seconds,
                "enabled": job.enabled,
                "running": job.is_running,
                "run_count": job.run_count,
                "error_count": job.error_count,
                "skipped_count": job.skipped_count,
                "last_run": (
                    datetime.fromtimestamp(job.last_run).isoformat()
                    if job.last_run else None
                ),
                "next_run": (
                    datetime.fromtimestamp(job.next_run).isoformat()
                    if job.next_run else None
                ),
            })
        return stats

    # ==================================================================
    # BUILT-IN JOBS
    # ==================================================================

    def _register_builtin_jobs(self) -> None:
        """Register all built-in periodic jobs."""
        monitoring = self.settings.monitoring

        # 1. Check cycle (every check_interval minutes, first run at once)
        self.register_job(
            "check_cycle",
            interval_seconds=monitoring.check_interval * 60,
            coroutine_factory=self._job_check_cycle,
        )

        # 2. Health heartbeat
        self.register_job(
            "health_heartbeat",
            interval_seconds=monitoring.heartbeat_interval,
            coroutine_factory=self._job_health_heartbeat,
            run_immediately=False,
        )

    # ------------------------------------------------------------------
    # JOB: Check Cycle
    # ------------------------------------------------------------------

    async def _job_check_cycle(self) -> None:
        await self.engine.run_cycle()

    # ------------------------------------------------------------------
    # JOB: Health Heartbeat
    # ------------------------------------------------------------------

    async def _job_health_heartbeat(self) -> None:
        """
        Write a simple heartbeat log entry.  If you see heartbeats in the
        log, the service is alive.
        """
        is_alive = await self.engine.db_manager.check_connection()
        uptime = (
            TimeHelper.seconds_to_human_readable(int(time.time() - self._started_at))
            if self._started_at else "n/a"
        )
        last = self.engine.last_report
        logger.info(
            f"[Heartbeat] ✓ Monitor alive — db={'OK' if is_alive else 'FAIL'}, "
            f"uptime={uptime}, cycles={self.engine.cycle_count}, "
            f"last_cycle={'n/a' if last is None else f'{last.checked} checked/{last.errors} errors'}, "
            f"time={TimeHelper.format_datetime(TimeHelper.utc_now())}"
        )


# ============================================================================
# END OF SCHEDULER MODULE
# ============================================================================
