"""
============================================================================
UPTIME MONITOR - MAIN APPLICATION
============================================================================
This is the main.py that integrates every layer of the monitor:

    Layer 1 — Core & Database
        • Settings (Pydantic)
        • SQLAlchemy async engine + models
        • DatabaseManager + Repositories
        • Logging, Helpers

    Layer 2 — Monitoring
        • Notifier           — email / Slack / Telegram delivery
        • MonitoringEngine   — probe → evaluate → incidents → alerts
        • Scheduler          — periodic check cycle + heartbeat

Startup Order
-------------
1.  Load settings & configure logging
2.  Initialize DatabaseManager (create tables if needed)
3.  Wire up Notifier (needs DB for the audit trail)
4.  Wire up MonitoringEngine (needs DB + Notifier)
5.  Wire up Scheduler (needs MonitoringEngine)
6.  Start Scheduler (first check cycle fires immediately)
7.  Wait until a shutdown signal arrives

Shutdown Order (reverse)
-------------------------
On KeyboardInterrupt or SIGTERM:
    Stop scheduler → close notifier → close DB → exit

Command Line
------------
    python main.py                 run the service
    python main.py --once          run a single check cycle and exit
    python main.py --check-now 42  check monitor #42 once and exit

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import List, Optional

# ---------------------------------------------------------------------------
# Path setup: the project root must be importable regardless of CWD
# ---------------------------------------------------------------------------
sys.path.insert(0, str(Path(__file__).parent))

# ---------------------------------------------------------------------------
# Project imports
# ---------------------------------------------------------------------------
from config.settings import Settings, get_settings
from database.manager import DatabaseManager, IncidentRepository
from exceptions.base import UptimeMonitorException
from monitoring.alerts import Notifier
from monitoring.engine import MonitoringEngine
from monitoring.scheduler import Scheduler
from utils.helpers import TimeHelper
from utils.logger import get_logger, setup_logging


logger = get_logger("Main")


# ============================================================================
# APPLICATION CLASS
# ============================================================================

class UptimeMonitorApplication:
    """
    Top-level application orchestrator.

    Owns every subsystem and is the single place that knows the startup /
    shutdown order.  All subsystems communicate through the instances stored
    here; there are no global singletons (except Settings, which is cached via
    lru_cache).
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

        # --- subsystems (populated during startup) ---
        self.db_manager: Optional[DatabaseManager] = None
        self.notifier: Optional[Notifier] = None
        self.monitoring_engine: Optional[MonitoringEngine] = None
        self.scheduler: Optional[Scheduler] = None

        # --- lifecycle ---
        self._is_running = False
        self._stop_event = asyncio.Event()

    # ------------------------------------------------------------------
    # BANNER
    # ------------------------------------------------------------------

    def _print_banner(self) -> None:
        monitoring = self.settings.monitoring
        banner = f"""
╔══════════════════════════════════════════════════════════════════════════╗
║                                                                          ║
║          🚀  {self.settings.app_name.upper():<20} v{self.settings.app_version:<20}                ║
║                                                                          ║
║   Prober  •  Evaluator  •  Incidents  •  Notifier  •  Scheduler          ║
║                                                                          ║
║   Database : {self.settings.database.type.value:<10}   Environment : {self.settings.environment.value:<12}            ║
║   Interval : {monitoring.check_interval:<3} min       Batch size  : {monitoring.batch_size:<4}                    ║
║                                                                          ║
╚══════════════════════════════════════════════════════════════════════════╝
"""
        logger.info(banner)

    # ==================================================================
    # PHASE 1: DATABASE
    # ==================================================================

    async def _init_database(self) -> bool:
        """Initialize the database manager and verify connectivity."""
        logger.info("── Phase 1: Database ─────────────────────────────")
        try:
            self.db_manager = DatabaseManager(self.settings)
            await self.db_manager.initialize()

            if not await self.db_manager.check_connection():
                logger.error("  ✗ Database connection check failed")
                return False

            logger.info(f"  ✓ Connected to {self.settings.database.type.value}")
            return True

        except UptimeMonitorException as e:
            logger.error(f"  ✗ Database init failed: {e.log_format()}")
            return False

    # ==================================================================
    # PHASE 2: MONITORING
    # ==================================================================

    def _init_monitoring(self) -> None:
        """Wire up Notifier, MonitoringEngine, Scheduler."""
        logger.info("── Phase 2: Monitoring ───────────────────────────")

        # Notifier keeps its own repository handle for the audit trail
        self.notifier = Notifier(IncidentRepository(self.db_manager), self.settings)

        self.monitoring_engine = MonitoringEngine(
            db_manager=self.db_manager,
            notifier=self.notifier,
            settings=self.settings,
        )

        self.scheduler = Scheduler(self.monitoring_engine, self.settings)

        logger.info("  ✓ Notifier, MonitoringEngine, Scheduler created")

    # ==================================================================
    # FULL STARTUP SEQUENCE
    # ==================================================================

    async def startup(self, start_scheduler: bool = True) -> bool:
        """
        Execute the complete startup sequence.
        Returns False (and logs errors) if any critical phase fails.
        """
        self._print_banner()

        logger.info("=" * 74)
        logger.info("  STARTING UP …")
        logger.info("=" * 74)

        if not await self._init_database():
            return False

        self._init_monitoring()

        if start_scheduler:
            logger.info("── Starting background services ───────────────────")
            await self.scheduler.start()

        self._is_running = True

        logger.info("=" * 74)
        logger.info("  ✓ ALL SYSTEMS OPERATIONAL")
        logger.info("=" * 74)
        logger.info(
            f"  Monitoring: every {self.settings.monitoring.check_interval} min, "
            f"batches of {self.settings.monitoring.batch_size}, "
            f"down after {self.settings.monitoring.downtime_threshold} failures"
        )
        logger.info("=" * 74)

        return True

    # ==================================================================
    # SHUTDOWN SEQUENCE
    # ==================================================================

    async def shutdown(self) -> None:
        """
        Graceful shutdown in reverse order.
        Each step is wrapped in try/except so a failure in one subsystem
        doesn't prevent the others from cleaning up.
        """
        if not self._is_running and self.db_manager is None:
            return

        logger.info("=" * 74)
        logger.info("  SHUTTING DOWN …")
        logger.info("=" * 74)

        self._is_running = False
        self._stop_event.set()

        # 1. Stop scheduler (cancels a running cycle)
        if self.scheduler:
            try:
                await self.scheduler.stop()
                logger.info("  ✓ Scheduler stopped")
            except Exception as e:
                logger.error(f"  ✗ Scheduler stop error: {e}")
            self.scheduler = None

        # 2. Close notifier channels (Telegram bot session)
        if self.notifier:
            try:
                await self.notifier.close()
                logger.info("  ✓ Notifier closed")
            except Exception as e:
                logger.error(f"  ✗ Notifier close error: {e}")
            self.notifier = None

        # 3. Close database connections
        if self.db_manager:
            try:
                await self.db_manager.close()
                logger.info("  ✓ Database connections closed")
            except Exception as e:
                logger.error(f"  ✗ Database close error: {e}")
            self.db_manager = None

        logger.info("=" * 74)
        logger.info("  ✓ SHUTDOWN COMPLETE")
        logger.info("=" * 74)

    def request_stop(self) -> None:
        logger.info("  ⚡ Signal received — initiating graceful shutdown…")
        self._stop_event.set()

    # ==================================================================
    # RUN MODES
    # ==================================================================

    async def run(self) -> None:
        """Block until a shutdown signal arrives."""
        await self._stop_event.wait()

    async def run_once(self) -> int:
        """Run a single check cycle. Returns a process exit code."""
        report = await self.monitoring_engine.run_cycle()
        logger.info(f"  Cycle report: {report.to_dict()}")
        return 1 if report.fetch_error else 0

    async def check_now(self, monitor_id: int) -> int:
        """Check one monitor immediately. Returns a process exit code."""
        try:
            monitor = await self.monitoring_engine.check_monitor_now(monitor_id)
        except UptimeMonitorException as e:
            logger.error(f"  ✗ Check failed: {e.log_format()}")
            return 1

        logger.info(
            f"  {monitor.name}: status={monitor.status.value}, "
            f"response={monitor.last_response_time}ms, "
            f"uptime={monitor.uptime_string()}, "
            f"checked={TimeHelper.format_datetime(monitor.last_checked)}"
        )
        return 0


# ============================================================================
# SIGNAL HANDLER SETUP
# ============================================================================

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    app: UptimeMonitorApplication,
) -> None:
    """
    Install SIGTERM / SIGINT handlers so that the monitor shuts down
    gracefully even when killed by the OS.
    """
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, app.request_stop)
        except (NotImplementedError, OSError, RuntimeError):
            # Signal handlers aren't supported on Windows or in some
            # restricted environments; KeyboardInterrupt still works
            pass


# ============================================================================
# COMMAND LINE
# ============================================================================

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="HTTP uptime monitoring service")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="run a single check cycle over all active monitors and exit",
    )
    mode.add_argument(
        "--check-now",
        type=int,
        metavar="ID",
        help="check one monitor immediately and exit",
    )
    return parser.parse_args(argv)


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

async def main(argv: Optional[List[str]] = None) -> int:
    """
    Async main — creates the app, starts it, and runs until shutdown.
    """
    args = parse_args(argv)

    settings = get_settings()
    setup_logging(settings)

    one_shot = args.once or args.check_now is not None
    app = UptimeMonitorApplication(settings)

    # Install OS signal handlers for graceful shutdown
    _install_signal_handlers(asyncio.get_running_loop(), app)

    try:
        if not await app.startup(start_scheduler=not one_shot):
            logger.error("  ✗ Startup failed — exiting")
            return 1

        if args.once:
            return await app.run_once()
        if args.check_now is not None:
            return await app.check_now(args.check_now)

        await app.run()
        return 0

    except Exception as e:
        logger.opt(exception=True).error(f"  ✗ Unhandled error in run: {e}")
        return 1
    finally:
        await app.shutdown()


# ============================================================================
# SCRIPT ENTRY POINT
# ============================================================================

def cli() -> None:
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
