"""
============================================================================
UPTIME MONITOR - MONITORING PACKAGE
============================================================================
This package contains all the runtime monitoring infrastructure:
    • HTTPProber         — one timed HTTP request per monitor
    • BatchExecutor      — fixed-size concurrent groups of checks
    • Evaluator          — counters, failure debounce, status changes
    • IncidentTracker    — incident lifecycle with the duplicate guard
    • Notifier           — email / Slack / Telegram delivery + audit trail
    • MonitoringEngine   — the check pipeline and on-demand checks
    • Scheduler          — periodic background job runner

File layout
-----------
monitoring/
├── __init__.py          ← this file
├── prober.py            ← HTTPProber + ProbeResult
├── batch.py             ← BatchExecutor
├── evaluator.py         ← Evaluator + EvaluationResult
├── incidents.py         ← IncidentTracker
├── alerts.py            ← Notifier + delivery channels
├── engine.py            ← MonitoringEngine + CycleReport
└── scheduler.py         ← Scheduler + built-in periodic jobs

============================================================================
"""

from monitoring.prober import HTTPProber, ProbeResult
from monitoring.batch import BatchExecutor, BatchItemResult
from monitoring.evaluator import Evaluator, EvaluationResult, SuppressionReason
from monitoring.incidents import IncidentTracker
from monitoring.alerts import (
    AlertChannel,
    DeliveryResult,
    EmailChannel,
    Notifier,
    SlackChannel,
    TelegramChannel,
)
from monitoring.engine import CycleReport, MonitoringEngine
from monitoring.scheduler import Scheduler, ScheduledJob

__all__ = [
    # Probing
    "HTTPProber",
    "ProbeResult",

    # Batching
    "BatchExecutor",
    "BatchItemResult",

    # Evaluation
    "Evaluator",
    "EvaluationResult",
    "SuppressionReason",

    # Incidents
    "IncidentTracker",

    # Notifications
    "Notifier",
    "DeliveryResult",
    "AlertChannel",
    "EmailChannel",
    "SlackChannel",
    "TelegramChannel",

    # Engine
    "MonitoringEngine",
    "CycleReport",

    # Scheduler
    "Scheduler",
    "ScheduledJob",
]
