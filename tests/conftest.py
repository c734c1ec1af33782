import sys
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import httpx
import pytest
import pytest_asyncio

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.settings import (  # noqa: E402
    Environment,
    LoggingSettings,
    MonitoringSettings,
    NotificationSettings,
    Settings,
)
from database.manager import (  # noqa: E402
    DatabaseManager,
    IncidentRepository,
    MonitorRepository,
    UserRepository,
)
from database.models import Incident, Monitor, NotificationChannel, NotificationEvent, User  # noqa: E402
from exceptions.monitoring import NotifierDeliveryFailed  # noqa: E402
from monitoring.alerts import AlertChannel, Notifier  # noqa: E402
from monitoring.prober import HTTPProber  # noqa: E402


# ============================================================================
# SETTINGS
# ============================================================================

def make_settings(**monitoring_overrides) -> Settings:
    monitoring = {
        "check_interval": 5,
        "batch_size": 5,
        "downtime_threshold": 3,
        "response_time_threshold": 5000,
        "default_timeout": 5,
        "scheduler_tick": 0.01,
    }
    monitoring.update(monitoring_overrides)
    return Settings(
        environment=Environment.TESTING,
        monitoring=MonitoringSettings(**monitoring),
        notifications=NotificationSettings(
            email_host=None,
            slack_webhook_url=None,
            telegram_chat_id=None,
        ),
        logging=LoggingSettings(
            console_enabled=False,
            file_enabled=False,
            error_file_enabled=False,
        ),
    )


@pytest.fixture
def settings() -> Settings:
    return make_settings()


# ============================================================================
# DATABASE
# ============================================================================

@pytest_asyncio.fixture
async def db_manager(tmp_path, settings):
    manager = DatabaseManager(settings, database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await manager.initialize()
    yield manager
    await manager.close()


@pytest.fixture
def monitors(db_manager) -> MonitorRepository:
    return MonitorRepository(db_manager)


@pytest.fixture
def incidents(db_manager) -> IncidentRepository:
    return IncidentRepository(db_manager)


@pytest_asyncio.fixture
async def user(db_manager) -> User:
    return await UserRepository(db_manager).create(User(name="Ops", email="ops@example.com"))


@pytest.fixture
def make_monitor(monitors, user):
    async def _make(**fields) -> Monitor:
        values = {
            "user_id": user.id,
            "name": "Example",
            "url": "https://example.com/health",
            "timeout": 5,
            "alert_email": False,
        }
        values.update(fields)
        return await monitors.create(Monitor(**values))

    return _make


# ============================================================================
# HTTP
# ============================================================================

def status_transport(status_code: int = 200, seen: Optional[List[httpx.Request]] = None) -> httpx.MockTransport:
    """Answers every request with *status_code*, recording requests in *seen*."""
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code)

    return httpx.MockTransport(handler)


def raising_transport(exc_factory: Callable[[httpx.Request], Exception]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_factory(request)

    return httpx.MockTransport(handler)


def step_clock(elapsed_seconds: Iterable[float]) -> Callable[[], float]:
    """
    Clock for HTTPProber: each probe reads it twice, so every value in
    *elapsed_seconds* becomes the elapsed time of one probe.
    """
    readings: List[float] = []
    now = 0.0
    for elapsed in elapsed_seconds:
        readings.extend([now, now + elapsed])
        now += elapsed + 1.0
    it = iter(readings)
    return lambda: next(it)


def make_prober(settings: Settings, status_code: int = 200, clock=None) -> HTTPProber:
    kwargs = {"transport": status_transport(status_code)}
    if clock is not None:
        kwargs["clock"] = clock
    return HTTPProber(settings, **kwargs)


# ============================================================================
# NOTIFIER
# ============================================================================

class RecordingChannel(AlertChannel):
    """In-test channel that records every send and optionally fails."""

    def __init__(self, channel: NotificationChannel, fail_with: Optional[Exception] = None):
        self.channel = channel
        self.fail_with = fail_with
        self.sent: List[tuple] = []
        self.closed = False

    def is_enabled(self, monitor: Monitor) -> bool:
        return True

    async def send(self, monitor: Monitor, incident: Incident, event: NotificationEvent) -> None:
        self.sent.append((monitor.id, incident.id, event))
        if self.fail_with is not None:
            raise self.fail_with

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def email_channel() -> RecordingChannel:
    return RecordingChannel(NotificationChannel.EMAIL)


@pytest.fixture
def failing_slack_channel() -> RecordingChannel:
    return RecordingChannel(
        NotificationChannel.SLACK,
        fail_with=NotifierDeliveryFailed("Slack webhook failed: 500", channel="slack"),
    )


@pytest.fixture
def notifier(incidents, settings, email_channel) -> Notifier:
    return Notifier(incidents, settings, channels=[email_channel])
