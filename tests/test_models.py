from datetime import datetime, timedelta

import pytest

from database.models import Incident, IncidentStatus, IncidentType, Monitor, MonitorStatus
from main import parse_args
from utils.helpers import DataHelper, StringHelper, TimeHelper


@pytest.mark.parametrize(
    ("duration", "text"),
    [(65, "1h 5m"), (60, "1h 0m"), (12, "12m"), (0, "N/A"), (None, "N/A")],
)
def test_incident_duration_string(duration, text):
    assert Incident(duration=duration).duration_string() == text


def test_incident_resolve_sets_end_and_duration():
    incident = Incident(
        type=IncidentType.TIMEOUT,
        status=IncidentStatus.OPEN,
        start_time=datetime(2024, 1, 1, 12, 0, 0),
    )

    incident.resolve(resolved_by=7)

    assert incident.status == IncidentStatus.RESOLVED
    assert not incident.is_open
    assert incident.end_time is not None
    assert incident.resolved_by == 7
    assert incident.duration >= 0


def test_uptime_helpers():
    monitor = Monitor(successful_checks=199, failed_checks=1, total_checks=200)

    assert monitor.calculate_uptime() == 99.5
    assert monitor.uptime_string() == "99.5% (199/200)"

    monitor.successful_checks, monitor.total_checks = 2, 3
    assert monitor.calculate_uptime() == 66.67

    monitor.successful_checks, monitor.total_checks = 0, 0
    assert monitor.calculate_uptime() == 100.0


def test_request_headers_keep_insertion_order():
    monitor = Monitor(headers={"X-B": "2", "X-A": "1", "Accept": "application/json"})

    assert monitor.request_headers() == [("X-B", "2"), ("X-A", "1"), ("Accept", "application/json")]


def test_monitor_is_down():
    assert Monitor(status=MonitorStatus.DOWN).is_down
    assert not Monitor(status=MonitorStatus.UP).is_down


@pytest.mark.parametrize(
    ("seconds", "minutes"),
    [(29, 0), (30, 1), (89, 1), (90, 2), (720, 12)],
)
def test_minutes_between_rounds_half_up(seconds, minutes):
    start = datetime(2024, 1, 1, 12, 0, 0)
    end = start + timedelta(seconds=seconds)

    assert TimeHelper.minutes_between(start, end) == minutes


def test_string_and_data_helpers():
    assert TimeHelper.format_datetime(None) == "N/A"
    assert TimeHelper.format_datetime(datetime(2024, 5, 1, 8, 30)) == "2024-05-01 08:30:00 UTC"
    assert StringHelper.humanize_identifier("status_code_mismatch") == "STATUS CODE MISMATCH"
    assert StringHelper.truncate("abcdefghij", 8) == "abcde..."
    assert DataHelper.chunk_list([1, 2, 3], 2) == [[1, 2], [3]]
    with pytest.raises(ValueError):
        DataHelper.chunk_list([1], 0)


def test_cli_modes():
    assert parse_args([]).once is False
    assert parse_args(["--once"]).once is True
    assert parse_args(["--check-now", "42"]).check_now == 42
    with pytest.raises(SystemExit):
        parse_args(["--once", "--check-now", "1"])
