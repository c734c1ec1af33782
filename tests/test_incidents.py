import asyncio
from datetime import timedelta

import pytest

from database.models import Incident, IncidentStatus, IncidentType, NotificationEvent
from exceptions.monitoring import IncidentNotFoundError, InvalidIncidentTransitionError
from monitoring.incidents import IncidentTracker
from utils.helpers import TimeHelper


@pytest.fixture
def tracker(incidents, monitors, notifier) -> IncidentTracker:
    return IncidentTracker(incidents, monitors, notifier)


async def backdated_incident(incidents, monitor, minutes: float) -> Incident:
    return await incidents.create(
        Incident(
            monitor_id=monitor.id,
            type=IncidentType.DOWNTIME,
            status=IncidentStatus.OPEN,
            start_time=TimeHelper.utc_now() - timedelta(minutes=minutes),
            notifications=[],
        )
    )


@pytest.mark.asyncio
async def test_open_incident_records_details_and_notifies(tracker, make_monitor, email_channel):
    monitor = await make_monitor()

    incident = await tracker.open_incident(
        monitor,
        IncidentType.STATUS_CODE_MISMATCH,
        {"status_code": 502, "response_time": 120, "expected_status_code": 200},
    )

    assert incident.status == IncidentStatus.OPEN
    assert incident.is_open
    assert incident.details() == {"status_code": 502, "response_time": 120, "expected_status_code": 200}
    assert email_channel.sent == [(monitor.id, incident.id, NotificationEvent.OPENED)]
    assert [n.event for n in incident.notifications] == [NotificationEvent.OPENED]


@pytest.mark.asyncio
async def test_open_incident_is_suppressed_while_any_incident_is_open(tracker, make_monitor):
    monitor = await make_monitor()

    first = await tracker.open_incident(monitor, IncidentType.SLOW_RESPONSE, {"response_time": 9000})
    second = await tracker.open_incident(monitor, IncidentType.TIMEOUT, {"error_message": "boom"})

    assert first is not None
    assert second is None


@pytest.mark.asyncio
async def test_acknowledged_incident_still_blocks_new_one(tracker, make_monitor):
    monitor = await make_monitor()
    incident = await tracker.open_incident(monitor, IncidentType.TIMEOUT)

    await tracker.acknowledge(incident.id)

    assert await tracker.open_incident(monitor, IncidentType.TIMEOUT) is None


@pytest.mark.asyncio
async def test_concurrent_opens_create_a_single_incident(tracker, incidents, make_monitor):
    monitor = await make_monitor()

    results = await asyncio.gather(
        tracker.open_incident(monitor, IncidentType.TIMEOUT),
        tracker.open_incident(monitor, IncidentType.TIMEOUT),
    )

    assert len([r for r in results if r is not None]) == 1
    assert len(await incidents.find_open_incidents(monitor.id)) == 1


@pytest.mark.asyncio
async def test_acknowledge_is_idempotent(tracker, incidents, make_monitor):
    monitor = await make_monitor()
    incident = await tracker.open_incident(monitor, IncidentType.TIMEOUT)

    await tracker.acknowledge(incident.id)
    again = await tracker.acknowledge(incident.id)

    assert again.status == IncidentStatus.ACKNOWLEDGED
    assert (await incidents.get_by_id(incident.id)).status == IncidentStatus.ACKNOWLEDGED


@pytest.mark.asyncio
async def test_resolved_incident_is_terminal(tracker, incidents, make_monitor):
    monitor = await make_monitor()
    incident = await tracker.open_incident(monitor, IncidentType.TIMEOUT)
    resolved = await tracker.resolve(incident.id)
    end_time = resolved.end_time

    with pytest.raises(InvalidIncidentTransitionError):
        await tracker.acknowledge(incident.id)
    with pytest.raises(InvalidIncidentTransitionError):
        await tracker.resolve(incident.id)

    stored = await incidents.get_by_id(incident.id)
    assert stored.status == IncidentStatus.RESOLVED
    assert stored.end_time == end_time


@pytest.mark.asyncio
async def test_acknowledged_incident_can_be_resolved(tracker, make_monitor, user, email_channel):
    monitor = await make_monitor()
    incident = await tracker.open_incident(monitor, IncidentType.TIMEOUT)
    await tracker.acknowledge(incident.id)

    resolved = await tracker.resolve(incident.id, resolved_by=user.id)

    assert resolved.status == IncidentStatus.RESOLVED
    assert resolved.resolved_by == user.id
    assert [event for _, _, event in email_channel.sent] == [
        NotificationEvent.OPENED,
        NotificationEvent.RECOVERED,
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("minutes", "duration", "text"),
    [
        (12.2, 12, "12m"),
        (65, 65, "1h 5m"),
        (0.2, 0, "N/A"),
    ],
)
async def test_resolve_records_rounded_duration(tracker, incidents, make_monitor, minutes, duration, text):
    monitor = await make_monitor()
    incident = await backdated_incident(incidents, monitor, minutes)

    resolved = await tracker.resolve(incident.id)

    assert resolved.duration == duration
    assert resolved.duration_string() == text
    assert (await incidents.get_by_id(incident.id)).duration == duration


@pytest.mark.asyncio
async def test_resolve_open_incidents_filters_by_type(tracker, incidents, make_monitor):
    monitor = await make_monitor()
    slow = await tracker.open_incident(monitor, IncidentType.SLOW_RESPONSE, dedupe=False)
    timeout = await tracker.open_incident(monitor, IncidentType.TIMEOUT, dedupe=False)

    resolved = await tracker.resolve_open_incidents(monitor, incident_type=IncidentType.SLOW_RESPONSE)

    assert [i.id for i in resolved] == [slow.id]
    remaining = await incidents.find_open_incidents(monitor.id)
    assert [i.id for i in remaining] == [timeout.id]


@pytest.mark.asyncio
async def test_missing_incident_raises_not_found(tracker):
    with pytest.raises(IncidentNotFoundError):
        await tracker.acknowledge(4242)
    with pytest.raises(IncidentNotFoundError):
        await tracker.resolve(4242)


@pytest.mark.asyncio
async def test_tracker_without_notifier_still_opens(incidents, monitors, make_monitor):
    tracker = IncidentTracker(incidents, monitors)
    monitor = await make_monitor()

    incident = await tracker.open_incident(monitor, IncidentType.TIMEOUT)

    assert incident.notifications == []


def hold_reads(monkeypatch, incidents):
    """Pause IncidentRepository.get_by_id after the read until released."""
    read_done = asyncio.Event()
    release = asyncio.Event()
    original_get = incidents.get_by_id

    async def held_get(record_id):
        found = await original_get(record_id)
        read_done.set()
        await release.wait()
        return found

    monkeypatch.setattr(incidents, "get_by_id", held_get)
    return read_done, release


@pytest.mark.asyncio
async def test_acknowledge_racing_recovery_leaves_incident_resolved(
    tracker, incidents, make_monitor, monkeypatch
):
    monitor = await make_monitor()
    incident = await tracker.open_incident(monitor, IncidentType.TIMEOUT)
    read_done, release = hold_reads(monkeypatch, incidents)

    acknowledging = asyncio.create_task(tracker.acknowledge(incident.id))
    await read_done.wait()
    resolved = await tracker.resolve_open_incidents(monitor)
    release.set()

    with pytest.raises(InvalidIncidentTransitionError):
        await acknowledging

    assert [i.id for i in resolved] == [incident.id]
    stored = await incidents.get_by_id(incident.id)
    assert stored.status == IncidentStatus.RESOLVED
    assert stored.end_time is not None
    assert stored.duration == 0


@pytest.mark.asyncio
async def test_manual_resolve_racing_recovery_notifies_once(
    tracker, incidents, make_monitor, email_channel, monkeypatch
):
    monitor = await make_monitor()
    incident = await tracker.open_incident(monitor, IncidentType.TIMEOUT)
    read_done, release = hold_reads(monkeypatch, incidents)

    resolving = asyncio.create_task(tracker.resolve(incident.id, resolved_by=1))
    await read_done.wait()
    await tracker.resolve_open_incidents(monitor)
    release.set()

    with pytest.raises(InvalidIncidentTransitionError):
        await resolving

    assert [event for _, _, event in email_channel.sent] == [
        NotificationEvent.OPENED,
        NotificationEvent.RECOVERED,
    ]
    assert (await incidents.get_by_id(incident.id)).resolved_by is None


@pytest.mark.asyncio
async def test_per_monitor_locks_are_released_after_use(tracker, make_monitor):
    first = await make_monitor(name="first")
    second = await make_monitor(name="second")

    await asyncio.gather(
        tracker.open_incident(first, IncidentType.TIMEOUT),
        tracker.open_incident(first, IncidentType.TIMEOUT),
        tracker.open_incident(second, IncidentType.TIMEOUT),
    )

    assert tracker._locks == {}
