from exceptions import (
    DatabaseNotFoundError,
    IncidentNotFoundError,
    InvalidIncidentTransitionError,
    MonitorNotFoundError,
    MonitoringException,
    NotifierDeliveryFailed,
    ProbeFailure,
    ProbeTimeoutError,
    StorageFailure,
    UptimeMonitorException,
)


def test_hierarchy():
    assert issubclass(ProbeTimeoutError, ProbeFailure)
    assert issubclass(ProbeFailure, MonitoringException)
    assert issubclass(NotifierDeliveryFailed, UptimeMonitorException)
    assert issubclass(IncidentNotFoundError, DatabaseNotFoundError)
    assert issubclass(MonitorNotFoundError, StorageFailure)


def test_to_dict_carries_details():
    error = InvalidIncidentTransitionError(
        "Cannot acknowledge a resolved incident",
        incident_id=3,
        current_status="resolved",
    )

    data = error.to_dict()

    assert data["type"] == "InvalidIncidentTransitionError"
    assert data["error_code"] == 3200
    assert data["details"] == {"incident_id": 3, "current_status": "resolved"}
    assert str(error) == "[3200] Cannot acknowledge a resolved incident"


def test_not_found_messages():
    assert IncidentNotFoundError(9).message == "Incident 9 not found"
    assert MonitorNotFoundError(4).details["record_id"] == 4


def test_probe_failure_type_and_url():
    failure = ProbeFailure("Request failed: bad", url="https://example.com", error_type="RemoteProtocolError")

    assert failure.error_type == "RemoteProtocolError"
    assert failure.details["url"] == "https://example.com"
    assert ProbeTimeoutError().error_type == "Timeout"
