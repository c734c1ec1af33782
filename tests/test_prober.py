import asyncio
from typing import List

import httpx
import pytest

from database.models import HTTPMethod, Monitor
from exceptions.monitoring import ProbeConnectionError, ProbeFailure, ProbeTimeoutError
from monitoring.prober import HTTPProber, ProbeResult

from tests.conftest import raising_transport, status_transport, step_clock


def target(**fields) -> Monitor:
    values = {
        "id": 1,
        "name": "Example",
        "url": "https://example.com/health",
        "method": HTTPMethod.GET,
        "headers": {},
        "timeout": 5,
        "expected_status_code": 200,
    }
    values.update(fields)
    return Monitor(**values)


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [200, 301, 404, 503])
async def test_any_status_is_a_completed_probe(settings, status_code):
    prober = HTTPProber(settings, transport=status_transport(status_code))

    result = await prober.probe(target())

    assert result.completed
    assert result.status_code == status_code
    assert result.failure is None
    assert result.elapsed_ms >= 0


@pytest.mark.asyncio
async def test_elapsed_time_comes_from_clock(settings):
    prober = HTTPProber(settings, transport=status_transport(200), clock=step_clock([1.25]))

    result = await prober.probe(target())

    assert result.elapsed_ms == 1250


@pytest.mark.asyncio
async def test_sends_method_headers_and_default_user_agent(settings):
    seen: List[httpx.Request] = []
    prober = HTTPProber(settings, transport=status_transport(200, seen))

    await prober.probe(target(method=HTTPMethod.POST, headers={"X-Api-Key": "abc", "Accept": "text/plain"}))

    request = seen[0]
    assert request.method == "POST"
    assert request.headers["X-Api-Key"] == "abc"
    assert request.headers["Accept"] == "text/plain"
    assert request.headers["User-Agent"] == "UptimeMonitor/1.0"


@pytest.mark.asyncio
async def test_monitor_user_agent_is_kept(settings):
    seen: List[httpx.Request] = []
    prober = HTTPProber(settings, transport=status_transport(200, seen))

    await prober.probe(target(headers={"User-Agent": "custom/2.0"}))

    assert seen[0].headers.get_list("User-Agent") == ["custom/2.0"]


@pytest.mark.asyncio
async def test_httpx_timeout_becomes_timeout_failure(settings):
    prober = HTTPProber(
        settings,
        transport=raising_transport(lambda request: httpx.ReadTimeout("slow", request=request)),
    )

    result = await prober.probe(target(timeout=7))

    assert not result.completed
    assert result.status_code is None
    assert isinstance(result.failure, ProbeTimeoutError)
    assert result.error_type == "Timeout"
    assert result.error_message == "Request timed out after 7s"


@pytest.mark.asyncio
async def test_deadline_is_absolute(settings):
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    prober = HTTPProber(settings, transport=httpx.MockTransport(handler))

    result = await prober.probe(target(timeout=0.05))

    assert isinstance(result.failure, ProbeTimeoutError)


@pytest.mark.asyncio
async def test_connect_error_becomes_connection_failure(settings):
    prober = HTTPProber(
        settings,
        transport=raising_transport(lambda request: httpx.ConnectError("Name or service not known", request=request)),
    )

    result = await prober.probe(target())

    assert isinstance(result.failure, ProbeConnectionError)
    assert result.error_type == "ConnectError"
    assert "Name or service not known" in result.error_message


@pytest.mark.asyncio
async def test_other_transport_errors_keep_their_type(settings):
    prober = HTTPProber(
        settings,
        transport=raising_transport(lambda request: httpx.RemoteProtocolError("bad frame", request=request)),
    )

    result = await prober.probe(target())

    assert type(result.failure) is ProbeFailure
    assert result.error_type == "RemoteProtocolError"


@pytest.mark.asyncio
async def test_missing_timeout_uses_default(settings):
    prober = HTTPProber(
        settings,
        transport=raising_transport(lambda request: httpx.ConnectTimeout("slow", request=request)),
    )

    result = await prober.probe(target(timeout=None))

    assert result.error_message == f"Request timed out after {settings.monitoring.default_timeout}s"


def test_probe_result_needs_exactly_one_outcome():
    with pytest.raises(ValueError):
        ProbeResult(elapsed_ms=10)
    with pytest.raises(ValueError):
        ProbeResult(elapsed_ms=10, status_code=200, failure=ProbeFailure("x"))
