"""
============================================================================
UPTIME MONITOR - HTTP PROBER
============================================================================
Performs exactly one HTTP request against a monitor's target and reports
how it went. Any HTTP status counts as a completed probe; deciding whether
that status is acceptable is the Evaluator's job. Transport-level failures
(timeout, DNS, refused connection, TLS, protocol errors) come back as a
ProbeFailure value instead of being raised.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional

import httpx

from config.settings import Settings
from database.models import Monitor
from exceptions.monitoring import ProbeConnectionError, ProbeFailure, ProbeTimeoutError
from utils.helpers import StringHelper
from utils.logger import get_logger


logger = get_logger("Prober")


# ============================================================================
# PROBE RESULT
# ============================================================================

class ProbeResult:
    """
    Outcome of a single probe: elapsed time in milliseconds plus either
    the HTTP status code or the transport failure.
    """
    __slots__ = ("elapsed_ms", "status_code", "failure", "method", "url")

    def __init__(
        self,
        elapsed_ms: int,
        status_code: Optional[int] = None,
        failure: Optional[ProbeFailure] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ):
        if (status_code is None) == (failure is None):
            raise ValueError("ProbeResult needs exactly one of status_code or failure")

        self.elapsed_ms = elapsed_ms
        self.status_code = status_code
        self.failure = failure
        self.method = method
        self.url = url

    @property
    def completed(self) -> bool:
        """True when an HTTP response (of any status) was received."""
        return self.failure is None

    @property
    def error_message(self) -> Optional[str]:
        return self.failure.message if self.failure else None

    @property
    def error_type(self) -> Optional[str]:
        return self.failure.error_type if self.failure else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "elapsed_ms": self.elapsed_ms,
            "status_code": self.status_code,
            "error_message": self.error_message,
            "error_type": self.error_type,
            "method": self.method,
            "url": self.url,
        }

    def __repr__(self) -> str:
        outcome = self.status_code if self.completed else self.error_type
        return f"<ProbeResult {outcome} in {self.elapsed_ms}ms>"


# ============================================================================
# HTTP PROBER
# ============================================================================

class HTTPProber:
    """
    Sends one request per call using an httpx AsyncClient.

    Features
    --------
    • Uses the monitor's method, URL and ordered headers
    • Adds a default User-Agent when the monitor sets none
    • Absolute deadline of ``monitor.timeout`` seconds
    • No retries: one call, one request
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """
        Parameters
        ----------
        settings : Settings
            Application settings; the ``monitoring`` section supplies
            defaults for timeout, User-Agent, redirects and TLS checks.
        transport : httpx.AsyncBaseTransport | None
            Optional transport, e.g. ``httpx.MockTransport`` in tests.
        clock : callable
            Monotonic clock in seconds used to time the request.
        """
        self.settings = settings
        self.default_timeout = settings.monitoring.default_timeout
        self.user_agent = settings.monitoring.user_agent
        self.follow_redirects = settings.monitoring.follow_redirects
        self.verify_ssl = settings.monitoring.verify_ssl
        self._transport = transport
        self._clock = clock

    def _build_headers(self, monitor: Monitor) -> httpx.Headers:
        headers = httpx.Headers(monitor.request_headers())
        if "user-agent" not in headers:
            headers["User-Agent"] = self.user_agent
        return headers

    def _elapsed_ms(self, start: float) -> int:
        return int(round((self._clock() - start) * 1000))

    async def probe(self, monitor: Monitor) -> ProbeResult:
        """
        Execute one HTTP probe against *monitor*.

        Returns
        -------
        ProbeResult
            Always returned; network problems are carried in ``failure``.
        """
        timeout = monitor.timeout or self.default_timeout
        method = monitor.method.value if monitor.method else "GET"
        url = monitor.url
        headers = self._build_headers(monitor)

        start = self._clock()
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                follow_redirects=self.follow_redirects,
                verify=self.verify_ssl,
                transport=self._transport,
            ) as client:
                response = await asyncio.wait_for(
                    client.request(method=method, url=url, headers=headers),
                    timeout=timeout,
                )

            elapsed_ms = self._elapsed_ms(start)
            logger.debug(f"[HTTP] {method} {url} → {response.status_code} in {elapsed_ms}ms")
            return ProbeResult(
                elapsed_ms=elapsed_ms,
                status_code=response.status_code,
                method=method,
                url=url,
            )

        except (httpx.TimeoutException, asyncio.TimeoutError):
            failure: ProbeFailure = ProbeTimeoutError(
                message=f"Request timed out after {timeout}s",
                url=url,
            )
        except httpx.ConnectError as e:
            failure = ProbeConnectionError(
                message=f"Connection error: {StringHelper.truncate(str(e) or type(e).__name__, 200)}",
                url=url,
                cause=e,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            failure = ProbeFailure(
                message=f"Request failed: {StringHelper.truncate(str(e) or type(e).__name__, 200)}",
                url=url,
                error_type=type(e).__name__,
                cause=e,
            )

        elapsed_ms = self._elapsed_ms(start)
        logger.debug(f"[HTTP] {method} {url} failed after {elapsed_ms}ms: {failure.message}")
        return ProbeResult(elapsed_ms=elapsed_ms, failure=failure, method=method, url=url)
