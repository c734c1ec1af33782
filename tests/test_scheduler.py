import asyncio
import time

import pytest

from monitoring.scheduler import Scheduler

from tests.conftest import make_settings


class FakeDatabase:
    def __init__(self):
        self.checks = 0

    async def check_connection(self) -> bool:
        self.checks += 1
        return True


class FakeEngine:
    """Stands in for MonitoringEngine; run_cycle can block or fail on demand."""

    def __init__(self, fail: bool = False, block: bool = False):
        self.db_manager = FakeDatabase()
        self.cycle_count = 0
        self.last_report = None
        self.calls = 0
        self.fail = fail
        self.release = asyncio.Event()
        if not block:
            self.release.set()

    async def run_cycle(self):
        self.calls += 1
        await self.release.wait()
        if self.fail:
            raise RuntimeError("cycle exploded")
        self.cycle_count += 1


async def wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


@pytest.fixture
def scheduler_settings():
    return make_settings(check_interval=5, heartbeat_interval=600)


@pytest.mark.asyncio
async def test_check_cycle_is_due_immediately(scheduler_settings):
    engine = FakeEngine()
    scheduler = Scheduler(engine, scheduler_settings)

    launched = scheduler._dispatch_due_jobs(time.time())
    await asyncio.gather(*launched)

    assert len(launched) == 1
    assert engine.calls == 1
    job = scheduler.get_job("check_cycle")
    assert job.interval_seconds == 300
    assert job.run_count == 1
    assert job.last_run is not None


@pytest.mark.asyncio
async def test_overlapping_run_is_skipped(scheduler_settings):
    engine = FakeEngine(block=True)
    scheduler = Scheduler(engine, scheduler_settings)
    now = time.time()

    first = scheduler._dispatch_due_jobs(now)
    await asyncio.sleep(0)
    second = scheduler._dispatch_due_jobs(now + 300)

    job = scheduler.get_job("check_cycle")
    assert len(first) == 1
    assert second == []
    assert job.skipped_count == 1
    assert engine.calls == 1

    engine.release.set()
    await asyncio.gather(*first)
    assert job.run_count == 1
    assert not job.is_running


@pytest.mark.asyncio
async def test_failing_job_is_counted_and_scheduler_continues(scheduler_settings):
    engine = FakeEngine(fail=True)
    scheduler = Scheduler(engine, scheduler_settings)
    now = time.time()

    await asyncio.gather(*scheduler._dispatch_due_jobs(now))
    await asyncio.gather(*scheduler._dispatch_due_jobs(now + 300))

    job = scheduler.get_job("check_cycle")
    assert job.error_count == 2
    assert job.run_count == 0
    assert engine.calls == 2


@pytest.mark.asyncio
async def test_disabled_job_does_not_fire(scheduler_settings):
    engine = FakeEngine()
    scheduler = Scheduler(engine, scheduler_settings)

    assert scheduler.disable_job("check_cycle")
    assert scheduler._dispatch_due_jobs(time.time()) == []
    assert scheduler.enable_job("check_cycle")
    assert not scheduler.enable_job("missing")


@pytest.mark.asyncio
async def test_heartbeat_checks_database(scheduler_settings):
    engine = FakeEngine()
    scheduler = Scheduler(engine, scheduler_settings)
    scheduler.disable_job("check_cycle")

    launched = scheduler._dispatch_due_jobs(time.time() + 600)
    await asyncio.gather(*launched)

    assert engine.db_manager.checks == 1
    assert scheduler.get_job("health_heartbeat").run_count == 1


@pytest.mark.asyncio
async def test_start_fires_first_cycle_and_stop_cancels_running_job(scheduler_settings):
    engine = FakeEngine(block=True)
    scheduler = Scheduler(engine, scheduler_settings)

    await scheduler.start()
    assert scheduler.is_running
    await wait_for(lambda: engine.calls == 1)

    await scheduler.stop()

    assert not scheduler.is_running
    job = scheduler.get_job("check_cycle")
    assert not job.is_running
    assert job.task.cancelled()


@pytest.mark.asyncio
async def test_job_stats_report_every_job(scheduler_settings):
    scheduler = Scheduler(FakeEngine(), scheduler_settings)

    stats = {s["name"]: s for s in scheduler.get_job_stats()}

    assert set(stats) == {"check_cycle", "health_heartbeat"}
    assert stats["check_cycle"]["skipped_count"] == 0
    assert stats["health_heartbeat"]["interval_seconds"] == 600


def test_register_job_rejects_non_positive_interval(scheduler_settings):
    scheduler = Scheduler(FakeEngine(), scheduler_settings)

    with pytest.raises(ValueError):
        scheduler.register_job("bad", 0, lambda: None)
