import asyncio

import pytest

from monitoring.batch import BatchExecutor


def test_partition_keeps_order_and_bounds_groups():
    executor = BatchExecutor(batch_size=5)

    groups = executor.partition(list(range(12)))

    assert [len(g) for g in groups] == [5, 5, 2]
    assert [item for group in groups for item in group] == list(range(12))


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        BatchExecutor(batch_size=0)


@pytest.mark.asyncio
async def test_groups_run_concurrently_inside_and_sequentially_across():
    executor = BatchExecutor(batch_size=5)
    active = 0
    peak = 0
    finished = []

    async def worker(item):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        finished.append(item)
        return item * 2

    results = await executor.run(list(range(12)), worker)

    assert executor.last_batch_sizes == [5, 5, 2]
    assert peak == 5
    # Every item of a group finishes before any item of the next group.
    assert set(finished[:5]) == set(range(5))
    assert set(finished[5:10]) == set(range(5, 10))
    assert [r.result for r in results] == [i * 2 for i in range(12)]


@pytest.mark.asyncio
async def test_worker_error_is_isolated():
    executor = BatchExecutor(batch_size=2)

    async def worker(item):
        if item == 1:
            raise RuntimeError("probe exploded")
        return item

    results = await executor.run([0, 1, 2, 3], worker)

    assert [r.item for r in results] == [0, 1, 2, 3]
    assert [r.ok for r in results] == [True, False, True, True]
    assert isinstance(results[1].error, RuntimeError)
    assert results[3].result == 3


@pytest.mark.asyncio
async def test_empty_input_runs_nothing():
    executor = BatchExecutor()

    assert await executor.run([], lambda item: item) == []
    assert executor.last_batch_sizes == []
