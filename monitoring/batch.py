"""
============================================================================
UPTIME MONITOR - BATCH EXECUTOR
============================================================================
Runs an async worker over a list of items in fixed-size groups. Items in
one group run concurrently; the next group starts only after the whole
previous group has finished. A worker that raises never affects its
siblings or later groups: the exception is captured in that item's result.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from utils.helpers import DataHelper
from utils.logger import get_logger


logger = get_logger("BatchExecutor")


@dataclass
class BatchItemResult:
    """What one worker call produced: a result or the exception it raised."""
    item: Any
    result: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchExecutor:
    """
    Bounded fan-out over a list of items.

    Usage
    -----
        executor = BatchExecutor(batch_size=5)
        results = await executor.run(monitors, engine.check_monitor)
    """

    def __init__(self, batch_size: int = 5):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size
        self.last_batch_sizes: List[int] = []

    def partition(self, items: Sequence[Any]) -> List[List[Any]]:
        """Consecutive groups of at most ``batch_size`` items, in input order."""
        return DataHelper.chunk_list(list(items), self.batch_size)

    async def run(
        self,
        items: Sequence[Any],
        worker: Callable[[Any], Awaitable[Any]],
    ) -> List[BatchItemResult]:
        """
        Apply *worker* to every item, one group at a time.

        Returns
        -------
        list[BatchItemResult]
            One entry per item, in input order.
        """
        batches = self.partition(items)
        self.last_batch_sizes = [len(batch) for batch in batches]
        results: List[BatchItemResult] = []

        for index, batch in enumerate(batches, start=1):
            logger.debug(f"[Batch] Processing batch {index}/{len(batches)} ({len(batch)} items)")

            outcomes = await asyncio.gather(
                *(worker(item) for item in batch),
                return_exceptions=True,
            )

            for item, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    results.append(BatchItemResult(item=item, error=outcome))
                else:
                    results.append(BatchItemResult(item=item, result=outcome))

        return results
