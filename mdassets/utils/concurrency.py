"""Batched concurrent execution."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from mdassets.utils.logging import BoundLogger, get_logger

T = TypeVar("T")
R = TypeVar("R")

DEADLINE_EXCEEDED = "run deadline exceeded before the batch started"


@dataclass
class TaskResult(Generic[T]):
    """Result of a concurrent task."""

    item: T
    success: bool
    result: Any | None = None
    error: str | None = None


class BatchRunner:
    """Run an async function over items in fixed-width sequential batches.

    Every task of a batch settles (success or failure) before the next batch
    starts, which bounds the number of in-flight operations to ``batch_size``.
    Within a batch results are recorded in completion order.

    An optional ``deadline`` (seconds, measured from the start of ``run``) is
    checked between batches; items of batches that had not started when it
    expired are reported as failed without being attempted.
    """

    def __init__(
        self,
        batch_size: int,
        deadline: float | None = None,
        logger: BoundLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.batch_size = batch_size
        self.deadline = deadline
        self._log = logger or get_logger(__name__)
        self._clock = clock

    def batches(self, items: list[T]) -> list[list[T]]:
        """Split items into consecutive batches."""
        return [items[i : i + self.batch_size] for i in range(0, len(items), self.batch_size)]

    async def run(
        self,
        items: list[T],
        func: Callable[[T], Awaitable[R]],
        on_complete: Callable[[TaskResult[T]], None] | None = None,
    ) -> list[TaskResult[T]]:
        """Process all items and return one TaskResult per item.

        Args:
            items: Items to process
            func: Async function to apply to each item
            on_complete: Optional callback invoked as each task settles

        Returns:
            Task results in completion order
        """
        results: list[TaskResult[T]] = []
        started = self._clock()
        batches = self.batches(items)

        for index, batch in enumerate(batches):
            if self.deadline is not None and self._clock() - started >= self.deadline:
                skipped = [item for pending in batches[index:] for item in pending]
                self._log.warning(
                    "Run deadline exceeded, skipping remaining items",
                    deadline=self.deadline,
                    skipped=len(skipped),
                )
                for item in skipped:
                    result = TaskResult(item=item, success=False, error=DEADLINE_EXCEEDED)
                    results.append(result)
                    if on_complete:
                        on_complete(result)
                break

            self._log.debug("Starting batch", batch=index + 1, total=len(batches), size=len(batch))
            for settled in asyncio.as_completed([self._settle(item, func) for item in batch]):
                result = await settled
                results.append(result)
                if on_complete:
                    on_complete(result)

        return results

    async def _settle(self, item: T, func: Callable[[T], Awaitable[R]]) -> TaskResult[T]:
        try:
            return TaskResult(item=item, success=True, result=await func(item))
        except Exception as e:
            self._log.warning("Task failed", item=str(item), error=str(e))
            return TaskResult(item=item, success=False, error=str(e))
