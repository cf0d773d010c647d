"""Fixed-size batch runner with an inter-batch delay."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class BatchThrottle:
    """
    Run an async function over items in fixed-size concurrent batches.

    Each batch is awaited as a whole before the next one starts, and
    ``delay`` seconds pass between batches. The sleep coroutine is injected
    so callers can drive the throttle without real timers.
    """

    def __init__(
        self,
        batch_size: int = 20,
        delay: float = 0.1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if delay < 0:
            raise ValueError("delay must not be negative")
        self.batch_size = batch_size
        self.delay = delay
        self._sleep = sleep

    def batch_count(self, total: int) -> int:
        return (total + self.batch_size - 1) // self.batch_size

    async def run(
        self,
        items: Sequence[T],
        func: Callable[[T], Awaitable[R]],
        on_batch: ProgressCallback | None = None,
    ) -> list[R]:
        """Apply *func* to every item; results come back in input order.

        *func* is expected to handle its own per-item failures. An exception
        that escapes it propagates once its batch has settled.
        """
        total_batches = self.batch_count(len(items))
        results: list[R] = []

        for batch_index, start in enumerate(range(0, len(items), self.batch_size)):
            batch = items[start : start + self.batch_size]
            if on_batch is not None:
                on_batch(batch_index, total_batches)
            logger.debug("Running batch %d/%d (%d items)", batch_index + 1, total_batches, len(batch))

            settled = await asyncio.gather(*(func(item) for item in batch), return_exceptions=True)
            for outcome in settled:
                if isinstance(outcome, BaseException):
                    raise outcome
            results.extend(settled)  # type: ignore[arg-type]

            if start + self.batch_size < len(items) and self.delay:
                await self._sleep(self.delay)

        return results
