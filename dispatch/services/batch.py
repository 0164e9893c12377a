"""Chunked concurrent execution for upstream API lookups.

Geocoding and routing both fan out one request per item. To stay under the
provider's rate limits, items are processed in fixed-size chunks: every item
in a chunk runs concurrently, the whole chunk is awaited, then the runner
sleeps for a fixed delay before starting the next one. Results always come
back in input order.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from dispatch.config import settings
from dispatch.services.events import BATCH_COMPLETED, PipelineObserver, emit

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive lists of at most ``size`` elements."""
    if size < 1:
        raise ValueError(f"chunk size must be at least 1, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class BatchRunner:
    """Fixed-window rate limiter for async lookups.

    Args:
        chunk_size: Number of in-flight requests per chunk. Defaults to settings.
        delay_seconds: Pause between chunks. Defaults to settings.
        observer: Receives a ``batch_completed`` event per run.
        name: Label used in logs and events (e.g. 'geocode', 'routes').
    """

    def __init__(
        self,
        chunk_size: int | None = None,
        delay_seconds: float | None = None,
        observer: PipelineObserver | None = None,
        name: str = "batch",
    ) -> None:
        self.chunk_size = chunk_size if chunk_size is not None else settings.batch_chunk_size
        self.delay_seconds = (
            delay_seconds if delay_seconds is not None else settings.batch_delay_seconds
        )
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {self.chunk_size}")
        self.observer = observer
        self.name = name

    async def run(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
    ) -> list[R]:
        """Run ``worker`` over ``items`` chunk by chunk.

        Exceptions raised by ``worker`` propagate; workers that must not
        abort the batch are expected to return a failure value instead.

        Args:
            items: Inputs to process.
            worker: Coroutine function called once per item.

        Returns:
            One result per item, in input order.
        """
        chunks = chunked(items, self.chunk_size)
        results: list[R] = []

        for index, chunk in enumerate(chunks):
            chunk_results = await asyncio.gather(*(worker(item) for item in chunk))
            results.extend(chunk_results)
            if index < len(chunks) - 1 and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)

        logger.debug(
            "%s batch finished: %d items in %d chunks",
            self.name,
            len(results),
            len(chunks),
        )
        emit(
            self.observer,
            BATCH_COMPLETED,
            batch=self.name,
            items=len(results),
            chunks=len(chunks),
        )
        return results
