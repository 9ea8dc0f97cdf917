"""Concurrency-limited fan-out over a list of items."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from floodgate.core.logging import get_logger

log = get_logger(__name__, component="parallel")

T = TypeVar("T")
R = TypeVar("R")


async def _drain(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    concurrency: int,
) -> list[R | None]:
    results: list[R | None] = [None] * len(items)
    queue: asyncio.Queue[int] = asyncio.Queue()
    for index in range(len(items)):
        queue.put_nowait(index)

    async def worker() -> None:
        while True:
            try:
                index = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                results[index] = await fn(items[index])
            except Exception as exc:
                log.error("parallel_item_failed", index=index, error=str(exc))

    workers = [asyncio.create_task(worker()) for _ in range(min(concurrency, len(items)))]
    await asyncio.gather(*workers)
    return results


async def in_parallel(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    concurrency: int = 20,
    chunk_size: int | None = None,
    chunk_delay: float = 0,
) -> list[R | None]:
    """Apply ``fn`` to every item with at most ``concurrency`` calls in flight.

    Args:
        items: Work items.
        fn: Async callable applied to each item.
        concurrency: Number of worker tasks draining the shared queue.
        chunk_size: When set, items are processed in consecutive chunks.
        chunk_delay: Seconds to wait between chunks.

    Returns:
        One result per item in input order. An item whose call raised yields
        ``None`` and the error is logged.
    """
    items = list(items)
    if not items:
        return []
    concurrency = max(concurrency, 1)
    if not chunk_size or chunk_size >= len(items):
        return await _drain(items, fn, concurrency)

    results: list[Any] = []
    for start in range(0, len(items), chunk_size):
        if start and chunk_delay:
            await asyncio.sleep(chunk_delay)
        chunk = items[start:start + chunk_size]
        results.extend(await _drain(chunk, fn, concurrency))
        log.debug("parallel_chunk_done", processed=start + len(chunk), total=len(items))
    return results
