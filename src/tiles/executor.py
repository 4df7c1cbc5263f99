from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

T = TypeVar('T')
R = TypeVar('R')


async def run_bounded(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    concurrency: int,
    progress_step: Callable[[int], Awaitable[None]] | None = None,
) -> list[R]:
    """
    Run worker over items with at most `concurrency` calls in flight.

    Returns results in input order once every call has finished. Worker
    exceptions propagate; errors raised by progress_step are ignored.
    Cancelling the caller cancels all pending calls.
    """
    sem = asyncio.Semaphore(max(1, concurrency))

    async def bound(item: T) -> R:
        async with sem:
            result = await worker(item)
        if progress_step:
            with contextlib.suppress(Exception):
                await progress_step(1)
        return result

    return list(await asyncio.gather(*(bound(item) for item in items)))
