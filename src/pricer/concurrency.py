"""Bounded-concurrency processing of async work items."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def process_with_concurrency(
    items: Iterable[T],
    limit: int,
    fn: Callable[[T], Awaitable[R]],
    should_continue: Callable[[], bool] | None = None,
) -> AsyncIterator[R]:
    """Run ``fn`` over ``items`` with at most ``limit`` calls in flight.

    Results are yielded in completion order. As each call finishes a new one
    starts, so there is no barrier between groups of items. When
    ``should_continue`` returns False no new item is started, but calls
    already in flight are awaited and their results still yielded.

    Exceptions raised by ``fn`` propagate to the consumer.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    iterator = iter(items)
    in_flight: set[asyncio.Future[R]] = set()

    def start_next() -> None:
        if should_continue is not None and not should_continue():
            return
        try:
            item = next(iterator)
        except StopIteration:
            return
        in_flight.add(asyncio.ensure_future(fn(item)))

    for _ in range(limit):
        start_next()

    try:
        while in_flight:
            done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                in_flight.discard(task)
                result = task.result()
                start_next()
                yield result
    finally:
        for task in in_flight:
            task.cancel()
