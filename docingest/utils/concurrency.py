"""Bounded-concurrency helpers for embedding batches.

:func:`throttled_gather` is a drop-in for ``asyncio.gather`` that wraps each
awaitable in a semaphore acquire/release, so a batch of embedding calls never
exceeds the provider's in-flight budget.  Pass a long-lived *semaphore* to
share one budget across several concurrent gathers (e.g. documents embedded
side by side).
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

_T = TypeVar("_T")


async def throttled_gather(
    coros: list[Awaitable[_T]],
    limit: int = 1,
    *,
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most *limit* at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    limit:
        Maximum number running at once (values below 1 are treated as 1).
        Ignored when *semaphore* is given.
    semaphore:
        Shared semaphore bounding these awaitables together with any other
        holder of the same semaphore.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than raised, so every awaitable runs to completion.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    gate = semaphore or asyncio.Semaphore(max(1, limit))

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with gate:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


def first_exception(results: list[object]) -> BaseException | None:
    """Return the first exception in a ``throttled_gather`` result list."""
    for result in results:
        if isinstance(result, BaseException):
            return result
    return None
