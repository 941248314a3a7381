"""Shared asyncio primitives for talking to the remote store.

Two patterns are exposed:

1. **with_deadline** -- Bounds one remote command by a timeout and turns the
   expiry into :class:`RemoteTimeoutError`.  Every remote command goes
   through it; there is no unbounded wait anywhere in the cache core.

2. **throttled_gather** -- A drop-in replacement for ``asyncio.gather`` that
   wraps each awaitable in a semaphore acquire/release.  Used for the
   per-key delete fan-out of tag invalidation, where one failure must not
   stop the others.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from src.utils.errors import RemoteTimeoutError

_T = TypeVar("_T")


async def with_deadline(
    awaitable: Awaitable[_T],
    timeout_s: float,
    *,
    command: str,
    provider_name: str | None = None,
) -> _T:
    """Await *awaitable*, giving up after *timeout_s* seconds.

    The pending command is cancelled on expiry, not retried.

    Raises
    ------
    RemoteTimeoutError
        If the deadline passes first.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        raise RemoteTimeoutError(
            f"{command} did not complete within {timeout_s * 1000:.0f}ms",
            provider_name=provider_name,
        ) from exc


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` slots at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Bounds how many run at once.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)
