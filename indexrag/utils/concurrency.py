"""Shared concurrency primitives for the processing pipeline.

Three patterns are exposed:

1. **throttled_gather** -- a drop-in replacement for ``asyncio.gather`` that
   wraps each awaitable in a semaphore acquire/release.  The bulk sweep uses
   it so a large backlog of pending documents does not embed all at once.

2. **KeyedLockRegistry** -- one ``asyncio.Lock`` per key.  The orchestrator
   takes the lock for a document id before touching that document's status
   or chunks, so two runs for the same document never interleave while
   different documents still proceed concurrently.

3. **CancellationToken** -- a cooperative cancel flag checked by long-running
   work at well-defined boundaries.  It is thread-safe so it can be flipped
   from a worker thread or a request handler.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Hashable
from typing import TypeVar

import structlog

from indexrag.utils.logging import get_logger

_T = TypeVar("_T")

# Default bound on concurrent document runs during a bulk sweep.  Embedding
# is CPU/GPU bound for local models, so a small value keeps the event loop
# responsive.
_DEFAULT_SEMAPHORE_SIZE = 3

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with optional semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional semaphore for concurrency control.  A fresh semaphore of
        size ``_DEFAULT_SEMAPHORE_SIZE`` is used when omitted.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        semaphore = asyncio.Semaphore(_DEFAULT_SEMAPHORE_SIZE)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


class KeyedLockRegistry:
    """Lazily created ``asyncio.Lock`` per key.

    Locks are never removed while held; idle locks are dropped by
    :meth:`discard_idle` so the registry does not grow with every document
    ever processed.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}

    def lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def discard_idle(self) -> int:
        """Drop locks nobody holds or waits on.  Returns how many were removed.

        A released lock can still have waiters queued on it; dropping it
        would hand the next caller of :meth:`lock_for` a fresh lock and let
        two runs for the same key proceed at once.
        """
        idle = [
            key
            for key, lock in self._locks.items()
            if not lock.locked() and not getattr(lock, "_waiters", None)
        ]
        for key in idle:
            del self._locks[key]
        return len(idle)

    def __len__(self) -> int:
        return len(self._locks)


class CancellationToken:
    """Thread-safe cooperative cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if not self._event.is_set():
            _logger.debug("cancellation_requested")
        self._event.set()
