"""Shared resources behind every tiered cache provider in a process.

The host builds a short-lived provider per render; everything that must
outlive a render lives on one :class:`CacheRuntime` instead:

- the remote store (and its lazily created connection),
- the local memo tier,
- the tag index (and its per-process strategy choice),
- the degradation recorder,
- the background tasks spawned by providers (stale-entry deletes).

``src.main.get_cache_runtime`` creates the process-wide instance on first
use; tests build their own around a :class:`MemoryRemoteStore`.
"""

from __future__ import annotations

import asyncio
import threading
import time
import weakref
from collections.abc import Coroutine
from typing import Any, Callable

import structlog

from src.interfaces.remote_store import IRemoteStore
from src.models.cache import CacheConfig
from src.providers.cache.local_memo import LocalMemo
from src.providers.cache.tag_index import TagIndex
from src.utils.degrade import DegradationRecorder

logger = structlog.get_logger(logger_name=__name__)


class CacheRuntime:
    """Lifecycle-managed handle on the shared cache resources."""

    def __init__(
        self,
        config: CacheConfig,
        store: IRemoteStore,
        memo: LocalMemo,
        tag_index: TagIndex,
        recorder: DegradationRecorder,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.store = store
        self.memo = memo
        self.tag_index = tag_index
        self.recorder = recorder
        self._clock = clock
        self._background: set[asyncio.Task[Any]] = set()
        self._delete_semaphores: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, asyncio.Semaphore
        ] = weakref.WeakKeyDictionary()
        self._semaphore_lock = threading.Lock()

    @classmethod
    def create(
        cls,
        config: CacheConfig,
        store: IRemoteStore,
        clock: Callable[[], float] = time.time,
    ) -> CacheRuntime:
        """Assemble a runtime around *store* from *config*."""
        recorder = DegradationRecorder()
        memo = LocalMemo(
            ttl_s=config.in_memory_ttl_s,
            max_entries=config.in_memory_max_entries,
            enabled=config.in_memory_caching,
            clock=clock,
        )
        tag_index = TagIndex(store, recorder, prefix=config.tag_key_prefix)
        return cls(config, store, memo, tag_index, recorder, clock=clock)

    def now_ms(self) -> int:
        """Current time in epoch milliseconds, from the runtime clock."""
        return int(self._clock() * 1000)

    @property
    def delete_semaphore(self) -> asyncio.Semaphore:
        """Delete-concurrency bound, one semaphore per running event loop.

        An asyncio semaphore is bound to the loop it first waits on.
        """
        loop = asyncio.get_running_loop()
        with self._semaphore_lock:
            semaphore = self._delete_semaphores.get(loop)
            if semaphore is None:
                semaphore = asyncio.Semaphore(self.config.tag_delete_concurrency)
                self._delete_semaphores[loop] = semaphore
            return semaphore

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run *coro* in the background, keeping a reference until it finishes."""
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    @property
    def pending_background(self) -> int:
        return len(self._background)

    async def drain(self) -> None:
        """Wait for every background task spawned so far."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        """Drain background work and close the remote store's connection."""
        await self.drain()
        await self.store.aclose()
        self.memo.clear()
        logger.info("cache_runtime_closed", degradations=self.recorder.snapshot())
