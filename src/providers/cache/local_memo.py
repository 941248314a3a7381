"""Process-local memo tier in front of the remote store.

Absorbs bursts of duplicate ``get`` calls for the same key: after one remote
hit, further lookups within the memo TTL (10 s by default) are answered from
process memory.  It is never the source of truth, so entries are bounded by
the memo's own short TTL regardless of the remote entry's staleness.

Backed by ``cachetools.TLRUCache`` so each entry carries its own expiry
and the map stays bounded in size.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Callable

import structlog
from cachetools import TLRUCache

from src.models.cache import CacheResult

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class LocalMemoEntry:
    """A memoised ``get`` result and the instant it stops being visible."""

    result: CacheResult
    expires_at: float


def _time_to_use(_key: str, entry: LocalMemoEntry, _now: float) -> float:
    return entry.expires_at


class LocalMemo:
    """Short-TTL, size-bounded memo of recent ``get`` results.

    Parameters
    ----------
    ttl_s:
        Default lifetime of a stored entry, in seconds.
    max_entries:
        Maximum number of entries before the least-recently-used one is
        evicted.
    enabled:
        When ``False`` every operation is a no-op and every lookup misses.
    clock:
        Returns the current time in seconds; defaults to ``time.time``.
    """

    def __init__(
        self,
        ttl_s: float = 10.0,
        max_entries: int = 10000,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl_s = ttl_s
        self._enabled = enabled
        self._clock = clock
        self._entries: TLRUCache[str, LocalMemoEntry] = TLRUCache(
            maxsize=max_entries, ttu=_time_to_use, timer=clock
        )
        # cachetools caches are not thread-safe.
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def lookup(self, key: str) -> CacheResult | None:
        """Return the memoised result for *key*, or ``None`` if absent or expired."""
        if not self._enabled:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                self._entries.pop(key, None)
                return None
        logger.debug("local_memo_hit", key=key)
        return entry.result

    def store(self, key: str, result: CacheResult, ttl_s: float | None = None) -> None:
        """Memoise *result* under *key* for *ttl_s* seconds (default: the memo TTL)."""
        if not self._enabled:
            return
        lifetime = self._ttl_s if ttl_s is None else ttl_s
        entry = LocalMemoEntry(result=result, expires_at=self._clock() + lifetime)
        with self._lock:
            if lifetime <= 0:
                # TLRUCache silently skips already-expired items, which would
                # leave an older entry visible.
                self._entries.pop(key, None)
                return
            self._entries[key] = entry

    def remove(self, key: str) -> None:
        if not self._enabled:
            return
        with self._lock:
            self._entries.pop(key, None)

    def remove_all(self, keys: Iterable[str]) -> None:
        if not self._enabled:
            return
        with self._lock:
            for key in keys:
                self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)
