"""In-process remote store used for development and tests.

Implements :class:`IRemoteStore` with Redis semantics over a plain dict:
``SET`` clears a previous TTL, ``EXPIRE`` on a missing key is a no-op,
scalar and set commands on the wrong value type fail with ``WRONGTYPE``.
Expiry is evaluated against an injectable clock so tests can move time.

Not shared across processes; for multi-worker deployments use the Redis
adapter.
"""

from __future__ import annotations

import time
from collections import Counter
from typing import Callable

import structlog

from src.interfaces.remote_store import IRemoteStore
from src.utils.errors import RemoteStoreError, TagOperationUnsupportedError

logger = structlog.get_logger(logger_name=__name__)


class MemoryRemoteStore(IRemoteStore):
    """Dict-backed store with Redis-like TTL and type rules.

    Parameters
    ----------
    clock:
        Returns the current time in seconds; defaults to ``time.time``.
    supports_sets:
        When ``False``, ``sadd``/``smembers`` raise
        :class:`TagOperationUnsupportedError`, like a store without set
        commands.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        supports_sets: bool = True,
    ) -> None:
        self._clock = clock
        self._supports_sets = supports_sets
        self._values: dict[str, bytes | set[str]] = {}
        self._expires_at: dict[str, float] = {}
        # Per-command call counts, e.g. calls["get"].
        self.calls: Counter[str] = Counter()

    # ------------------------------------------------------------------
    # IRemoteStore implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> bytes | None:
        self.calls["get"] += 1
        value = self._live(key)
        if isinstance(value, set):
            raise self._wrong_type("GET", key)
        return value

    async def set(self, key: str, value: bytes) -> None:
        self.calls["set"] += 1
        self._values[key] = bytes(value)
        self._expires_at.pop(key, None)

    async def expire(self, key: str, seconds: int) -> bool:
        self.calls["expire"] += 1
        if self._live(key) is None:
            return False
        if seconds <= 0:
            self._evict(key)
        else:
            self._expires_at[key] = self._clock() + seconds
        return True

    async def delete(self, key: str) -> int:
        self.calls["delete"] += 1
        existed = self._live(key) is not None
        self._evict(key)
        return 1 if existed else 0

    async def sadd(self, key: str, member: str) -> int:
        self.calls["sadd"] += 1
        self._require_sets("SADD")
        value = self._live(key)
        if value is None:
            value = set()
            self._values[key] = value
        elif not isinstance(value, set):
            raise self._wrong_type("SADD", key)
        if member in value:
            return 0
        value.add(member)
        return 1

    async def smembers(self, key: str) -> set[str]:
        self.calls["smembers"] += 1
        self._require_sets("SMEMBERS")
        value = self._live(key)
        if value is None:
            return set()
        if not isinstance(value, set):
            raise self._wrong_type("SMEMBERS", key)
        return set(value)

    def get_provider_name(self) -> str:
        return "memory"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def ttl(self, key: str) -> float | None:
        """Seconds until *key* expires, or ``None`` if it has no TTL or is absent."""
        if self._live(key) is None or key not in self._expires_at:
            return None
        return self._expires_at[key] - self._clock()

    def __contains__(self, key: str) -> bool:
        return self._live(key) is not None

    def _live(self, key: str) -> bytes | set[str] | None:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and self._clock() >= expires_at:
            self._evict(key)
            logger.debug("memory_store_expired", key=key)
            return None
        return self._values.get(key)

    def _evict(self, key: str) -> None:
        self._values.pop(key, None)
        self._expires_at.pop(key, None)

    def _require_sets(self, command: str) -> None:
        if not self._supports_sets:
            raise TagOperationUnsupportedError(
                f"unknown command '{command}'", provider_name=self.get_provider_name()
            )

    def _wrong_type(self, command: str, key: str) -> RemoteStoreError:
        return RemoteStoreError(
            f"WRONGTYPE {command} against key {key!r} holding the wrong kind of value",
            provider_name=self.get_provider_name(),
        )
