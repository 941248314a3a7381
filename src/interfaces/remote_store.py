"""Abstract base class for the shared remote key-value store.

The remote store is the slow, shared tier behind the in-process memo.  It
speaks byte strings: scalar get/set/expire/delete plus best-effort set
collections (add/members).  Implementations must bound every command by
the configured timeout.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IRemoteStore(ABC):
    """Contract for the remote tier of the render cache.

    Every method may raise :class:`~src.utils.errors.RemoteTimeoutError`
    when its deadline passes and :class:`~src.utils.errors.RemoteStoreError`
    when the store reports a failure.  ``sadd`` and ``smembers`` raise
    :class:`~src.utils.errors.TagOperationUnsupportedError` when the store
    has no set-collection commands.
    """

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the bytes stored under *key*, or ``None`` if absent."""

    @abstractmethod
    async def set(self, key: str, value: bytes) -> None:
        """Store *value* under *key*, replacing any previous value and TTL."""

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> bool:
        """Set the TTL of *key*; return ``False`` if the key does not exist."""

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Delete *key*; return the number of keys removed (0 or 1)."""

    @abstractmethod
    async def sadd(self, key: str, member: str) -> int:
        """Add *member* to the set at *key*; return 1 if it was new."""

    @abstractmethod
    async def smembers(self, key: str) -> set[str]:
        """Return the members of the set at *key* (empty if absent)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the backend identifier used in logs and errors."""

    async def aclose(self) -> None:
        """Release connections held by the store.  No-op by default."""
        return None
