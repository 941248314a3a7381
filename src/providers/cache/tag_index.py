"""Reverse index from invalidation tag to the cache keys written under it.

The index lives in the remote store under ``{tag_prefix}:{tag}`` in one of
two representations:

1. **Set form** (:class:`SetTagIndex`) -- a native set, maintained with
   ``SADD``/``SMEMBERS``.  Preferred: adding a member is atomic.
2. **List form** (:class:`ListTagIndex`) -- a JSON array stored as a plain
   string, maintained by read-modify-write.  Used when the store has no
   set commands, and for single calls where the set command failed.

:class:`TagIndex` is the facade the provider talks to.  It starts on the
set form and switches to the list form for the rest of the process the
first time the store reports that set commands are unsupported, so a store
lacking them is not asked again on every write.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod

import structlog

from src.interfaces.remote_store import IRemoteStore
from src.utils.cache_keys import DEFAULT_TAG_PREFIX, tag_key
from src.utils.degrade import DegradationRecorder
from src.utils.errors import DecodeError, RemoteStoreError, TagOperationUnsupportedError

logger = structlog.get_logger(logger_name=__name__)


class ITagIndexStrategy(ABC):
    """One representation of the tag index in the remote store."""

    name: str

    def __init__(self, store: IRemoteStore) -> None:
        self._store = store

    @abstractmethod
    async def record(self, index_key: str, member: str, ttl_s: int) -> None:
        """Add *member* under *index_key* and refresh the index TTL to *ttl_s*."""

    @abstractmethod
    async def members(self, index_key: str) -> list[str]:
        """Return every member recorded under *index_key* (empty if absent)."""


class SetTagIndex(ITagIndexStrategy):
    """Tag index kept as a native set."""

    name = "set"

    async def record(self, index_key: str, member: str, ttl_s: int) -> None:
        await self._store.sadd(index_key, member)
        await self._store.expire(index_key, ttl_s)

    async def members(self, index_key: str) -> list[str]:
        return sorted(await self._store.smembers(index_key))


class ListTagIndex(ITagIndexStrategy):
    """Tag index kept as a JSON array of keys.

    Read-modify-write, so two concurrent writers for the same tag can lose
    one of their additions.
    """

    name = "list"

    async def record(self, index_key: str, member: str, ttl_s: int) -> None:
        keys = await self._read(index_key)
        if member not in keys:
            keys.append(member)
            await self._store.set(index_key, json.dumps(keys).encode("utf-8"))
        await self._store.expire(index_key, ttl_s)

    async def members(self, index_key: str) -> list[str]:
        return await self._read(index_key)

    async def _read(self, index_key: str) -> list[str]:
        raw = await self._store.get(index_key)
        if raw is None:
            return []
        try:
            keys = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DecodeError(f"Tag index {index_key!r} is not valid JSON") from exc
        if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
            raise DecodeError(f"Tag index {index_key!r} is not a list of keys")
        return keys


class TagIndex:
    """Facade over the set and list strategies.

    Parameters
    ----------
    store:
        The remote store holding the index.
    recorder:
        Where absorbed failures of the preferred path are recorded.
    prefix:
        Namespace prefix of the tag key-space.
    """

    def __init__(
        self,
        store: IRemoteStore,
        recorder: DegradationRecorder,
        prefix: str = DEFAULT_TAG_PREFIX,
    ) -> None:
        self._recorder = recorder
        self._prefix = prefix
        self._store = store
        self._preferred: ITagIndexStrategy = SetTagIndex(store)
        self._fallback: ITagIndexStrategy = ListTagIndex(store)
        self._active: ITagIndexStrategy = self._preferred

    @property
    def strategy_name(self) -> str:
        """Name of the strategy new calls start with (``set`` or ``list``)."""
        return self._active.name

    def index_key(self, tag: str) -> str:
        return tag_key(tag, prefix=self._prefix)

    async def record(self, tag: str, key: str, ttl_s: int) -> None:
        """Record that *key* was written under *tag*.

        Raises
        ------
        RemoteStoreError
            If the list-form fallback fails too.
        """
        index_key = self.index_key(tag)
        if self._active is self._preferred:
            try:
                await self._preferred.record(index_key, key, ttl_s)
                return
            except TagOperationUnsupportedError as exc:
                self._switch_to_fallback(exc, tag)
            except RemoteStoreError as exc:
                self._recorder.record("tag_index.record", exc, tag=tag, strategy="set")
                logger.info("tag_index_fallback", tag=tag, operation="record")
        await self._fallback.record(index_key, key, ttl_s)

    async def members(self, tag: str) -> list[str]:
        """Return the keys recorded under *tag*; an unknown tag yields ``[]``.

        A list-form index that cannot be decoded is recorded and treated as
        empty.

        Raises
        ------
        RemoteStoreError
            If neither representation could be read.
        """
        index_key = self.index_key(tag)
        if self._active is self._preferred:
            try:
                return await self._preferred.members(index_key)
            except TagOperationUnsupportedError as exc:
                self._switch_to_fallback(exc, tag)
            except RemoteStoreError as exc:
                self._recorder.record("tag_index.members", exc, tag=tag, strategy="set")
                logger.info("tag_index_fallback", tag=tag, operation="members")
        try:
            return await self._fallback.members(index_key)
        except DecodeError as exc:
            self._recorder.record("tag_index.members", exc, tag=tag, strategy="list")
            return []

    async def clear(self, tag: str) -> None:
        """Delete the index of *tag*, whichever representation it uses."""
        await self._store.delete(self.index_key(tag))

    def _switch_to_fallback(self, exc: TagOperationUnsupportedError, tag: str) -> None:
        self._recorder.record("tag_index.select_strategy", exc, tag=tag)
        self._active = self._fallback
        logger.warning("tag_index_strategy_switched", strategy=self._fallback.name)
