"""Two-tier render cache provider implementing ICacheProvider.

Reads go through the process-local memo first and fall back to the shared
remote store; writes go to both and register the key under each of its
tags.  Every failure is absorbed through the runtime's
:class:`DegradationRecorder`: the host sees a miss or a no-op, never an
exception.

Lifetimes follow stale-while-revalidate:

- the entry is *fresh* for ``revalidate`` seconds (its soft-stale age);
- it is kept in the store longer than that (its hard-expire TTL: 2x in
  production, 1.2x rounded up elsewhere) so a concurrent regenerate can
  overwrite it before the store drops it;
- a ``get`` that finds a stale entry treats it as a miss and deletes it in
  the background, which makes the host regenerate.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from src.interfaces.cache_provider import ICacheProvider
from src.models.cache import CacheResult, ProviderContext, SetContext
from src.providers.cache.runtime import CacheRuntime
from src.utils.cache_keys import cache_key
from src.utils.concurrency import throttled_gather
from src.utils.entry_codec import decode_entry, encode_entry, is_stale
from src.utils.errors import DecodeError, RemoteStoreError

logger = structlog.get_logger(logger_name=__name__)


class TieredCacheProvider(ICacheProvider):
    """Render cache backed by a local memo and a shared remote store.

    Parameters
    ----------
    ctx:
        ``pathname`` and ``kind`` of the render; fixed for the provider's
        lifetime.
    runtime:
        Shared resources (store, memo, tag index, recorder).
    """

    def __init__(
        self,
        ctx: ProviderContext | Mapping[str, Any] | None = None,
        *,
        runtime: CacheRuntime,
    ) -> None:
        super().__init__(ctx)
        self._runtime = runtime
        self._log = logger.bind(pathname=self.pathname, kind=self.kind)

    def qualified_key(self, key: str) -> str:
        """The store key this provider uses for the host key *key*."""
        return cache_key(
            key, self.pathname, self.kind, prefix=self._runtime.config.cache_key_prefix
        )

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> CacheResult | None:
        try:
            return await self._get(self.qualified_key(key))
        except Exception as exc:  # noqa: BLE001
            self._runtime.recorder.record("get", exc, key=key, pathname=self.pathname)
            return None

    async def set(
        self,
        key: str,
        payload: Any,
        ctx: SetContext | Mapping[str, Any] | None = None,
    ) -> None:
        try:
            await self._set(self.qualified_key(key), payload, _as_set_context(ctx))
        except Exception as exc:  # noqa: BLE001
            self._runtime.recorder.record("set", exc, key=key, pathname=self.pathname)

    async def revalidate_tag(self, tag: str | Iterable[str]) -> None:
        tags = [tag] if isinstance(tag, str) else list(tag)
        for one_tag in tags:
            try:
                await self._revalidate_tag(one_tag)
            except Exception as exc:  # noqa: BLE001
                self._runtime.recorder.record("revalidate_tag", exc, tag=one_tag)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _get(self, qualified: str) -> CacheResult | None:
        rt = self._runtime

        memoised = rt.memo.lookup(qualified)
        if memoised is not None:
            return memoised

        try:
            raw = await rt.store.get(qualified)
        except RemoteStoreError as exc:
            rt.recorder.record("get", exc, key=qualified)
            return None
        if raw is None:
            self._log.debug("cache_miss", key=qualified)
            return None

        try:
            entry = decode_entry(raw)
        except DecodeError as exc:
            rt.recorder.record("get", exc, key=qualified)
            return None

        if is_stale(entry, rt.now_ms()):
            self._log.debug("cache_stale", key=qualified, stale_age=entry.stale_age)
            rt.spawn(self._delete_stale(qualified))
            return None

        result = entry.to_result()
        stale_at_ms = entry.last_modified + entry.stale_age * 1000
        rt.memo.store(qualified, result, ttl_s=self._memo_ttl((stale_at_ms - rt.now_ms()) / 1000))
        self._log.debug("cache_hit", key=qualified)
        return result

    async def _set(self, qualified: str, payload: Any, ctx: SetContext) -> None:
        rt = self._runtime
        soft_stale_s = ctx.soft_stale_seconds(rt.config.default_stale_age_s)
        hard_expire_s = rt.config.hard_expire_seconds(soft_stale_s)
        write_time_ms = rt.now_ms()

        record = encode_entry(payload, write_time_ms, soft_stale_s, ctx.tags)
        try:
            await rt.store.set(qualified, record)
            await rt.store.expire(qualified, hard_expire_s)
        except RemoteStoreError as exc:
            rt.recorder.record("set", exc, key=qualified)
            return

        rt.memo.store(
            qualified,
            CacheResult(value=payload, last_modified=write_time_ms),
            ttl_s=self._memo_ttl(soft_stale_s),
        )
        self._log.debug(
            "cache_set", key=qualified, stale_age=soft_stale_s, expire_age=hard_expire_s
        )

        # Each tag is independent: one failed index update must not stop the rest.
        for tag in dict.fromkeys(ctx.tags):
            try:
                await rt.tag_index.record(tag, qualified, hard_expire_s)
            except Exception as exc:  # noqa: BLE001
                rt.recorder.record("set.tag_index", exc, key=qualified, tag=tag)

    async def _revalidate_tag(self, tag: str) -> None:
        rt = self._runtime
        try:
            keys = await rt.tag_index.members(tag)
        except RemoteStoreError as exc:
            # Without the member list the index is kept for a later attempt.
            rt.recorder.record("revalidate_tag", exc, tag=tag)
            return

        if keys:
            results = await throttled_gather(
                [rt.store.delete(k) for k in keys], rt.delete_semaphore
            )
            for member_key, result in zip(keys, results):
                if isinstance(result, BaseException):
                    rt.recorder.record("revalidate_tag.delete", result, key=member_key, tag=tag)
            rt.memo.remove_all(keys)

        try:
            await rt.tag_index.clear(tag)
        except RemoteStoreError as exc:
            rt.recorder.record("revalidate_tag.clear", exc, tag=tag)
            return
        self._log.info("cache_tag_revalidated", tag=tag, keys=len(keys))

    def _memo_ttl(self, fresh_for_s: float) -> float:
        # A memoised entry must not outlive its soft-stale boundary.
        return min(self._runtime.config.in_memory_ttl_s, fresh_for_s)

    async def _delete_stale(self, qualified: str) -> None:
        try:
            await self._runtime.store.delete(qualified)
        except RemoteStoreError as exc:
            self._runtime.recorder.record("get.delete_stale", exc, key=qualified)


def _as_set_context(ctx: SetContext | Mapping[str, Any] | None) -> SetContext:
    if ctx is None:
        return SetContext()
    if isinstance(ctx, SetContext):
        return ctx
    return SetContext.model_validate(dict(ctx))
