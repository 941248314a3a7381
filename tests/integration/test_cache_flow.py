"""Integration tests for the full render-cache flow.

Drives providers built by ``create_cache_provider`` against one shared
runtime over ``MemoryRemoteStore`` and a fake clock, end to end: key
layout, memo tier, stored record, tag index, and degradation.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.main import create_cache_provider
from src.models.cache import CacheConfig
from src.providers.cache.memory_store import MemoryRemoteStore
from src.providers.cache.redis_store import RedisRemoteStore
from src.providers.cache.runtime import CacheRuntime
from src.utils.errors import RemoteTimeoutError


def _runtime(store: MemoryRemoteStore, clock, **config) -> CacheRuntime:
    return CacheRuntime.create(CacheConfig(**config), store, clock=clock)


# ======================================================================
# Lifetimes
# ======================================================================


class TestLifetimes:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", ["<html/>", {"a": [1, 2]}, 0, None, ["x"]])
    async def test_set_then_get_returns_payload(self, runtime: CacheRuntime, clock, payload) -> None:
        provider = create_cache_provider({"pathname": "/p", "kind": "APP_PAGE"}, runtime=runtime)
        called_at_ms = int(clock.now * 1000)
        await provider.set("k", payload, {"revalidate": 30})

        result = await provider.get("k")
        assert result is not None
        assert result.value == payload
        assert result.last_modified >= called_at_ms

    @pytest.mark.asyncio
    @pytest.mark.parametrize("revalidate", [5, 60, 3600])
    @pytest.mark.parametrize("in_memory_caching", [True, False])
    async def test_soft_stale_boundary(
        self, store: MemoryRemoteStore, clock, revalidate: int, in_memory_caching: bool
    ) -> None:
        runtime = _runtime(store, clock, in_memory_caching=in_memory_caching)
        provider = create_cache_provider({"pathname": "/p"}, runtime=runtime)
        await provider.set("k", "v", {"revalidate": revalidate})

        clock.advance(revalidate - 1)
        assert await provider.get("k") is not None

        clock.advance(2)
        assert await provider.get("k") is None
        await runtime.drain()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("production", "ttl"), [(True, 200), (False, 120)])
    async def test_hard_expire_ttl(
        self, store: MemoryRemoteStore, clock, production: bool, ttl: int
    ) -> None:
        runtime = _runtime(store, clock, production=production)
        provider = create_cache_provider({"pathname": "/p"}, runtime=runtime)
        await provider.set("k", "v", {"revalidate": 100, "tags": ["t"]})

        assert store.ttl(provider.qualified_key("k")) == pytest.approx(ttl)
        assert store.ttl("nextjs:tag:t") == pytest.approx(ttl)

    @pytest.mark.asyncio
    async def test_entry_physically_removed_after_hard_expire(
        self, store: MemoryRemoteStore, clock
    ) -> None:
        runtime = _runtime(store, clock)
        provider = create_cache_provider({"pathname": "/p"}, runtime=runtime)
        await provider.set("k", "v", {"revalidate": 100})

        clock.advance(120)
        assert provider.qualified_key("k") not in store


# ======================================================================
# Tags
# ======================================================================


class TestTagInvalidation:
    @pytest.mark.asyncio
    async def test_fan_out_empties_entries_and_index(
        self, runtime: CacheRuntime, store: MemoryRemoteStore
    ) -> None:
        provider = create_cache_provider({"pathname": "/p", "kind": "APP_PAGE"}, runtime=runtime)
        await provider.set("k1", "P1", {"revalidate": 60, "tags": ["t"]})
        await provider.set("k2", "P2", {"revalidate": 60, "tags": ["t"]})

        await provider.revalidate_tag("t")

        assert await provider.get("k1") is None
        assert await provider.get("k2") is None
        assert await runtime.tag_index.members("t") == []

    @pytest.mark.asyncio
    async def test_revalidate_twice_is_idempotent(
        self, runtime: CacheRuntime, store: MemoryRemoteStore
    ) -> None:
        provider = create_cache_provider({"pathname": "/p"}, runtime=runtime)
        await provider.set("k1", "P1", {"revalidate": 60, "tags": ["t"]})

        await provider.revalidate_tag("t")
        deletes_after_first = store.calls["delete"]
        await provider.revalidate_tag("t")

        # Only the index clear; no member deletions.
        assert store.calls["delete"] == deletes_after_first + 1
        assert all(count == 0 for count in runtime.recorder.snapshot().values())

    @pytest.mark.asyncio
    async def test_fan_out_on_store_without_set_commands(self, clock) -> None:
        store = MemoryRemoteStore(clock=clock, supports_sets=False)
        runtime = _runtime(store, clock)
        provider = create_cache_provider({"pathname": "/p"}, runtime=runtime)
        await provider.set("k1", "P1", {"revalidate": 60, "tags": ["t"]})
        await provider.set("k2", "P2", {"revalidate": 60, "tags": ["t"]})

        await provider.revalidate_tag("t")

        assert runtime.tag_index.strategy_name == "list"
        assert await provider.get("k1") is None
        assert await provider.get("k2") is None
        assert "nextjs:tag:t" not in store

    @pytest.mark.asyncio
    async def test_invalidation_reaches_other_providers_memo(self, runtime: CacheRuntime) -> None:
        writer = create_cache_provider({"pathname": "/p"}, runtime=runtime)
        reader = create_cache_provider({"pathname": "/p"}, runtime=runtime)
        await writer.set("k", "v", {"revalidate": 60, "tags": ["t"]})
        assert await reader.get("k") is not None

        await writer.revalidate_tag("t")
        assert await reader.get("k") is None

    @pytest.mark.asyncio
    async def test_large_tag_fan_out(self, store: MemoryRemoteStore, clock) -> None:
        runtime = _runtime(store, clock, tag_delete_concurrency=4)
        provider = create_cache_provider({"pathname": "/p"}, runtime=runtime)
        for i in range(50):
            await provider.set(f"k{i}", i, {"revalidate": 60, "tags": ["bulk"]})

        await provider.revalidate_tag("bulk")

        results = await asyncio.gather(*(provider.get(f"k{i}") for i in range(50)))
        assert results == [None] * 50


# ======================================================================
# Memo tier and isolation
# ======================================================================


class TestMemoAndIsolation:
    @pytest.mark.asyncio
    async def test_duplicate_gets_absorbed_by_memo(
        self, runtime: CacheRuntime, store: MemoryRemoteStore, clock
    ) -> None:
        writer = create_cache_provider({"pathname": "/p"}, runtime=runtime)
        await writer.set("k", "v", {"revalidate": 60})
        runtime.memo.clear()

        reader = create_cache_provider({"pathname": "/p"}, runtime=runtime)
        await reader.get("k")
        clock.advance(5)
        await reader.get("k")
        assert store.calls["get"] == 1

    @pytest.mark.asyncio
    async def test_page_and_route_never_collide(self, make_provider) -> None:
        page = make_provider("/p", "APP_PAGE")
        route = make_provider("/p", "APP_ROUTE")

        await page.set("a", "page", {"revalidate": 60})
        assert await route.get("a") is None

        await route.set("a", "route", {"revalidate": 60})
        assert (await page.get("a")).value == "page"
        assert (await route.get("a")).value == "route"

    @pytest.mark.asyncio
    async def test_pathnames_are_isolated(self, make_provider) -> None:
        await make_provider("/a", None).set("k", "A", {"revalidate": 60})
        assert await make_provider("/b", None).get("k") is None


# ======================================================================
# Degradation
# ======================================================================


class TestRemoteUnavailable:
    @pytest.mark.asyncio
    async def test_nothing_raises_when_every_remote_call_times_out(
        self, store: MemoryRemoteStore, clock
    ) -> None:
        failure = RemoteTimeoutError("deadline exceeded")
        for command in ("get", "set", "expire", "delete", "sadd", "smembers"):
            setattr(store, command, AsyncMock(side_effect=failure))
        runtime = _runtime(store, clock)
        provider = create_cache_provider({"pathname": "/p", "kind": "FETCH"}, runtime=runtime)

        await provider.set("k", "v", {"revalidate": 60, "tags": ["t"]})
        assert await provider.get("k") is None
        await provider.revalidate_tag("t")
        await runtime.drain()

        snapshot = runtime.recorder.snapshot()
        assert snapshot["remote_timeout"] > 0
        assert snapshot["unexpected"] == 0

    @pytest.mark.asyncio
    async def test_stalled_store_is_bounded_by_command_timeout(self, clock) -> None:
        async def stall(*_args):
            await asyncio.sleep(10)

        client = AsyncMock()
        for command in ("get", "set", "expire", "delete", "sadd", "smembers"):
            setattr(client, command, AsyncMock(side_effect=stall))
        store = RedisRemoteStore(client_factory=lambda: client, command_timeout_s=0.01)
        runtime = CacheRuntime.create(CacheConfig(command_timeout_s=0.01), store, clock=clock)
        provider = create_cache_provider({"pathname": "/p"}, runtime=runtime)

        await asyncio.wait_for(provider.get("k"), timeout=1)
        await asyncio.wait_for(provider.set("k", "v", {"tags": ["t"]}), timeout=1)
        await asyncio.wait_for(provider.revalidate_tag("t"), timeout=1)

        assert runtime.recorder.snapshot()["remote_timeout"] >= 3
