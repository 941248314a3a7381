"""Shared pytest fixtures for the render-cache test suite."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from src.models.cache import CacheConfig
from src.providers.cache.memory_store import MemoryRemoteStore
from src.providers.cache.runtime import CacheRuntime
from src.providers.cache.tiered_cache import TieredCacheProvider

# 2024-01-01T00:00:00Z; a round number keeps expected lastModified values readable.
START_TIME = 1_704_067_200.0


class FakeClock:
    """Manually advanced clock returning seconds, shared by every tier."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryRemoteStore:
    """In-process remote store driven by the fake clock."""
    return MemoryRemoteStore(clock=clock)


@pytest.fixture
def config() -> CacheConfig:
    """Default non-production configuration."""
    return CacheConfig()


@pytest.fixture
def runtime(config: CacheConfig, store: MemoryRemoteStore, clock: FakeClock) -> CacheRuntime:
    return CacheRuntime.create(config, store, clock=clock)


@pytest.fixture
def make_provider(runtime: CacheRuntime) -> Callable[..., TieredCacheProvider]:
    """Factory for providers sharing the ``runtime`` fixture.

    Usage: ``make_provider(pathname="/blog", kind="APP_PAGE")``.
    """

    def _make(pathname: str = "/blog/[slug]", kind: Any = "APP_PAGE") -> TieredCacheProvider:
        return TieredCacheProvider({"pathname": pathname, "kind": kind}, runtime=runtime)

    return _make


@pytest.fixture
def provider(make_provider: Callable[..., TieredCacheProvider]) -> TieredCacheProvider:
    return make_provider()
