"""Render-cache composition root.

Wires settings, the remote store, and the shared runtime together, and
exposes the entry point the rendering host calls once per render::

    from src.main import create_cache_provider

    provider = create_cache_provider({"pathname": "/blog/[slug]", "kind": "APP_PAGE"})
    hit = await provider.get(cache_key)

The process-wide :class:`CacheRuntime` is created lazily, once, on the first
call and reused by every provider afterwards.  Tests and embedders can pass
their own runtime instead.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Mapping
from typing import Any, Callable

import structlog
from redis.asyncio import Redis

from src.config.loader import load_settings
from src.config.settings import Settings
from src.interfaces.remote_store import IRemoteStore
from src.models.cache import ProviderContext
from src.providers.cache.redis_store import RedisRemoteStore, redis_connection_options
from src.providers.cache.runtime import CacheRuntime
from src.providers.cache.tiered_cache import TieredCacheProvider

_logger: structlog.BoundLogger = structlog.get_logger(logger_name=__name__)

_RUNTIME: CacheRuntime | None = None
_RUNTIME_LOCK = threading.Lock()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _build_remote_store(app_settings: Settings) -> IRemoteStore:
    """Build the Redis store; the URL is validated now, the connection made later."""
    options = redis_connection_options(
        app_settings.redis_url,
        connect_timeout_s=app_settings.redis_connect_timeout_ms / 1000,
    )
    return RedisRemoteStore(
        client_factory=lambda: Redis(**options),
        command_timeout_s=app_settings.redis_command_timeout_ms / 1000,
    )


def build_cache_runtime(
    app_settings: Settings | None = None,
    *,
    store: IRemoteStore | None = None,
    clock: Callable[[], float] = time.time,
) -> CacheRuntime:
    """Assemble a :class:`CacheRuntime` from settings.

    Args:
        app_settings: Resolved settings; loaded from config/config.yaml and
            the environment when omitted.
        store: Remote store to use instead of the Redis store from settings.
        clock: Time source in seconds, shared by every tier.

    Raises:
        ConfigurationError: If the remote store URL is invalid.
    """
    if app_settings is None:
        app_settings = load_settings()
    config = app_settings.to_cache_config()
    if store is None:
        store = _build_remote_store(app_settings)

    runtime = CacheRuntime.create(config, store, clock=clock)
    _logger.info(
        "cache_runtime_built",
        store=store.get_provider_name(),
        in_memory_caching=config.in_memory_caching,
        command_timeout_ms=int(config.command_timeout_s * 1000),
        production=config.production,
    )
    return runtime


# ---------------------------------------------------------------------------
# Process-wide runtime
# ---------------------------------------------------------------------------


def get_cache_runtime() -> CacheRuntime:
    """Return the process-wide runtime, building it on first use."""
    global _RUNTIME
    if _RUNTIME is None:
        with _RUNTIME_LOCK:
            if _RUNTIME is None:
                _RUNTIME = build_cache_runtime()
    return _RUNTIME


def set_cache_runtime(runtime: CacheRuntime | None) -> None:
    """Install *runtime* as the process-wide runtime (``None`` forgets it)."""
    global _RUNTIME
    with _RUNTIME_LOCK:
        _RUNTIME = runtime


async def reset_cache_runtime() -> None:
    """Close the process-wide runtime, if any, and forget it."""
    global _RUNTIME
    with _RUNTIME_LOCK:
        runtime, _RUNTIME = _RUNTIME, None
    if runtime is not None:
        await runtime.aclose()


# ---------------------------------------------------------------------------
# Host entry point
# ---------------------------------------------------------------------------


def create_cache_provider(
    ctx: ProviderContext | Mapping[str, Any] | None = None,
    runtime: CacheRuntime | None = None,
) -> TieredCacheProvider:
    """Build the provider for one render.

    Args:
        ctx: ``pathname`` and optional ``kind`` of the render.
        runtime: Shared runtime; defaults to the process-wide one.
    """
    return TieredCacheProvider(ctx, runtime=runtime or get_cache_runtime())
