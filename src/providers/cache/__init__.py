"""Cache providers.

Two-tier render cache: a process-local memo (LocalMemo) in front of a
shared remote store (RedisRemoteStore in deployments, MemoryRemoteStore in
development and tests), orchestrated by TieredCacheProvider.  All shared,
long-lived pieces hang off one CacheRuntime per process.
"""

from src.providers.cache.local_memo import LocalMemo
from src.providers.cache.memory_store import MemoryRemoteStore
from src.providers.cache.redis_store import RedisRemoteStore, build_redis_client
from src.providers.cache.runtime import CacheRuntime
from src.providers.cache.tag_index import ListTagIndex, SetTagIndex, TagIndex
from src.providers.cache.tiered_cache import TieredCacheProvider

__all__ = [
    "CacheRuntime",
    "ListTagIndex",
    "LocalMemo",
    "MemoryRemoteStore",
    "RedisRemoteStore",
    "SetTagIndex",
    "TagIndex",
    "TieredCacheProvider",
    "build_redis_client",
]
