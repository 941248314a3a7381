"""Public interface definitions for the render cache.

The cache core talks to its collaborators only through the abstract base
classes defined in this package; concrete adapters live in
``src/providers/`` and are wired together in ``src/main.py``.

CONCRETE PROVIDER MAP:
    Interface        →  Concrete implementations (in src/providers/cache/)
    ─────────────────────────────────────────────────────────────────
    ICacheProvider   →  TieredCacheProvider
    IRemoteStore     →  RedisRemoteStore, MemoryRemoteStore

Re-exports
----------
ICacheProvider
    Host-facing get / set / revalidate_tag contract.
IRemoteStore
    Byte-string key-value store with TTLs and set collections.
"""

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.remote_store import IRemoteStore

__all__ = [
    "ICacheProvider",
    "IRemoteStore",
]
