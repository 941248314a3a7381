"""Render-cache models: re-exports all public model classes.

    - cache.py: host contexts, stored and returned entries, resolved config
"""

from __future__ import annotations

from src.models.cache import (
    CacheConfig,
    CacheKind,
    CacheResult,
    ProviderContext,
    SetContext,
    StoredEntry,
)

__all__ = [
    "CacheConfig",
    "CacheKind",
    "CacheResult",
    "ProviderContext",
    "SetContext",
    "StoredEntry",
]
