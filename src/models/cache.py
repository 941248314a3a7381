"""Cache entry, context, and configuration models for the render cache.

Defines Pydantic v2 models for everything that crosses a boundary of the
cache core:

    1. The host constructs a provider with a ProviderContext (pathname, kind)
    2. The host writes with a SetContext (revalidate seconds, tags)
    3. The entry is persisted as a StoredEntry (JSON record in the store)
    4. The host reads back a CacheResult (value, lastModified)

CacheConfig is the frozen, already-resolved configuration the core is built
from (see ``Settings.to_cache_config``).  All models are frozen.
"""

from __future__ import annotations

import math
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CacheKind(str, Enum):  # noqa: UP042
    """Kinds of rendered output the host stores.

    The kind is part of the cache key so a route handler, a page, and a
    data fetch that happen to share a literal key never collide.  Hosts may
    pass other kind strings; these are only the well-known ones.
    """

    APP_PAGE = "APP_PAGE"     # Rendered page output
    APP_ROUTE = "APP_ROUTE"   # Route-handler response
    FETCH = "FETCH"           # Data-fetch result


# ---------------------------------------------------------------------------
# Host-supplied contexts
# ---------------------------------------------------------------------------
class ProviderContext(BaseModel):
    """Identity attributes captured once when a provider is constructed."""

    model_config = ConfigDict(frozen=True)

    pathname: str = ""
    kind: str | None = None

    @field_validator("pathname", mode="before")
    @classmethod
    def _pathname_or_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("kind", mode="before")
    @classmethod
    def _kind_value(cls, value: Any) -> Any:
        if isinstance(value, CacheKind):
            return value.value
        # Empty string means "no kind", same as None.
        return value or None


class SetContext(BaseModel):
    """Per-write options supplied by the host.

    ``revalidate`` is left untyped because hosts send a number of seconds,
    ``False`` for "never revalidate", or nothing at all.  Anything that is
    not a positive number selects the configured default stale age.
    """

    model_config = ConfigDict(frozen=True)

    revalidate: Any = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_or_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def soft_stale_seconds(self, default: float) -> float:
        """Return the revalidate value when it is a positive number, else *default*."""
        value = self.revalidate
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return default
        if not math.isfinite(value) or value <= 0:
            return default
        return value


# ---------------------------------------------------------------------------
# Stored / returned entries
# ---------------------------------------------------------------------------
class StoredEntry(BaseModel):
    """The self-describing record persisted under a cache key.

    Serialised with camelCase keys (``lastModified``, ``staleAge``) so the
    record layout is the one JavaScript cache handlers write.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    value: Any
    # Epoch milliseconds at write time.
    last_modified: int = Field(alias="lastModified")
    # Soft-stale age in seconds; always positive.
    stale_age: float = Field(alias="staleAge", gt=0)
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _value_required(cls, data: Any) -> Any:
        # ``value: Any`` alone would accept a record with the key missing.
        if isinstance(data, dict) and "value" not in data:
            raise ValueError("record has no 'value' field")
        return data

    def to_result(self) -> CacheResult:
        return CacheResult(value=self.value, last_modified=self.last_modified)


class CacheResult(BaseModel):
    """What ``get`` hands back to the host on a hit."""

    model_config = ConfigDict(frozen=True)

    value: Any
    # Epoch milliseconds of the write that produced ``value``.
    last_modified: int


# ---------------------------------------------------------------------------
# CacheConfig: resolved configuration for the core
# ---------------------------------------------------------------------------
class CacheConfig(BaseModel):
    """Immutable configuration consumed by the cache core.

    Times are in seconds.  Built from ``Settings.to_cache_config()`` in
    production and directly in tests.
    """

    model_config = ConfigDict(frozen=True)

    command_timeout_s: float = Field(default=0.5, gt=0)
    connect_timeout_s: float = Field(default=5.0, gt=0)
    in_memory_caching: bool = True
    in_memory_ttl_s: float = Field(default=10.0, gt=0)
    in_memory_max_entries: int = Field(default=10000, gt=0)
    default_stale_age_s: float = Field(default=1209600, gt=0)
    # Production-style deployments keep entries twice as long as their
    # stale age; everything else keeps them 1.2x (rounded up).
    production: bool = False
    cache_key_prefix: str = "nextjs:cache"
    tag_key_prefix: str = "nextjs:tag"
    tag_delete_concurrency: int = Field(default=32, gt=0)

    @model_validator(mode="after")
    def _disjoint_prefixes(self) -> CacheConfig:
        cache_prefix = self.cache_key_prefix + ":"
        tag_prefix = self.tag_key_prefix + ":"
        if cache_prefix.startswith(tag_prefix) or tag_prefix.startswith(cache_prefix):
            raise ValueError(
                "cache_key_prefix and tag_key_prefix must name disjoint key-spaces"
            )
        return self

    def hard_expire_seconds(self, soft_stale_seconds: float) -> int:
        """Storage TTL for an entry whose soft-stale age is *soft_stale_seconds*.

        Always strictly greater than the soft-stale age, which is what lets
        a stale entry survive until the host regenerates and overwrites it.
        """
        factor = Decimal(2) if self.production else Decimal("1.2")
        # Decimal keeps 100 * 1.2 at exactly 120 before rounding up.
        return math.ceil(Decimal(str(soft_stale_seconds)) * factor)
