"""Abstract base class for render-cache providers.

Defines the contract the server-side rendering host consumes: fetch, store
and invalidate rendered-output and data-fetch entries keyed by request
identity.  The host constructs one provider per render with the route's
``pathname`` and the entry ``kind``, then calls the three operations below.

The adapter pattern keeps the host independent of the storage backend: the
tiered Redis-backed provider can be swapped for any other implementation
without touching the host.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any

from src.models.cache import CacheResult, ProviderContext, SetContext


class ICacheProvider(ABC):
    """Contract for render-cache providers.

    All operations are async to allow for network-backed stores without
    blocking the event loop, and none of them may raise: a cache that is
    slow or down must look like an empty cache to the host.
    """

    def __init__(self, ctx: ProviderContext | Mapping[str, Any] | None = None) -> None:
        if ctx is None:
            ctx = ProviderContext()
        elif not isinstance(ctx, ProviderContext):
            ctx = ProviderContext.model_validate(dict(ctx))
        self._ctx = ctx

    @property
    def pathname(self) -> str:
        return self._ctx.pathname

    @property
    def kind(self) -> str | None:
        return self._ctx.kind

    @abstractmethod
    async def get(self, key: str) -> CacheResult | None:
        """Retrieve the entry stored under *key*.

        Parameters
        ----------
        key:
            The host's cache key, scoped by this provider's pathname and kind.

        Returns
        -------
        CacheResult or None
            The value and its ``last_modified`` time if a fresh entry
            exists; ``None`` for a miss, a stale entry, or any failure.
        """

    @abstractmethod
    async def set(
        self,
        key: str,
        payload: Any,
        ctx: SetContext | Mapping[str, Any] | None = None,
    ) -> None:
        """Store *payload* under *key*.

        Parameters
        ----------
        key:
            The host's cache key.
        payload:
            Opaque, JSON-serialisable value to store.
        ctx:
            ``revalidate`` seconds (soft-stale age) and ``tags`` to index
            the entry under.  Failures are absorbed; the entry is then
            simply not cached.
        """

    @abstractmethod
    async def revalidate_tag(self, tag: str | Iterable[str]) -> None:
        """Invalidate every entry written under *tag*.

        Parameters
        ----------
        tag:
            The invalidation tag, or several tags invalidated one after
            another.  Unknown tags are a no-op.
        """
