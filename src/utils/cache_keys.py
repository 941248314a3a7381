"""Key-space layout for the remote store.

Two disjoint key-spaces live side by side in the store:

1. **Cache entries** -- ``{cache_prefix}:{kind}:{pathname}:{key}``, with the
   ``{kind}:`` segment omitted when the provider has no kind.
2. **Tag indices** -- ``{tag_prefix}:{tag}``.

``:`` and ``%`` are percent-escaped inside every segment, so a segment can
never contain the separator.  That makes the number of segments a reliable
signal for whether a kind is present, and the mapping from
``(key, pathname, kind)`` to a cache key injective.  Keys without those two
characters come out exactly as the JavaScript cache handler writes them.
"""

from __future__ import annotations

DEFAULT_CACHE_PREFIX = "nextjs:cache"
DEFAULT_TAG_PREFIX = "nextjs:tag"

_SEGMENT_ESCAPES = str.maketrans({"%": "%25", ":": "%3A"})


def _escape(segment: str) -> str:
    return segment.translate(_SEGMENT_ESCAPES)


def cache_key(
    key: str,
    pathname: str,
    kind: str | None = None,
    *,
    prefix: str = DEFAULT_CACHE_PREFIX,
) -> str:
    """Build the fully-qualified store key for one cache entry.

    Args:
        key: The host's cache key (often a hash of the request).
        pathname: Route pathname the provider was constructed for.
        kind: Optional entry kind (``APP_PAGE``, ``APP_ROUTE``, ``FETCH``...).
        prefix: Namespace prefix of the entry key-space.

    Returns:
        The namespaced key.
    """
    kind_segment = f"{_escape(kind)}:" if kind else ""
    return f"{prefix}:{kind_segment}{_escape(pathname)}:{_escape(key)}"


def tag_key(tag: str, *, prefix: str = DEFAULT_TAG_PREFIX) -> str:
    """Build the store key holding the index of keys written under *tag*."""
    return f"{prefix}:{_escape(tag)}"
