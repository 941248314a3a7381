"""Utility modules for the render cache.

- **cache_keys** -- Namespaced, collision-free key layout for entries and
  tag indices.
- **concurrency** -- Per-command deadlines and semaphore-bounded fan-out.
- **degrade** -- The single channel through which absorbed failures are
  classified, logged, and counted.
- **entry_codec** -- JSON encoding of stored entries and the staleness rule.
- **errors** -- Exception hierarchy rooted at RenderCacheError.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from src.utils.cache_keys import cache_key, tag_key
from src.utils.concurrency import throttled_gather, with_deadline
from src.utils.degrade import DegradationRecorder, FailureKind, classify_failure
from src.utils.entry_codec import decode_entry, encode_entry, is_stale
from src.utils.errors import (
    ConfigurationError,
    DecodeError,
    RemoteStoreError,
    RemoteTimeoutError,
    RenderCacheError,
    TagOperationUnsupportedError,
)
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "DecodeError",
    "DegradationRecorder",
    "FailureKind",
    "RemoteStoreError",
    "RemoteTimeoutError",
    "RenderCacheError",
    "TagOperationUnsupportedError",
    "cache_key",
    "classify_failure",
    "configure_logging",
    "decode_entry",
    "encode_entry",
    "get_logger",
    "is_stale",
    "tag_key",
    "throttled_gather",
    "with_deadline",
]
