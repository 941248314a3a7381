"""Single "degrade and record" channel for absorbed cache failures.

The cache must never fail a render: every error inside ``get``, ``set`` and
``revalidate_tag`` is swallowed and the host sees an empty cache instead.
To keep those failures observable, every call site hands the exception to
:meth:`DegradationRecorder.record`, which

1. classifies it into one taxonomy kind (see :class:`FailureKind`),
2. logs it once with structured context (timeouts at WARNING, the rest at
   ERROR), and
3. bumps a per-kind counter that tests and health checks can read.
"""

from __future__ import annotations

import threading
from collections import Counter
from enum import Enum
from typing import Any

import structlog

from src.utils.errors import (
    DecodeError,
    RemoteStoreError,
    RemoteTimeoutError,
    TagOperationUnsupportedError,
)

logger = structlog.get_logger(logger_name=__name__)


class FailureKind(str, Enum):  # noqa: UP042
    """Taxonomy of absorbed failures."""

    REMOTE_TIMEOUT = "remote_timeout"
    REMOTE_ERROR = "remote_error"
    DECODE_ERROR = "decode_error"
    TAG_OPERATION_UNSUPPORTED = "tag_operation_unsupported"
    UNEXPECTED = "unexpected"


def classify_failure(exc: BaseException) -> FailureKind:
    """Map an exception onto the failure taxonomy."""
    # Subclasses first: RemoteTimeoutError is also a RemoteStoreError.
    if isinstance(exc, RemoteTimeoutError):
        return FailureKind.REMOTE_TIMEOUT
    if isinstance(exc, TagOperationUnsupportedError):
        return FailureKind.TAG_OPERATION_UNSUPPORTED
    if isinstance(exc, RemoteStoreError):
        return FailureKind.REMOTE_ERROR
    if isinstance(exc, DecodeError):
        return FailureKind.DECODE_ERROR
    return FailureKind.UNEXPECTED


class DegradationRecorder:
    """Counts and logs every failure the cache absorbs.

    One recorder is shared by all providers in a process (it lives on the
    :class:`~src.providers.cache.runtime.CacheRuntime`).
    """

    def __init__(self) -> None:
        self._counts: Counter[FailureKind] = Counter()
        self._lock = threading.Lock()

    def record(self, operation: str, exc: BaseException, **context: Any) -> FailureKind:
        """Record one absorbed failure of *operation* and return its kind."""
        kind = classify_failure(exc)
        with self._lock:
            self._counts[kind] += 1

        if kind is FailureKind.REMOTE_TIMEOUT:
            logger.warning(
                "cache_degraded", operation=operation, failure=kind.value,
                error=str(exc), **context,
            )
        elif kind is FailureKind.UNEXPECTED:
            logger.error(
                "cache_degraded", operation=operation, failure=kind.value,
                error=repr(exc), exc_info=exc, **context,
            )
        else:
            logger.error(
                "cache_degraded", operation=operation, failure=kind.value,
                error=str(exc), **context,
            )
        return kind

    def count(self, kind: FailureKind) -> int:
        with self._lock:
            return self._counts[kind]

    def snapshot(self) -> dict[str, int]:
        """Return ``{kind: count}`` for every kind, zeros included."""
        with self._lock:
            return {kind.value: self._counts[kind] for kind in FailureKind}

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
