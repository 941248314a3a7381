"""Custom exception hierarchy for the render cache.

All cache exceptions inherit from :class:`RenderCacheError`, which carries
an optional ``provider_name`` so log records can identify which backend
(e.g. "redis", "memory") produced the failure.

The hierarchy follows the failure taxonomy of the cache core:

    RenderCacheError  (base -- catch-all for any cache error)
    +-- RemoteStoreError               (store reachable but the call failed)
    |   +-- RemoteTimeoutError         (call exceeded its deadline)
    |   +-- TagOperationUnsupportedError (set primitives unavailable)
    +-- DecodeError                    (stored bytes malformed / incompatible)
    +-- ConfigurationError             (startup / invalid config)

None of these ever reach the rendering host.  The tiered provider catches
them and funnels them through :mod:`src.utils.degrade`, so the host always
sees an empty or unavailable cache instead of an exception.
"""


class RenderCacheError(Exception):
    """Base exception for all render-cache errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backend triggered the error.  The
    ``__str__`` method prefixes the provider name in brackets for structured
    log output, e.g. ``[redis] Command timed out``.
    """

    def __init__(
        self,
        message: str = "An unexpected cache error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Remote store errors
# ---------------------------------------------------------------------------

class RemoteStoreError(RenderCacheError):
    """Raised when the remote store is reachable but the command failed.

    Also covers connection-level failures (refused, reset) once the client
    has given up on the command.
    """

    def __init__(
        self,
        message: str = "Remote store command failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RemoteTimeoutError(RemoteStoreError):
    """Raised when a remote command does not complete within its deadline.

    The command is abandoned, never retried synchronously.
    """

    def __init__(
        self,
        message: str = "Remote store command timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class TagOperationUnsupportedError(RemoteStoreError):
    """Raised when the store does not implement set-collection commands.

    The tag index catches this to switch to the serialized-list strategy.
    """

    def __init__(
        self,
        message: str = "Set-collection operations are not supported",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Codec / configuration errors
# ---------------------------------------------------------------------------

class DecodeError(RenderCacheError):
    """Raised when a stored record cannot be decoded into a cache entry."""

    def __init__(
        self,
        message: str = "Stored cache record could not be decoded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RenderCacheError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
