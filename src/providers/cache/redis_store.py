"""Redis (and Valkey) remote store implementing IRemoteStore.

Uses ``redis.asyncio``.  The client is built lazily on the first command
and then reused for the life of the store; redis-py handles reconnecting a
dropped connection on the next command.  Every command is bounded by the
configured timeout via :func:`with_deadline`, and redis-py exceptions are
translated into the cache's own error taxonomy:

    asyncio timeout / redis TimeoutError     -> RemoteTimeoutError
    unknown or forbidden set command          -> TagOperationUnsupportedError
    any other RedisError / OSError            -> RemoteStoreError

Connection options are parsed once from the URL (see
:func:`redis_connection_options`).
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar
from urllib.parse import unquote, urlparse

import structlog
from redis import exceptions as redis_errors
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from src.interfaces.remote_store import IRemoteStore
from src.utils.concurrency import with_deadline
from src.utils.errors import (
    ConfigurationError,
    RemoteStoreError,
    RemoteTimeoutError,
    TagOperationUnsupportedError,
)

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

_PLAIN_SCHEMES = frozenset({"redis", "valkey"})
_TLS_SCHEMES = frozenset({"rediss", "redis+tls", "valkeys"})
_DEFAULT_PORT = 6379

# Substrings of server replies meaning the command itself is unavailable.
_UNSUPPORTED_MARKERS = ("unknown command", "command not allowed", "disabled")


def redis_connection_options(
    redis_url: str,
    connect_timeout_s: float = 5.0,
) -> dict[str, Any]:
    """Parse a connection URL into ``redis.asyncio.Redis`` keyword arguments.

    Supports ``redis://``, ``rediss://``, ``redis+tls://``, ``valkey://``
    and ``valkeys://``, optional ``user:password@`` credentials and a
    database index in the path (``/2``).  TLS schemes connect without
    certificate verification.

    Raises
    ------
    ConfigurationError
        If the URL has an unsupported scheme or an invalid port / database.
    """
    parsed = urlparse(redis_url)
    scheme = parsed.scheme.lower()
    if scheme not in _PLAIN_SCHEMES | _TLS_SCHEMES:
        raise ConfigurationError(
            f"Unsupported remote store URL scheme {parsed.scheme!r}", provider_name="redis"
        )

    try:
        port = parsed.port or _DEFAULT_PORT
    except ValueError as exc:
        raise ConfigurationError(f"Invalid port in {redis_url!r}", provider_name="redis") from exc

    db_segment = parsed.path.lstrip("/")
    try:
        db = int(db_segment) if db_segment else 0
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid database index {db_segment!r}", provider_name="redis"
        ) from exc

    options: dict[str, Any] = {
        "host": parsed.hostname or "localhost",
        "port": port,
        "db": db,
        "username": unquote(parsed.username) if parsed.username else None,
        "password": unquote(parsed.password) if parsed.password else None,
        "socket_connect_timeout": connect_timeout_s,
        "retry": Retry(ExponentialBackoff(cap=2.0, base=0.05), retries=3),
        "health_check_interval": 30,
        "decode_responses": False,
    }
    if scheme in _TLS_SCHEMES:
        options["ssl"] = True
        options["ssl_cert_reqs"] = "none"

    return options


def build_redis_client(redis_url: str, connect_timeout_s: float = 5.0) -> Redis:
    """Build a ``redis.asyncio.Redis`` client from a connection URL."""
    return Redis(**redis_connection_options(redis_url, connect_timeout_s))


class RedisRemoteStore(IRemoteStore):
    """Remote store backed by a Redis-compatible server.

    Parameters
    ----------
    client_factory:
        Zero-argument callable returning a ``redis.asyncio.Redis`` client;
        called once, on the first command.
    command_timeout_s:
        Deadline applied to every command.
    """

    def __init__(
        self,
        client_factory: Callable[[], Redis],
        command_timeout_s: float = 0.5,
    ) -> None:
        self._client_factory = client_factory
        self._command_timeout_s = command_timeout_s
        self._client: Redis | None = None

    @property
    def client(self) -> Redis:
        if self._client is None:
            self._client = self._client_factory()
            logger.info("redis_client_created")
        return self._client

    # ------------------------------------------------------------------
    # IRemoteStore implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> bytes | None:
        return await self._call("GET", lambda c: c.get(key))

    async def set(self, key: str, value: bytes) -> None:
        await self._call("SET", lambda c: c.set(key, value))

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self._call("EXPIRE", lambda c: c.expire(key, seconds)))

    async def delete(self, key: str) -> int:
        return int(await self._call("DEL", lambda c: c.delete(key)))

    async def sadd(self, key: str, member: str) -> int:
        return int(await self._call("SADD", lambda c: c.sadd(key, member), set_command=True))

    async def smembers(self, key: str) -> set[str]:
        members = await self._call("SMEMBERS", lambda c: c.smembers(key), set_command=True)
        return {m.decode("utf-8") if isinstance(m, bytes) else str(m) for m in members or ()}

    def get_provider_name(self) -> str:
        return "redis"

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("redis_client_closed")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _call(
        self,
        command: str,
        invoke: Callable[[Redis], Awaitable[_T]],
        *,
        set_command: bool = False,
    ) -> _T:
        """Run one command under the deadline and translate its errors."""
        name = self.get_provider_name()
        try:
            return await with_deadline(
                invoke(self.client),
                self._command_timeout_s,
                command=command,
                provider_name=name,
            )
        except RemoteTimeoutError:
            raise
        except redis_errors.TimeoutError as exc:
            raise RemoteTimeoutError(f"{command} timed out: {exc}", provider_name=name) from exc
        except redis_errors.ResponseError as exc:
            if set_command and _is_unsupported(exc):
                raise TagOperationUnsupportedError(
                    f"{command} unavailable: {exc}", provider_name=name
                ) from exc
            raise RemoteStoreError(f"{command} failed: {exc}", provider_name=name) from exc
        except (redis_errors.ConnectionError, OSError) as exc:
            logger.warning("redis_connection_error", command=command, error=str(exc))
            raise RemoteStoreError(
                f"{command} failed to reach the server: {exc}", provider_name=name
            ) from exc
        except redis_errors.RedisError as exc:
            raise RemoteStoreError(f"{command} failed: {exc}", provider_name=name) from exc


def _is_unsupported(exc: redis_errors.ResponseError) -> bool:
    if isinstance(exc, redis_errors.NoPermissionError):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _UNSUPPORTED_MARKERS)
