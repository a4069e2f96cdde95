"""Redis-backed storage for distributed rate limiting.

Counters are stored under the raw identity key and block flags under the
same key prefixed with ``blocked:``, so both kinds of state share one
keyspace without colliding. Expiry is delegated to Redis TTLs.
"""

from contextlib import contextmanager
from typing import Any, Iterator, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from reqthrottle.app.core.logging import get_logger
from reqthrottle.app.exceptions import StorageUnavailableError
from reqthrottle.app.storage.base import StorageBackend
from reqthrottle.app.storage.redis_lua import INCREMENT_SCRIPT

logger = get_logger(__name__)


def _to_milliseconds(seconds: float) -> int:
    return max(1, int(round(seconds * 1000)))


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Re-raise Redis and socket failures as StorageUnavailableError."""
    try:
        yield
    except (RedisError, OSError) as e:
        logger.warning(f"Redis {operation} failed: {e}")
        raise StorageUnavailableError(operation, str(e)) from e


class RedisStorage(StorageBackend):
    """Redis storage backend.

    Uses native Redis primitives so no client-side locking is needed:
    a Lua script for increment-with-expiry, SET PX for blocks and a
    single multi-key DEL for resets.

    Example:
        >>> storage = await RedisStorage.connect(host="localhost", port=6379)
        >>> await storage.increment("1.2.3.4", window=1.0)
        1
    """

    BLOCK_KEY_PREFIX = "blocked:"

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        password: str = "",
        db: int = 0,
        socket_timeout: Optional[float] = 5.0,
        socket_connect_timeout: Optional[float] = 5.0,
        redis_client: Optional[Any] = None,
    ) -> None:
        """Initialize the Redis storage.

        No connection is made here; use ``connect()`` to build an instance
        and verify the server is reachable.

        Args:
            host: Redis host
            port: Redis port
            password: Redis password (empty for none)
            db: Logical database index
            socket_timeout: Per-command socket timeout in seconds
            socket_connect_timeout: Connection timeout in seconds
            redis_client: Optional pre-built Redis client instance
        """
        if redis_client is None:
            redis_client = aioredis.Redis(
                host=host,
                port=port,
                password=password or None,
                db=db,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_connect_timeout,
            )
        self._redis = redis_client
        self._closed = False

    @classmethod
    async def connect(cls, **kwargs: Any) -> "RedisStorage":
        """Create a storage instance and verify the connection.

        Args:
            **kwargs: Arguments forwarded to the constructor

        Returns:
            A connected RedisStorage.

        Raises:
            StorageUnavailableError: If the server cannot be reached.
        """
        storage = cls(**kwargs)
        try:
            with _storage_errors("connect"):
                await storage._redis.ping()
        except StorageUnavailableError:
            await storage.close()
            raise
        logger.info("Connected to Redis storage")
        return storage

    @classmethod
    def block_key(cls, key: str) -> str:
        """Key under which the block flag for ``key`` is stored."""
        return f"{cls.BLOCK_KEY_PREFIX}{key}"

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise StorageUnavailableError(operation, "storage is closed")

    async def increment(self, key: str, window: float) -> int:
        self._ensure_open("increment")
        with _storage_errors("increment"):
            count = await self._redis.eval(
                INCREMENT_SCRIPT, 1, key, _to_milliseconds(window)
            )
        return int(count)

    async def is_blocked(self, key: str) -> bool:
        self._ensure_open("is_blocked")
        with _storage_errors("is_blocked"):
            return await self._redis.exists(self.block_key(key)) > 0

    async def block(self, key: str, duration: float) -> None:
        self._ensure_open("block")
        with _storage_errors("block"):
            await self._redis.set(self.block_key(key), "1", px=_to_milliseconds(duration))

    async def clear_counter(self, key: str) -> None:
        self._ensure_open("clear_counter")
        with _storage_errors("clear_counter"):
            await self._redis.delete(key)

    async def reset(self, key: str) -> None:
        self._ensure_open("reset")
        with _storage_errors("reset"):
            await self._redis.delete(key, self.block_key(key))

    async def ping(self) -> bool:
        if self._closed:
            return False
        try:
            return bool(await self._redis.ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._closed:
            return
        self._closed = True
        # Use aclose() for proper async cleanup in redis-py 5.0+
        await self._redis.aclose()
