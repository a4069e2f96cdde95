"""Counter and block storage backends for the rate limiter.

Provides a pluggable storage contract with in-memory and Redis
implementations.
"""

from typing import Optional

from reqthrottle.app.core.config import Settings
from reqthrottle.app.exceptions import ConfigurationError
from reqthrottle.app.storage.base import StorageBackend
from reqthrottle.app.storage.memory import InMemoryStorage
from reqthrottle.app.storage.redis_store import RedisStorage

__all__ = [
    "StorageBackend",
    "InMemoryStorage",
    "RedisStorage",
    "create_storage",
]


async def create_storage(
    settings: Settings,
    backend: Optional[str] = None,
) -> StorageBackend:
    """Create the storage backend selected by configuration.

    Redis connection failures are not masked by falling back to memory;
    they propagate so the process fails at startup.

    Args:
        settings: Resolved application settings
        backend: Backend name ('redis' or 'memory'), overrides settings

    Returns:
        A ready-to-use StorageBackend.

    Raises:
        ConfigurationError: If the backend name is unknown.
        StorageUnavailableError: If Redis cannot be reached.
    """
    name = backend or settings.storage_backend
    if name == "memory":
        return InMemoryStorage()
    if name == "redis":
        return await RedisStorage.connect(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password,
            db=settings.redis_db,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_connect_timeout,
        )
    raise ConfigurationError(f"Unknown storage backend: {name!r}")
