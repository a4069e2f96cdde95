"""Fixed-window rate limit decision engine.

Each request is counted against exactly one identity: the access token
when one is supplied, otherwise the caller's address. A key that goes over
its per-second limit is blocked for the configured duration and its
counter is cleared, so the caller starts a fresh window once the block
expires.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from reqthrottle.app.core.config import Settings
from reqthrottle.app.core.logging import get_log_context, get_logger
from reqthrottle.app.exceptions import StorageUnavailableError
from reqthrottle.app.limiter.models import Decision, Dimension, LimiterConfig, RejectReason
from reqthrottle.app.storage.base import StorageBackend

logger = get_logger(__name__)

T = TypeVar("T")

# Length of a counting window in seconds
WINDOW_SECONDS = 1.0

_BLOCKED_REASONS = {
    Dimension.ADDRESS: RejectReason.ADDRESS_BLOCKED,
    Dimension.TOKEN: RejectReason.TOKEN_BLOCKED,
}

_EXCEEDED_REASONS = {
    Dimension.ADDRESS: RejectReason.ADDRESS_LIMIT_EXCEEDED,
    Dimension.TOKEN: RejectReason.TOKEN_LIMIT_EXCEEDED,
}


class RateLimiter:
    """Decides whether to admit or reject a request.

    Holds no per-key state of its own, so one instance can be shared by
    every concurrent request handler. Storage failures are never raised to
    the caller: they become a STORAGE_FAILURE rejection (fail closed).
    """

    def __init__(
        self,
        storage: StorageBackend,
        config: LimiterConfig,
        timeout: Optional[float] = None,
    ):
        """Initialize the rate limiter.

        Args:
            storage: Counter and block storage
            config: Limits and block duration
            timeout: Deadline in seconds for each storage call (None = no deadline)
        """
        self.storage = storage
        self.config = config
        self.timeout = timeout

    @classmethod
    def from_settings(cls, storage: StorageBackend, settings: Settings) -> "RateLimiter":
        """Build a limiter from resolved application settings."""
        config = LimiterConfig(
            ip_limit=settings.rate_limit_ip,
            token_limit=settings.rate_limit_token,
            block_duration=settings.block_duration,
        )
        return cls(storage, config, timeout=settings.storage_timeout)

    async def decide(self, address: str, token: str = "") -> Decision:
        """Check and count one request.

        A non-empty token is authoritative: the address is then neither
        checked nor counted for this request.

        Args:
            address: Caller network address, used when no token is given
            token: Caller access token, may be empty

        Returns:
            Decision allowing or rejecting the request.
        """
        if token:
            dimension, key = Dimension.TOKEN, token
        else:
            dimension, key = Dimension.ADDRESS, address
        limit = self.config.limit_for(dimension)

        try:
            if await self._call("is_blocked", self.storage.is_blocked(key)):
                return Decision.reject(_BLOCKED_REASONS[dimension])

            count = await self._call("increment", self.storage.increment(key, WINDOW_SECONDS))
            if count <= limit:
                return Decision.allow()

            await self._call("block", self.storage.block(key, self.config.block_duration))
        except StorageUnavailableError as e:
            logger.warning(
                f"Rejecting request, rate limit storage unavailable: {e}",
                extra=self._log_context(dimension, key, RejectReason.STORAGE_FAILURE),
            )
            return Decision.reject(RejectReason.STORAGE_FAILURE)

        reason = _EXCEEDED_REASONS[dimension]
        logger.info(
            f"Blocking {dimension.value} for {self.config.block_duration}s "
            f"after {count} requests (limit {limit})",
            extra=self._log_context(dimension, key, reason),
        )

        # The block is in place, so this request is rejected for exceeding its
        # limit even if clearing the window counter fails
        try:
            await self._call("clear_counter", self.storage.clear_counter(key))
        except StorageUnavailableError as e:
            logger.warning(
                f"Failed to clear counter after blocking {dimension.value}: {e}",
                extra=self._log_context(dimension, key, reason),
            )
        return Decision.reject(reason)

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a storage call, bounded by the configured deadline."""
        if self.timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StorageUnavailableError(
                operation, f"deadline of {self.timeout}s exceeded"
            ) from e

    @staticmethod
    def _log_context(dimension: Dimension, key: str, reason: RejectReason) -> dict:
        # Tokens are credentials and are never written to logs
        client = key if dimension is Dimension.ADDRESS else None
        return get_log_context(dimension=dimension.value, reason=reason.value, client=client)
