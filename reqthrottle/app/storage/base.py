"""Storage contract for rate limit counters and block flags."""

from abc import ABC, abstractmethod


class StorageBackend(ABC):
    """Abstract base class for rate limit storage backends.

    Backends hold two independent kinds of state per identity key: a
    fixed-window request counter and a time-bounded block flag. All
    implementations must be safe to call concurrently from many tasks and
    must raise StorageUnavailableError when the medium cannot be reached.
    """

    @abstractmethod
    async def increment(self, key: str, window: float) -> int:
        """Atomically increment the counter for a key.

        Creates the counter with an expiry of ``window`` seconds if it does
        not exist or has expired. An existing live counter keeps the expiry
        set by the increment that created it.

        Args:
            key: Identity key
            window: Window length in seconds

        Returns:
            The counter value after this increment (1 for a fresh window).
        """
        pass

    @abstractmethod
    async def is_blocked(self, key: str) -> bool:
        """Check whether a live block entry exists for a key.

        Args:
            key: Identity key

        Returns:
            True if the key is blocked and the block has not expired.
        """
        pass

    @abstractmethod
    async def block(self, key: str, duration: float) -> None:
        """Block a key for ``duration`` seconds from now.

        Overwrites any existing block entry; durations never stack.

        Args:
            key: Identity key
            duration: Block duration in seconds
        """
        pass

    @abstractmethod
    async def clear_counter(self, key: str) -> None:
        """Delete the counter for a key, leaving any block entry in place.

        Args:
            key: Identity key
        """
        pass

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Delete both the counter and the block entry for a key.

        Args:
            key: Identity key
        """
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check that the storage medium is reachable."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release held connections. Safe to call more than once."""
        pass
