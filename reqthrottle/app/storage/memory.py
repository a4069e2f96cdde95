"""In-memory storage backend.

Reference implementation of the storage contract used for single-process
deployments and deterministic tests. Its clock can be moved forward with
``advance()`` so expiry can be exercised without real waits.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable

from reqthrottle.app.exceptions import StorageUnavailableError
from reqthrottle.app.storage.base import StorageBackend


@dataclass
class _CounterEntry:
    """Fixed-window counter with expiry tracking."""

    count: int
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class _BlockEntry:
    """Block marker with expiry tracking."""

    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class InMemoryStorage(StorageBackend):
    """In-memory counter and block storage.

    A single lock guards both mappings. It is only held for one map
    read/write at a time, so unrelated keys are never serialized behind
    slow work. Expired entries are dropped lazily when touched.

    Note: state is not shared between processes and is lost when the
    application restarts. Nothing sweeps the maps in the background, so
    counters for keys that are never seen again stay until
    cleanup_expired() is called. Long-running deployments with many
    distinct callers should use the Redis backend.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the in-memory storage.

        Args:
            clock: Source of the current time in seconds
        """
        self._counters: dict[str, _CounterEntry] = {}
        self._blocks: dict[str, _BlockEntry] = {}
        self._clock = clock
        self._offset = 0.0
        self._lock = asyncio.Lock()
        self._closed = False

    def now(self) -> float:
        """Current time as seen by this storage."""
        return self._clock() + self._offset

    def advance(self, seconds: float) -> None:
        """Move this storage's notion of "now" forward.

        Intended for tests that need counters or blocks to expire.

        Args:
            seconds: Amount of time to skip
        """
        if seconds < 0:
            raise ValueError("Cannot move the clock backwards")
        self._offset += seconds

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise StorageUnavailableError(operation, "storage is closed")

    async def increment(self, key: str, window: float) -> int:
        async with self._lock:
            self._ensure_open("increment")
            now = self.now()
            entry = self._counters.get(key)
            if entry is None or entry.is_expired(now):
                entry = _CounterEntry(count=0, expires_at=now + window)
                self._counters[key] = entry
            entry.count += 1
            return entry.count

    async def is_blocked(self, key: str) -> bool:
        async with self._lock:
            self._ensure_open("is_blocked")
            entry = self._blocks.get(key)
            if entry is None:
                return False
            if entry.is_expired(self.now()):
                del self._blocks[key]
                return False
            return True

    async def block(self, key: str, duration: float) -> None:
        async with self._lock:
            self._ensure_open("block")
            self._blocks[key] = _BlockEntry(expires_at=self.now() + duration)

    async def clear_counter(self, key: str) -> None:
        async with self._lock:
            self._ensure_open("clear_counter")
            self._counters.pop(key, None)

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._ensure_open("reset")
            self._counters.pop(key, None)
            self._blocks.pop(key, None)

    async def get_count(self, key: str) -> int:
        """Return the live counter value for a key (0 if absent or expired)."""
        async with self._lock:
            self._ensure_open("get_count")
            entry = self._counters.get(key)
            if entry is None or entry.is_expired(self.now()):
                return 0
            return entry.count

    async def cleanup_expired(self) -> int:
        """Remove all expired counters and blocks.

        Returns:
            Number of entries removed.
        """
        async with self._lock:
            now = self.now()
            expired_counters = [
                key for key, entry in self._counters.items() if entry.is_expired(now)
            ]
            for key in expired_counters:
                del self._counters[key]
            expired_blocks = [
                key for key, entry in self._blocks.items() if entry.is_expired(now)
            ]
            for key in expired_blocks:
                del self._blocks[key]
            return len(expired_counters) + len(expired_blocks)

    async def ping(self) -> bool:
        return not self._closed

    async def close(self) -> None:
        """Drop all state. Later operations raise StorageUnavailableError."""
        async with self._lock:
            self._counters.clear()
            self._blocks.clear()
            self._closed = True
