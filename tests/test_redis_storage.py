"""Tests for the Redis storage backend.

The Redis client is replaced by an in-process fake that mimics the
commands the backend uses, including the increment Lua script.
"""

import time

import pytest
import redis

from reqthrottle.app.exceptions import StorageUnavailableError
from reqthrottle.app.storage import RedisStorage
from reqthrottle.app.storage.redis_lua import INCREMENT_SCRIPT


@pytest.fixture
def storage(mock_redis):
    return RedisStorage(redis_client=mock_redis)


class TestRedisStorageOperations:
    """Tests for the storage contract against the fake client."""

    @pytest.mark.asyncio
    async def test_increment_counts_and_sets_window(self, storage, mock_redis):
        for i in range(1, 6):
            assert await storage.increment("192.168.1.1", 1.0) == i
        mock_redis.eval.assert_awaited_with(INCREMENT_SCRIPT, 1, "192.168.1.1", 1000)
        assert mock_redis.expires["192.168.1.1"] > time.time()

    @pytest.mark.asyncio
    async def test_increment_window_in_milliseconds(self, storage, mock_redis):
        await storage.increment("key", 0.25)
        mock_redis.eval.assert_awaited_with(INCREMENT_SCRIPT, 1, "key", 250)

    @pytest.mark.asyncio
    async def test_block_uses_prefixed_key(self, storage, mock_redis):
        await storage.block("test-token", 5)
        mock_redis.set.assert_awaited_once_with("blocked:test-token", "1", px=5000)
        assert await storage.is_blocked("test-token") is True
        mock_redis.exists.assert_awaited_with("blocked:test-token")

    @pytest.mark.asyncio
    async def test_counter_and_block_do_not_collide(self, storage, mock_redis):
        await storage.increment("key", 1.0)
        assert await storage.is_blocked("key") is False
        await storage.block("key", 5)
        assert mock_redis.data["key"] == "1"
        assert await storage.increment("key", 1.0) == 2

    @pytest.mark.asyncio
    async def test_block_expires(self, storage, mock_redis):
        await storage.block("key", 5)
        mock_redis.expires["blocked:key"] = time.time() - 1
        assert await storage.is_blocked("key") is False

    @pytest.mark.asyncio
    async def test_reset_deletes_both_keys_at_once(self, storage, mock_redis):
        await storage.increment("token", 1.0)
        await storage.block("token", 5)
        await storage.reset("token")
        mock_redis.delete.assert_awaited_once_with("token", "blocked:token")
        assert "token" not in mock_redis.data
        assert await storage.is_blocked("token") is False

    @pytest.mark.asyncio
    async def test_clear_counter_keeps_block(self, storage, mock_redis):
        await storage.increment("token", 1.0)
        await storage.block("token", 5)
        await storage.clear_counter("token")
        mock_redis.delete.assert_awaited_once_with("token")
        assert "token" not in mock_redis.data
        assert await storage.is_blocked("token") is True
        assert await storage.increment("token", 1.0) == 1

    def test_block_key(self):
        assert RedisStorage.block_key("1.2.3.4") == "blocked:1.2.3.4"


class TestRedisStorageErrors:
    """Tests for translating Redis failures into StorageUnavailableError."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            redis.ConnectionError("connection refused"),
            redis.TimeoutError("timed out"),
            redis.ResponseError("WRONGTYPE"),
            OSError("network unreachable"),
        ],
    )
    async def test_increment_failure(self, storage, mock_redis, error):
        mock_redis.eval.side_effect = error
        with pytest.raises(StorageUnavailableError) as exc_info:
            await storage.increment("key", 1.0)
        assert exc_info.value.operation == "increment"
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_is_blocked_failure(self, storage, mock_redis):
        mock_redis.exists.side_effect = redis.ConnectionError("down")
        with pytest.raises(StorageUnavailableError):
            await storage.is_blocked("key")

    @pytest.mark.asyncio
    async def test_block_failure(self, storage, mock_redis):
        mock_redis.set.side_effect = redis.TimeoutError("slow")
        with pytest.raises(StorageUnavailableError):
            await storage.block("key", 5)

    @pytest.mark.asyncio
    async def test_reset_failure(self, storage, mock_redis):
        mock_redis.delete.side_effect = redis.ConnectionError("down")
        with pytest.raises(StorageUnavailableError):
            await storage.reset("key")

    @pytest.mark.asyncio
    async def test_clear_counter_failure(self, storage, mock_redis):
        mock_redis.delete.side_effect = redis.ConnectionError("down")
        with pytest.raises(StorageUnavailableError) as exc_info:
            await storage.clear_counter("key")
        assert exc_info.value.operation == "clear_counter"

    @pytest.mark.asyncio
    async def test_operations_fail_after_close(self, storage, mock_redis):
        await storage.close()
        with pytest.raises(StorageUnavailableError):
            await storage.increment("key", 1.0)
        mock_redis.eval.assert_not_awaited()


class TestRedisStorageLifecycle:
    """Tests for connecting and closing."""

    @pytest.mark.asyncio
    async def test_connect_pings(self, mock_redis):
        storage = await RedisStorage.connect(redis_client=mock_redis)
        mock_redis.ping.assert_awaited_once()
        assert await storage.ping() is True

    @pytest.mark.asyncio
    async def test_connect_failure_raises(self, mock_redis):
        mock_redis.ping.side_effect = redis.ConnectionError("nonexistent")
        with pytest.raises(StorageUnavailableError) as exc_info:
            await RedisStorage.connect(redis_client=mock_redis)
        assert exc_info.value.operation == "connect"
        mock_redis.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ping_reports_failure(self, storage, mock_redis):
        mock_redis.ping.side_effect = redis.ConnectionError("down")
        assert await storage.ping() is False

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, storage, mock_redis):
        await storage.close()
        await storage.close()
        mock_redis.aclose.assert_awaited_once()
        assert await storage.ping() is False

    def test_builds_client_from_parameters(self):
        storage = RedisStorage(host="cache", port=6380, password="secret", db=2)
        kwargs = storage._redis.connection_pool.connection_kwargs
        assert kwargs["host"] == "cache"
        assert kwargs["port"] == 6380
        assert kwargs["password"] == "secret"
        assert kwargs["db"] == 2

    def test_empty_password_means_none(self):
        storage = RedisStorage()
        assert storage._redis.connection_pool.connection_kwargs["password"] is None
