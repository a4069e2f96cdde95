"""Shared test fixtures."""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from reqthrottle.app.storage.redis_lua import INCREMENT_SCRIPT


@pytest.fixture
def mock_redis():
    """Create a mock Redis client for testing."""
    client = MagicMock()
    client.data = {}
    client.expires = {}

    def _alive(key):
        if key in client.expires and client.expires[key] <= time.time():
            client.data.pop(key, None)
            client.expires.pop(key, None)
        return key in client.data

    async def mock_eval(script, num_keys, *args):
        """Simulate INCREMENT_SCRIPT: INCR plus PEXPIRE on creation."""
        assert script == INCREMENT_SCRIPT
        assert num_keys == 1
        key, window_ms = args
        _alive(key)
        count = int(client.data.get(key, 0)) + 1
        client.data[key] = str(count)
        if count == 1 or key not in client.expires:
            client.expires[key] = time.time() + int(window_ms) / 1000
        return count

    async def mock_exists(*keys):
        return sum(1 for key in keys if _alive(key))

    async def mock_set(key, value, px=None):
        client.data[key] = value
        if px is not None:
            client.expires[key] = time.time() + px / 1000
        else:
            client.expires.pop(key, None)
        return True

    async def mock_delete(*keys):
        removed = 0
        for key in keys:
            if client.data.pop(key, None) is not None:
                removed += 1
            client.expires.pop(key, None)
        return removed

    client.eval = AsyncMock(side_effect=mock_eval)
    client.exists = AsyncMock(side_effect=mock_exists)
    client.set = AsyncMock(side_effect=mock_set)
    client.delete = AsyncMock(side_effect=mock_delete)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client
