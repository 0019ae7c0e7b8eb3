"""
Index Trigger Registry Unit Tests

In-process registry with a controllable monotonic clock, and the Redis
registry against a mocked client.
"""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from notetree.services.index_triggers import (
    KEY_PREFIX,
    LocalIndexTriggerRegistry,
    RedisIndexTriggerRegistry,
)


class FakeMonotonic:
    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value


@pytest.mark.asyncio
async def test_local_claim_once_per_ttl():
    monotonic = FakeMonotonic()
    registry = LocalIndexTriggerRegistry(ttl_seconds=60, monotonic=monotonic)

    assert await registry.claim(1) is True
    assert await registry.claim(1) is False
    # Independent owners
    assert await registry.claim(2) is True

    monotonic.value += 59
    assert await registry.claim(1) is False
    monotonic.value += 1
    assert await registry.claim(1) is True


@pytest.mark.asyncio
async def test_local_reset_allows_new_claim():
    registry = LocalIndexTriggerRegistry(ttl_seconds=60, monotonic=FakeMonotonic())
    await registry.claim(1)

    await registry.reset(1)
    await registry.reset(99)  # Unknown owner is a no-op

    assert await registry.claim(1) is True


@pytest.mark.asyncio
async def test_local_registry_evicts_least_recent():
    registry = LocalIndexTriggerRegistry(
        ttl_seconds=60, max_entries=2, monotonic=FakeMonotonic()
    )
    for owner_id in (1, 2, 3):
        assert await registry.claim(owner_id) is True

    # Owner 1 was evicted, so it can claim again inside the TTL
    assert await registry.claim(1) is True
    assert await registry.claim(3) is False


@pytest.mark.asyncio
async def test_redis_claim_uses_set_nx_with_expiry():
    client = AsyncMock()
    client.set.side_effect = [True, None]
    registry = RedisIndexTriggerRegistry(client, ttl_seconds=3600)

    assert await registry.claim(7) is True
    assert await registry.claim(7) is False

    client.set.assert_called_with(f"{KEY_PREFIX}7", "1", nx=True, ex=3600)


@pytest.mark.asyncio
async def test_redis_failure_skips_trigger():
    client = AsyncMock()
    client.set.side_effect = RedisConnectionError("connection refused")
    client.delete.side_effect = RedisConnectionError("connection refused")
    registry = RedisIndexTriggerRegistry(client)

    assert await registry.claim(7) is False
    await registry.reset(7)


@pytest.mark.asyncio
async def test_redis_reset_and_close():
    client = AsyncMock()
    registry = RedisIndexTriggerRegistry(client)

    await registry.reset(7)
    await registry.close()

    client.delete.assert_awaited_once_with(f"{KEY_PREFIX}7")
    client.aclose.assert_awaited_once()
