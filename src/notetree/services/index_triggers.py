"""
Index Trigger Registry

Remembers which owners already had a search-triggered indexing pass, so a
burst of searches queues the owner's unindexed notes once per TTL window.

Two backends:
    - RedisIndexTriggerRegistry: shared across workers (SET key NX EX ttl).
    - LocalIndexTriggerRegistry: in-process fallback when Redis is down,
      bounded by LRU eviction so it cannot grow without limit.
"""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

KEY_PREFIX = "notetree:index-trigger:"


class IndexTriggerRegistry(Protocol):
    async def claim(self, owner_id: int) -> bool:
        """Return True if the caller should trigger indexing for owner_id now."""
        ...

    async def reset(self, owner_id: int) -> None: ...


class LocalIndexTriggerRegistry:
    def __init__(
        self,
        ttl_seconds: int = 3600,
        max_entries: int = 10_000,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._monotonic = monotonic
        self._claimed_at: OrderedDict[int, float] = OrderedDict()

    async def claim(self, owner_id: int) -> bool:
        now = self._monotonic()
        claimed_at = self._claimed_at.get(owner_id)
        if claimed_at is not None and now - claimed_at < self._ttl:
            return False

        self._claimed_at[owner_id] = now
        self._claimed_at.move_to_end(owner_id)
        while len(self._claimed_at) > self._max_entries:
            self._claimed_at.popitem(last=False)
        return True

    async def reset(self, owner_id: int) -> None:
        self._claimed_at.pop(owner_id, None)


class RedisIndexTriggerRegistry:
    """
    Registry backed by Redis key expiry.

    A Redis failure during claim is logged and treated as "already claimed":
    skipping one auto-index pass is harmless, the next search retries.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int = 3600) -> None:
        self._client = client
        self._ttl = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 3600) -> "RedisIndexTriggerRegistry":
        return cls(redis.from_url(url, decode_responses=True), ttl_seconds)

    async def claim(self, owner_id: int) -> bool:
        try:
            created = await self._client.set(
                f"{KEY_PREFIX}{owner_id}", "1", nx=True, ex=self._ttl
            )
        except RedisError as e:
            logger.warning("Index trigger claim failed for owner %s: %s", owner_id, e)
            return False
        return bool(created)

    async def reset(self, owner_id: int) -> None:
        try:
            await self._client.delete(f"{KEY_PREFIX}{owner_id}")
        except RedisError as e:
            logger.warning("Index trigger reset failed for owner %s: %s", owner_id, e)

    async def close(self) -> None:
        await self._client.aclose()
