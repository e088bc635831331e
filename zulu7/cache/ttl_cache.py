"""
Zulu7 — TTL Caches
───────────────────
Key → value stores where an entry is only valid for a fixed window after
it was written.

Stale entries are never purged. They are ignored on read and replaced on
the next write, so memory grows with the number of distinct keys seen.
Nothing here is locked; two requests refreshing the same key both fetch
and the last write wins.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from zulu7.cache.redis_client import cache_key
from zulu7.cache.ttl_config import TTL

log = logging.getLogger("zulu7.cache")

Clock = Callable[[], float]


class TTLCache:
    """In-memory TTL cache. `clock` returns seconds and can be faked in tests."""

    def __init__(self, ttl: float, name: str = "cache", clock: Clock = time.time):
        self.ttl   = ttl
        self.name  = name
        self.clock = clock
        self._store: Dict[str, Tuple[float, Any]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        if entry and (self.clock() - entry[0]) < self.ttl:
            log.debug(f"{self.name}: hit {key[:60]}")
            return entry[1]
        return None

    async def set(self, key: str, value: Any) -> None:
        self._store[key] = (self.clock(), value)

    def __len__(self) -> int:
        return len(self._store)


class RedisTTLCache(TTLCache):
    """
    Same contract, stored in Redis with SETEX so the TTL is enforced server side.
    Any Redis error drops back to the in-memory map for that call.
    """

    def __init__(self, redis, ttl: float, name: str = "cache", clock: Clock = time.time):
        super().__init__(ttl, name, clock)
        self.redis = redis

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis.get(cache_key(self.name, key))
            return json.loads(raw) if raw else None
        except Exception as e:
            log.warning(f"{self.name}: redis get failed ({e}), using memory")
            return await super().get(key)

    async def set(self, key: str, value: Any) -> None:
        try:
            await self.redis.setex(cache_key(self.name, key), int(self.ttl), json.dumps(value))
        except Exception as e:
            log.warning(f"{self.name}: redis set failed ({e}), using memory")
            await super().set(key, value)


@dataclass
class Caches:
    """The process-wide caches, built once at startup and handed to each handler."""
    market: TTLCache
    titles: TTLCache
    folders: TTLCache


def build_caches(redis=None, clock: Clock = time.time) -> Caches:
    if redis is not None:
        return Caches(
            market=RedisTTLCache(redis, TTL["market"], "market", clock),
            titles=RedisTTLCache(redis, TTL["title"], "titles", clock),
            folders=RedisTTLCache(redis, TTL["folder"], "folders", clock),
        )
    return Caches(
        market=TTLCache(TTL["market"], "market", clock),
        titles=TTLCache(TTL["title"], "titles", clock),
        folders=TTLCache(TTL["folder"], "folders", clock),
    )
