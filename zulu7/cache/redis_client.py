"""
Zulu7 — Redis Client
─────────────────────
Optional shared backing store for the TTL caches.
If Redis is not configured or not reachable, every cache stays in memory.
"""

import logging
from typing import Optional

import redis.asyncio as aioredis

log = logging.getLogger("zulu7.cache.redis")


async def connect_redis(url: str) -> Optional[aioredis.Redis]:
    """Connect and ping. Returns None when Redis is unusable."""
    if not url:
        return None
    try:
        client = aioredis.from_url(url, decode_responses=True, socket_timeout=2)
        await client.ping()
        log.info("Redis connected")
        return client
    except Exception as e:
        log.warning(f"Redis unavailable ({e}) - using in-memory cache")
        return None


def cache_key(namespace: str, key: str) -> str:
    return f"zulu7:{namespace}:{key}"
