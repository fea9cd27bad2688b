"""Process-wide Redis connection backing the referral broadcaster."""

from __future__ import annotations

from urllib.parse import urlparse

from redis.asyncio import Redis

from referral_tracker.core.config import RedisSettings, Settings, get_settings

_IN_MEMORY_SCHEMES = frozenset({"fakeredis", "memory"})

_REDIS: Redis | None = None


def _create_client(redis_settings: RedisSettings) -> Redis:
    scheme = urlparse(redis_settings.url).scheme.lower()
    if scheme in _IN_MEMORY_SCHEMES:
        # fakeredis ships with the test extra only.
        from fakeredis.aioredis import FakeRedis

        return FakeRedis(decode_responses=True)
    return Redis.from_url(redis_settings.url, encoding="utf-8", decode_responses=True)


async def init_redis(settings: Settings | None = None) -> Redis:
    """Connect once using ``settings.redis`` and cache the client."""

    global _REDIS
    if _REDIS is None:
        client = _create_client((settings or get_settings()).redis)
        await client.ping()
        _REDIS = client
    return _REDIS


async def get_redis(settings: Settings | None = None) -> Redis:
    return await init_redis(settings)


async def close_redis() -> None:
    global _REDIS
    if _REDIS is not None:
        await _REDIS.aclose()
        _REDIS = None
