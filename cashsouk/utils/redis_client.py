from functools import lru_cache

from redis.asyncio import Redis

from cashsouk.core.settings import settings


@lru_cache(maxsize=1)
def get_redis_client() -> Redis:
    """Shared client for the product catalog cache.

    Short timeouts keep a slow Redis from holding up catalog reads; callers
    treat any Redis error as a cache miss.
    """
    return Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
    )
