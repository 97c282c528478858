"""Shared Redis client for the job id -> backtest id mapping.

One ConnectionPool per process, created lazily. The client is bound to the
pool with ``connection_pool=`` so closing the client leaves the pool to
``close_redis()``.

    from backtest_pipeline.core.redis import get_redis

    get_redis().set("key", "value", ex=60)
"""

import redis

from .config import settings

_pool: redis.ConnectionPool | None = None
_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    """Return the process-wide client, building the pool on first use.

    Responses are decoded, so values come back as ``str``.
    """
    global _pool, _client
    if _client is None:
        _pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            max_connections=settings.redis_max_connections,
            decode_responses=True,
        )
        _client = redis.Redis(connection_pool=_pool)
    return _client


def close_redis() -> None:
    """Drop the client and disconnect the pool. Idempotent."""
    global _pool, _client
    if _client is not None:
        _client.close()
        _client = None
    if _pool is not None:
        _pool.disconnect()
        _pool = None
