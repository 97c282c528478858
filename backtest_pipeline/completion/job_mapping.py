"""Redis-backed mapping from engine job id to backtest id.

The engine only knows its own job id; the callback must be routed back to
the backtest that submitted it. A mapping is written when a run is
submitted, kept for ``job_mapping_ttl_hours`` (24h by default) and
consumed exactly once when the callback arrives.

Usage::

    from backtest_pipeline.core.redis import get_redis

    mapping = JobMappingStore(get_redis())
    mapping.save("job-42", 17)
    mapping.resolve_and_clear("job-42")  # -> 17, key removed
"""

from __future__ import annotations

from typing import Optional

import redis
import structlog

from backtest_pipeline.core.config import settings

logger = structlog.get_logger(__name__)

KEY_PREFIX = "backtest:job:"


class JobMappingStore:
    """Get-and-delete mapping of engine job ids.

    Parameters
    ----------
    redis_client : redis.Redis
        A sync Redis client with ``decode_responses=True``
        (from ``backtest_pipeline.core.redis.get_redis``).
    ttl_hours : int, optional
        Lifetime of each mapping; defaults to ``settings.job_mapping_ttl_hours``.
    """

    def __init__(self, redis_client: redis.Redis, ttl_hours: int | None = None) -> None:
        self._redis = redis_client
        self.ttl_seconds = (
            ttl_hours if ttl_hours is not None else settings.job_mapping_ttl_hours
        ) * 3600

    @staticmethod
    def key(job_id: str) -> str:
        return f"{KEY_PREFIX}{job_id}"

    def save(self, job_id: str, backtest_id: int) -> None:
        """Record ``job_id -> backtest_id`` with the configured TTL."""
        self._redis.set(self.key(job_id), str(backtest_id), ex=self.ttl_seconds)
        logger.debug("job_mapping_saved", job_id=job_id, backtest_id=backtest_id)

    def resolve_and_clear(self, job_id: str) -> Optional[int]:
        """Atomically read and delete the mapping.

        Returns None for unknown or expired job ids, for unreadable values,
        and when Redis is unreachable.
        """
        try:
            raw = self._redis.getdel(self.key(job_id))
        except redis.RedisError:
            logger.warning("job_mapping_resolve_failed", job_id=job_id, exc_info=True)
            return None

        if raw is None:
            logger.debug("job_mapping_miss", job_id=job_id)
            return None
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning("job_mapping_corrupt", job_id=job_id, value=raw)
            return None

    def exists(self, job_id: str) -> bool:
        return bool(self._redis.exists(self.key(job_id)))

    def remove(self, job_id: str) -> None:
        self._redis.delete(self.key(job_id))
