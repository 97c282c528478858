"""Tests for the Redis job-id mapping (Redis is mocked)."""

from __future__ import annotations

from unittest.mock import MagicMock

import redis

from backtest_pipeline.completion.job_mapping import KEY_PREFIX, JobMappingStore


def _store(ttl_hours: int | None = None) -> tuple[JobMappingStore, MagicMock]:
    client = MagicMock()
    return JobMappingStore(client, ttl_hours=ttl_hours), client


class TestSave:
    def test_default_ttl_is_24h(self) -> None:
        store, client = _store()
        store.save("job-1", 17)

        client.set.assert_called_once_with(f"{KEY_PREFIX}job-1", "17", ex=86400)

    def test_custom_ttl(self) -> None:
        store, client = _store(ttl_hours=2)
        store.save("job-1", 17)
        assert client.set.call_args.kwargs["ex"] == 7200


class TestResolveAndClear:
    def test_hit(self) -> None:
        store, client = _store()
        client.getdel.return_value = "17"

        assert store.resolve_and_clear("job-1") == 17
        client.getdel.assert_called_once_with("backtest:job:job-1")

    def test_miss(self) -> None:
        store, client = _store()
        client.getdel.return_value = None
        assert store.resolve_and_clear("job-1") is None

    def test_corrupt_value(self) -> None:
        store, client = _store()
        client.getdel.return_value = "not-a-number"
        assert store.resolve_and_clear("job-1") is None

    def test_redis_down(self) -> None:
        store, client = _store()
        client.getdel.side_effect = redis.ConnectionError("refused")
        assert store.resolve_and_clear("job-1") is None


class TestHousekeeping:
    def test_exists(self) -> None:
        store, client = _store()
        client.exists.return_value = 1
        assert store.exists("job-1") is True

    def test_remove(self) -> None:
        store, client = _store()
        store.remove("job-1")
        client.delete.assert_called_once_with("backtest:job:job-1")
