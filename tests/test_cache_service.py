import asyncio

from src.storage.cache import CacheService
from tests.conftest import FakeAsyncRedis


def test_set_and_get_round_trip_json_with_ttl() -> None:
    redis = FakeAsyncRedis()
    cache = CacheService(redis)

    assert asyncio.run(cache.set("prompt_enhance:cat:anime", {"enhanced": "a cat", "score": 0.5}, 3600)) is True
    assert redis.expirations["prompt_enhance:cat:anime"] == 3600
    assert asyncio.run(cache.get("prompt_enhance:cat:anime")) == {"enhanced": "a cat", "score": 0.5}


def test_set_without_ttl_persists_key() -> None:
    redis = FakeAsyncRedis()
    cache = CacheService(redis)

    assert asyncio.run(cache.set("templates", ["a", "b"])) is True
    assert "templates" not in redis.expirations
    assert asyncio.run(cache.get("templates")) == ["a", "b"]
    assert asyncio.run(cache.delete("templates")) is True
    assert asyncio.run(cache.get("templates")) is None


def test_non_json_values_read_as_miss() -> None:
    redis = FakeAsyncRedis()
    redis.store["broken"] = "{not json"

    assert asyncio.run(CacheService(redis).get("broken")) is None


def test_backend_failures_degrade_to_miss() -> None:
    cache = CacheService(FakeAsyncRedis(fail=True))

    assert asyncio.run(cache.get("anything")) is None
    assert asyncio.run(cache.set("anything", {"a": 1}, 60)) is False
    assert asyncio.run(cache.delete("anything")) is False
