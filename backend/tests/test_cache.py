"""Tests for the Redis lookup cache."""

import pytest
import redis.asyncio as redis

from app.config import settings
from app.utils import cache
from app.utils.cache import cache_key, cached


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = fail

    async def get(self, key):
        if self.fail:
            raise redis.ConnectionError("redis is down")
        return self.values.get(key)

    async def setex(self, key, ttl, value):
        self.values[key] = value
        self.ttls[key] = ttl


@pytest.fixture
def fake_redis(monkeypatch):
    client = FakeRedis()

    async def _get_redis():
        return client

    monkeypatch.setattr(settings, "redis_enabled", True)
    monkeypatch.setattr(cache, "get_redis", _get_redis)
    return client


@pytest.mark.unit
@pytest.mark.asyncio
class TestCacheUtility:

    async def test_cache_key_generation(self):
        assert cache_key(limit=50, offset=0) == cache_key(offset=0, limit=50)
        assert cache_key(limit=50, offset=0) != cache_key(limit=100, offset=0)
        assert cache_key() == "default"

    async def test_cached_decorator(self, fake_redis):
        call_count = 0

        @cached(ttl=10, prefix="test")
        async def expensive_function(store, team_id: str):
            nonlocal call_count
            call_count += 1
            return {"team": team_id}

        assert await expensive_function(object(), team_id="north") == {"team": "north"}
        assert await expensive_function(object(), team_id="north") == {"team": "north"}
        assert call_count == 1

        await expensive_function(object(), team_id="south")
        assert call_count == 2
        assert all(k.startswith("test:expensive_function:") for k in fake_redis.values)
        assert set(fake_redis.ttls.values()) == {10}

    async def test_redis_errors_fall_back_to_uncached(self, fake_redis):
        fake_redis.fail = True
        calls = []

        @cached(prefix="test")
        async def lookup():
            calls.append(1)
            return ["row"]

        assert await lookup() == ["row"]
        assert await lookup() == ["row"]
        assert len(calls) == 2

    async def test_disabled_bypasses_redis(self, monkeypatch):
        async def _unreachable():
            raise AssertionError("redis must not be contacted")

        monkeypatch.setattr(cache, "get_redis", _unreachable)

        @cached(prefix="test")
        async def lookup():
            return "fresh"

        assert not settings.redis_enabled
        assert await lookup() == "fresh"
