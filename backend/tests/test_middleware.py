"""Tests for health checks, security headers and rate limiting."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.middleware import rate_limit
from app.middleware.rate_limit import RateLimitMiddleware


class FakeSortedSets:
    """Just enough of the Redis sorted-set API for the sliding window."""

    def __init__(self):
        self.sets: dict[str, dict[str, float]] = {}

    async def zremrangebyscore(self, key, low, high):
        members = self.sets.get(key, {})
        for member, score in list(members.items()):
            if low <= score <= high:
                del members[member]

    async def zcard(self, key):
        return len(self.sets.get(key, {}))

    async def zrange(self, key, start, stop, withscores=False):
        ordered = sorted(self.sets.get(key, {}).items(), key=lambda item: item[1])
        return ordered[start:stop + 1]

    async def zadd(self, key, mapping):
        self.sets.setdefault(key, {}).update(mapping)

    async def expire(self, key, seconds):
        return True


def _limited_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, default_limit=2, default_window=60)

    @app.get("/api/onboarding/steps")
    async def steps():
        return []

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


@pytest.mark.api
@pytest.mark.asyncio
class TestHealthAndHeaders:

    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["service"] == "triguard-onboarding"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert "Cache-Control" not in resp.headers

    async def test_ready_checks_database(self, client: AsyncClient):
        resp = await client.get("/health/ready")
        assert resp.status_code == 200
        checks = resp.json()["checks"]
        assert checks["database"] == "ok"
        assert checks["redis"] == "disabled"

    async def test_api_responses_are_not_cached(self, client: AsyncClient):
        resp = await client.get("/api/onboarding/steps")
        assert resp.headers["Cache-Control"] == "no-store"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.unit
@pytest.mark.asyncio
class TestRateLimit:

    async def test_custom_limits_by_path(self, monkeypatch):
        fake = FakeSortedSets()

        async def _get_redis():
            return fake

        monkeypatch.setattr(rate_limit, "get_redis", _get_redis)
        transport = ASGITransport(app=_limited_app())
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            # /api/onboarding has its own, larger limit
            for _ in range(3):
                assert (await client.get("/api/onboarding/steps")).status_code == 200

            middleware = RateLimitMiddleware(None, default_limit=2, default_window=60)
            assert middleware._get_limit_for_path("/api/onboarding/next") == (10, 300)
            assert middleware._get_limit_for_path("/api/admin/webhooks") == (2, 60)

    async def test_exceeding_limit_returns_429(self, monkeypatch):
        fake = FakeSortedSets()

        async def _get_redis():
            return fake

        monkeypatch.setattr(rate_limit, "get_redis", _get_redis)
        app = FastAPI()
        app.add_middleware(RateLimitMiddleware, default_limit=2, default_window=60)

        @app.get("/api/admin/ping")
        async def ping():
            return {"ok": True}

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            first = await client.get("/api/admin/ping")
            assert first.headers["X-RateLimit-Remaining"] == "1"
            await client.get("/api/admin/ping")
            blocked = await client.get("/api/admin/ping")

        assert blocked.status_code == 429
        assert blocked.json()["error"]["code"] == "RATE_LIMITED"
        assert int(blocked.headers["Retry-After"]) >= 1

    async def test_redis_outage_fails_open(self, monkeypatch):
        async def _get_redis():
            raise ConnectionError("redis is down")

        monkeypatch.setattr(rate_limit, "get_redis", _get_redis)
        async with AsyncClient(transport=ASGITransport(app=_limited_app()), base_url="http://test") as client:
            for _ in range(4):
                assert (await client.get("/api/onboarding/steps")).status_code == 200
            assert (await client.get("/health")).status_code == 200
