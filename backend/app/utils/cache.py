"""Redis caching utilities for the onboarding service.

Caches read-mostly lookups (team/manager/recruiter options for the team
step).  Every Redis failure falls back to the uncached call.
"""

import functools
import hashlib
import json
import logging
from datetime import date, datetime
from typing import Callable, Optional

import redis.asyncio as redis
from app.config import settings

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create Redis client connection."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    """Close Redis connection (call on app shutdown)."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def cache_key(**kwargs) -> str:
    """Deterministic hash of the simple keyword arguments of a call."""
    if not kwargs:
        return "default"
    key_data = json.dumps(kwargs, sort_keys=True)
    return hashlib.md5(key_data.encode()).hexdigest()


def cached(ttl: int = 300, prefix: str = "cache"):
    """Decorator to cache an async function's JSON-able result in Redis.

    Positional arguments are treated as injected dependencies (data store,
    session) and left out of the key.

    Example:
        @cached(ttl=300, prefix="options")
        async def load_options(store: DataStore) -> OnboardingOptions:
            ...

    Cache keys: {prefix}:{function_name}:{kwargs_hash}
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            if not settings.redis_enabled:
                return await func(*args, **kwargs)

            cache_kwargs = {}
            for k, v in kwargs.items():
                if isinstance(v, (int, str, bool, float, type(None))):
                    cache_kwargs[k] = v
                elif isinstance(v, (date, datetime)):
                    cache_kwargs[k] = v.isoformat()
            key = f"{prefix}:{func.__name__}:{cache_key(**cache_kwargs)}"

            try:
                redis_client = await get_redis()
                cached_value = await redis_client.get(key)
            except redis.RedisError as e:
                logger.warning("Redis error (falling back to uncached): %s", e)
                return await func(*args, **kwargs)

            if cached_value:
                logger.debug("Cache HIT: %s", key)
                return json.loads(cached_value)

            logger.debug("Cache MISS: %s", key)
            result = await func(*args, **kwargs)

            if hasattr(result, "model_dump"):
                serialized = result.model_dump(mode="json")
            else:
                serialized = result

            try:
                await redis_client.setex(key, ttl, json.dumps(serialized))
            except redis.RedisError as e:
                logger.warning("Could not store %s in cache: %s", key, e)

            return result

        return wrapper

    return decorator
