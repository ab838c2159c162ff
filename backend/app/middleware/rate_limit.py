"""Rate limiting middleware using Redis.

Protects the public wizard endpoints and staff login from abuse with
per-user and per-IP limits.  Uses a sliding window per key; when Redis
is unreachable requests are allowed through (fail open).
"""

import logging
import time
from typing import Callable, Optional

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from app.auth.jwt import decode_token
from app.middleware.exceptions import create_error_response
from app.utils.cache import get_redis

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware with Redis backend.

    Features:
    - Per-user rate limits (staff requests with a bearer token)
    - Per-IP rate limits (applicants)
    - Sliding window algorithm
    - Configurable limits per endpoint pattern
    """

    def __init__(
        self,
        app,
        default_limit: int = 100,  # requests
        default_window: int = 60,  # seconds
        exempt_paths: Optional[list[str]] = None,
    ):
        super().__init__(app)
        self.default_limit = default_limit
        self.default_window = default_window
        self.exempt_paths = exempt_paths or ["/health", "/docs", "/openapi.json"]

        # Custom limits for specific endpoint patterns
        self.custom_limits = {
            "/api/auth/login": (5, 60),  # 5 requests per minute
            "/api/onboarding/next": (10, 300),  # new drafts per IP
            "/api/onboarding": (120, 60),
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Check rate limit before processing request."""

        if any(request.url.path.startswith(path) for path in self.exempt_paths):
            return await call_next(request)

        limit, window = self._get_limit_for_path(request.url.path)
        key = self._get_rate_limit_key(request)

        allowed, remaining, reset_time = await self._check_rate_limit(
            f"{key}:{limit}:{window}", limit, window
        )

        if not allowed:
            retry_after = max(int(reset_time - time.time()), 1)
            return create_error_response(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                message=f"Rate limit exceeded. Try again in {retry_after} seconds.",
                error_code="RATE_LIMITED",
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(int(reset_time)),
                    "Retry-After": str(retry_after),
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(int(reset_time))

        return response

    def _get_limit_for_path(self, path: str) -> tuple[int, int]:
        """Get rate limit and window for specific path."""
        for pattern, (limit, window) in self.custom_limits.items():
            if path.startswith(pattern):
                return limit, window
        return self.default_limit, self.default_window

    def _get_rate_limit_key(self, request: Request) -> str:
        """Get rate limit key (user ID or IP address)."""
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            user_id = decode_token(auth_header[7:]).get("sub")
            if user_id:
                return f"user:{user_id}"

        # Check for X-Forwarded-For (load balancer)
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
        else:
            ip = request.client.host if request.client else "unknown"

        return f"ip:{ip}"

    async def _check_rate_limit(
        self, key: str, limit: int, window: int
    ) -> tuple[bool, int, float]:
        """Check rate limit using sliding window algorithm.

        Returns:
            (allowed, remaining, reset_time)
        """
        current_time = time.time()
        window_start = current_time - window
        redis_key = f"ratelimit:{key}"

        try:
            redis_client = await get_redis()

            # Remove old entries outside the window
            await redis_client.zremrangebyscore(redis_key, 0, window_start)

            count = await redis_client.zcard(redis_key)

            if count >= limit:
                oldest = await redis_client.zrange(redis_key, 0, 0, withscores=True)
                if oldest:
                    reset_time = oldest[0][1] + window
                else:
                    reset_time = current_time + window
                return False, 0, reset_time

            await redis_client.zadd(redis_key, {str(current_time): current_time})
            await redis_client.expire(redis_key, window)

            remaining = limit - count - 1
            reset_time = current_time + window

            return True, remaining, reset_time

        except Exception as e:
            # If Redis fails, allow request (fail open)
            logger.error("Rate limit check failed: %s", e)
            return True, limit, current_time + window
