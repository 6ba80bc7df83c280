"""Rate limiting middleware using Redis.

Sliding window per caller: the user ID when the bearer token decodes,
otherwise the client IP.  Login, registration and analysis (which spends
LLM credits) have tighter limits than everything else.
"""

import logging
import time
from typing import Callable, Optional

from fastapi import Request, Response, status
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from croptrail.auth.jwt import decode_token
from croptrail.config import settings
from croptrail.middleware.exceptions import AuthenticationError, create_error_response
from croptrail.utils.redis_client import get_redis

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
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

        self.custom_limits = {
            "/api/auth/login": (5, 60),
            "/api/auth/register": (3, 300),
            "/api/analysis": (10, 60),
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.rate_limit_enabled or request.method == "OPTIONS":
            return await call_next(request)
        if any(request.url.path.startswith(path) for path in self.exempt_paths):
            return await call_next(request)

        bucket, limit, window = self._get_limit_for_path(request.url.path)
        key = f"{self._get_rate_limit_key(request)}:{bucket}"

        allowed, remaining, reset_time = await self._check_rate_limit(key, limit, window)

        if not allowed:
            retry_after = max(int(reset_time - time.time()), 1)
            # Middleware runs outside the exception handlers, so respond directly.
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

    def _get_limit_for_path(self, path: str) -> tuple[str, int, int]:
        """Return (bucket, limit, window); tighter paths get their own bucket."""
        for pattern, (limit, window) in self.custom_limits.items():
            if path.startswith(pattern):
                return pattern, limit, window
        return "default", self.default_limit, self.default_window

    def _get_rate_limit_key(self, request: Request) -> str:
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            try:
                user_id = decode_token(auth_header[7:]).get("sub")
            except AuthenticationError:
                user_id = None
            if user_id:
                return f"user:{user_id}"

        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
        else:
            ip = request.client.host if request.client else "unknown"
        return f"ip:{ip}"

    async def _check_rate_limit(
        self, key: str, limit: int, window: int
    ) -> tuple[bool, int, float]:
        """Sliding window over a sorted set of request timestamps.

        Returns:
            (allowed, remaining, reset_time)
        """
        redis_client = await get_redis()
        now = time.time()
        redis_key = f"ratelimit:{key}"

        try:
            async with redis_client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(redis_key, 0, now - window)
                pipe.zcard(redis_key)
                pipe.zrange(redis_key, 0, 0, withscores=True)
                _, count, oldest = await pipe.execute()

            if count >= limit:
                reset_time = oldest[0][1] + window if oldest else now + window
                return False, 0, reset_time

            async with redis_client.pipeline(transaction=True) as pipe:
                pipe.zadd(redis_key, {f"{now:.6f}": now})
                pipe.expire(redis_key, window)
                await pipe.execute()
            return True, limit - count - 1, now + window

        except RedisError as e:
            # Fail open.
            logger.error(f"Rate limit check failed: {e}")
            return True, limit, now + window
