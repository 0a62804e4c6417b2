"""
Per-caller request throttling.

Fixed 60s windows counted in Redis under rate_limit:<caller>:<path>, where the
caller is the access token subject when a valid bearer token is sent and the
client IP otherwise. Credential endpoints get their own, much tighter limit.
When Redis is down or errors, requests are let through.
"""
import logging
import time
from typing import Dict, NamedTuple, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from core.cache import get_redis_client, reset_redis_client
from core.config import settings
from core.exceptions import ErrorCode
from core.responses import error_body
from core.security import TokenExpired, decode_access_token

logger = logging.getLogger(__name__)

EXEMPT_PATHS = frozenset({"/health", "/health/detailed", "/ping", "/docs", "/openapi.json", "/redoc"})
CREDENTIAL_PATHS = ("/auth/login", "/auth/register", "/auth/forgot-password", "/auth/reset-password")


class Window(NamedTuple):
    allowed: bool
    remaining: int
    reset_at: int


def caller_key(request: Request) -> str:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme == "Bearer" and token:
        try:
            claims = decode_access_token(token)
        except TokenExpired:
            claims = None
        if claims and claims.get("sub"):
            return f"user:{claims['sub']}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        default_limit: int = 100,
        window: int = 60,
        endpoint_limits: Optional[Dict[str, int]] = None,
    ):
        super().__init__(app)
        self.default_limit = default_limit
        self.window = window
        if endpoint_limits is None:
            endpoint_limits = {path: settings.RATE_LIMIT_AUTH_PER_MINUTE for path in CREDENTIAL_PATHS}
        self.endpoint_limits = endpoint_limits

    def limit_for(self, path: str) -> int:
        if path in self.endpoint_limits:
            return self.endpoint_limits[path]
        return next(
            (limit for prefix, limit in self.endpoint_limits.items() if path.startswith(prefix)),
            self.default_limit,
        )

    def count(self, key: str, limit: int) -> Window:
        now = int(time.time())
        client = get_redis_client()
        if client is None:
            return Window(True, limit, now + self.window)
        try:
            pipe = client.pipeline()
            pipe.incr(key)
            pipe.expire(key, self.window, nx=True)
            pipe.ttl(key)
            hits, _, ttl = pipe.execute()
        except RedisError as e:
            logger.error(f"Rate limit counter unavailable, letting request through: {e}")
            reset_redis_client()
            return Window(True, limit, now + self.window)

        reset_at = now + (ttl if ttl and ttl > 0 else self.window)
        return Window(hits <= limit, max(0, limit - hits), reset_at)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in EXEMPT_PATHS:
            return await call_next(request)

        limit = self.limit_for(path)
        window = self.count(f"rate_limit:{caller_key(request)}:{path}", limit)
        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(window.remaining),
            "X-RateLimit-Reset": str(window.reset_at),
        }

        if not window.allowed:
            headers["Retry-After"] = str(max(1, window.reset_at - int(time.time())))
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=error_body(
                    ErrorCode.RATE_LIMIT_EXCEEDED,
                    "Too many requests",
                    {"limit": limit, "window": self.window, "reset_at": window.reset_at},
                ),
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
