"""
Shared Redis client for the rate limiter and the detailed health check.

get_redis_client() returns None while Redis is unreachable and only retries
the connection every RECONNECT_BACKOFF_S seconds, so a dead Redis costs one
failed connect per backoff window instead of one per request.
"""
import logging
import time
from typing import Optional

import redis
from redis.exceptions import RedisError

from core.config import settings

logger = logging.getLogger(__name__)

RECONNECT_BACKOFF_S = 30

_client: Optional[redis.Redis] = None
_down_since: Optional[float] = None


def _connect() -> redis.Redis:
    client = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
        health_check_interval=30,
    )
    client.ping()
    return client


def get_redis_client() -> Optional[redis.Redis]:
    global _client, _down_since

    if _client is not None:
        return _client
    if _down_since is not None and time.monotonic() - _down_since < RECONNECT_BACKOFF_S:
        return None

    try:
        _client = _connect()
    except RedisError as e:
        if _down_since is None:
            logger.warning(f"Redis unreachable ({e}); rate limiting is off until it returns")
        _down_since = time.monotonic()
        return None

    if _down_since is not None:
        logger.info("Redis reachable again")
    _down_since = None
    return _client


def reset_redis_client() -> None:
    """Forget the current client; the next call reconnects."""
    global _client, _down_since
    _client = None
    _down_since = None
