import logging
import time

import redis
from fastapi import Depends, HTTPException, Request, status

from common import config
from common.database import get_redis_connection

logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "ratelimit"


def client_address(request: Request) -> str:
    peer = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and peer in config.TRUSTED_PROXIES:
        return forwarded.split(",")[0].strip()
    return peer


def window_key(address: str, now: float, window: int) -> tuple:
    """Key of the fixed window containing ``now`` and the seconds left in it."""
    window_start = int(now) // window * window
    return f"{RATE_LIMIT_PREFIX}:{address}:{window_start}", window_start + window - int(now)


def hit(redis_conn, address: str, limit: int, window: int, now: float = None) -> tuple:
    """Count one request; returns (allowed, retry_after)."""
    key, retry_after = window_key(address, time.time() if now is None else now, window)
    pipe = redis_conn.pipeline()
    pipe.incr(key)
    pipe.expire(key, window)
    count, _ = pipe.execute()
    return count <= limit, retry_after


async def rate_limit(request: Request, redis_conn=Depends(get_redis_connection)):
    if redis_conn is None:
        return
    address = client_address(request)
    try:
        allowed, retry_after = hit(
            redis_conn, address, config.RATE_LIMIT_MAX, config.RATE_LIMIT_WINDOW_SECONDS
        )
    except redis.RedisError as e:
        logger.warning("Rate limiter unavailable, allowing request: %s", e)
        return
    if not allowed:
        logger.warning("Rate limit exceeded for %s on %s", address, request.url.path)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests from this IP, please try again in an hour!",
            headers={"Retry-After": str(retry_after)},
        )
