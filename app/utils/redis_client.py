from __future__ import annotations

import socket
from typing import Optional

from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.core.config import settings


LOCAL_REDIS_URL = "redis://localhost:6379/0"

_redis_client: Optional[Redis] = None


def _connect(url: str) -> Redis:
    client = Redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
        socket_timeout=settings.redis_socket_timeout_seconds,
    )
    client.ping()
    return client


def _create_redis_client() -> Redis:
    """
    Connect with CELERY_BROKER_URL; on a DNS or connection error retry
    against localhost so both docker-compose (host=redis) and a uvicorn
    started on the host work with the same .env.
    """
    try:
        return _connect(settings.celery_broker_url)
    except (RedisConnectionError, RedisTimeoutError, socket.gaierror):
        if settings.celery_broker_url == LOCAL_REDIS_URL:
            raise
    return _connect(LOCAL_REDIS_URL)


def get_redis() -> Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = _create_redis_client()
    return _redis_client


def reset_redis() -> None:
    global _redis_client
    _redis_client = None


__all__ = ["get_redis", "reset_redis", "LOCAL_REDIS_URL"]
