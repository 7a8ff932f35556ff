from __future__ import annotations

import socket

from celery import Celery
from celery.schedules import crontab
from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError

from moodboard_bg_worker.config import settings


LOCAL_BROKER_URL = "redis://localhost:6379/0"


def choose_broker_url() -> str:
    """
    Use the configured broker (usually redis://redis:6379/0); if it cannot
    be reached (DNS or connection error) fall back to a local Redis.
    """
    primary = settings.celery_broker_url

    try:
        client = Redis.from_url(primary)
        client.ping()
        return primary
    except (RedisConnectionError, socket.gaierror):
        pass

    client = Redis.from_url(LOCAL_BROKER_URL)
    client.ping()
    return LOCAL_BROKER_URL


celery_app = Celery(
    "moodboard_bg_worker",
    broker=settings.celery_broker_url,
    include=["moodboard_bg_worker.repairs_worker"],
)

celery_app.conf.timezone = settings.celery_timezone
celery_app.conf.beat_schedule = {
    "repairs-fix-corrupted-subscriptions": {
        "task": "repairs.fix_corrupted_subscriptions",
        "schedule": crontab(
            hour=settings.repairs_schedule_hour,
            minute=settings.repairs_schedule_minute,
        ),
    },
    # After the id repair, so freshly cleaned ids get their status re-synced.
    "repairs-fix-subscription-status": {
        "task": "repairs.fix_subscription_status",
        "schedule": crontab(
            hour=settings.repairs_schedule_hour,
            minute=(settings.repairs_schedule_minute + 10) % 60,
        ),
    },
}


__all__ = ["celery_app", "choose_broker_url"]
