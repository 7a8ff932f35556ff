from __future__ import annotations

from moodboard_bg_worker.celery_app import celery_app, choose_broker_url
from moodboard_bg_worker.config import settings
from moodboard_bg_worker import repairs_worker  # noqa: F401  registers tasks


def main() -> None:
    celery_app.conf.broker_url = choose_broker_url()
    # Solo pool: prefork is unreliable on Windows.
    argv = ["worker", "--loglevel=info", "-P", "solo"]
    if settings.worker_embed_beat:
        argv.append("-B")
    celery_app.worker_main(argv)


if __name__ == "__main__":
    main()
