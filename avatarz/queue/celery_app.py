"""
queue/celery_app.py — Celery application configuration.
"""
from __future__ import annotations

from celery import Celery

from ..core.config import REDIS_URL

celery_app = Celery(
    "avatarz",
    broker=REDIS_URL,
    backend=REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,       # thumbnails are CPU-bound; one at a time
    task_routes={
        "avatarz.queue.tasks.generate_photo_thumbnail_task": {"queue": "photo_thumbnails"},
    },
    task_max_retries=3,
    task_default_retry_delay=15,        # seconds
    result_expires=3600,
)
