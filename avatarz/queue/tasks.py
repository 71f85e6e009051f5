"""
queue/tasks.py — Celery tasks that delegate to core workers.

Tasks run without a user token, so they use the service client and rely on
the explicit user_id filter for ownership.
"""
from __future__ import annotations

import logging

from celery import Task
from celery.exceptions import MaxRetriesExceededError

from ..core.exceptions import NotFound
from ..core.supabase_client import SupabaseClient
from ..core.workers import generate_photo_thumbnail
from .celery_app import celery_app

logger = logging.getLogger(__name__)


class BaseWorkerTask(Task):
    abstract = True

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(
            "Task %s[%s] failed: %s",
            self.name, task_id, exc, exc_info=einfo,
        )


@celery_app.task(
    name="avatarz.queue.tasks.generate_photo_thumbnail_task",
    bind=True,
    base=BaseWorkerTask,
    max_retries=3,
    default_retry_delay=15,
)
def generate_photo_thumbnail_task(self, user_id: str, photo_id: str) -> dict:
    """
    Build the square thumbnail for an uploaded photo.

    Returns:
        The thumbnail job result (path, public URL, skipped flag).
    """
    client = SupabaseClient.service()
    try:
        return generate_photo_thumbnail(user_id, photo_id, client, client)
    except NotFound:
        # Deleted before the worker got to it
        logger.info("Photo %s no longer exists; skipping thumbnail", photo_id)
        return {"success": False, "skipped": True}
    except Exception as exc:
        logger.exception("Thumbnail generation failed for photo %s", photo_id)
        try:
            raise self.retry(exc=exc)
        except MaxRetriesExceededError:
            raise
