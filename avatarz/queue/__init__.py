from .celery_app import celery_app
from .tasks import generate_photo_thumbnail_task

__all__ = ["celery_app", "generate_photo_thumbnail_task"]
