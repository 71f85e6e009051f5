"""
queue/worker.py — Worker process entry point.

Run with:
  celery -A avatarz.queue.worker worker --loglevel=info -Q photo_thumbnails
"""
from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

# Import tasks so Celery discovers them
from .tasks import generate_photo_thumbnail_task  # noqa: E402,F401
from .celery_app import celery_app  # noqa: E402,F401

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
