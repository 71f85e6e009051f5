"""
openai_client.py — OpenAI SDK wrapper for image edits, with retry logic.
"""
from __future__ import annotations

import base64
import logging
import random
import threading
import time
from typing import Optional

import openai
from openai import OpenAI

from .config import (
    IMAGE_CONNECT_TIMEOUT,
    IMAGE_MAX_CONCURRENCY,
    IMAGE_MODEL_DEFAULT,
    IMAGE_QUALITY,
    IMAGE_READ_TIMEOUT,
    INPUT_TOKEN_COST,
    OPENAI_API_KEY,
    OUTPUT_TOKEN_COST,
    RETRY_ATTEMPTS,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
)
from .exceptions import ContentRestrictedError, ImageGenerationError, ImageGenerationTimeout
from .formats import generation_ratio_for
from .models import ImageResult

logger = logging.getLogger(__name__)

# Concurrency cap (shared per process; routes run in the threadpool)
_semaphore = threading.BoundedSemaphore(IMAGE_MAX_CONCURRENCY)

# Retryable status codes
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}

_MODERATION_CODES = {"moderation_blocked", "content_policy_violation"}

_SIZE_BY_RATIO = {
    "1:1": "1024x1024",
    "16:9": "1536x1024",
    "4:3": "1536x1024",
    "9:16": "1024x1536",
    "3:4": "1024x1536",
}


def _make_client(api_key: Optional[str] = None) -> OpenAI:
    return OpenAI(
        api_key=api_key or OPENAI_API_KEY,
        timeout=openai.Timeout(IMAGE_READ_TIMEOUT, connect=IMAGE_CONNECT_TIMEOUT),
        max_retries=0,
    )


def _backoff(attempt: int) -> float:
    """Exponential backoff with ±25% jitter."""
    delay = min(RETRY_BASE_DELAY * (2 ** attempt), RETRY_MAX_DELAY)
    jitter = delay * 0.25 * (2 * random.random() - 1)
    return delay + jitter


def size_for_ratio(aspect_ratio: Optional[str]) -> str:
    """Closest supported output size for an aspect ratio or banner id."""
    if not aspect_ratio:
        return _SIZE_BY_RATIO["1:1"]
    return _SIZE_BY_RATIO.get(generation_ratio_for(aspect_ratio), _SIZE_BY_RATIO["1:1"])


def calculate_cost(input_tokens: int, output_tokens: int) -> float:
    return input_tokens * INPUT_TOKEN_COST + output_tokens * OUTPUT_TOKEN_COST


def _is_moderation_block(exc: openai.APIStatusError) -> bool:
    code = getattr(exc, "code", None)
    if code in _MODERATION_CODES:
        return True
    return "safety system" in str(exc).lower()


def edit_image(
    *,
    prompt: str,
    image_bytes: bytes,
    mime_type: str = "image/png",
    size: str = "1024x1024",
    model: Optional[str] = None,
    api_key: Optional[str] = None,
) -> ImageResult:
    """
    Send the photo plus prompt to the image edit endpoint.

    Returns:
        ImageResult with PNG bytes and token usage.

    Raises:
        ContentRestrictedError: the provider refused on content grounds.
        ImageGenerationTimeout: the request exceeded the read timeout.
        ImageGenerationError: no image came back, or retries were exhausted.
    """
    client = _make_client(api_key)
    effective_model = model or IMAGE_MODEL_DEFAULT
    ext = mime_type.split("/")[-1].replace("jpeg", "jpg")
    image_file = (f"source.{ext}", image_bytes, mime_type)

    last_exc: Optional[Exception] = None
    with _semaphore:
        for attempt in range(RETRY_ATTEMPTS):
            try:
                logger.info(
                    "Image edit attempt %d/%d model=%s size=%s",
                    attempt + 1, RETRY_ATTEMPTS, effective_model, size,
                )
                response = client.images.edit(
                    model=effective_model,
                    image=image_file,
                    prompt=prompt,
                    size=size,
                    quality=IMAGE_QUALITY,
                    n=1,
                )
                return _to_result(response, effective_model)

            except openai.APITimeoutError as exc:
                logger.warning("Image edit timed out on attempt %d", attempt + 1)
                raise ImageGenerationTimeout("Generation timed out. Please try again.") from exc
            except openai.BadRequestError as exc:
                if _is_moderation_block(exc):
                    logger.info("Image edit refused by moderation: %s", exc)
                    raise ContentRestrictedError(
                        "Unable to generate this image due to content restrictions. Try a different prompt.",
                        extra={"finish_reason": "SAFETY"},
                    ) from exc
                raise ImageGenerationError(f"Image request rejected: {exc.message}") from exc
            except openai.RateLimitError as exc:
                last_exc = exc
                wait = _backoff(attempt)
                logger.warning("Image API 429 RateLimitError on attempt %d; sleeping %.1fs", attempt + 1, wait)
                time.sleep(wait)
            except openai.APIStatusError as exc:
                if exc.status_code in _RETRYABLE_STATUS:
                    last_exc = exc
                    wait = _backoff(attempt)
                    logger.warning(
                        "Image API status %d on attempt %d; sleeping %.1fs",
                        exc.status_code, attempt + 1, wait,
                    )
                    time.sleep(wait)
                else:
                    raise ImageGenerationError(f"Image request failed: {exc.message}") from exc
            except openai.APIConnectionError as exc:
                last_exc = exc
                wait = _backoff(attempt)
                logger.warning("Image API connection error on attempt %d; sleeping %.1fs", attempt + 1, wait)
                time.sleep(wait)

    raise ImageGenerationError("Image generation failed after all retries.") from last_exc


def _to_result(response, model: str) -> ImageResult:
    data = response.data or []
    b64 = data[0].b64_json if data else None
    if not b64:
        logger.error("No image in image edit response")
        raise ImageGenerationError("Failed to generate image. Please try again.")

    usage = getattr(response, "usage", None)
    input_tokens = getattr(usage, "input_tokens", 0) or 0
    output_tokens = getattr(usage, "output_tokens", 0) or 0
    total_tokens = getattr(usage, "total_tokens", 0) or input_tokens + output_tokens

    return ImageResult(
        image_bytes=base64.b64decode(b64),
        mime_type="image/png",
        model=model,
        prompt_tokens=input_tokens,
        completion_tokens=output_tokens,
        total_tokens=total_tokens,
    )
