"""
test_openai_client.py — Image edit wrapper: result mapping, moderation, timeouts and retries.
"""
from __future__ import annotations

import base64
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import openai
import pytest

from avatarz.core.config import RETRY_ATTEMPTS
from avatarz.core.exceptions import ContentRestrictedError, ImageGenerationError, ImageGenerationTimeout
from avatarz.core.openai_client import calculate_cost, edit_image

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/images/edits")


def _response(b64: str = None, usage=None):
    b64 = b64 if b64 is not None else base64.b64encode(b"png-bytes").decode("ascii")
    return SimpleNamespace(
        data=[SimpleNamespace(b64_json=b64)],
        usage=usage or SimpleNamespace(input_tokens=100, output_tokens=400, total_tokens=500),
    )


def _status_error(cls, status: int, body=None):
    return cls("upstream said no", response=httpx.Response(status, request=_REQUEST), body=body)


@pytest.fixture
def images_api():
    client = MagicMock()
    with patch("avatarz.core.openai_client._make_client", return_value=client), \
         patch("avatarz.core.openai_client.time.sleep") as sleep:
        client.sleep = sleep
        yield client


def _edit():
    return edit_image(prompt="make it pop", image_bytes=b"src", mime_type="image/jpeg")


def test_result_carries_bytes_and_usage(images_api):
    images_api.images.edit.return_value = _response()

    result = _edit()

    assert result.image_bytes == b"png-bytes"
    assert (result.prompt_tokens, result.completion_tokens, result.total_tokens) == (100, 400, 500)
    kwargs = images_api.images.edit.call_args.kwargs
    assert kwargs["image"] == ("source.jpg", b"src", "image/jpeg")
    assert kwargs["prompt"] == "make it pop"


def test_empty_image_is_generation_error(images_api):
    images_api.images.edit.return_value = SimpleNamespace(data=[], usage=None)
    with pytest.raises(ImageGenerationError, match="Failed to generate image"):
        _edit()


def test_moderation_block_is_content_restricted(images_api):
    images_api.images.edit.side_effect = _status_error(
        openai.BadRequestError, 400, body={"code": "moderation_blocked", "message": "blocked"},
    )
    with pytest.raises(ContentRestrictedError) as exc_info:
        _edit()
    assert exc_info.value.http_status == 422
    assert images_api.images.edit.call_count == 1


def test_other_bad_request_not_retried(images_api):
    images_api.images.edit.side_effect = _status_error(openai.BadRequestError, 400, body={"code": "invalid_size"})
    with pytest.raises(ImageGenerationError) as exc_info:
        _edit()
    assert not isinstance(exc_info.value, ContentRestrictedError)
    assert images_api.images.edit.call_count == 1


def test_timeout_is_not_retried(images_api):
    images_api.images.edit.side_effect = openai.APITimeoutError(request=_REQUEST)
    with pytest.raises(ImageGenerationTimeout) as exc_info:
        _edit()
    assert exc_info.value.http_status == 504
    assert images_api.images.edit.call_count == 1


def test_rate_limit_retried_then_succeeds(images_api):
    images_api.images.edit.side_effect = [_status_error(openai.RateLimitError, 429), _response()]

    assert _edit().image_bytes == b"png-bytes"
    assert images_api.images.edit.call_count == 2
    images_api.sleep.assert_called_once()


def test_server_errors_exhaust_retries(images_api):
    images_api.images.edit.side_effect = _status_error(openai.InternalServerError, 500)
    with pytest.raises(ImageGenerationError, match="after all retries"):
        _edit()
    assert images_api.images.edit.call_count == RETRY_ATTEMPTS


def test_calculate_cost():
    assert calculate_cost(0, 0) == 0
    assert calculate_cost(1000, 4000) > calculate_cost(1000, 0) > 0
