"""
conftest.py — Shared fixtures for all avatarz tests.
"""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from avatarz.auth.models import CurrentUser
from avatarz.core.models import ImageResult
from avatarz.core.supabase_client import SupabaseClient
from avatarz.tests.factories import GENERATION_ID, make_data_url, make_png, make_user


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def png_data_url() -> str:
    return make_data_url()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@pytest.fixture
def user() -> CurrentUser:
    return make_user()


@pytest.fixture
def admin_user() -> CurrentUser:
    return make_user(is_admin=True, tier_id="premium")


# ---------------------------------------------------------------------------
# Mock backend clients
# ---------------------------------------------------------------------------

def _mock_client() -> MagicMock:
    client = MagicMock(spec=SupabaseClient)
    client.get_user_quota.return_value = {"limit": 20, "used": 3, "remaining": 17, "is_admin": False}
    client.get_invite_quota.return_value = {
        "can_create": True, "tier": "standard", "used": 0, "limit": 3, "remaining": 3,
    }
    client.create_signed_url.side_effect = lambda bucket, path, *a, **kw: f"https://signed/{bucket}/{path}"
    client.public_url.side_effect = lambda bucket, path: f"https://public/{bucket}/{path}"
    client.upload.side_effect = lambda bucket, path, *a, **kw: path
    client.insert_generation.return_value = {"id": GENERATION_ID}
    client.get_style.return_value = None
    client.find_invite_code.return_value = None
    return client


@pytest.fixture
def mock_db() -> MagicMock:
    """User-scoped client (row-level security applies)."""
    return _mock_client()


@pytest.fixture
def mock_admin_db() -> MagicMock:
    """Service-role client."""
    return _mock_client()


# ---------------------------------------------------------------------------
# Mock image API
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_image_api():
    """Patch the image edit call used by the generation pipeline."""
    with patch("avatarz.core.workers.edit_image") as mock_edit:
        mock_edit.return_value = ImageResult(
            image_bytes=make_png(256, 256),
            mime_type="image/png",
            model="gpt-image-1",
            prompt_tokens=1000,
            completion_tokens=4000,
            total_tokens=5000,
        )
        yield mock_edit


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

@pytest.fixture
def app(mock_db, mock_admin_db):
    from fastapi import Depends

    from avatarz.api.app import create_app
    from avatarz.api.dependencies import get_current_user, get_service_client, get_user_client

    def _user_client(_user: CurrentUser = Depends(get_current_user)):
        return mock_db

    application = create_app()
    application.dependency_overrides[get_user_client] = _user_client
    application.dependency_overrides[get_service_client] = lambda: mock_admin_db
    return application


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def as_user(app):
    """Authenticate requests as the given user via dependency override."""
    from avatarz.api.dependencies import get_current_user

    def _login(current: CurrentUser) -> CurrentUser:
        app.dependency_overrides[get_current_user] = lambda: current
        return current
    return _login
