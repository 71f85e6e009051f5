"""
test_api_auth.py — Tests for token verification, admin guard and the error envelope.
"""
from __future__ import annotations

import pytest

from avatarz.tests.factories import USER_ID, make_user


# ---------------------------------------------------------------------------
# Unauthenticated access
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("path", ["/api/me", "/api/quota", "/api/generations", "/api/admin/allowlist"])
def test_missing_token_returns_401(client, path):
    resp = client.get(path)
    assert resp.status_code == 401
    body = resp.json()
    assert body["status"] == "error"
    assert body["error"]["code"] == "UNAUTHORIZED"


def test_invalid_token_returns_401(client, mock_admin_db):
    mock_admin_db.get_user.return_value = None
    resp = client.get("/api/me", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    mock_admin_db.get_user.assert_called_once_with("nope")


def test_non_bearer_scheme_returns_401(client, mock_admin_db):
    resp = client.get("/api/me", headers={"Authorization": "Basic abc"})
    assert resp.status_code == 401
    mock_admin_db.get_user.assert_not_called()


def test_valid_token_resolves_profile(client, mock_admin_db):
    mock_admin_db.get_user.return_value = {"id": USER_ID, "email": "a@example.com"}
    mock_admin_db.get_profile.return_value = {
        "id": USER_ID, "is_admin": True, "tier_id": "premium", "is_private_account": False,
        "created_at": "2026-01-05T10:00:00Z",
    }
    resp = client.get("/api/me", headers={"Authorization": "Bearer good"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == USER_ID
    assert body["isAdmin"] is True
    assert body["tierId"] == "premium"


# ---------------------------------------------------------------------------
# Admin guard
# ---------------------------------------------------------------------------

def test_non_admin_cannot_access_admin_routes(client, as_user):
    as_user(make_user(is_admin=False))
    resp = client.get("/api/admin/stats")
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


def test_non_admin_cannot_invite_users(client, as_user):
    as_user(make_user(is_admin=False))
    resp = client.post("/functions/v1/invite-user", json={"email": "x@example.com"})
    assert resp.status_code == 403


def test_admin_can_list_allowlist(client, as_user, admin_user, mock_admin_db):
    as_user(admin_user)
    mock_admin_db.select.return_value = [
        {"id": "a1", "email": "new@example.com", "tier_id": "standard", "created_at": "2026-02-01T00:00:00Z"},
    ]
    resp = client.get("/api/admin/allowlist")
    assert resp.status_code == 200
    assert resp.json()[0]["email"] == "new@example.com"


# ---------------------------------------------------------------------------
# Public endpoints and health
# ---------------------------------------------------------------------------

def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_generate_avatar_options_are_public(client):
    resp = client.get("/functions/v1/generate-avatar")
    assert resp.status_code == 200
    body = resp.json()
    assert [p["id"] for p in body["namePlacements"]][:2] == ["graffiti", "necklace"]
    assert {c["id"] for c in body["cropTypes"]} == {"floating-head", "portrait", "half", "full"}


def test_request_body_type_errors_use_envelope(client, as_user, user):
    as_user(user)
    resp = client.post("/functions/v1/extend-image", json={"generationId": ["not", "a", "string"]})
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "INVALID_INPUT"
