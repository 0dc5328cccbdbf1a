"""Tests for API token management endpoints."""
from datetime import datetime, timedelta, timezone

import pytest

from booking_app.api_tokens import hash_api_token
from booking_app.models import ApiToken


@pytest.fixture
def admin_client(client, admin, login, csrf_headers):
    login(client, admin)
    client.headers.update(csrf_headers(admin))
    return client


def test_create_token_returns_raw_value_once(admin_client, db, admin, bearer):
    response = admin_client.post("/api/tokens", json={"name": "Zapier", "scopes": ["read", "write"]})

    assert response.status_code == 201
    body = response.json()
    raw = body["token"]
    assert raw.startswith("bk_")
    assert body["scopes"] == ["read", "write"]
    assert body["message"] == "Store this token securely. It will not be shown again."

    stored = db.query(ApiToken).one()
    assert stored.token == hash_api_token(raw)
    assert stored.user_id == admin.id

    listing = admin_client.get("/api/tokens").json()
    assert listing[0]["token"] == stored.token[:8] + "..."
    assert raw not in str(listing)


def test_created_token_authenticates(admin_client, client, bearer):
    raw = admin_client.post("/api/tokens", json={"name": "CLI"}).json()["token"]

    response = client.get("/api/technicians", headers=bearer(raw))

    assert response.status_code == 200


def test_default_scope_is_read(admin_client):
    body = admin_client.post("/api/tokens", json={"name": "Reporting"}).json()
    assert body["scopes"] == ["read"]


def test_invalid_scope(admin_client):
    response = admin_client.post("/api/tokens", json={"name": "Bad", "scopes": ["read", "delete"]})
    assert response.status_code == 400


def test_expiry_must_be_in_the_future(admin_client):
    past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    response = admin_client.post("/api/tokens", json={"name": "Old", "expiresAt": past})
    assert response.status_code == 400
    assert response.json() == {"error": "Expiration date must be in the future"}


def test_expiry_is_stored(admin_client, db):
    future = datetime.now(timezone.utc) + timedelta(days=30)
    body = admin_client.post("/api/tokens", json={"name": "Monthly", "expiresAt": future.isoformat()}).json()
    assert body["expiresAt"].startswith(future.strftime("%Y-%m-%dT"))


def test_name_is_required(admin_client):
    assert admin_client.post("/api/tokens", json={"name": "   "}).status_code == 400


def test_disable_and_enable_token(admin_client, client, bearer):
    created = admin_client.post("/api/tokens", json={"name": "CLI"}).json()

    response = admin_client.patch(f"/api/tokens/{created['id']}", json={"isActive": False})
    assert response.status_code == 200
    assert response.json()["isActive"] is False

    response = client.get("/api/technicians", headers=bearer(created["token"]))
    assert response.status_code == 401
    assert response.json() == {"error": "Token is disabled"}

    admin_client.patch(f"/api/tokens/{created['id']}", json={"isActive": True})
    assert client.get("/api/technicians", headers=bearer(created["token"])).status_code == 200


def test_delete_token(admin_client, db):
    created = admin_client.post("/api/tokens", json={"name": "CLI"}).json()

    response = admin_client.delete(f"/api/tokens/{created['id']}")

    assert response.status_code == 200
    assert db.query(ApiToken).count() == 0


def test_tokens_are_scoped_to_their_owner(client, admin, make_user, make_token, login, csrf_headers):
    other_admin = make_user("other-admin@example.com", "ADMIN")
    make_token(other_admin)
    other_id = other_admin.api_tokens[0].id

    login(client, admin)
    assert client.get("/api/tokens").json() == []
    response = client.delete(f"/api/tokens/{other_id}", headers=csrf_headers(admin))
    assert response.status_code == 404


def test_non_admin_cannot_manage_tokens(client, agent, login, csrf_headers):
    login(client, agent)
    assert client.get("/api/tokens").status_code == 403
    assert client.post("/api/tokens", json={"name": "x"}, headers=csrf_headers(agent)).status_code == 403


def test_token_management_is_rate_limited(admin_client):
    for _ in range(10):
        assert admin_client.get("/api/tokens").status_code == 200
    response = admin_client.get("/api/tokens")
    assert response.status_code == 429
    assert "Retry-After" in response.headers


def test_unauthenticated_attempts_count_against_token_limit(client):
    for _ in range(10):
        assert client.get("/api/tokens").status_code == 401
    response = client.get("/api/tokens")
    assert response.status_code == 429
    assert "Retry-After" in response.headers
