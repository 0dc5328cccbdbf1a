"""Tests for admin impersonation: the stores, the session overlay and the endpoints."""
import json
from unittest.mock import MagicMock

import pytest

from booking_app.impersonation import (
    ImpersonationEntry,
    InMemoryImpersonationStore,
    RedisImpersonationStore,
    build_impersonation_store,
)
from booking_app.models import ROLE_CUSTOMER_SERVICE
from booking_app.sessions import SessionService


@pytest.fixture
def entry_for(admin):
    def _entry(target):
        return ImpersonationEntry(
            impersonating_user_id=target.id,
            original_user_id=admin.id,
            original_user_email=admin.email,
        )

    return _entry


def test_memory_store_set_get_clear():
    store = InMemoryImpersonationStore()
    entry = ImpersonationEntry(impersonating_user_id=2, original_user_id=1, original_user_email="a@example.com")

    assert store.get(1) is None
    store.set(1, entry)
    assert store.get(1) == entry
    store.clear(1)
    assert store.get(1) is None
    store.clear(1)


def test_memory_stores_are_isolated():
    first, second = InMemoryImpersonationStore(), InMemoryImpersonationStore()
    first.set(1, ImpersonationEntry(2, 1, "a@example.com"))
    assert second.get(1) is None


def test_redis_store_round_trip():
    client = MagicMock()
    store = RedisImpersonationStore(client=client, ttl=60)
    entry = ImpersonationEntry(impersonating_user_id=2, original_user_id=1, original_user_email="a@example.com")

    store.set(1, entry)
    key, ttl, payload = client.setex.call_args.args
    assert key == "impersonation:1"
    assert ttl == 60

    client.get.return_value = payload
    assert store.get(1) == entry

    store.clear(1)
    client.delete.assert_called_once_with("impersonation:1")


def test_redis_store_drops_corrupt_entries():
    client = MagicMock()
    client.get.return_value = json.dumps({"unexpected": True})
    store = RedisImpersonationStore(client=client)

    assert store.get(1) is None
    client.delete.assert_called_once_with("impersonation:1")


def test_build_store_defaults_to_memory():
    assert isinstance(build_impersonation_store("memory"), InMemoryImpersonationStore)


# Session overlay


def test_session_reflects_impersonated_user_until_cleared(db, admin, agent, impersonation_store, entry_for):
    sessions = SessionService(db, impersonation_store)
    raw = sessions.create(admin)

    impersonation_store.set(admin.id, entry_for(agent))
    resolved = sessions.resolve(raw)
    assert resolved.user.id == agent.id
    assert resolved.real_user.id == admin.id
    assert resolved.is_impersonating is True
    assert resolved.original_user_id == admin.id
    assert resolved.original_user_email == admin.email

    impersonation_store.clear(admin.id)
    resolved = sessions.resolve(raw)
    assert resolved.user.id == admin.id
    assert resolved.is_impersonating is False
    assert resolved.original_user_id is None


def test_entry_is_dropped_when_user_is_no_longer_admin(db, admin, agent, impersonation_store, entry_for):
    sessions = SessionService(db, impersonation_store)
    raw = sessions.create(admin)
    impersonation_store.set(admin.id, entry_for(agent))

    admin.role = ROLE_CUSTOMER_SERVICE
    db.commit()

    resolved = sessions.resolve(raw)
    assert resolved.user.id == admin.id
    assert not resolved.is_impersonating
    assert impersonation_store.get(admin.id) is None


def test_entry_is_dropped_when_target_is_deleted(db, admin, make_user, impersonation_store, entry_for):
    target = make_user("gone@example.com")
    sessions = SessionService(db, impersonation_store)
    raw = sessions.create(admin)
    impersonation_store.set(admin.id, entry_for(target))

    db.delete(target)
    db.commit()

    resolved = sessions.resolve(raw)
    assert resolved.user.id == admin.id
    assert impersonation_store.get(admin.id) is None


def test_session_dict_shape(db, admin, agent, impersonation_store, entry_for):
    sessions = SessionService(db, impersonation_store)
    raw = sessions.create(admin)
    impersonation_store.set(admin.id, entry_for(agent))

    data = sessions.resolve(raw).to_dict()

    assert data == {
        "user": {
            "id": agent.id,
            "email": agent.email,
            "name": agent.name,
            "image": None,
            "role": agent.role,
        },
        "isImpersonating": True,
        "originalUserId": admin.id,
        "originalUserEmail": admin.email,
    }


# HTTP level


def test_start_and_stop_impersonation(client, admin, agent, login, csrf_headers, impersonation_store):
    login(client, admin)
    headers = csrf_headers(admin)

    response = client.post("/api/impersonate", json={"userId": agent.id}, headers=headers)
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "impersonatingUserId": agent.id,
        "targetUser": {"id": agent.id, "email": agent.email, "name": agent.name, "role": agent.role},
    }
    assert impersonation_store.get(admin.id).impersonating_user_id == agent.id

    session = client.get("/api/auth/session").json()
    assert session["user"]["id"] == agent.id
    assert session["isImpersonating"] is True
    assert session["originalUserId"] == admin.id

    response = client.delete("/api/impersonate", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert impersonation_store.get(admin.id) is None

    session = client.get("/api/auth/session").json()
    assert session["user"]["id"] == admin.id
    assert session["isImpersonating"] is False


def test_effective_user_drives_authorization(client, admin, agent, login, csrf_headers):
    login(client, admin)
    assert client.get("/api/users").status_code == 200

    client.post("/api/impersonate", json={"userId": agent.id}, headers=csrf_headers(admin))

    response = client.get("/api/users")
    assert response.status_code == 403


def test_admin_can_switch_targets_while_impersonating(client, admin, agent, make_user, login, csrf_headers):
    other = make_user("other@example.com")
    login(client, admin)
    headers = csrf_headers(admin)

    client.post("/api/impersonate", json={"userId": agent.id}, headers=headers)
    response = client.post("/api/impersonate", json={"userId": other.id}, headers=headers)

    assert response.status_code == 200
    assert client.get("/api/auth/session").json()["user"]["id"] == other.id


def test_non_admin_cannot_impersonate(client, admin, agent, login, csrf_headers, impersonation_store):
    login(client, agent)

    response = client.post("/api/impersonate", json={"userId": admin.id}, headers=csrf_headers(agent))

    assert response.status_code == 403
    assert impersonation_store.get(agent.id) is None


def test_admin_cannot_impersonate_themselves(client, admin, login, csrf_headers):
    login(client, admin)
    response = client.post("/api/impersonate", json={"userId": admin.id}, headers=csrf_headers(admin))
    assert response.status_code == 400
    assert response.json() == {"error": "You cannot impersonate yourself"}


def test_user_id_is_required(client, admin, login, csrf_headers):
    login(client, admin)
    response = client.post("/api/impersonate", json={}, headers=csrf_headers(admin))
    assert response.status_code == 400


def test_unknown_target(client, admin, login, csrf_headers):
    login(client, admin)
    response = client.post("/api/impersonate", json={"userId": 999}, headers=csrf_headers(admin))
    assert response.status_code == 404


def test_api_tokens_cannot_impersonate(client, admin, agent, make_token, bearer):
    response = client.post("/api/impersonate", json={"userId": agent.id}, headers=bearer(make_token(admin)))
    assert response.status_code == 401


def test_logout_clears_impersonation(client, admin, agent, login, csrf_headers, impersonation_store):
    login(client, admin)
    client.post("/api/impersonate", json={"userId": agent.id}, headers=csrf_headers(admin))

    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert impersonation_store.get(admin.id) is None
    assert client.get("/api/auth/session").status_code == 401


def test_impersonation_is_per_admin(client, make_client, admin, make_user, agent, login, csrf_headers):
    second_admin = make_user("second@example.com", "ADMIN")
    other_client = make_client()
    login(client, admin)
    login(other_client, second_admin)

    client.post("/api/impersonate", json={"userId": agent.id}, headers=csrf_headers(admin))

    assert other_client.get("/api/auth/session").json()["user"]["id"] == second_admin.id
