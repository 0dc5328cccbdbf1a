"""Tests for Google sign-in, the sign-in policy, logout and the session endpoint."""
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from booking_app.config import FRONTEND_URL, SESSION_COOKIE_NAME
from booking_app.models import ROLE_ADMIN, ROLE_CUSTOMER_SERVICE, AuthSession, User, UserInvitation, utcnow
from booking_app.oauth import OAUTH_STATE_COOKIE, GoogleOAuthClient, GoogleProfile, OAuthStateSigner
from booking_app.routes.auth import apply_sign_in_policy, get_oauth_client, get_state_signer, safe_next_path


class FakeGoogleClient(GoogleOAuthClient):
    def __init__(self, profile: GoogleProfile):
        super().__init__(client_id="client-id", client_secret="client-secret")
        self.profile = profile
        self.codes = []

    async def fetch_profile(self, code: str) -> GoogleProfile:
        self.codes.append(code)
        return self.profile


@pytest.fixture
def signer():
    return OAuthStateSigner(secret_key="testing_secret")


@pytest.fixture
def google(app, signer):
    def _configure(email: str, sub: str = "google-sub-1", name: str = "Gina Google"):
        fake = FakeGoogleClient(GoogleProfile(sub=sub, email=email, name=name, picture="https://img/1.png"))
        app.dependency_overrides[get_oauth_client] = lambda: fake
        app.dependency_overrides[get_state_signer] = lambda: signer
        return fake

    return _configure


def sign_in(client, next_path: str = "/dashboard"):
    login = client.get("/api/auth/login", params={"next": next_path}, follow_redirects=False)
    state = parse_qs(urlparse(login.headers["location"]).query)["state"][0]
    # The state cookie set by /login is sent back by the client cookie jar
    return client.get(
        "/api/auth/callback", params={"code": "auth-code", "state": state}, follow_redirects=False
    )


# Sign-in policy


def test_existing_user_may_sign_in(db, agent):
    user = apply_sign_in_policy(db, GoogleProfile(sub="s1", email=agent.email, picture="https://img/a.png"))
    assert user.id == agent.id
    assert user.google_sub == "s1"
    assert user.image == "https://img/a.png"


def test_unknown_email_is_rejected(db):
    assert apply_sign_in_policy(db, GoogleProfile(sub="s1", email="stranger@example.com")) is None
    assert db.query(User).count() == 0


def test_invited_email_is_created(db):
    db.add(
        UserInvitation(
            email="new@example.com", role="TECHNICIAN", token="t", expires_at=utcnow() + timedelta(days=1)
        )
    )
    db.commit()

    user = apply_sign_in_policy(db, GoogleProfile(sub="s1", email="New@Example.com", name="Nina"))

    assert user.email == "new@example.com"
    assert user.role == ROLE_CUSTOMER_SERVICE


def test_expired_invitation_does_not_allow_sign_in(db):
    db.add(UserInvitation(email="late@example.com", token="t", expires_at=utcnow() - timedelta(days=1)))
    db.commit()
    assert apply_sign_in_policy(db, GoogleProfile(sub="s1", email="late@example.com")) is None


def test_bootstrap_admin_email(db):
    user = apply_sign_in_policy(db, GoogleProfile(sub="s1", email="boss@example.com"))
    assert user.role == ROLE_ADMIN


def test_different_google_account_is_rejected(db, agent):
    agent.google_sub = "original-sub"
    db.commit()
    assert apply_sign_in_policy(db, GoogleProfile(sub="other-sub", email=agent.email)) is None


@pytest.mark.parametrize(
    "value, expected",
    [(None, "/"), ("/bookings", "/bookings"), ("//evil.com", "/"), ("https://evil.com", "/")],
)
def test_safe_next_path(value, expected):
    assert safe_next_path(value) == expected


def test_state_signer(signer):
    state, nonce = signer.issue("/calendar")
    assert signer.verify(state, nonce) == "/calendar"
    assert signer.verify(state, "other-nonce") is None
    assert signer.verify(state, None) is None
    assert OAuthStateSigner(secret_key="other").verify(state, nonce) is None


# HTTP flow


def test_login_redirects_to_google(client, google):
    google("agent@example.com")

    response = client.get("/api/auth/login", follow_redirects=False)

    assert response.status_code == 302
    location = urlparse(response.headers["location"])
    assert location.netloc == "accounts.google.com"
    query = parse_qs(location.query)
    assert query["client_id"] == ["client-id"]
    assert query["scope"] == ["openid email profile"]
    assert OAUTH_STATE_COOKIE in response.cookies


def test_login_without_configuration(client, app):
    app.dependency_overrides[get_oauth_client] = lambda: GoogleOAuthClient(client_id=None, client_secret=None)
    assert client.get("/api/auth/login", follow_redirects=False).status_code == 500


def test_callback_creates_session(client, db, agent, google):
    fake = google(agent.email)

    response = sign_in(client)

    assert response.status_code == 302
    assert response.headers["location"] == f"{FRONTEND_URL}/dashboard"
    assert fake.codes == ["auth-code"]
    assert SESSION_COOKIE_NAME in response.cookies
    assert db.query(AuthSession).filter(AuthSession.user_id == agent.id).count() == 1

    session = client.get("/api/auth/session").json()
    assert session["user"]["email"] == agent.email
    assert session["isImpersonating"] is False


def test_callback_rejects_unknown_account(client, db, google):
    google("stranger@example.com")

    response = sign_in(client)

    assert response.status_code == 302
    assert response.headers["location"] == f"{FRONTEND_URL}/auth/error?error=AccessDenied"
    assert db.query(AuthSession).count() == 0


def test_callback_rejects_tampered_state(client, agent, google):
    google(agent.email)
    client.cookies.set(OAUTH_STATE_COOKIE, "nonce")
    response = client.get(
        "/api/auth/callback", params={"code": "auth-code", "state": "forged"}, follow_redirects=False
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid OAuth state"}


def test_callback_with_provider_error(client, google):
    google("agent@example.com")
    response = client.get("/api/auth/callback", params={"error": "access_denied"}, follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"].endswith("/auth/error?error=OAuthCallback")


def test_logout_revokes_session(client, db, agent, login):
    raw = login(client, agent)

    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    record = db.query(AuthSession).one()
    db.refresh(record)
    assert record.revoked_at is not None

    client.cookies.set(SESSION_COOKIE_NAME, raw)
    assert client.get("/api/auth/session").status_code == 401


def test_session_endpoint_requires_browser_session(client, admin, make_token, bearer):
    assert client.get("/api/auth/session").status_code == 401
    assert client.get("/api/auth/session", headers=bearer(make_token(admin))).status_code == 401
