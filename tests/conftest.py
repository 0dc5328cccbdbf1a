"""Shared fixtures: a throwaway SQLite database, isolated app stores and a TestClient.

The environment is set before ``booking_app`` is imported so that its config
module picks up the test settings.
"""
import os
from datetime import timedelta
from pathlib import Path

DB_FILE = "./pytest.db"
SQLALCHEMY_DATABASE_URL = f"sqlite:///{DB_FILE}"

os.environ["DATABASE_URL"] = SQLALCHEMY_DATABASE_URL
os.environ["SECRET_KEY"] = "testing_secret"
os.environ["ADMIN_EMAILS"] = "boss@example.com"
os.environ["CSRF_ENABLED"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "true"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["IMPERSONATION_BACKEND"] = "memory"
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("CHAT_WEBHOOK_URL", None)
os.environ.pop("N8N_WEBHOOK_URL", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from booking_app.api_tokens import generate_api_token, hash_api_token, serialize_scopes
from booking_app.config import SESSION_COOKIE_NAME
from booking_app.csrf import CSRF_HEADER_NAME, CSRFService
from booking_app.database import Base, build_engine, get_db
from booking_app.impersonation import InMemoryImpersonationStore
from booking_app.main import app as fastapi_app
from booking_app.models import (
    ROLE_ADMIN,
    ROLE_CUSTOMER_SERVICE,
    ROLE_TECHNICIAN,
    ApiToken,
    Technician,
    User,
    utcnow,
)
from booking_app.rate_limiter import FixedWindowRateLimiter, MemoryRateLimitBackend
from booking_app.sessions import SessionService

DELETE_DB_FILE_ON_EXIT = True


class FakeClock:
    """Controllable epoch-seconds clock"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def engine():
    engine = build_engine(SQLALCHEMY_DATABASE_URL)
    yield engine
    engine.dispose()
    if DELETE_DB_FILE_ON_EXIT:
        Path(DB_FILE).unlink(missing_ok=True)


@pytest.fixture(scope="session")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def tables(engine):
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine


@pytest.fixture
def db(tables, session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def impersonation_store():
    return InMemoryImpersonationStore()


@pytest.fixture
def rate_limiter(clock):
    return FixedWindowRateLimiter(
        limit=30, window_seconds=60, backend=MemoryRateLimitBackend(), clock=clock
    )


@pytest.fixture
def csrf_service():
    return CSRFService(secret_key="testing_secret")


@pytest.fixture
def app(tables, session_factory, impersonation_store, rate_limiter, csrf_service):
    # See https://fastapi.tiangolo.com/advanced/testing-database
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.state.impersonation_store = impersonation_store
    fastapi_app.state.rate_limiter = rate_limiter
    fastapi_app.state.csrf_service = csrf_service
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_client(app):
    """Extra clients for tests that need more than one browser"""

    def _make():
        return TestClient(app)

    return _make


@pytest.fixture
def make_user(db):
    def _make(email: str, role: str = ROLE_CUSTOMER_SERVICE, name: str = None) -> User:
        user = User(email=email, name=name or email.split("@")[0].title(), role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", ROLE_ADMIN, "Ada Admin")


@pytest.fixture
def agent(make_user):
    return make_user("agent@example.com", ROLE_CUSTOMER_SERVICE, "Carl Service")


@pytest.fixture
def make_technician(db, make_user):
    def _make(email: str, name: str = None, color: str = "#3B82F6", active: bool = True) -> Technician:
        user = make_user(email, ROLE_TECHNICIAN, name)
        technician = Technician(user_id=user.id, color=color, active=active)
        db.add(technician)
        db.commit()
        db.refresh(technician)
        return technician

    return _make


@pytest.fixture
def make_token(db):
    """Store a token for ``user`` and return the raw value"""

    def _make(user: User, scopes=("read", "write"), is_active: bool = True, expires_in: timedelta = None) -> str:
        raw = generate_api_token()
        db.add(
            ApiToken(
                user_id=user.id,
                token=hash_api_token(raw),
                name="Test token",
                scopes=serialize_scopes(scopes),
                is_active=is_active,
                expires_at=utcnow() + expires_in if expires_in is not None else None,
            )
        )
        db.commit()
        return raw

    return _make


@pytest.fixture
def login(db, impersonation_store):
    """Sign ``user`` in on ``client`` by creating a server-side session"""

    def _login(client: TestClient, user: User) -> str:
        raw = SessionService(db, impersonation_store).create(user)
        client.cookies.set(SESSION_COOKIE_NAME, raw)
        return raw

    return _login


@pytest.fixture
def csrf_headers(csrf_service):
    def _headers(user: User) -> dict:
        return {CSRF_HEADER_NAME: csrf_service.issue(user.id)}

    return _headers


@pytest.fixture
def bearer():
    def _headers(raw_token: str) -> dict:
        return {"Authorization": f"Bearer {raw_token}"}

    return _headers
