"""
Unified auth gate

A request is authenticated either by an API token (``Authorization: Bearer``)
or by the browser session cookie, never both: when the bearer header is
present the session is not consulted. Routes declare what they need through
the dependencies at the bottom of this module.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .api_tokens import VALID_SCOPES, ApiTokenValidator, TokenRejected, has_scope
from .config import CSRF_ENABLED, SESSION_COOKIE_NAME
from .csrf import CSRF_HEADER_NAME, CSRFService, needs_csrf_check
from .database import get_db
from .errors import ErrorCode, auth_error
from .impersonation import ImpersonationStore
from .models import ROLE_ADMIN, User
from .sessions import ResolvedSession, SessionService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BearerAuth:
    user: User
    scopes: frozenset
    token_id: Optional[int] = None
    type: str = field(default="bearer", init=False)


@dataclass(frozen=True)
class SessionAuth:
    session: ResolvedSession
    type: str = field(default="session", init=False)

    @property
    def user(self) -> User:
        return self.session.user

    @property
    def scopes(self) -> frozenset:
        # Browser sessions carry every scope; role checks still apply
        return VALID_SCOPES


@dataclass(frozen=True)
class Unauthenticated:
    error: ErrorCode
    type: str = field(default="none", init=False)


AuthOutcome = Union[BearerAuth, SessionAuth, Unauthenticated]
Authenticated = Union[BearerAuth, SessionAuth]


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token from an Authorization header, or None when no bearer scheme is used"""
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credentials.strip()


class AuthGate:
    def __init__(self, db: Session, impersonation_store: ImpersonationStore):
        self.db = db
        self.validator = ApiTokenValidator(db)
        self.sessions = SessionService(db, impersonation_store)

    def authorize(self, authorization: Optional[str], session_cookie: Optional[str]) -> AuthOutcome:
        token = extract_bearer_token(authorization)
        if token is not None:
            result = self.validator.validate(token)
            if isinstance(result, TokenRejected):
                return Unauthenticated(result.error)
            return BearerAuth(user=result.user, scopes=result.scopes, token_id=result.token_id)

        session = self.sessions.resolve(session_cookie)
        if session is None:
            return Unauthenticated(ErrorCode.UNAUTHORIZED)
        return SessionAuth(session=session)


# ============================================================================
# DEPENDENCIES
# ============================================================================


def get_impersonation_store(request: Request) -> ImpersonationStore:
    return request.app.state.impersonation_store


def get_csrf_service(request: Request) -> CSRFService:
    return request.app.state.csrf_service


def get_session_service(
    db: Session = Depends(get_db),
    store: ImpersonationStore = Depends(get_impersonation_store),
) -> SessionService:
    return SessionService(db, store)


async def get_auth(
    request: Request,
    db: Session = Depends(get_db),
    store: ImpersonationStore = Depends(get_impersonation_store),
) -> AuthOutcome:
    """Authenticate the request without enforcing anything"""
    gate = AuthGate(db, store)
    return gate.authorize(
        request.headers.get("authorization"), request.cookies.get(SESSION_COOKIE_NAME)
    )


async def require_auth(
    request: Request,
    outcome: AuthOutcome = Depends(get_auth),
    csrf: CSRFService = Depends(get_csrf_service),
) -> Authenticated:
    """Any authenticated caller; session callers must present a valid CSRF token on writes"""
    if isinstance(outcome, Unauthenticated):
        logger.warning(
            f"🚫 Authentication failed for {request.method} {request.url.path}: {outcome.error.value}"
        )
        raise auth_error(outcome.error)

    if isinstance(outcome, SessionAuth) and CSRF_ENABLED and needs_csrf_check(request):
        token = request.headers.get(CSRF_HEADER_NAME)
        if not token:
            logger.warning(f"🚫 CSRF: Missing header for {request.method} {request.url.path}")
            raise auth_error(ErrorCode.CSRF_MISSING)
        if not csrf.verify(token, outcome.session.real_user.id):
            logger.warning(
                f"🚫 CSRF: Invalid token for {request.method} {request.url.path} (user {outcome.session.real_user.id})"
            )
            raise auth_error(ErrorCode.CSRF_INVALID)

    return outcome


def require_scope(scope: str):
    """Dependency factory: caller must hold ``scope`` (admin scope implies all)"""

    async def scope_checker(auth: Authenticated = Depends(require_auth)) -> Authenticated:
        if not has_scope(auth.scopes, scope):
            logger.warning(f"🚫 User {auth.user.id} lacks '{scope}' scope")
            raise auth_error(ErrorCode.FORBIDDEN, "Insufficient permissions")
        return auth

    return scope_checker


async def require_admin(auth: Authenticated = Depends(require_auth)) -> Authenticated:
    """Effective user must be an ADMIN"""
    if auth.user.role != ROLE_ADMIN:
        logger.warning(f"🚫 Admin access denied for user {auth.user.id}")
        raise auth_error(ErrorCode.FORBIDDEN, "Admin access required")
    return auth


async def require_session(auth: Authenticated = Depends(require_auth)) -> SessionAuth:
    """Browser session only; API tokens are rejected"""
    if not isinstance(auth, SessionAuth):
        raise auth_error(ErrorCode.UNAUTHORIZED)
    return auth


def is_admin(user: Optional[User]) -> bool:
    return user is not None and user.role == ROLE_ADMIN
