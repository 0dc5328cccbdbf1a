"""
CSRF protection for session-authenticated requests

Tokens are signed with itsdangerous and bound to the real (not impersonated)
user id of the session, so they cannot be replayed by another account.
Two layers:
- CSRFMiddleware rejects state-changing /api/* requests that carry neither a
  bearer token nor an X-CSRF-Token header.
- The auth dependency verifies the token signature and binding before the
  route handler runs (see auth.require_auth).

Bearer-authenticated requests are exempt: they are not sent by browsers with
ambient credentials.
"""

import logging
import secrets
from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from starlette.middleware.base import BaseHTTPMiddleware

from .config import CSRF_TOKEN_MAX_AGE, SECRET_KEY
from .errors import ErrorCode

logger = logging.getLogger(__name__)

CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_SALT = "booking-csrf"

# Methods that require CSRF protection
PROTECTED_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# OAuth redirect flow cannot carry a header
EXEMPT_PATHS: list[str] = [
    "/api/auth/",
]


def is_path_exempt(path: str) -> bool:
    """Check if a path is exempt from CSRF protection"""
    return any(path.startswith(exempt) for exempt in EXEMPT_PATHS)


def has_bearer_header(request: Request) -> bool:
    authorization = request.headers.get("authorization", "")
    return authorization.lower().startswith("bearer ")


class CSRFService:
    """Issues and verifies per-user CSRF tokens"""

    def __init__(self, secret_key: str = SECRET_KEY, max_age: int = CSRF_TOKEN_MAX_AGE):
        self.serializer = URLSafeTimedSerializer(secret_key, salt=CSRF_SALT)
        self.max_age = max_age

    def issue(self, user_id: int) -> str:
        return self.serializer.dumps({"uid": user_id, "nonce": secrets.token_urlsafe(16)})

    def verify(self, token: Optional[str], user_id: int) -> bool:
        if not token:
            return False
        try:
            data = self.serializer.loads(token, max_age=self.max_age)
        except SignatureExpired:
            logger.info(f"⏰ CSRF: Expired token for user {user_id}")
            return False
        except BadSignature:
            return False
        if not isinstance(data, dict):
            return False
        return data.get("uid") == user_id


def needs_csrf_check(request: Request) -> bool:
    """True for session-authenticated, state-changing requests"""
    return (
        request.method in PROTECTED_METHODS
        and not is_path_exempt(request.url.path)
        and not has_bearer_header(request)
    )


class CSRFMiddleware(BaseHTTPMiddleware):
    """Rejects state-changing /api/* requests without a bearer token or CSRF header"""

    def __init__(self, app, path_prefix: str = "/api/"):
        super().__init__(app)
        self.path_prefix = path_prefix

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path.startswith(self.path_prefix) and needs_csrf_check(request):
            if not request.headers.get(CSRF_HEADER_NAME):
                logger.warning(f"🚫 CSRF: Missing header for {request.method} {request.url.path}")
                return JSONResponse(
                    status_code=ErrorCode.CSRF_MISSING.status_code,
                    content={"error": ErrorCode.CSRF_MISSING.message},
                )
        return await call_next(request)
