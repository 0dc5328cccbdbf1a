"""
API token generation and validation

Tokens look like ``bk_<64 hex chars>``. Only the SHA-256 digest of the full
token is stored, lookups hash the presented value first and never compare raw
strings. Validation never raises for expected failures: it returns either a
``TokenValid`` or a ``TokenRejected`` value carrying an ``ErrorCode``.
"""

import hashlib
import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import API_TOKEN_PREFIX
from .errors import ErrorCode
from .models import ApiToken, User, utcnow

logger = logging.getLogger(__name__)

SCOPE_READ = "read"
SCOPE_WRITE = "write"
SCOPE_ADMIN = "admin"
VALID_SCOPES = frozenset({SCOPE_READ, SCOPE_WRITE, SCOPE_ADMIN})


@dataclass(frozen=True)
class TokenValid:
    user: User
    scopes: frozenset
    token_id: int


@dataclass(frozen=True)
class TokenRejected:
    error: ErrorCode


TokenResult = Union[TokenValid, TokenRejected]


def generate_api_token(prefix: str = API_TOKEN_PREFIX) -> str:
    """Generate a new raw API token (prefix + 32 random bytes as hex)"""
    return f"{prefix}{secrets.token_hex(32)}"


def hash_api_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def parse_scopes(raw: Optional[str]) -> frozenset:
    """Parse stored scopes; accepts a JSON list or a comma-separated string"""
    if not raw:
        return frozenset()
    raw = raw.strip()
    if raw.startswith("["):
        try:
            values = json.loads(raw)
        except ValueError:
            logger.warning("⚠️ Malformed scope list on API token, treating as comma list")
            values = raw.strip("[]").replace('"', "").split(",")
    else:
        values = raw.split(",")
    return frozenset(str(v).strip() for v in values if str(v).strip())


def serialize_scopes(scopes: Iterable[str]) -> str:
    return json.dumps(sorted(set(scopes)))


def has_scope(scopes: Iterable[str], required: str) -> bool:
    """True when the scope set grants ``required``; admin grants everything"""
    scopes = set(scopes)
    return required in scopes or SCOPE_ADMIN in scopes


def mask_token(stored_token: str) -> str:
    return f"{stored_token[:8]}..."


class ApiTokenValidator:
    """Turns a presented bearer string into a TokenValid / TokenRejected decision"""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        prefix: str = API_TOKEN_PREFIX,
    ):
        self.db = db
        self.clock = clock
        self.prefix = prefix

    def validate(self, token: Optional[str]) -> TokenResult:
        if not token or not token.startswith(self.prefix):
            return TokenRejected(ErrorCode.INVALID_TOKEN_FORMAT)

        try:
            api_token = (
                self.db.query(ApiToken).filter(ApiToken.token == hash_api_token(token)).first()
            )
            if not api_token:
                return TokenRejected(ErrorCode.INVALID_TOKEN)
            if not api_token.is_active:
                logger.info(f"🔒 Disabled API token used (token_id={api_token.id})")
                return TokenRejected(ErrorCode.TOKEN_DISABLED)

            now = self.clock()
            if api_token.expires_at and api_token.expires_at < now:
                logger.info(f"⏰ Expired API token used (token_id={api_token.id})")
                return TokenRejected(ErrorCode.TOKEN_EXPIRED)

            user = api_token.user
            if not user:
                return TokenRejected(ErrorCode.INVALID_TOKEN)

            result = TokenValid(
                user=user, scopes=parse_scopes(api_token.scopes), token_id=api_token.id
            )
            self._touch(api_token, now)
            return result
        except SQLAlchemyError as e:
            logger.error(f"❌ API token validation error: {e}")
            return TokenRejected(ErrorCode.AUTHENTICATION_FAILED)

    def _touch(self, api_token: ApiToken, now: datetime) -> None:
        """Record last use; a failure here must not fail the validation"""
        token_id = api_token.id
        try:
            api_token.last_used_at = now
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Failed to update last_used_at for token_id={token_id}: {e}")
