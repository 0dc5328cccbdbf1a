"""Server-side browser sessions and the impersonation overlay"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from fastapi import Response
from sqlalchemy.orm import Session

from .config import SESSION_COOKIE_NAME, SESSION_COOKIE_SECURE, SESSION_MAX_AGE_DAYS
from .impersonation import ImpersonationStore
from .models import ROLE_ADMIN, AuthSession, User, utcnow

logger = logging.getLogger(__name__)

# Only persist last_seen_at when it is older than this
LAST_SEEN_RESOLUTION = timedelta(minutes=5)


@dataclass(frozen=True)
class ResolvedSession:
    """A valid session. ``user`` is the effective user; ``real_user`` signed in."""

    session_id: int
    user: User
    real_user: User
    is_impersonating: bool = False
    original_user_id: Optional[int] = None
    original_user_email: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "user": {
                "id": self.user.id,
                "email": self.user.email,
                "name": self.user.name,
                "image": self.user.image,
                "role": self.user.role,
            },
            "isImpersonating": self.is_impersonating,
            "originalUserId": self.original_user_id,
            "originalUserEmail": self.original_user_email,
        }


def hash_session_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class SessionService:
    def __init__(
        self,
        db: Session,
        impersonation_store: ImpersonationStore,
        clock: Callable[[], datetime] = utcnow,
        max_age_days: int = SESSION_MAX_AGE_DAYS,
    ):
        self.db = db
        self.store = impersonation_store
        self.clock = clock
        self.max_age = timedelta(days=max_age_days)

    def create(self, user: User) -> str:
        """Start a session for ``user``; returns the raw cookie value"""
        raw = secrets.token_urlsafe(32)
        now = self.clock()
        self.db.add(
            AuthSession(
                token_hash=hash_session_token(raw),
                user_id=user.id,
                last_seen_at=now,
                expires_at=now + self.max_age,
            )
        )
        self.db.commit()
        logger.info(f"🔑 Session created for user {user.id}")
        return raw

    def _find(self, raw: str) -> Optional[AuthSession]:
        return (
            self.db.query(AuthSession)
            .filter(AuthSession.token_hash == hash_session_token(raw))
            .first()
        )

    def resolve(self, raw: Optional[str]) -> Optional[ResolvedSession]:
        if not raw:
            return None
        record = self._find(raw)
        if not record or record.revoked_at is not None:
            return None
        now = self.clock()
        if record.expires_at <= now:
            return None
        real_user = record.user
        if not real_user:
            return None

        if not record.last_seen_at or now - record.last_seen_at > LAST_SEEN_RESOLUTION:
            record.last_seen_at = now
            self.db.commit()

        return self._apply_impersonation(record.id, real_user)

    def _apply_impersonation(self, session_id: int, real_user: User) -> ResolvedSession:
        entry = self.store.get(real_user.id)
        if entry is None:
            return ResolvedSession(session_id=session_id, user=real_user, real_user=real_user)

        if real_user.role != ROLE_ADMIN:
            logger.warning(f"⚠️ Dropping impersonation for user {real_user.id}: no longer an admin")
            self.store.clear(real_user.id)
            return ResolvedSession(session_id=session_id, user=real_user, real_user=real_user)

        target = self.db.get(User, entry.impersonating_user_id)
        if not target:
            logger.warning(
                f"⚠️ Dropping impersonation for admin {real_user.id}: user {entry.impersonating_user_id} no longer exists"
            )
            self.store.clear(real_user.id)
            return ResolvedSession(session_id=session_id, user=real_user, real_user=real_user)

        return ResolvedSession(
            session_id=session_id,
            user=target,
            real_user=real_user,
            is_impersonating=True,
            original_user_id=entry.original_user_id,
            original_user_email=entry.original_user_email,
        )

    def revoke(self, raw: Optional[str]) -> Optional[int]:
        """Revoke the session; returns the real user id it belonged to"""
        if not raw:
            return None
        record = self._find(raw)
        if not record or record.revoked_at is not None:
            return None
        record.revoked_at = self.clock()
        self.db.commit()
        logger.info(f"🔒 Session revoked for user {record.user_id}")
        return record.user_id


def set_session_cookie(response: Response, raw: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=raw,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
        max_age=SESSION_MAX_AGE_DAYS * 86400,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
