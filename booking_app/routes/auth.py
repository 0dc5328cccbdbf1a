"""
Sign-in routes: Google OAuth login/callback, logout and the current session
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from ..auth import AuthOutcome, SessionAuth, get_auth, get_impersonation_store, get_session_service
from ..config import ADMIN_EMAILS, FRONTEND_URL, SESSION_COOKIE_NAME, SESSION_COOKIE_SECURE
from ..database import get_db
from ..errors import ErrorCode, auth_error
from ..impersonation import ImpersonationStore
from ..models import ROLE_ADMIN, ROLE_CUSTOMER_SERVICE, User, UserInvitation, utcnow
from ..oauth import OAUTH_STATE_COOKIE, OAUTH_STATE_MAX_AGE, GoogleOAuthClient, GoogleProfile, OAuthStateSigner
from ..rate_limiter import create_rate_limiter
from ..sessions import SessionService, clear_session_cookie, set_session_cookie

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

auth_rate_limit = create_rate_limiter(limit=5, window_seconds=60, key_prefix="auth")


def get_oauth_client() -> GoogleOAuthClient:
    return GoogleOAuthClient()


def get_state_signer() -> OAuthStateSigner:
    return OAuthStateSigner()


def safe_next_path(next_path: Optional[str]) -> str:
    """Only allow same-site relative redirects after sign-in"""
    if not next_path or not next_path.startswith("/") or next_path.startswith("//"):
        return "/"
    return next_path


def apply_sign_in_policy(db: Session, profile: GoogleProfile) -> Optional[User]:
    """
    Decide whether a Google account may sign in and return its user.

    Allowed: existing users, emails with a pending invitation, and the
    bootstrap admin emails from ADMIN_EMAILS (created as ADMIN).
    """
    email = profile.email.lower()
    user = db.query(User).filter(User.email == email).first()

    if not user:
        invitation = (
            db.query(UserInvitation)
            .filter(
                UserInvitation.email == email,
                UserInvitation.accepted_at.is_(None),
                UserInvitation.expires_at > utcnow(),
            )
            .first()
        )
        is_bootstrap_admin = email in ADMIN_EMAILS
        if not invitation and not is_bootstrap_admin:
            logger.warning(f"🚫 Sign-in rejected for {email}: no account or invitation")
            return None

        user = User(
            email=email,
            name=profile.name,
            image=profile.picture,
            google_sub=profile.sub,
            role=ROLE_ADMIN if is_bootstrap_admin else ROLE_CUSTOMER_SERVICE,
        )
        db.add(user)
        logger.info(f"👤 Created user {email} on first sign-in")
    else:
        if user.google_sub and user.google_sub != profile.sub:
            logger.warning(f"🚫 Sign-in rejected for {email}: Google account mismatch")
            return None
        user.google_sub = profile.sub
        user.name = user.name or profile.name
        user.image = profile.picture or user.image

    db.commit()
    db.refresh(user)
    return user


@router.get("/login")
async def login(
    next: Optional[str] = None,
    _: None = Depends(auth_rate_limit),
    client: GoogleOAuthClient = Depends(get_oauth_client),
    signer: OAuthStateSigner = Depends(get_state_signer),
):
    """Redirect to the Google consent screen"""
    if not client.configured:
        raise HTTPException(status_code=500, detail="Google sign-in not configured")

    state, nonce = signer.issue(safe_next_path(next))
    response = RedirectResponse(url=client.authorization_url(state), status_code=302)
    response.set_cookie(
        key=OAUTH_STATE_COOKIE,
        value=nonce,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
        max_age=OAUTH_STATE_MAX_AGE,
        path="/api/auth",
    )
    return response


@router.get("/callback")
async def callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    _: None = Depends(auth_rate_limit),
    db: Session = Depends(get_db),
    client: GoogleOAuthClient = Depends(get_oauth_client),
    signer: OAuthStateSigner = Depends(get_state_signer),
    sessions: SessionService = Depends(get_session_service),
):
    """Complete the Google sign-in and start a session"""
    if error:
        logger.warning(f"⚠️ Google sign-in returned error: {error}")
        return RedirectResponse(url=f"{FRONTEND_URL}/auth/error?error=OAuthCallback", status_code=302)

    next_path = signer.verify(state or "", request.cookies.get(OAUTH_STATE_COOKIE))
    if next_path is None or not code:
        raise HTTPException(status_code=400, detail="Invalid OAuth state")

    profile = await client.fetch_profile(code)
    user = apply_sign_in_policy(db, profile)
    if not user:
        return RedirectResponse(url=f"{FRONTEND_URL}/auth/error?error=AccessDenied", status_code=302)

    raw = sessions.create(user)
    response = RedirectResponse(url=f"{FRONTEND_URL}{safe_next_path(next_path)}", status_code=302)
    set_session_cookie(response, raw)
    response.delete_cookie(OAUTH_STATE_COOKIE, path="/api/auth")
    logger.info(f"✅ User {user.id} signed in")
    return response


@router.post("/logout")
async def logout(
    request: Request,
    sessions: SessionService = Depends(get_session_service),
    store: ImpersonationStore = Depends(get_impersonation_store),
):
    user_id = sessions.revoke(request.cookies.get(SESSION_COOKIE_NAME))
    if user_id is not None:
        store.clear(user_id)
    response = JSONResponse({"success": True})
    clear_session_cookie(response)
    return response


@router.get("/session")
async def get_session(outcome: AuthOutcome = Depends(get_auth)):
    """Current effective user and impersonation flags"""
    if not isinstance(outcome, SessionAuth):
        raise auth_error(ErrorCode.UNAUTHORIZED)
    return outcome.session.to_dict()
