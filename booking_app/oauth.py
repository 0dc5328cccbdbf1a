"""
Google sign-in (OAuth 2.0 authorization code flow)
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import HTTPException
from itsdangerous import BadSignature, URLSafeTimedSerializer

from .config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI, SECRET_KEY

logger = logging.getLogger(__name__)

# Google OAuth URLs
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
GOOGLE_SIGNIN_SCOPES = ["openid", "email", "profile"]

OAUTH_STATE_COOKIE = "oauth_state"
OAUTH_STATE_MAX_AGE = 600  # 10 minutes to complete the consent screen


@dataclass(frozen=True)
class GoogleProfile:
    sub: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


class OAuthStateSigner:
    """Signs the OAuth state so the callback can check it came from our login redirect"""

    def __init__(self, secret_key: str = SECRET_KEY):
        self.serializer = URLSafeTimedSerializer(secret_key, salt="google-oauth-state")

    def issue(self, next_path: str = "/") -> tuple[str, str]:
        """Returns (state, nonce); the nonce goes into a cookie"""
        nonce = secrets.token_urlsafe(16)
        return self.serializer.dumps({"nonce": nonce, "next": next_path}), nonce

    def verify(self, state: str, nonce: Optional[str]) -> Optional[str]:
        """Returns the post-login path, or None when the state is invalid"""
        if not state or not nonce:
            return None
        try:
            data = self.serializer.loads(state, max_age=OAUTH_STATE_MAX_AGE)
        except BadSignature:
            return None
        if not secrets.compare_digest(str(data.get("nonce", "")), nonce):
            return None
        return data.get("next") or "/"


class GoogleOAuthClient:
    def __init__(
        self,
        client_id: Optional[str] = GOOGLE_CLIENT_ID,
        client_secret: Optional[str] = GOOGLE_CLIENT_SECRET,
        redirect_uri: str = GOOGLE_REDIRECT_URI,
        timeout: float = 10.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(GOOGLE_SIGNIN_SCOPES),
            "state": state,
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def fetch_profile(self, code: str) -> GoogleProfile:
        """Exchange the authorization code and return the Google account profile"""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            token_response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                },
            )
            if token_response.status_code != 200:
                logger.error(f"❌ Google token exchange failed: HTTP {token_response.status_code}")
                raise HTTPException(status_code=400, detail="Failed to exchange authorization code")

            access_token = token_response.json().get("access_token")
            if not access_token:
                raise HTTPException(status_code=400, detail="Invalid token response")

            user_info_response = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            if user_info_response.status_code != 200:
                logger.error(f"❌ Failed to get Google user info: HTTP {user_info_response.status_code}")
                raise HTTPException(status_code=400, detail="Failed to get user info")

        info = user_info_response.json()
        if not info.get("email") or not info.get("email_verified", True):
            raise HTTPException(status_code=400, detail="Google account email is not verified")

        return GoogleProfile(
            sub=str(info.get("sub")),
            email=info["email"].lower(),
            name=info.get("name"),
            picture=info.get("picture"),
        )
