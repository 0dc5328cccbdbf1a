"""
API token management (admin only)

The raw token is returned once, at creation. Listings only show the first
characters of the stored digest.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from ..api_tokens import (
    SCOPE_READ,
    VALID_SCOPES,
    generate_api_token,
    hash_api_token,
    mask_token,
    parse_scopes,
    serialize_scopes,
)
from ..auth import Authenticated, require_admin
from ..database import get_db
from ..models import ApiToken, utcnow
from ..rate_limiter import create_rate_limiter
from ..utils.sanitization import validate_and_sanitize_input

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tokens", tags=["API Tokens"])

tokens_rate_limit = create_rate_limiter(limit=10, window_seconds=60, key_prefix="tokens")


class TokenCreate(BaseModel):
    name: str
    expiresAt: Optional[datetime] = None
    scopes: list[str] = [SCOPE_READ]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = validate_and_sanitize_input(v, max_length=255)
        if not v:
            raise ValueError("Token name is required")
        return v

    @field_validator("scopes")
    @classmethod
    def validate_scopes(cls, v):
        if not v:
            raise ValueError("At least one scope is required")
        invalid = set(v) - VALID_SCOPES
        if invalid:
            raise ValueError(f"Invalid scopes: {', '.join(sorted(invalid))}. Allowed: read, write, admin")
        return v

    @field_validator("expiresAt")
    @classmethod
    def normalize_expiry(cls, v):
        # Stored as naive UTC
        if v is not None and v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class TokenUpdate(BaseModel):
    isActive: bool


def token_to_dict(api_token: ApiToken) -> dict:
    return {
        "id": api_token.id,
        "name": api_token.name,
        "token": mask_token(api_token.token),
        "scopes": sorted(parse_scopes(api_token.scopes)),
        "isActive": api_token.is_active,
        "expiresAt": api_token.expires_at.isoformat() if api_token.expires_at else None,
        "lastUsedAt": api_token.last_used_at.isoformat() if api_token.last_used_at else None,
        "createdAt": api_token.created_at.isoformat() if api_token.created_at else None,
    }


def get_owned_token(db: Session, token_id: int, user_id: int) -> ApiToken:
    api_token = (
        db.query(ApiToken).filter(ApiToken.id == token_id, ApiToken.user_id == user_id).first()
    )
    if not api_token:
        raise HTTPException(status_code=404, detail="Token not found")
    return api_token


@router.get("")
async def list_tokens(
    _: None = Depends(tokens_rate_limit),
    auth: Authenticated = Depends(require_admin),
    db: Session = Depends(get_db),
):
    tokens = (
        db.query(ApiToken)
        .filter(ApiToken.user_id == auth.user.id)
        .order_by(ApiToken.created_at.desc(), ApiToken.id.desc())
        .all()
    )
    return [token_to_dict(t) for t in tokens]


@router.post("", status_code=201)
async def create_token(
    data: TokenCreate,
    _: None = Depends(tokens_rate_limit),
    auth: Authenticated = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if data.expiresAt is not None and data.expiresAt <= utcnow():
        raise HTTPException(status_code=400, detail="Expiration date must be in the future")

    raw_token = generate_api_token()
    api_token = ApiToken(
        user_id=auth.user.id,
        token=hash_api_token(raw_token),
        name=data.name,
        scopes=serialize_scopes(data.scopes),
        expires_at=data.expiresAt,
        is_active=True,
    )
    db.add(api_token)
    db.commit()
    db.refresh(api_token)
    logger.info(f"🔑 API token {api_token.id} created by user {auth.user.id} (scopes={data.scopes})")

    response = token_to_dict(api_token)
    response["token"] = raw_token
    response["message"] = "Store this token securely. It will not be shown again."
    return response


@router.patch("/{token_id}")
async def update_token(
    token_id: int,
    data: TokenUpdate,
    _: None = Depends(tokens_rate_limit),
    auth: Authenticated = Depends(require_admin),
    db: Session = Depends(get_db),
):
    api_token = get_owned_token(db, token_id, auth.user.id)
    api_token.is_active = data.isActive
    db.commit()
    db.refresh(api_token)
    logger.info(
        f"🔒 API token {api_token.id} {'enabled' if data.isActive else 'disabled'} by user {auth.user.id}"
    )
    return token_to_dict(api_token)


@router.delete("/{token_id}")
async def delete_token(
    token_id: int,
    _: None = Depends(tokens_rate_limit),
    auth: Authenticated = Depends(require_admin),
    db: Session = Depends(get_db),
):
    api_token = get_owned_token(db, token_id, auth.user.id)
    db.delete(api_token)
    db.commit()
    logger.info(f"🗑️ API token {token_id} deleted by user {auth.user.id}")
    return {"success": True}
