"""
Admin impersonation: act as another user for support and troubleshooting.

Permission checks use the real signed-in user, never the impersonated one,
so an admin can always stop impersonating.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import SessionAuth, get_impersonation_store, require_session
from ..database import get_db
from ..impersonation import ImpersonationEntry, ImpersonationStore
from ..models import ROLE_ADMIN, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/impersonate", tags=["Impersonation"])


class ImpersonateRequest(BaseModel):
    userId: Optional[int] = None


@router.post("")
async def start_impersonation(
    data: ImpersonateRequest,
    auth: SessionAuth = Depends(require_session),
    store: ImpersonationStore = Depends(get_impersonation_store),
    db: Session = Depends(get_db),
):
    admin = auth.session.real_user
    if admin.role != ROLE_ADMIN:
        logger.warning(f"🚫 Non-admin user {admin.id} attempted impersonation")
        raise HTTPException(status_code=403, detail="Only administrators can impersonate users")

    if data.userId is None:
        raise HTTPException(status_code=400, detail="User ID is required")
    if data.userId == admin.id:
        raise HTTPException(status_code=400, detail="You cannot impersonate yourself")

    target = db.get(User, data.userId)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")

    store.set(
        admin.id,
        ImpersonationEntry(
            impersonating_user_id=target.id,
            original_user_id=admin.id,
            original_user_email=admin.email,
        ),
    )
    logger.info(f"🎭 Admin {admin.id} started impersonating user {target.id}")

    return {
        "success": True,
        "impersonatingUserId": target.id,
        "targetUser": {
            "id": target.id,
            "email": target.email,
            "name": target.name,
            "role": target.role,
        },
    }


@router.delete("")
async def stop_impersonation(
    auth: SessionAuth = Depends(require_session),
    store: ImpersonationStore = Depends(get_impersonation_store),
):
    admin_id = auth.session.real_user.id
    store.clear(admin_id)
    if auth.session.is_impersonating:
        logger.info(f"🎭 Admin {admin_id} stopped impersonating user {auth.session.user.id}")
    return {"success": True}
