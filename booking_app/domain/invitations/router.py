"""Invitation router - admin invitations plus the public validate/accept flow"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Authenticated, SessionAuth, require_admin, require_session
from ...database import get_db
from ...email_service import send_invitation_email
from ...models import utcnow
from ...rate_limiter import create_rate_limiter
from .schemas import InvitationAccept, InvitationCreate
from .service import InvitationMailer, InvitationService, invitation_to_dict

router = APIRouter(prefix="/api/invitations", tags=["Invitations"])

invitations_rate_limit = create_rate_limiter(limit=5, window_seconds=60, key_prefix="invitations")


def get_invitation_mailer() -> InvitationMailer:
    return send_invitation_email


def get_invitation_service(
    db: Session = Depends(get_db),
    mailer: InvitationMailer = Depends(get_invitation_mailer),
) -> InvitationService:
    """Dependency injection for InvitationService"""
    return InvitationService(db, mailer)


@router.get("")
async def list_invitations(
    _: None = Depends(invitations_rate_limit),
    auth: Authenticated = Depends(require_admin),
    service: InvitationService = Depends(get_invitation_service),
):
    now = utcnow()
    return [invitation_to_dict(i, now) for i in service.list_invitations()]


@router.post("", status_code=201)
async def create_invitation(
    data: InvitationCreate,
    _: None = Depends(invitations_rate_limit),
    auth: Authenticated = Depends(require_admin),
    service: InvitationService = Depends(get_invitation_service),
):
    """Invite a new user by email with the role they will get on acceptance"""
    invitation = await service.create_invitation(data, auth.user)
    return {"success": True, "invitation": invitation_to_dict(invitation, utcnow())}


@router.get("/validate")
async def validate_invitation(
    token: Optional[str] = Query(None),
    _: None = Depends(invitations_rate_limit),
    service: InvitationService = Depends(get_invitation_service),
):
    invitation = service.get_valid_invitation(token)
    inviter = invitation.invited_by
    return {
        "email": invitation.email,
        "role": invitation.role,
        "invitedBy": inviter.display_name if inviter else None,
    }


@router.post("/accept")
async def accept_invitation(
    data: InvitationAccept,
    _: None = Depends(invitations_rate_limit),
    auth: SessionAuth = Depends(require_session),
    service: InvitationService = Depends(get_invitation_service),
):
    user = service.accept_invitation(data.token, auth.session.real_user)
    return {"success": True, "role": user.role}


@router.delete("/{invitation_id}")
async def delete_invitation(
    invitation_id: int,
    _: None = Depends(invitations_rate_limit),
    auth: Authenticated = Depends(require_admin),
    service: InvitationService = Depends(get_invitation_service),
):
    service.delete_invitation(invitation_id, auth.user)
    return {"success": True}
