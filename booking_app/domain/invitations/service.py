"""Invitation service - invite, validate and accept user invitations"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import FRONTEND_URL, INVITATION_EXPIRY_DAYS
from ...email_service import EmailDeliveryError
from ...models import User, UserInvitation, utcnow
from .repository import InvitationRepository
from .schemas import InvitationCreate

logger = logging.getLogger(__name__)

InvitationMailer = Callable[..., Awaitable[dict]]


def invitation_status(invitation: UserInvitation, now: datetime) -> str:
    if invitation.accepted_at:
        return "accepted"
    if invitation.expires_at < now:
        return "expired"
    return "pending"


def invitation_to_dict(invitation: UserInvitation, now: datetime) -> dict:
    inviter = invitation.invited_by
    return {
        "id": invitation.id,
        "email": invitation.email,
        "role": invitation.role,
        "status": invitation_status(invitation, now),
        "expiresAt": invitation.expires_at.isoformat(),
        "acceptedAt": invitation.accepted_at.isoformat() if invitation.accepted_at else None,
        "createdAt": invitation.created_at.isoformat() if invitation.created_at else None,
        "invitedBy": {"name": inviter.name, "email": inviter.email} if inviter else None,
    }


class InvitationService:
    def __init__(
        self,
        db: Session,
        mailer: Optional[InvitationMailer] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.repo = InvitationRepository()
        self.mailer = mailer
        self.clock = clock

    def list_invitations(self) -> list[UserInvitation]:
        return self.repo.list_invitations(self.db)

    async def create_invitation(self, data: InvitationCreate, admin: User) -> UserInvitation:
        now = self.clock()
        if self.repo.get_user_by_email(self.db, data.email):
            raise HTTPException(status_code=400, detail="A user with this email already exists")

        existing = self.repo.get_by_email(self.db, data.email)
        if existing:
            if invitation_status(existing, now) == "pending":
                raise HTTPException(
                    status_code=400, detail="A pending invitation already exists for this email"
                )
            # Expired or used invitations are replaced
            self.repo.delete_invitation(self.db, existing)

        invitation = self.repo.create_invitation(
            self.db,
            email=data.email,
            role=data.role,
            token=secrets.token_urlsafe(32),
            expires_at=now + timedelta(days=INVITATION_EXPIRY_DAYS),
            invited_by_id=admin.id,
        )

        try:
            await self.mailer(
                to=invitation.email,
                inviter_name=admin.display_name,
                invitation_link=f"{FRONTEND_URL}/auth/accept-invitation?token={invitation.token}",
                role=invitation.role,
                expires_at=invitation.expires_at,
            )
        except EmailDeliveryError as e:
            logger.error(f"❌ Invitation email to {invitation.email} failed, removing invitation: {e}")
            self.repo.delete_invitation(self.db, invitation)
            raise HTTPException(status_code=500, detail="Failed to send invitation email") from e

        logger.info(f"📨 Invitation {invitation.id} sent to {invitation.email} by admin {admin.id}")
        return invitation

    def delete_invitation(self, invitation_id: int, admin: User) -> None:
        invitation = self.repo.get_by_id(self.db, invitation_id)
        if not invitation:
            raise HTTPException(status_code=404, detail="Invitation not found")
        self.repo.delete_invitation(self.db, invitation)
        logger.info(f"🗑️ Invitation {invitation_id} deleted by admin {admin.id}")

    def get_valid_invitation(self, token: Optional[str]) -> UserInvitation:
        """Return the invitation for ``token`` or raise 400/404/410"""
        if not token:
            raise HTTPException(status_code=400, detail="Invitation token is required")
        invitation = self.repo.get_by_token(self.db, token)
        if not invitation:
            raise HTTPException(status_code=404, detail="Invalid invitation")
        if invitation.accepted_at:
            raise HTTPException(status_code=400, detail="Invitation has already been used")
        if invitation.expires_at < self.clock():
            raise HTTPException(status_code=410, detail="Invitation has expired")
        return invitation

    def accept_invitation(self, token: str, user: User) -> User:
        invitation = self.get_valid_invitation(token)
        if invitation.email.lower() != user.email.lower():
            logger.warning(f"🚫 User {user.id} tried to accept invitation for {invitation.email}")
            raise HTTPException(
                status_code=400, detail="This invitation was sent to a different email address"
            )

        user.role = invitation.role
        invitation.accepted_at = self.clock()
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"✅ User {user.id} accepted invitation {invitation.id} as {user.role}")
        return user
