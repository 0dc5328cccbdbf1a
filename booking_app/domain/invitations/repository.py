"""Invitation repository - Database operations for user invitations"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import User, UserInvitation


class InvitationRepository:
    @staticmethod
    def list_invitations(db: Session) -> list[UserInvitation]:
        return (
            db.query(UserInvitation)
            .options(joinedload(UserInvitation.invited_by))
            .order_by(UserInvitation.created_at.desc(), UserInvitation.id.desc())
            .all()
        )

    @staticmethod
    def get_by_id(db: Session, invitation_id: int) -> Optional[UserInvitation]:
        return db.query(UserInvitation).filter(UserInvitation.id == invitation_id).first()

    @staticmethod
    def get_by_token(db: Session, token: str) -> Optional[UserInvitation]:
        return db.query(UserInvitation).filter(UserInvitation.token == token).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[UserInvitation]:
        return db.query(UserInvitation).filter(UserInvitation.email == email).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def create_invitation(db: Session, **invitation_data) -> UserInvitation:
        invitation = UserInvitation(**invitation_data)
        db.add(invitation)
        db.commit()
        db.refresh(invitation)
        return invitation

    @staticmethod
    def delete_invitation(db: Session, invitation: UserInvitation) -> None:
        db.delete(invitation)
        db.commit()
