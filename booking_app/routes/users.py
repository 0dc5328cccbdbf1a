import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session, joinedload

from ..api_tokens import SCOPE_READ
from ..auth import Authenticated, is_admin, require_admin, require_auth, require_scope
from ..database import get_db
from ..models import ROLE_TECHNICIAN, Booking, Technician, User
from ..shared.validators import validate_email, validate_role
from ..utils.sanitization import validate_and_sanitize_input

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


class UserRoleUpdate(BaseModel):
    userId: int
    role: str

    @field_validator("role")
    @classmethod
    def validate_role_field(cls, v):
        return validate_role(v)


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is None:
            return v
        return validate_and_sanitize_input(v, max_length=255) or None

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)

    @field_validator("role")
    @classmethod
    def validate_role_field(cls, v):
        if v is None:
            return v
        return validate_role(v)


def user_to_dict(user: User) -> dict:
    technician = user.technician
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "image": user.image,
        "role": user.role,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "technician": (
            {"id": technician.id, "color": technician.color, "active": technician.active}
            if technician
            else None
        ),
    }


def change_role(db: Session, user: User, role: str) -> None:
    """Set the role; leaving TECHNICIAN removes the technician profile"""
    if user.role == ROLE_TECHNICIAN and role != ROLE_TECHNICIAN and user.technician:
        technician = user.technician
        has_bookings = db.query(Booking.id).filter(Booking.technician_id == technician.id).first()
        if has_bookings:
            # Bookings keep pointing at the profile, so only retire it
            technician.active = False
        else:
            db.delete(technician)
    user.role = role


@router.get("")
async def list_users(
    _scope: Authenticated = Depends(require_scope(SCOPE_READ)),
    auth: Authenticated = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users = db.query(User).options(joinedload(User.technician)).order_by(User.created_at.desc(), User.id.desc()).all()
    return [user_to_dict(u) for u in users]


@router.patch("")
async def update_user_role(
    data: UserRoleUpdate,
    auth: Authenticated = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if data.userId == auth.user.id:
        raise HTTPException(status_code=400, detail="You cannot change your own role")
    user = db.get(User, data.userId)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    change_role(db, user, data.role)
    db.commit()
    db.refresh(user)
    logger.info(f"👤 User {user.id} role set to {user.role} by admin {auth.user.id}")
    return user_to_dict(user)


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    data: UserUpdate,
    auth: Authenticated = Depends(require_auth),
    db: Session = Depends(get_db),
):
    """Users may edit their own profile; admins may edit anyone"""
    current = auth.user
    if current.id != user_id and not is_admin(current):
        raise HTTPException(status_code=403, detail="You can only update your own profile")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if data.role is not None and data.role != user.role:
        if current.id == user_id:
            raise HTTPException(status_code=400, detail="You cannot change your own role")
        change_role(db, user, data.role)

    if data.email and data.email != user.email:
        taken = db.query(User.id).filter(User.email == data.email, User.id != user.id).first()
        if taken:
            raise HTTPException(status_code=400, detail="Email is already in use")
        user.email = data.email

    if data.name is not None:
        user.name = data.name

    db.commit()
    db.refresh(user)
    logger.info(f"📝 User {user.id} updated by user {current.id}")
    return user_to_dict(user)


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    auth: Authenticated = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if user_id == auth.user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if db.query(Booking.id).filter(Booking.created_by_id == user.id).first():
        raise HTTPException(
            status_code=400, detail="User has created bookings and cannot be deleted"
        )
    technician = db.query(Technician).filter(Technician.user_id == user.id).first()
    if technician and db.query(Booking.id).filter(Booking.technician_id == technician.id).first():
        raise HTTPException(
            status_code=400, detail="User has assigned bookings and cannot be deleted"
        )

    db.delete(user)
    db.commit()
    logger.info(f"🗑️ User {user_id} deleted by admin {auth.user.id}")
    return {"success": True}
