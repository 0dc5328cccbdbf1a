"""Technician service - Business logic for technician management"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import ROLE_TECHNICIAN, Technician, User
from .repository import TechnicianRepository
from .schemas import TechnicianCreate, TechnicianUpdate

logger = logging.getLogger(__name__)


def technician_to_dict(technician: Technician) -> dict:
    user = technician.user
    return {
        "id": technician.id,
        "userId": technician.user_id,
        "name": user.display_name,
        "email": user.email,
        "color": technician.color,
        "active": technician.active,
        "createdAt": technician.created_at.isoformat() if technician.created_at else None,
    }


class TechnicianService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = TechnicianRepository()

    def list_technicians(self) -> list[Technician]:
        return self.repo.list_technicians(self.db)

    def create_technician(self, data: TechnicianCreate, admin: User) -> Technician:
        user = self.db.get(User, data.userId)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        existing = self.repo.get_by_user_id(self.db, user.id)
        if existing and existing.active and user.role == ROLE_TECHNICIAN:
            raise HTTPException(status_code=409, detail="User is already a technician")
        if existing:
            technician = self.repo.reactivate_technician(self.db, existing, data.color)
            logger.info(f"🔧 Technician {technician.id} reinstated for user {user.id} by admin {admin.id}")
            return technician

        technician = self.repo.create_technician(self.db, user, data.color)
        logger.info(f"🔧 User {user.id} promoted to technician {technician.id} by admin {admin.id}")
        return technician

    def update_technician(self, data: TechnicianUpdate, admin: User) -> Technician:
        technician = self.repo.get_technician(self.db, data.technicianId)
        if not technician:
            raise HTTPException(status_code=404, detail="Technician not found")
        if data.active and technician.user.role != ROLE_TECHNICIAN:
            raise HTTPException(status_code=400, detail="User no longer has the technician role")

        technician = self.repo.update_technician(
            self.db, technician, name=data.name, color=data.color, active=data.active
        )
        logger.info(f"📝 Technician {technician.id} updated by admin {admin.id}")
        return technician
