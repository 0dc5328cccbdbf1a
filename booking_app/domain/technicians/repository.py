"""Technician repository - Database operations for technicians"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import ROLE_TECHNICIAN, Technician, User


class TechnicianRepository:
    """Repository for technician database operations"""

    @staticmethod
    def list_technicians(db: Session, active_only: bool = False) -> list[Technician]:
        query = db.query(Technician).options(joinedload(Technician.user))
        if active_only:
            query = query.filter(Technician.active.is_(True))
        return query.order_by(Technician.created_at.desc(), Technician.id.desc()).all()

    @staticmethod
    def get_technician(db: Session, technician_id: int) -> Optional[Technician]:
        return db.query(Technician).filter(Technician.id == technician_id).first()

    @staticmethod
    def get_by_user_id(db: Session, user_id: int) -> Optional[Technician]:
        return db.query(Technician).filter(Technician.user_id == user_id).first()

    @staticmethod
    def create_technician(db: Session, user: User, color: str) -> Technician:
        """Promote the user to TECHNICIAN and create the profile in one transaction"""
        user.role = ROLE_TECHNICIAN
        technician = Technician(user_id=user.id, color=color, active=True)
        db.add(technician)
        db.commit()
        db.refresh(technician)
        return technician

    @staticmethod
    def reactivate_technician(db: Session, technician: Technician, color: str) -> Technician:
        """Restore a retired profile and give the user the TECHNICIAN role again"""
        technician.user.role = ROLE_TECHNICIAN
        technician.active = True
        technician.color = color
        db.commit()
        db.refresh(technician)
        return technician

    @staticmethod
    def update_technician(db: Session, technician: Technician, name: Optional[str] = None, **updates) -> Technician:
        if name is not None:
            technician.user.name = name
        for key, value in updates.items():
            if value is not None and hasattr(technician, key):
                setattr(technician, key, value)
        db.commit()
        db.refresh(technician)
        return technician
