"""Technician router - FastAPI endpoints for technician management"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...api_tokens import SCOPE_READ
from ...auth import Authenticated, require_admin, require_scope
from ...database import get_db
from .schemas import TechnicianCreate, TechnicianUpdate
from .service import TechnicianService, technician_to_dict

router = APIRouter(prefix="/api/technicians", tags=["Technicians"])


def get_technician_service(db: Session = Depends(get_db)) -> TechnicianService:
    """Dependency injection for TechnicianService"""
    return TechnicianService(db)


@router.get("")
async def list_technicians(
    auth: Authenticated = Depends(require_scope(SCOPE_READ)),
    service: TechnicianService = Depends(get_technician_service),
):
    return [technician_to_dict(t) for t in service.list_technicians()]


@router.post("", status_code=201)
async def create_technician(
    data: TechnicianCreate,
    auth: Authenticated = Depends(require_admin),
    service: TechnicianService = Depends(get_technician_service),
):
    """Promote an existing user to technician"""
    return technician_to_dict(service.create_technician(data, auth.user))


@router.patch("")
async def update_technician(
    data: TechnicianUpdate,
    auth: Authenticated = Depends(require_admin),
    service: TechnicianService = Depends(get_technician_service),
):
    return technician_to_dict(service.update_technician(data, auth.user))
