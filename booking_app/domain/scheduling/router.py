"""Availability router"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...api_tokens import SCOPE_READ
from ...auth import Authenticated, require_scope
from ...database import get_db
from .service import AvailabilityService

router = APIRouter(prefix="/api/availability", tags=["Availability"])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


@router.get("")
async def get_availability(
    date: Optional[str] = Query(None),
    from_date: Optional[str] = Query(None, alias="from"),
    to_date: Optional[str] = Query(None, alias="to"),
    auth: Authenticated = Depends(require_scope(SCOPE_READ)),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Free/busy matrix of active technicians per slot for a day or a date range"""
    return service.get_availability(date, from_date, to_date)
