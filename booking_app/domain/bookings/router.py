"""Booking router - FastAPI endpoints for booking operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...api_tokens import SCOPE_READ, SCOPE_WRITE
from ...auth import Authenticated, require_scope
from ...database import get_db
from ...rate_limiter import create_rate_limiter
from .schemas import BookingCreate, BookingStatusUpdate
from .service import BookingService, booking_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])

bookings_write_rate_limit = create_rate_limiter(limit=20, window_seconds=60, key_prefix="bookings_write")


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


@router.get("")
async def list_bookings(
    date: Optional[str] = Query(None),
    from_date: Optional[str] = Query(None, alias="from"),
    to_date: Optional[str] = Query(None, alias="to"),
    status: Optional[str] = Query(None),
    technicianId: Optional[int] = Query(None),
    auth: Authenticated = Depends(require_scope(SCOPE_READ)),
    service: BookingService = Depends(get_booking_service),
):
    """List bookings, optionally filtered by day, date range, status and technician"""
    bookings = service.list_bookings(date, from_date, to_date, status, technicianId)
    return [booking_to_dict(b) for b in bookings]


@router.post("", status_code=201)
async def create_booking(
    data: BookingCreate,
    _: None = Depends(bookings_write_rate_limit),
    auth: Authenticated = Depends(require_scope(SCOPE_WRITE)),
    service: BookingService = Depends(get_booking_service),
):
    """Create a booking for a technician slot"""
    booking = service.create_booking(data, auth.user)
    return {"success": True, "booking": booking_to_dict(booking)}


@router.patch("/{booking_id}/status")
async def update_booking_status(
    booking_id: int,
    data: BookingStatusUpdate,
    _: None = Depends(bookings_write_rate_limit),
    auth: Authenticated = Depends(require_scope(SCOPE_WRITE)),
    service: BookingService = Depends(get_booking_service),
):
    """Mark a booking scheduled, completed or cancelled"""
    booking = service.update_status(booking_id, data.status, auth.user)
    return {
        "success": True,
        "booking": booking_to_dict(booking),
        "message": f"Booking status updated to {data.status}",
    }
