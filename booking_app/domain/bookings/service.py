"""Booking service - Business logic for booking operations"""

import logging
from datetime import date, datetime
from typing import Callable, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import BOOKING_STATUSES, Booking, User
from ...shared.validators import SLOT_LABELS, SLOT_START_HOURS, parse_date
from .repository import BookingRepository
from .schemas import BookingCreate

logger = logging.getLogger(__name__)


def booking_to_dict(booking: Booking) -> dict:
    technician = booking.technician
    customer = booking.customer
    return {
        "id": booking.id,
        "date": booking.date.isoformat(),
        "slot": booking.slot,
        "timeRange": SLOT_LABELS.get(booking.slot),
        "status": booking.status,
        "notes": booking.notes,
        "customer": {
            "id": customer.id,
            "name": customer.name,
            "phone": customer.phone,
            "email": customer.email,
            "address": customer.address,
        },
        "technician": {
            "id": technician.id,
            "name": technician.user.display_name,
            "color": technician.color,
        },
        "installationType": booking.installation_type.name,
        "createdBy": booking.created_by.display_name if booking.created_by else None,
        "createdAt": booking.created_at.isoformat() if booking.created_at else None,
    }


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.repo = BookingRepository()
        # Local wall-clock time; slots are expressed in local hours
        self.clock = clock

    def list_bookings(
        self,
        day: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        status: Optional[str] = None,
        technician_id: Optional[int] = None,
    ) -> list[Booking]:
        try:
            day_date = parse_date(day)
            start_date = parse_date(start)
            end_date = parse_date(end)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        if day_date:
            start_date = end_date = day_date
        elif start_date and end_date and end_date < start_date:
            raise HTTPException(status_code=400, detail="End date must be on or after start date")

        if status and status not in BOOKING_STATUSES:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid status. Must be one of: {', '.join(BOOKING_STATUSES)}",
            )

        return self.repo.list_bookings(self.db, start_date, end_date, status, technician_id)

    def create_booking(self, data: BookingCreate, user: User) -> Booking:
        """Create a booking after checking the date, technician and slot"""
        now = self.clock()
        self._check_not_in_past(data.date, data.slot, now)

        technician = self.repo.get_technician(self.db, data.technicianId)
        if not technician or not technician.active:
            raise HTTPException(status_code=400, detail="Technician not found or inactive")

        if self.repo.is_slot_taken(self.db, data.date, data.slot, technician.id):
            logger.info(
                f"📅 Slot {data.slot} on {data.date} already booked for technician {technician.id}"
            )
            raise HTTPException(
                status_code=409, detail="This time slot is already booked for the selected technician"
            )

        if self.repo.is_on_time_off(self.db, technician.id, data.date):
            raise HTTPException(status_code=409, detail="Technician is not available on this date")

        installation_type = self.repo.get_or_create_installation_type(self.db, data.installationType)
        customer = self.repo.upsert_customer(
            self.db,
            name=data.customer.name,
            phone=data.customer.phone,
            email=data.customer.email,
            address=data.customer.address,
        )

        booking = self.repo.create_booking(
            self.db,
            date=data.date,
            slot=data.slot,
            technician_id=technician.id,
            customer_id=customer.id,
            installation_type_id=installation_type.id,
            created_by_id=user.id,
            notes=data.notes,
        )
        logger.info(f"✅ Booking {booking.id} created by user {user.id} for {booking.date} {booking.slot}")
        return booking

    @staticmethod
    def _check_not_in_past(booking_date: date, slot: str, now: datetime) -> None:
        today = now.date()
        if booking_date < today:
            raise HTTPException(status_code=400, detail="Cannot book appointments in the past")
        if booking_date == today and now.hour >= SLOT_START_HOURS[slot]:
            raise HTTPException(status_code=400, detail="This time slot has already started")

    def update_status(self, booking_id: int, status: str, user: User) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        booking = self.repo.update_status(self.db, booking, status)
        logger.info(f"📝 Booking {booking.id} status set to {status} by user {user.id}")
        return booking
