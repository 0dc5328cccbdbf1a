"""Availability service - which technician slots are free on a day or across a date range"""

import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from ...models import (
    ACTIVE_BOOKING_STATUSES,
    TIME_SLOTS,
    Booking,
    Technician,
    TechnicianAvailability,
)
from ...shared.validators import parse_date

logger = logging.getLogger(__name__)

MAX_RANGE_DAYS = 92


class AvailabilityService:
    def __init__(self, db: Session):
        self.db = db

    def _active_technicians(self) -> list[Technician]:
        return (
            self.db.query(Technician)
            .options(joinedload(Technician.user))
            .filter(Technician.active.is_(True))
            .order_by(Technician.id.asc())
            .all()
        )

    def _busy(self, start: date, end: date) -> tuple[set, set]:
        """Returns ({(date, technician_id, slot)} booked, {(date, technician_id)} time off)"""
        bookings = (
            self.db.query(Booking.date, Booking.technician_id, Booking.slot)
            .filter(
                Booking.date >= start,
                Booking.date <= end,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .all()
        )
        time_off = (
            self.db.query(TechnicianAvailability.date, TechnicianAvailability.technician_id)
            .filter(
                TechnicianAvailability.date >= start,
                TechnicianAvailability.date <= end,
                TechnicianAvailability.available.is_(False),
            )
            .all()
        )
        booked = {(b.date, b.technician_id, b.slot) for b in bookings}
        off = {(t.date, t.technician_id) for t in time_off}
        return booked, off

    @staticmethod
    def _technician_summary(technicians: list[Technician]) -> list[dict]:
        return [{"id": t.id, "name": t.user.display_name, "color": t.color} for t in technicians]

    def get_availability(
        self, day: Optional[str] = None, start: Optional[str] = None, end: Optional[str] = None
    ) -> dict:
        try:
            day_date = parse_date(day)
            start_date = parse_date(start)
            end_date = parse_date(end)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        if day_date:
            return self.for_day(day_date)
        if start_date and end_date:
            return self.for_range(start_date, end_date)
        raise HTTPException(status_code=400, detail="Date parameter required (date or from+to)")

    def for_day(self, day: date) -> dict:
        technicians = self._active_technicians()
        booked, off = self._busy(day, day)

        slots = {slot: {} for slot in TIME_SLOTS}
        for tech in technicians:
            for slot in TIME_SLOTS:
                slots[slot][str(tech.id)] = (day, tech.id) not in off and (day, tech.id, slot) not in booked

        return {
            "date": day.isoformat(),
            "technicians": self._technician_summary(technicians),
            "availability": slots,
        }

    def for_range(self, start: date, end: date) -> dict:
        if end < start:
            raise HTTPException(status_code=400, detail="End date must be on or after start date")
        if (end - start).days > MAX_RANGE_DAYS:
            raise HTTPException(status_code=400, detail=f"Date range cannot exceed {MAX_RANGE_DAYS} days")

        technicians = self._active_technicians()
        booked, off = self._busy(start, end)

        availability = {}
        current = start
        while current <= end:
            availability[current.isoformat()] = {
                str(tech.id): {
                    slot: (current, tech.id) not in off and (current, tech.id, slot) not in booked
                    for slot in TIME_SLOTS
                }
                for tech in technicians
            }
            current += timedelta(days=1)

        return {
            "from": start.isoformat(),
            "to": end.isoformat(),
            "technicians": self._technician_summary(technicians),
            "availability": availability,
        }
