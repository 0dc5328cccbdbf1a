"""Booking repository - Database operations for bookings, customers and installation types"""

from datetime import date
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ...models import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    Customer,
    InstallationType,
    Technician,
    TechnicianAvailability,
)


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def list_bookings(
        db: Session,
        start: Optional[date] = None,
        end: Optional[date] = None,
        status: Optional[str] = None,
        technician_id: Optional[int] = None,
    ) -> list[Booking]:
        query = db.query(Booking).options(
            joinedload(Booking.customer),
            joinedload(Booking.technician).joinedload(Technician.user),
            joinedload(Booking.installation_type),
            joinedload(Booking.created_by),
        )
        if start:
            query = query.filter(Booking.date >= start)
        if end:
            query = query.filter(Booking.date <= end)
        if status:
            query = query.filter(Booking.status == status)
        if technician_id:
            query = query.filter(Booking.technician_id == technician_id)
        return query.order_by(Booking.date.asc(), Booking.slot.asc()).all()

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_technician(db: Session, technician_id: int) -> Optional[Technician]:
        return db.query(Technician).filter(Technician.id == technician_id).first()

    @staticmethod
    def is_slot_taken(db: Session, booking_date: date, slot: str, technician_id: int) -> bool:
        return (
            db.query(Booking.id)
            .filter(
                Booking.date == booking_date,
                Booking.slot == slot,
                Booking.technician_id == technician_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .first()
            is not None
        )

    @staticmethod
    def is_on_time_off(db: Session, technician_id: int, booking_date: date) -> bool:
        return (
            db.query(TechnicianAvailability.id)
            .filter(
                TechnicianAvailability.technician_id == technician_id,
                TechnicianAvailability.date == booking_date,
                TechnicianAvailability.available.is_(False),
            )
            .first()
            is not None
        )

    @staticmethod
    def get_or_create_installation_type(db: Session, name: str) -> InstallationType:
        installation_type = db.query(InstallationType).filter(InstallationType.name == name).first()
        if not installation_type:
            installation_type = InstallationType(name=name)
            db.add(installation_type)
            db.flush()
        return installation_type

    @staticmethod
    def find_customer(db: Session, phone: str, email: Optional[str]) -> Optional[Customer]:
        conditions = [Customer.phone == phone]
        if email:
            conditions.append(Customer.email == email)
        return db.query(Customer).filter(or_(*conditions)).first()

    @staticmethod
    def upsert_customer(db: Session, name: str, phone: str, email: Optional[str], address: str) -> Customer:
        """Update the customer matched by phone or email, or create a new one"""
        customer = BookingRepository.find_customer(db, phone, email)
        if customer:
            customer.name = name
            customer.phone = phone
            customer.address = address
            if email:
                customer.email = email
        else:
            customer = Customer(name=name, phone=phone, email=email, address=address)
            db.add(customer)
        db.flush()
        return customer

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        booking = Booking(**booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def update_status(db: Session, booking: Booking, status: str) -> Booking:
        booking.status = status
        db.commit()
        db.refresh(booking)
        return booking
