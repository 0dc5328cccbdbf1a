"""Booking domain schemas - Pydantic models for validation"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import BOOKING_STATUSES
from ...shared.validators import normalize_slot, parse_date, validate_email, validate_phone
from ...utils.sanitization import validate_and_sanitize_input


class CustomerInput(BaseModel):
    name: str
    phone: str
    email: Optional[str] = None
    address: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = validate_and_sanitize_input(v, max_length=255)
        if not v:
            raise ValueError("Customer name is required")
        return v

    @field_validator("address")
    @classmethod
    def validate_address(cls, v):
        v = validate_and_sanitize_input(v, max_length=500)
        if not v:
            raise ValueError("Customer address is required")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone_field(cls, v):
        return validate_phone(v)

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v) or None


class BookingCreate(BaseModel):
    """Schema for creating a booking"""

    date: dt.date
    slot: str
    technicianId: int
    customer: CustomerInput
    installationType: str
    notes: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, v):
        if isinstance(v, str):
            return parse_date(v)
        return v

    @field_validator("slot")
    @classmethod
    def validate_slot(cls, v):
        return normalize_slot(v)

    @field_validator("technicianId")
    @classmethod
    def validate_technician_id(cls, v):
        if v <= 0:
            raise ValueError("Invalid technician id")
        return v

    @field_validator("installationType")
    @classmethod
    def validate_installation_type(cls, v):
        v = validate_and_sanitize_input(v, max_length=255)
        if not v:
            raise ValueError("Installation type is required")
        return v

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        if v is None:
            return v
        return validate_and_sanitize_input(v, max_length=2000)


class BookingStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in BOOKING_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(BOOKING_STATUSES)}")
        return v
