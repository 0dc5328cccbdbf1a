from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# User roles
ROLE_ADMIN = "ADMIN"
ROLE_CUSTOMER_SERVICE = "CUSTOMER_SERVICE"
ROLE_TECHNICIAN = "TECHNICIAN"
USER_ROLES = (ROLE_ADMIN, ROLE_CUSTOMER_SERVICE, ROLE_TECHNICIAN)

# Booking time slots (start-end hours)
SLOT_MORNING = "MORNING"  # 10-12
SLOT_AFTERNOON = "AFTERNOON"  # 13-15
SLOT_EVENING = "EVENING"  # 16-18
TIME_SLOTS = (SLOT_MORNING, SLOT_AFTERNOON, SLOT_EVENING)

# Booking statuses
STATUS_SCHEDULED = "SCHEDULED"
STATUS_COMPLETED = "COMPLETED"
STATUS_CANCELLED = "CANCELLED"
BOOKING_STATUSES = (STATUS_SCHEDULED, STATUS_COMPLETED, STATUS_CANCELLED)
# Statuses that occupy a slot
ACTIVE_BOOKING_STATUSES = (STATUS_SCHEDULED, STATUS_COMPLETED)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    image = Column(String(500), nullable=True)
    google_sub = Column(String(255), unique=True, nullable=True)  # Google account subject id
    role = Column(String(32), default=ROLE_CUSTOMER_SERVICE, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    technician = relationship(
        "Technician", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    api_tokens = relationship("ApiToken", back_populates="user", cascade="all, delete-orphan")
    sessions = relationship("AuthSession", back_populates="user", cascade="all, delete-orphan")
    created_bookings = relationship("Booking", back_populates="created_by")

    @property
    def display_name(self) -> str:
        return self.name or self.email


class AuthSession(Base):
    """Server-side browser session; the cookie holds the raw value, we keep its hash"""

    __tablename__ = "auth_sessions"

    id = Column(Integer, primary_key=True, index=True)
    token_hash = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())
    last_seen_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="sessions")


class ApiToken(Base):
    __tablename__ = "api_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # SHA-256 hex digest of the raw token; the raw value is only shown once at creation
    token = Column(String(64), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    scopes = Column(Text, nullable=False, default='["read"]')  # JSON list, comma list accepted
    is_active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    last_used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="api_tokens")


class Technician(Base):
    __tablename__ = "technicians"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    color = Column(String(7), default="#3B82F6", nullable=False)  # Calendar colour, #RRGGBB
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="technician")
    bookings = relationship("Booking", back_populates="technician")
    availability = relationship(
        "TechnicianAvailability", back_populates="technician", cascade="all, delete-orphan"
    )


class TechnicianAvailability(Base):
    """Per-day availability override; available=False marks time off"""

    __tablename__ = "technician_availability"
    __table_args__ = (UniqueConstraint("technician_id", "date", name="uq_technician_day"),)

    id = Column(Integer, primary_key=True, index=True)
    technician_id = Column(Integer, ForeignKey("technicians.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False, index=True)
    available = Column(Boolean, default=True, nullable=False)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    technician = relationship("Technician", back_populates="availability")


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False, index=True)
    email = Column(String(255), nullable=True, index=True)
    address = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    bookings = relationship("Booking", back_populates="customer")


class InstallationType(Base):
    __tablename__ = "installation_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, default=120, nullable=False)  # minutes
    created_at = Column(DateTime, server_default=func.now())

    bookings = relationship("Booking", back_populates="installation_type")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, index=True)
    slot = Column(String(16), nullable=False)  # MORNING, AFTERNOON, EVENING
    status = Column(String(16), default=STATUS_SCHEDULED, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    technician_id = Column(Integer, ForeignKey("technicians.id"), nullable=False, index=True)
    installation_type_id = Column(Integer, ForeignKey("installation_types.id"), nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", back_populates="bookings")
    technician = relationship("Technician", back_populates="bookings")
    installation_type = relationship("InstallationType", back_populates="bookings")
    created_by = relationship("User", back_populates="created_bookings")


class UserInvitation(Base):
    __tablename__ = "user_invitations"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(32), default=ROLE_CUSTOMER_SERVICE, nullable=False)
    token = Column(String(128), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    invited_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    invited_by = relationship("User")
