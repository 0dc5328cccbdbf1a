"""
Seed demo data: installation types, technicians, a few bookings and time off
Usage: python seed_demo_data.py
Safe to re-run; existing rows are left alone.
"""
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from booking_app.database import Base, SessionLocal, engine
from booking_app.models import (
    ROLE_TECHNICIAN,
    SLOT_AFTERNOON,
    SLOT_EVENING,
    SLOT_MORNING,
    Booking,
    Customer,
    InstallationType,
    Technician,
    TechnicianAvailability,
    User,
)

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)

INSTALLATION_TYPES = [
    ("Air conditioning", "Split unit installation", 120),
    ("Heat pump", "Air-to-water heat pump installation", 180),
    ("Solar panels", "Rooftop photovoltaic installation", 240),
    ("Maintenance", "Yearly service visit", 60),
]

TECHNICIANS = [
    ("alex.tech@example.com", "Alex Martin", "#3B82F6"),
    ("sam.tech@example.com", "Sam Dupont", "#10B981"),
    ("lee.tech@example.com", "Lee Bernard", "#F59E0B"),
]

CUSTOMERS = [
    ("Marie Laurent", "+33612345678", "marie@example.com", "12 rue de la Paix, Paris"),
    ("Jean Moreau", "+33698765432", None, "4 avenue Foch, Lyon"),
]


def seed():
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()
    try:
        types = {}
        for name, description, duration in INSTALLATION_TYPES:
            installation_type = db.query(InstallationType).filter(InstallationType.name == name).first()
            if not installation_type:
                installation_type = InstallationType(name=name, description=description, duration=duration)
                db.add(installation_type)
                logger.info(f"✅ Installation type: {name}")
            types[name] = installation_type
        db.flush()

        technicians = []
        for email, name, color in TECHNICIANS:
            user = db.query(User).filter(User.email == email).first()
            if not user:
                user = User(email=email, name=name, role=ROLE_TECHNICIAN)
                db.add(user)
                db.flush()
            if not user.technician:
                db.add(Technician(user_id=user.id, color=color, active=True))
                logger.info(f"✅ Technician: {name}")
            db.flush()
            technicians.append(user.technician)

        customers = []
        for name, phone, email, address in CUSTOMERS:
            customer = db.query(Customer).filter(Customer.phone == phone).first()
            if not customer:
                customer = Customer(name=name, phone=phone, email=email, address=address)
                db.add(customer)
                db.flush()
            customers.append(customer)

        creator = db.query(User).filter(User.role != ROLE_TECHNICIAN).order_by(User.id.asc()).first()
        if not creator:
            logger.warning("⚠️ No admin or customer service user found - skipping demo bookings")
            db.commit()
            return

        tomorrow = date.today() + timedelta(days=1)
        demo_bookings = [
            (tomorrow, SLOT_MORNING, technicians[0], customers[0], "Air conditioning"),
            (tomorrow, SLOT_AFTERNOON, technicians[1], customers[1], "Heat pump"),
            (tomorrow + timedelta(days=1), SLOT_EVENING, technicians[0], customers[1], "Maintenance"),
        ]
        for booking_date, slot, technician, customer, type_name in demo_bookings:
            exists = (
                db.query(Booking.id)
                .filter(
                    Booking.date == booking_date,
                    Booking.slot == slot,
                    Booking.technician_id == technician.id,
                )
                .first()
            )
            if exists:
                continue
            db.add(
                Booking(
                    date=booking_date,
                    slot=slot,
                    technician_id=technician.id,
                    customer_id=customer.id,
                    installation_type_id=types[type_name].id,
                    created_by_id=creator.id,
                )
            )
            logger.info(f"✅ Booking: {booking_date} {slot} for {technician.user.name}")

        day_off = tomorrow + timedelta(days=2)
        off_tech = technicians[2]
        if not (
            db.query(TechnicianAvailability.id)
            .filter(TechnicianAvailability.technician_id == off_tech.id, TechnicianAvailability.date == day_off)
            .first()
        ):
            db.add(TechnicianAvailability(technician_id=off_tech.id, date=day_off, available=False, reason="Training"))
            logger.info(f"✅ Time off: {off_tech.user.name} on {day_off}")

        db.commit()
        logger.info("🎉 Demo data ready")
    finally:
        db.close()


if __name__ == "__main__":
    try:
        seed()
    except Exception as e:
        logger.error(f"❌ Seeding failed: {e}")
        sys.exit(1)
