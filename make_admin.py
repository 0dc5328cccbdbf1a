"""
Grant the ADMIN role to a user, creating the user if needed
Usage: python make_admin.py <email> [name]
"""
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from booking_app.database import Base, SessionLocal, engine
from booking_app.models import ROLE_ADMIN, User

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def make_admin(email: str, name: str = None):
    email = email.strip().lower()
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.role = ROLE_ADMIN
            logger.info(f"✅ User updated to ADMIN: {email}")
        else:
            user = User(email=email, name=name, role=ROLE_ADMIN)
            db.add(user)
            logger.info(f"✅ New ADMIN user created: {email}")
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        logger.error("Usage: python make_admin.py <email> [name]")
        sys.exit(1)

    try:
        make_admin(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)
    except Exception as e:
        logger.error(f"❌ Failed to grant admin role: {e}")
        sys.exit(1)
