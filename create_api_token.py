"""
Create an API token for an admin user
Usage: python create_api_token.py [email] [name] [scopes] [days]
  email   defaults to the first ADMIN user
  scopes  comma separated, defaults to read,write
  days    validity in days, defaults to 365
"""
import logging
import sys
from datetime import timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from booking_app.api_tokens import VALID_SCOPES, generate_api_token, hash_api_token, serialize_scopes
from booking_app.database import SessionLocal
from booking_app.models import ROLE_ADMIN, ApiToken, User, utcnow

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def create_api_token(email: str = None, name: str = "CLI Token", scopes: str = "read,write", days: int = 365):
    scope_list = [s.strip() for s in scopes.split(",") if s.strip()]
    invalid = set(scope_list) - VALID_SCOPES
    if invalid:
        raise ValueError(f"Invalid scopes: {', '.join(sorted(invalid))}")

    db = SessionLocal()
    try:
        query = db.query(User).filter(User.role == ROLE_ADMIN)
        if email:
            query = query.filter(User.email == email.strip().lower())
        admin = query.order_by(User.id.asc()).first()
        if not admin:
            logger.error("❌ No admin user found. Run make_admin.py first.")
            sys.exit(1)

        raw_token = generate_api_token()
        api_token = ApiToken(
            user_id=admin.id,
            token=hash_api_token(raw_token),
            name=name,
            scopes=serialize_scopes(scope_list),
            is_active=True,
            expires_at=utcnow() + timedelta(days=days),
        )
        db.add(api_token)
        db.commit()
        db.refresh(api_token)

        logger.info("✅ API token created successfully!")
        logger.info("🔑 Raw token (save this - it will not be shown again):")
        logger.info(raw_token)
        logger.info(f"   ID: {api_token.id}")
        logger.info(f"   Name: {api_token.name}")
        logger.info(f"   User: {admin.email}")
        logger.info(f"   Scopes: {api_token.scopes}")
        logger.info(f"   Expires: {api_token.expires_at}")
        logger.info(f'   Header: "Authorization: Bearer {raw_token}"')
    finally:
        db.close()


if __name__ == "__main__":
    args = sys.argv[1:]
    try:
        create_api_token(
            email=args[0] if len(args) > 0 else None,
            name=args[1] if len(args) > 1 else "CLI Token",
            scopes=args[2] if len(args) > 2 else "read,write",
            days=int(args[3]) if len(args) > 3 else 365,
        )
    except Exception as e:
        logger.error(f"❌ Failed to create API token: {e}")
        sys.exit(1)
