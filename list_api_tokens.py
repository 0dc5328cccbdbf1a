"""
List API tokens with their owner, scopes and state
Usage: python list_api_tokens.py
"""
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from booking_app.api_tokens import mask_token, parse_scopes
from booking_app.database import SessionLocal
from booking_app.models import ApiToken, utcnow

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def list_api_tokens():
    db = SessionLocal()
    try:
        tokens = db.query(ApiToken).order_by(ApiToken.created_at.desc()).all()
        if not tokens:
            logger.info("No API tokens found")
            return

        now = utcnow()
        logger.info(f"Found {len(tokens)} API tokens:\n")
        for t in tokens:
            if not t.is_active:
                state = "🔒 disabled"
            elif t.expires_at and t.expires_at < now:
                state = "⏰ expired"
            else:
                state = "✅ active"
            logger.info(f"[{t.id}] {t.name} ({state})")
            logger.info(f"    Owner: {t.user.email}")
            logger.info(f"    Token: {mask_token(t.token)}")
            logger.info(f"    Scopes: {', '.join(sorted(parse_scopes(t.scopes)))}")
            logger.info(f"    Expires: {t.expires_at or 'never'}")
            logger.info(f"    Last used: {t.last_used_at or 'never'}\n")
    finally:
        db.close()


if __name__ == "__main__":
    try:
        list_api_tokens()
    except Exception as e:
        logger.error(f"❌ Failed to list API tokens: {e}")
        sys.exit(1)
