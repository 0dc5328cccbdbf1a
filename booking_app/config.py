import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./booking.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

# Frontend base URL for redirects after sign-in and in invitation links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Google OAuth (sign-in)
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", "http://localhost:8000/api/auth/callback")

# Emails allowed to sign in without an invitation (bootstrap admins)
ADMIN_EMAILS = [
    e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()
]

# Sessions
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "booking_session")
SESSION_MAX_AGE_DAYS = int(os.getenv("SESSION_MAX_AGE_DAYS", "30"))
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", str(ENVIRONMENT == "production")).lower() == "true"

# CSRF
CSRF_ENABLED = os.getenv("CSRF_ENABLED", "true").lower() == "true"
CSRF_TOKEN_MAX_AGE = int(os.getenv("CSRF_TOKEN_MAX_AGE", "86400"))

# API tokens
API_TOKEN_PREFIX = os.getenv("API_TOKEN_PREFIX", "bk_")

# Rate limiting: "memory" (single process) or "redis" (shared)
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
RATE_LIMIT_REQUESTS = int(os.getenv("RATE_LIMIT_REQUESTS", "30"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
RATE_LIMIT_BACKEND = os.getenv("RATE_LIMIT_BACKEND", "memory").lower()

# Impersonation entries: "memory" (single process) or "redis" (shared)
IMPERSONATION_BACKEND = os.getenv("IMPERSONATION_BACKEND", "memory").lower()

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Booking System <noreply@example.com>")
INVITATION_EXPIRY_DAYS = int(os.getenv("INVITATION_EXPIRY_DAYS", "7"))

# Chat assistant webhook (n8n workflow)
CHAT_WEBHOOK_URL = os.getenv("CHAT_WEBHOOK_URL") or os.getenv("N8N_WEBHOOK_URL")
CHAT_WEBHOOK_METHOD = os.getenv("CHAT_WEBHOOK_METHOD", "GET").upper()
CHAT_WEBHOOK_TIMEOUT = float(os.getenv("CHAT_WEBHOOK_TIMEOUT", "30"))

# CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173"
).split(",")

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
