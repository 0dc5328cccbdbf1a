import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import all models to ensure they're registered with SQLAlchemy Base
from . import models  # noqa: F401
from .config import (
    ALLOWED_ORIGINS,
    CSRF_ENABLED,
    IMPERSONATION_BACKEND,
    RATE_LIMIT_BACKEND,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    SECURITY_HEADERS_ENABLED,
)
from .csrf import CSRFMiddleware, CSRFService
from .database import Base, engine
from .domain.bookings.router import router as bookings_router
from .domain.invitations.router import router as invitations_router
from .domain.scheduling.router import router as availability_router
from .domain.technicians.router import router as technicians_router
from .errors import ErrorCode
from .impersonation import build_impersonation_store
from .rate_limiter import (
    FixedWindowRateLimiter,
    RateLimitMiddleware,
    build_rate_limit_backend,
    get_redis_client,
)
from .routes.auth import router as auth_router
from .routes.chat import router as chat_router
from .routes.csrf import router as csrf_router
from .routes.impersonate import router as impersonate_router
from .routes.tokens import router as tokens_router
from .routes.users import router as users_router
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    if "redis" in (RATE_LIMIT_BACKEND, IMPERSONATION_BACKEND):
        try:
            get_redis_client()
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning(f"Redis connection failed - rate limited requests will be denied: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Booking API", version="1.0.0", lifespan=lifespan)

# Process-wide stores; tests replace these with fresh instances
app.state.impersonation_store = build_impersonation_store(IMPERSONATION_BACKEND)
app.state.rate_limiter = FixedWindowRateLimiter(
    limit=RATE_LIMIT_REQUESTS,
    window_seconds=RATE_LIMIT_WINDOW_SECONDS,
    backend=build_rate_limit_backend(RATE_LIMIT_BACKEND),
)
app.state.csrf_service = CSRFService()


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = str(first.get("msg", "Invalid value")).removeprefix("Value error, ")
    return f"{field}: {message}" if field else message


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": _validation_message(exc)})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code, content={"error": detail}, headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=ErrorCode.INTERNAL_ERROR.status_code,
        content={"error": ErrorCode.INTERNAL_ERROR.message},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# Middleware added last runs first: CORS -> rate limit -> CSRF header check -> security headers
if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
    logger.info("Security headers enabled")
else:
    logger.warning("Security headers DISABLED - only use in development!")

if CSRF_ENABLED:
    app.add_middleware(CSRFMiddleware)
    logger.info("CSRF protection enabled")
else:
    logger.warning("CSRF protection DISABLED - only use in development!")

if RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware)
    logger.info(f"Rate limiting enabled: {RATE_LIMIT_REQUESTS} requests / {RATE_LIMIT_WINDOW_SECONDS}s")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Authorization", "Content-Type", "X-CSRF-Token"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
)

# Routes
app.include_router(auth_router)
app.include_router(csrf_router)
app.include_router(impersonate_router)
app.include_router(tokens_router)
app.include_router(users_router)
app.include_router(bookings_router)
app.include_router(technicians_router)
app.include_router(availability_router)
app.include_router(invitations_router)
app.include_router(chat_router)


@app.get("/")
def root():
    return {"message": "Booking API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/health/redis")
async def redis_health_check():
    """Check Redis connectivity for monitoring"""
    try:
        redis_client = get_redis_client()

        start_time = time.time()
        redis_client.ping()
        response_time = (time.time() - start_time) * 1000

        info = redis_client.info()

        return {
            "status": "healthy",
            "redis": {
                "connected": True,
                "response_time_ms": round(response_time, 2),
                "version": info.get("redis_version", "unknown"),
                "connected_clients": info.get("connected_clients", 0),
            },
        }
    except Exception as e:
        logger.warning(f"⚠️ Redis health check failed: {e}")
        return {"status": "unhealthy", "redis": {"connected": False}}
