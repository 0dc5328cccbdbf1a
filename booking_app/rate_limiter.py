"""
Fixed-window rate limiting

Every /api/* request is counted against a per-client key (first X-Forwarded-For
entry, then X-Real-IP, then "anonymous"). Counters live in a backend object:
in-process memory by default, Redis when several workers must share them.
Read-heavy paths replace the default through ``DEFAULT_PATH_LIMITS``; individual
routes add stricter limits with ``create_rate_limiter``.
"""

import logging
import os
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Optional

import redis
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .config import RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW_SECONDS
from .errors import ErrorCode

logger = logging.getLogger(__name__)

# Redis connection
redis_client: Optional[redis.Redis] = None

MEMORY_CACHE_CLEANUP_INTERVAL = 60  # Clean up expired entries every 60 seconds


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client
    Supports both a REDIS_URL and individual host/port settings
    """
    global redis_client

    if redis_client is None:
        logger.info("🔄 Initializing Redis connection...")

        redis_url = os.getenv("REDIS_URL")

        if redis_url:
            # Mask password in URL for logging
            if "@" in redis_url:
                url_parts = redis_url.split("@")
                protocol = url_parts[0].split(":")[0]
                masked_url = f"{protocol}:****@{url_parts[1]}"
            else:
                masked_url = "****"
            logger.info(f"📡 Using Redis URL connection: {masked_url}")

            try:
                redis_client = redis.from_url(
                    redis_url,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    retry_on_timeout=True,
                    health_check_interval=30,
                    max_connections=20,
                )
                redis_client.ping()
                logger.info("Redis connected successfully via URL")
            except Exception as e:
                redis_client = None
                logger.error(f"❌ Failed to connect to Redis via URL: {str(e)}")
                raise
        else:
            redis_host = os.getenv("REDIS_HOST", "localhost")
            redis_port = int(os.getenv("REDIS_PORT", "6379"))
            redis_password = os.getenv("REDIS_PASSWORD", None)
            redis_db = int(os.getenv("REDIS_DB", "0"))
            redis_ssl = os.getenv("REDIS_SSL", "false").lower() == "true"

            logger.info(f"📡 Using Redis at {redis_host}:{redis_port} (db={redis_db})")

            try:
                redis_client = redis.Redis(
                    host=redis_host,
                    port=redis_port,
                    password=redis_password,
                    db=redis_db,
                    ssl=redis_ssl,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    retry_on_timeout=True,
                    health_check_interval=30,
                    max_connections=20,
                )
                redis_client.ping()
                ssl_status = "with SSL" if redis_ssl else "without SSL"
                logger.info(
                    f"Redis connected successfully at {redis_host}:{redis_port} ({ssl_status})"
                )
            except Exception as e:
                redis_client = None
                logger.error(f"❌ Failed to connect to Redis: {str(e)}")
                raise

    return redis_client


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    count: int
    reset_at: int  # epoch seconds when the current window ends

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    def retry_after(self, now: float) -> int:
        return max(1, int(self.reset_at - now))


class MemoryRateLimitBackend:
    """Per-process counters: {key: {"count": int, "reset_time": float}}"""

    def __init__(self):
        self._windows: dict[str, dict] = {}
        self._lock = Lock()
        self._last_cleanup = 0.0

    def hit(self, key: str, limit: int, window_seconds: int, now: float) -> tuple[bool, int, float]:
        """Count one request; returns (allowed, count, reset_time)"""
        with self._lock:
            self._cleanup(now)
            entry = self._windows.get(key)
            if entry is None or now >= entry["reset_time"]:
                entry = {"count": 0, "reset_time": now + window_seconds}
                self._windows[key] = entry

            allowed = entry["count"] < limit
            if allowed:
                entry["count"] += 1
            return allowed, entry["count"], entry["reset_time"]

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < MEMORY_CACHE_CLEANUP_INTERVAL:
            return
        expired = [k for k, v in self._windows.items() if now >= v["reset_time"]]
        for k in expired:
            del self._windows[k]
        if expired:
            logger.debug(f"🧹 Cleaned up {len(expired)} expired rate limit entries")
        self._last_cleanup = now

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


class RedisRateLimitBackend:
    """Shared counters using INCR + EXPIRE; the key's TTL is the window"""

    def __init__(self, client: Optional[redis.Redis] = None, namespace: str = "rate_limit"):
        self._client = client
        self.namespace = namespace

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = get_redis_client()
        return self._client

    def hit(self, key: str, limit: int, window_seconds: int, now: float) -> tuple[bool, int, float]:
        redis_key = f"{self.namespace}:{key}"
        pipe = self.client.pipeline()
        pipe.incr(redis_key)
        pipe.ttl(redis_key)
        count, ttl = pipe.execute()
        if ttl is None or ttl < 0:
            self.client.expire(redis_key, window_seconds)
            ttl = window_seconds
        count = int(count)
        return count <= limit, min(count, limit), now + ttl


class FixedWindowRateLimiter:
    """Allows ``limit`` requests per ``window_seconds`` per key"""

    def __init__(
        self,
        limit: int = RATE_LIMIT_REQUESTS,
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
        backend=None,
        clock: Callable[[], float] = time.time,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.backend = backend or MemoryRateLimitBackend()
        self.clock = clock

    def check(self, key: str, limit: Optional[int] = None, window_seconds: Optional[int] = None) -> RateLimitDecision:
        limit = limit or self.limit
        window_seconds = window_seconds or self.window_seconds
        allowed, count, reset_time = self.backend.hit(key, limit, window_seconds, self.clock())
        return RateLimitDecision(allowed=allowed, limit=limit, count=count, reset_at=int(reset_time))


def client_identifier(request: Request) -> str:
    """Rate limit key for the calling client"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and forwarded.split(",")[0].strip():
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return "anonymous"


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_at),
    }


def build_rate_limit_backend(kind: str):
    if kind == "redis":
        logger.info("📡 Rate limiting uses Redis backend")
        return RedisRateLimitBackend()
    return MemoryRateLimitBackend()


@dataclass(frozen=True)
class PathRateLimit:
    """Replaces the default /api/* limit for matching requests, with its own counter"""

    path_prefix: str
    limit: int
    window_seconds: int = RATE_LIMIT_WINDOW_SECONDS
    methods: tuple[str, ...] = ()
    key_prefix: str = "api"

    def matches(self, method: str, path: str) -> bool:
        if self.methods and method not in self.methods:
            return False
        return path == self.path_prefix or path.startswith(self.path_prefix + "/")


# Read-heavy endpoints get more room than the default
DEFAULT_PATH_LIMITS = (
    PathRateLimit("/api/bookings", limit=60, methods=("GET",), key_prefix="bookings_read"),
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Applies the fixed-window limit to every /api/* request, or the matching per-path limit"""

    def __init__(self, app, path_prefix: str = "/api/", path_limits: tuple = DEFAULT_PATH_LIMITS):
        super().__init__(app)
        self.path_prefix = path_prefix
        self.path_limits = path_limits

    def _path_limit(self, request: Request) -> Optional[PathRateLimit]:
        for rule in self.path_limits:
            if rule.matches(request.method, request.url.path):
                return rule
        return None

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        limiter: FixedWindowRateLimiter = request.app.state.rate_limiter
        rule = self._path_limit(request)
        if rule:
            key = f"{rule.key_prefix}:{client_identifier(request)}"
            window_seconds = rule.window_seconds
        else:
            key = f"api:{client_identifier(request)}"
            window_seconds = limiter.window_seconds
        try:
            decision = limiter.check(key, limit=rule.limit if rule else None, window_seconds=window_seconds)
        except Exception as e:
            logger.error(f"❌ Rate limiting error: {str(e)}")
            logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"error": "Rate limiting service temporarily unavailable"},
            )

        headers = rate_limit_headers(decision)
        if not decision.allowed:
            logger.warning(
                f"🚫 Rate limit EXCEEDED for {key} on {request.method} {request.url.path} - {decision.limit}/{window_seconds}s"
            )
            headers["Retry-After"] = str(decision.retry_after(limiter.clock()))
            return JSONResponse(
                status_code=ErrorCode.RATE_LIMITED.status_code,
                content={"error": ErrorCode.RATE_LIMITED.message},
                headers=headers,
            )

        response = await call_next(request)
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit", use_ip: bool = True):
    """
    Create a route-level rate limiter dependency, stricter than the global limit

    Example usage:
        tokens_rate_limit = create_rate_limiter(limit=10, window_seconds=60, key_prefix="tokens")

        @router.post("")
        async def create_token(_: None = Depends(tokens_rate_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        limiter: FixedWindowRateLimiter = request.app.state.rate_limiter
        key = f"{key_prefix}:{client_identifier(request)}" if use_ip else f"{key_prefix}:global"
        try:
            decision = limiter.check(key, limit=limit, window_seconds=window_seconds)
        except Exception as e:
            logger.error(f"❌ Rate limiting error: {str(e)}")
            logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Rate limiting service temporarily unavailable",
            ) from e

        if not decision.allowed:
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {decision.count}/{limit} requests used")
            headers = rate_limit_headers(decision)
            headers["Retry-After"] = str(decision.retry_after(limiter.clock()))
            raise HTTPException(
                status_code=ErrorCode.RATE_LIMITED.status_code,
                detail=ErrorCode.RATE_LIMITED.message,
                headers=headers,
            )

    return rate_limiter
