"""
Impersonation store

Maps an admin's user id to the user they are currently acting as. The entry is
consulted on every session resolution to overlay the effective identity.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Optional

import redis

from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImpersonationEntry:
    impersonating_user_id: int
    original_user_id: int
    original_user_email: str


class ImpersonationStore(ABC):
    @abstractmethod
    def get(self, admin_id: int) -> Optional[ImpersonationEntry]:
        ...

    @abstractmethod
    def set(self, admin_id: int, entry: ImpersonationEntry) -> None:
        ...

    @abstractmethod
    def clear(self, admin_id: int) -> None:
        ...


class InMemoryImpersonationStore(ImpersonationStore):
    """Process-local store; entries are lost on restart"""

    def __init__(self):
        self._entries: dict[int, ImpersonationEntry] = {}
        self._lock = Lock()

    def get(self, admin_id: int) -> Optional[ImpersonationEntry]:
        with self._lock:
            return self._entries.get(admin_id)

    def set(self, admin_id: int, entry: ImpersonationEntry) -> None:
        with self._lock:
            self._entries[admin_id] = entry

    def clear(self, admin_id: int) -> None:
        with self._lock:
            self._entries.pop(admin_id, None)


class RedisImpersonationStore(ImpersonationStore):
    """Shared store for multi-worker deployments; entries expire with the session lifetime"""

    def __init__(self, client: Optional[redis.Redis] = None, ttl: int = 8 * 3600, namespace: str = "impersonation"):
        self._client = client
        self.ttl = ttl
        self.namespace = namespace

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = get_redis_client()
        return self._client

    def _key(self, admin_id: int) -> str:
        return f"{self.namespace}:{admin_id}"

    def get(self, admin_id: int) -> Optional[ImpersonationEntry]:
        value = self.client.get(self._key(admin_id))
        if not value:
            return None
        try:
            return ImpersonationEntry(**json.loads(value))
        except (ValueError, TypeError) as e:
            logger.error(f"❌ Corrupt impersonation entry for admin {admin_id}: {e}")
            self.clear(admin_id)
            return None

    def set(self, admin_id: int, entry: ImpersonationEntry) -> None:
        self.client.setex(self._key(admin_id), self.ttl, json.dumps(asdict(entry)))

    def clear(self, admin_id: int) -> None:
        self.client.delete(self._key(admin_id))


def build_impersonation_store(kind: str) -> ImpersonationStore:
    if kind == "redis":
        logger.info("📡 Impersonation entries stored in Redis")
        return RedisImpersonationStore()
    return InMemoryImpersonationStore()
