"""Short-lived key/value staging with per-entry expiry.

Used to hold candidate 2FA secrets between setup and verification. The
in-memory implementation is process-local; deployments running several
workers need a shared implementation of the same protocol.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

from fastapi import Request

from app.core.clock import utcnow

logger = logging.getLogger(__name__)


class TTLCache(Protocol):
    def set(self, key: str, value: str, ttl: timedelta) -> None: ...

    def get(self, key: str) -> Optional[str]: ...

    def delete(self, key: str) -> None: ...

    def purge_expired(self) -> int: ...

    def clear(self) -> None: ...


class InMemoryTTLCache:
    """Dict-backed TTLCache with lazy eviction on read."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._entries: dict[str, tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: str, value: str, ttl: timedelta) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def get_secret_cache(request: Request) -> TTLCache:
    """FastAPI dependency returning the cache built in the app lifespan."""
    return request.app.state.secret_cache
