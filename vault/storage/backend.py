import threading
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis

from vault.config import settings
from vault.obs.logger import log_event


Updater = Callable[[Optional[str]], str]


class KeyValueBackend(Protocol):
    """get/put/delete with optional TTL, plus an atomic single-key update."""

    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def update(self, key: str, fn: Updater) -> str: ...

    def ping(self) -> bool: ...


class MemoryBackend:
    """In-process dictionary with per-key TTL.

    Used when Redis is unreachable and in tests. ``update`` holds the lock for
    the whole read-modify-write so concurrent index mutations never interleave.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.RLock()
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def _read(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            self._data.pop(key, None)
            return None
        return value

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read(key)

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def update(self, key: str, fn: Updater) -> str:
        with self._lock:
            new_value = fn(self._read(key))
            self._data[key] = (new_value, None)
            return new_value

    def keys(self, prefix: str = "") -> list:
        with self._lock:
            return [k for k in list(self._data) if k.startswith(prefix) and self._read(k) is not None]

    def ping(self) -> bool:
        return True


class RedisBackend:
    def __init__(self, redis_url: str = None, client: redis.Redis = None):
        self.redis_url = redis_url or settings.REDIS_URL
        self.client = client or redis.from_url(self.redis_url, decode_responses=True)

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        if ttl_seconds:
            self.client.set(key, value, ex=ttl_seconds)
        else:
            self.client.set(key, value)

    def delete(self, key: str) -> None:
        self.client.delete(key)

    def update(self, key: str, fn: Updater) -> str:
        # WATCH/MULTI: redis-py re-runs the callable when the key changed
        # between the read and EXEC.
        def _txn(pipe: redis.client.Pipeline) -> str:
            new_value = fn(pipe.get(key))
            pipe.multi()
            pipe.set(key, new_value)
            return new_value

        return self.client.transaction(_txn, key, value_from_callable=True)

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False


def create_backend(redis_url: str = None) -> KeyValueBackend:
    """Connect to Redis, falling back to in-memory storage if it is not reachable."""
    backend = RedisBackend(redis_url)
    try:
        backend.client.ping()
        return backend
    except redis.RedisError:
        log_event("backend_fallback", level="WARNING", error="redis unreachable")
        return MemoryBackend()
