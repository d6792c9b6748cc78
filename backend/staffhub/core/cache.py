import threading
import time
from typing import TypeVar

T = TypeVar("T")


class TTLCache:
    """Small thread-safe key/value cache with per-entry expiry."""

    def __init__(self, ttl_seconds: int) -> None:
        self._ttl_seconds = max(0, ttl_seconds)
        self._lock = threading.Lock()
        self._items: dict[str, tuple[float, object]] = {}

    @staticmethod
    def _now() -> float:
        return time.monotonic()

    def get(self, key: str) -> T | None:
        now = self._now()
        with self._lock:
            hit = self._items.get(key)
            if not hit:
                return None
            expires_at, value = hit
            if expires_at <= now:
                self._items.pop(key, None)
                return None
            return value  # type: ignore[return-value]

    def set(self, key: str, value: T) -> T:
        if self._ttl_seconds == 0:
            return value
        with self._lock:
            self._items[key] = (self._now() + self._ttl_seconds, value)
        return value
