"""Key-value cache capability with per-entry TTL.

``CacheBackend`` is the interface the coordinator depends on; any store
offering get/set/delete/delete-by-prefix with TTL can stand behind it.
``MemoryCache`` is the in-process implementation used by the service.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any, Protocol


class CacheBackend(Protocol):
    """Minimal cache interface consumed by the CacheCoordinator."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl_seconds: float) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_prefix(self, prefix: str) -> int: ...


class MemoryCache:
    """Thread-safe in-process cache with TTL expiry.

    Expired entries are dropped when read, and swept from the whole cache by
    the first ``set`` after each ``sweep_interval``, so keys that are never
    read again do not accumulate.

    Args:
        clock: Monotonic time source in seconds.  Tests inject a fake clock
            to step past TTLs without sleeping.
        sweep_interval: Minimum seconds between full sweeps.
    """

    def __init__(
        self, clock: Callable[[], float] = time.monotonic, *, sweep_interval: float = 60.0
    ) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            now = self._clock()
            if now >= self._next_sweep:
                self._purge_expired(now)
            self._entries[key] = (now + ttl_seconds, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with *prefix*; return how many were removed."""
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def cleanup(self) -> int:
        """Remove every expired entry; return how many were removed."""
        with self._lock:
            return self._purge_expired(self._clock())

    def _purge_expired(self, now: float) -> int:
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        self._next_sweep = now + self._sweep_interval
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
