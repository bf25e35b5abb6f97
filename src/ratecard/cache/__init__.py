"""Cache capability and coordinator for derived rate card results."""

from ratecard.cache.backend import CacheBackend, MemoryCache
from ratecard.cache.coordinator import CacheCoordinator, metrics_fingerprint

__all__ = [
    "CacheBackend",
    "CacheCoordinator",
    "MemoryCache",
    "metrics_fingerprint",
]
