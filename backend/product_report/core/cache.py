"""
In-memory analytics cache

Simple key/value store with per-entry TTL, used to rate-limit calls to the
third-party analytics APIs. Expired entries are dropped lazily on read and in
bulk by a periodic sweep started with the application.

Process-local: each API instance has its own cache.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    ttl: float


class AnalyticsCache:
    """
    TTL cache backed by a dict.

    No size bound and no locking; it lives on a single event loop.
    """

    def __init__(self, clock=time.monotonic):
        self._entries: Dict[str, CacheEntry] = {}
        self._clock = clock

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp > entry.ttl

    def get(self, key: str) -> Optional[Any]:
        """Return cached data, or None when missing or expired"""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._is_expired(entry, self._clock()):
            del self._entries[key]
            return None

        return entry.data

    def set(self, key: str, data: Any, ttl_seconds: float) -> None:
        """Store data under key for ttl_seconds"""
        self._entries[key] = CacheEntry(data=data, timestamp=self._clock(), ttl=ttl_seconds)

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        """Size and keys, including entries not yet swept"""
        keys: List[str] = list(self._entries.keys())
        return {"size": len(keys), "keys": keys}

    def cleanup(self) -> int:
        """Remove every expired entry; returns how many were removed"""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)


# Singleton instance
analytics_cache = AnalyticsCache()


class CACHE_TTL:
    """Cache TTL constants (seconds)"""
    REVENUECAT = 5 * 60
    MIXPANEL = 5 * 60
    STATSIG = 5 * 60
    INTERNAL = 30
    AGGREGATED = 60


class CACHE_KEYS:
    REVENUE = "analytics:revenue"
    TRIALS = "analytics:trials"
    EXPERIMENTS = "analytics:experiments"
    CHURN = "analytics:churn"
    REFERRALS = "analytics:referrals"
    MRR = "analytics:mrr"
    FULL_RESPONSE = "analytics:full"


CLEANUP_INTERVAL_SECONDS = 5 * 60


async def run_periodic_cleanup(cache: AnalyticsCache = None, interval: float = CLEANUP_INTERVAL_SECONDS):
    """
    Sweep expired entries forever. Started as a background task in the app
    lifespan and cancelled on shutdown.
    """
    cache = cache or analytics_cache
    while True:
        await asyncio.sleep(interval)
        cleaned = cache.cleanup()
        if cleaned > 0:
            logger.info(f"AnalyticsCache: cleaned {cleaned} expired entries")
