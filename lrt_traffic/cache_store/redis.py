"""Redis-backed cache store."""

import time
from typing import Optional

from lrt_traffic.cache_store.base import CacheEntry, CacheStore, decode_entry, encode_entry
from lrt_traffic.domain import TrafficSnapshot
from lrt_traffic.errors import MalformedCacheEntry
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache_store/redis_cache_store")


class RedisCacheStore(CacheStore):
    """Snapshots as JSON strings in Redis; keys never expire server-side.

    Staleness is decided by the caller's policy table, not by Redis TTLs, so a
    completed month stays cached for good.
    """

    def __init__(self, client, prefix: str = "") -> None:
        """Initialize with a Redis client and an optional key prefix."""
        logger.debug("Initializing RedisCacheStore")
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        """Return the Redis key for a cache key."""
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[CacheEntry]:
        """Fetch and decode an entry; corrupt entries are deleted."""
        try:
            raw = self.client.get(self._key(key))
        except Exception as exc:  # pragma: no cover - defensive
            logger.error("Failed to read cache entry %s from Redis: %s", key, exc)
            return None
        if not raw:
            return None
        try:
            return decode_entry(raw)
        except MalformedCacheEntry as exc:
            logger.error("Discarding corrupt cache entry %s: %s", key, exc)
            self.remove(key)
            return None

    def put(self, key: str, payload: TrafficSnapshot) -> None:
        """Overwrite the entry for key."""
        blob = encode_entry(payload, written_at=time.time())
        try:
            self.client.set(self._key(key), blob.encode("utf-8"))
        except Exception as exc:  # pragma: no cover - defensive
            logger.error("Failed to write cache entry %s to Redis: %s", key, exc)

    def remove(self, key: str) -> None:
        """Delete an entry if present."""
        try:
            self.client.delete(self._key(key))
        except Exception as exc:  # pragma: no cover - defensive
            logger.error("Failed to delete cache entry %s from Redis: %s", key, exc)

    def clear(self) -> None:
        """Best-effort clear of every traffic entry under the prefix."""
        try:
            for key in self.client.scan_iter(f"{self.prefix}traffic-*"):
                self.client.delete(key)
        except Exception as exc:  # pragma: no cover - defensive
            logger.error("Failed to clear cache entries from Redis: %s", exc)
