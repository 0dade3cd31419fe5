"""In-memory cache store, intended for development and tests."""

import threading
import time
from typing import Dict, Optional

from lrt_traffic.cache_store.base import CacheEntry, CacheStore, decode_entry, encode_entry
from lrt_traffic.domain import TrafficSnapshot
from lrt_traffic.errors import MalformedCacheEntry
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache_store/in_memory_cache_store")


class InMemoryCacheStore(CacheStore):
    """Thread-safe store keeping the same serialized blobs a persistent backend would."""

    def __init__(self) -> None:
        logger.debug("Initializing InMemoryCacheStore")
        self._blobs: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the decoded entry, dropping it if it cannot be decoded."""
        with self._lock:
            raw = self._blobs.get(key)
            if raw is None:
                return None
            try:
                return decode_entry(raw)
            except MalformedCacheEntry as exc:
                logger.error("Discarding corrupt cache entry %s: %s", key, exc)
                self._blobs.pop(key, None)
                return None

    def put(self, key: str, payload: TrafficSnapshot) -> None:
        """Overwrite the blob for key."""
        blob = encode_entry(payload, written_at=time.time())
        with self._lock:
            self._blobs[key] = blob

    def put_raw(self, key: str, raw: str) -> None:
        """Store an already-serialized blob (imports and tests)."""
        with self._lock:
            self._blobs[key] = raw

    def remove(self, key: str) -> None:
        """Remove an entry if it exists."""
        with self._lock:
            self._blobs.pop(key, None)

    def clear(self) -> None:
        """Drop all entries."""
        with self._lock:
            self._blobs.clear()

    def keys(self) -> list[str]:
        """Currently stored keys."""
        with self._lock:
            return list(self._blobs)
