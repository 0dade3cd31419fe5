"""Shared protocol, entry type and JSON codec for cache backends."""

import json
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from pydantic import ValidationError

from lrt_traffic.domain import TrafficSnapshot
from lrt_traffic.errors import MalformedCacheEntry


@dataclass
class CacheEntry:
    """A cached snapshot and the wall-clock time (epoch seconds) it was written."""
    payload: TrafficSnapshot
    written_at: float

    def age_seconds(self, now: float | None = None) -> float:
        """Seconds elapsed since the entry was written."""
        return (time.time() if now is None else now) - self.written_at


def encode_entry(payload: TrafficSnapshot, *, written_at: float) -> str:
    """Serialize to the persisted `{payload, timestamp}` blob (timestamp in ms)."""
    return json.dumps({
        "payload": payload.model_dump(mode="json"),
        "timestamp": int(written_at * 1000),
    })


def decode_entry(raw: bytes | str) -> CacheEntry:
    """Parse a persisted blob back into a CacheEntry.

    Raises MalformedCacheEntry for bad JSON, missing fields or invalid payloads.
    """
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        data = json.loads(text)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedCacheEntry(f"Cache entry is not valid JSON: {exc}") from exc
    if not isinstance(data, dict) or "payload" not in data or "timestamp" not in data:
        raise MalformedCacheEntry("Cache entry is missing payload or timestamp")
    try:
        written_at = float(data["timestamp"]) / 1000.0
    except (TypeError, ValueError) as exc:
        raise MalformedCacheEntry(f"Cache entry has a bad timestamp: {data['timestamp']!r}") from exc
    try:
        payload = TrafficSnapshot.model_validate(data["payload"])
    except ValidationError as exc:
        raise MalformedCacheEntry(f"Cache entry payload is invalid: {exc}") from exc
    return CacheEntry(payload=payload, written_at=written_at)


class CacheStore(Protocol):
    """Protocol for persistent key-value backends holding traffic snapshots."""

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for key, or None if absent or undecodable."""

    def put(self, key: str, payload: TrafficSnapshot) -> None:
        """Overwrite the entry for key with a fresh timestamp."""

    def remove(self, key: str) -> None:
        """Delete an entry without raising if it is absent."""

    def clear(self) -> None:
        """Remove every traffic entry from the store."""
