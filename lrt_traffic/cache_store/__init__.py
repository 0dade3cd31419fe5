"""Cache storage backends."""

from .base import CacheEntry, CacheStore, decode_entry, encode_entry
from .factory import build_cache_store
from .memory import InMemoryCacheStore
from .redis import RedisCacheStore

__all__ = [
    "CacheEntry",
    "CacheStore",
    "decode_entry",
    "encode_entry",
    "build_cache_store",
    "InMemoryCacheStore",
    "RedisCacheStore",
]
