"""Pick a cache backend at startup."""

from __future__ import annotations

from lrt_traffic import config
from lrt_traffic.cache_store.base import CacheStore
from lrt_traffic.cache_store.memory import InMemoryCacheStore
from lrt_traffic.cache_store.redis import RedisCacheStore
from utils.logging_utils import get_tagged_logger, mask_url

try:
    import redis  # type: ignore
except ImportError:  # pragma: no cover - optional dependency
    redis = None

logger = get_tagged_logger(__name__, tag="cache_store/factory")


def build_cache_store(settings: config.Settings | None = None) -> CacheStore:
    """Use Redis when configured and reachable, else an in-memory store."""
    settings = settings or config.settings
    logger.debug(
        f"Initializing cache store: redis_url='{mask_url(settings.cache_redis_url)}', "
        f"redis package present: {'yes' if redis else 'no'}"
    )
    if settings.cache_redis_url and redis:
        try:
            client = redis.Redis.from_url(settings.cache_redis_url)
            client.ping()
            logger.info("Using RedisCacheStore", extra={"redis_url": mask_url(settings.cache_redis_url)})
            return RedisCacheStore(client, prefix=settings.cache_prefix)
        except Exception as exc:  # pragma: no cover - defensive
            logger.warning("Falling back to InMemoryCacheStore (Redis unavailable)", extra={"error": str(exc)})
    return InMemoryCacheStore()
