"""Report cache."""

from swarm_health.cache.base_cache import (
    HEALTH_NAMESPACE,
    HEALTH_SWARM_NAMESPACE,
    BaseCache,
    cache_key,
)
from swarm_health.cache.redis_cache import RedisCache

__all__ = [
    "BaseCache",
    "RedisCache",
    "cache_key",
    "HEALTH_NAMESPACE",
    "HEALTH_SWARM_NAMESPACE",
]
