"""Redis-backed report cache using redis.asyncio."""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as redis

from swarm_health.cache.base_cache import BaseCache
from swarm_health.config import CacheConfig

logger = logging.getLogger(__name__)


class RedisCache(BaseCache):
    """JSON values in Redis with SETEX semantics; every failure is soft."""

    def __init__(
        self,
        config: CacheConfig,
        client: redis.Redis | None = None,
    ) -> None:
        self._config = config
        self._client = client

    async def connect(self) -> None:
        if self._client is None:
            self._client = redis.from_url(
                self._config.url,
                decode_responses=True,
                socket_timeout=self._config.socket_timeout,
                socket_connect_timeout=self._config.socket_timeout,
            )
        try:
            await self._client.ping()
            logger.info("Redis cache connected: %s", self._config.url.split("@")[-1])
        except Exception as exc:
            # Reads fall through to fresh computation until Redis is back
            logger.warning("Redis ping failed, cache will miss: %s", exc)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            logger.info("Redis cache closed")

    async def is_connected(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except Exception:
            return False

    async def get(self, key: str) -> dict[str, Any] | None:
        if self._client is None:
            return None
        try:
            raw = await self._client.get(key)
            if not raw:
                return None
            return json.loads(raw)
        except Exception:
            logger.warning("Cache get failed for %s, treating as miss", key, exc_info=True)
            return None

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        if self._client is None:
            return
        try:
            await self._client.set(key, json.dumps(value), ex=ttl_seconds)
        except Exception:
            logger.warning("Cache set failed for %s", key, exc_info=True)

    async def delete(self, key: str) -> None:
        if self._client is None:
            return
        try:
            await self._client.delete(key)
        except Exception:
            logger.warning("Cache delete failed for %s", key, exc_info=True)

    async def delete_pattern(self, pattern: str) -> int:
        if self._client is None:
            return 0
        try:
            keys = [key async for key in self._client.scan_iter(match=pattern)]
            if not keys:
                return 0
            await self._client.delete(*keys)
            return len(keys)
        except Exception:
            logger.warning("Cache delete failed for pattern %s", pattern, exc_info=True)
            return 0
