"""Abstract cache interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

HEALTH_NAMESPACE = "health"
HEALTH_SWARM_NAMESPACE = "health:swarm"


def cache_key(namespace: str, *parts: str) -> str:
    """Build a namespaced key, e.g. ``health:swarm:<tenant>``."""
    return ":".join((namespace, *parts))


class BaseCache(ABC):
    """Key/value store with per-key TTL.

    Implementations must fail open: a backend error on read behaves like a
    miss and a backend error on write is logged and ignored.
    """

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def is_connected(self) -> bool:
        return True

    @abstractmethod
    async def get(self, key: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob *pattern*; return the count."""
        ...
