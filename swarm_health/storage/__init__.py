"""Storage layer."""

from swarm_health.storage.base_repository import BaseRepository
from swarm_health.storage.postgres_repository import PostgresRepository

__all__ = ["BaseRepository", "PostgresRepository"]
