"""HTTP API."""

from swarm_health.api.server import create_app

__all__ = ["create_app"]
