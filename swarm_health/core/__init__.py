"""Core models, types, and utilities."""

from swarm_health.core.errors import NotFoundError, SwarmHealthError
from swarm_health.core.models import (
    AccountMetrics,
    Alert,
    FleetHealthReport,
    HealthReport,
    HealthScoreBreakdown,
    SwarmMetrics,
)
from swarm_health.core.types import (
    AccountState,
    AlertSeverity,
    AlertType,
    Granularity,
    HealthCategory,
)

__all__ = [
    "AccountMetrics",
    "SwarmMetrics",
    "HealthScoreBreakdown",
    "HealthReport",
    "FleetHealthReport",
    "Alert",
    "AccountState",
    "AlertType",
    "AlertSeverity",
    "HealthCategory",
    "Granularity",
    "NotFoundError",
    "SwarmHealthError",
]
