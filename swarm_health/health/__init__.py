"""Metrics collection, scoring, alerting and fleet monitoring."""

from swarm_health.health.alert_manager import AlertManager
from swarm_health.health.alert_rules import DEFAULT_ALERT_RULES, AlertRule
from swarm_health.health.health_monitor import HealthMonitor
from swarm_health.health.metrics_collector import MetricsCollector

__all__ = [
    "AlertManager",
    "AlertRule",
    "DEFAULT_ALERT_RULES",
    "HealthMonitor",
    "MetricsCollector",
]
