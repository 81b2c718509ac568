"""Shared fixtures for the health pipeline tests."""

from __future__ import annotations

import pytest

from swarm_health.config import AlertConfig, MonitorConfig
from swarm_health.health.alert_manager import AlertManager
from swarm_health.health.health_monitor import HealthMonitor
from swarm_health.health.metrics_collector import MetricsCollector
from tests.fakes import InMemoryCache, InMemoryRepository, RecordingNotifier


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def collector(repo: InMemoryRepository) -> MetricsCollector:
    return MetricsCollector(repo)


@pytest.fixture
def alert_manager(
    repo: InMemoryRepository, notifier: RecordingNotifier
) -> AlertManager:
    return AlertManager(
        repo, notifier, config=AlertConfig(dedup_hours=24, use_rule_cooldown=True)
    )


@pytest.fixture
def monitor(
    repo: InMemoryRepository,
    cache: InMemoryCache,
    collector: MetricsCollector,
    alert_manager: AlertManager,
) -> HealthMonitor:
    return HealthMonitor(
        repo,
        cache,
        collector,
        alert_manager,
        config=MonitorConfig(fleet_concurrency=3, recent_alert_limit=10),
        cache_ttl_seconds=300,
    )
