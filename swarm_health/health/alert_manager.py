"""Alert rule evaluation, deduplicated persistence, and alert lifecycle."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from swarm_health.config import AlertConfig
from swarm_health.core import telemetry
from swarm_health.core.errors import NotFoundError
from swarm_health.core.models import AccountMetrics, Alert, AlertCandidate, AlertStats
from swarm_health.core.types import AlertSeverity, AlertType
from swarm_health.core.utils import utcnow
from swarm_health.health.alert_rules import DEFAULT_ALERT_RULES, AlertRule
from swarm_health.notifier.base_notifier import BaseNotifier
from swarm_health.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AlertManager:
    """Turns metrics into persisted, deduplicated alerts.

    At most one alert exists per (account, alert type) inside the dedup
    window. The notifier is called once per newly inserted alert and its
    failures never fail alert creation.
    """

    def __init__(
        self,
        repository: BaseRepository,
        notifier: BaseNotifier,
        rules: Iterable[AlertRule] = DEFAULT_ALERT_RULES,
        config: AlertConfig | None = None,
    ) -> None:
        self._repo = repository
        self._notifier = notifier
        self._rules: tuple[AlertRule, ...] = tuple(rules)
        self._config = config or AlertConfig()

    @property
    def rules(self) -> tuple[AlertRule, ...]:
        return self._rules

    def check_alert_rules(self, metrics: AccountMetrics) -> list[AlertCandidate]:
        """Every rule whose condition holds, in rule-table order."""
        return [
            AlertCandidate(
                alert_type=rule.alert_type,
                severity=rule.severity,
                message=rule.message(metrics),
                cooldown_hours=rule.cooldown_hours,
            )
            for rule in self._rules
            if rule.condition(metrics)
        ]

    async def create_alert(
        self,
        account_id: str,
        alert_type: AlertType,
        severity: AlertSeverity,
        message: str,
        metadata: dict[str, Any] | None = None,
        cooldown_hours: int | None = None,
    ) -> Alert:
        """Persist an alert unless an equal one is inside the dedup window.

        Returns the existing alert unchanged when deduplicated.

        Raises
        ------
        NotFoundError
            If the account does not exist.
        """
        account = await self._repo.get_account(account_id)
        if account is None:
            raise NotFoundError("account", account_id)

        hours = self._config.dedup_hours if cooldown_hours is None else cooldown_hours
        alert, created = await self._repo.insert_alert_if_absent(
            account_id=account_id,
            tenant_id=account.tenant_id,
            alert_type=AlertType(alert_type),
            severity=AlertSeverity(severity),
            message=message,
            metadata=metadata,
            since=utcnow() - timedelta(hours=hours),
        )
        alert.username = account.username

        if not created:
            telemetry.ALERTS_SUPPRESSED.inc()
            logger.debug(
                "Alert %s for account %s skipped - cooldown active",
                alert_type,
                account_id,
            )
            return alert

        telemetry.ALERTS_CREATED.labels(severity=str(alert.severity)).inc()
        logger.info(
            "Created %s alert %s for account %s (%s)",
            alert.severity,
            alert.alert_type,
            account.username,
            account_id,
        )
        try:
            await self._notifier.send(account.tenant_id, alert)
        except Exception:
            logger.exception(
                "Notification failed for alert %s (account %s)", alert.id, account_id
            )
        return alert

    async def auto_create_alerts(
        self, account_id: str, metrics: AccountMetrics
    ) -> list[Alert]:
        """Evaluate every rule and persist the ones that fire.

        A failure on one candidate is logged and does not stop the others.
        """
        alerts: list[Alert] = []
        metadata = {"metrics": metrics.to_dict()}
        for candidate in self.check_alert_rules(metrics):
            cooldown = (
                candidate.cooldown_hours if self._config.use_rule_cooldown else None
            )
            try:
                alert = await self.create_alert(
                    account_id,
                    candidate.alert_type,
                    candidate.severity,
                    candidate.message,
                    metadata=metadata,
                    cooldown_hours=cooldown,
                )
            except Exception:
                logger.exception(
                    "Failed to create %s alert for account %s",
                    candidate.alert_type,
                    account_id,
                )
                continue
            alerts.append(alert)
        return alerts

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_active_alerts(
        self, tenant_id: str, unacknowledged_only: bool = False
    ) -> list[Alert]:
        return await self._repo.list_active_alerts(
            tenant_id, unacknowledged_only=unacknowledged_only
        )

    async def get_account_alerts(self, account_id: str, limit: int = 50) -> list[Alert]:
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        return await self._repo.list_account_alerts(account_id, limit=limit)

    async def get_alerts_since(self, tenant_id: str, since: datetime) -> list[Alert]:
        return await self._repo.list_alerts_since(tenant_id, since)

    async def get_alert_stats(self, tenant_id: str) -> AlertStats:
        stats = AlertStats()
        for row in await self._repo.get_alert_counts(tenant_id):
            stats.total += row.total
            stats.unacknowledged += row.unacknowledged
            stats.unresolved += row.unresolved
            stats.by_severity[row.severity] = (
                stats.by_severity.get(row.severity, 0) + row.total
            )
            stats.by_type[row.alert_type] = (
                stats.by_type.get(row.alert_type, 0) + row.total
            )
        return stats

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def acknowledge_alert(self, alert_id: str) -> bool:
        """Mark an alert as seen. Returns False if it does not exist."""
        updated = await self._repo.acknowledge_alert(alert_id, utcnow())
        if updated:
            logger.info("Alert %s acknowledged", alert_id)
        return updated

    async def resolve_alert(
        self, alert_id: str, resolution_note: str | None = None
    ) -> bool:
        """Close an alert, storing *resolution_note* under ``metadata["resolution"]``."""
        updated = await self._repo.resolve_alert(alert_id, utcnow(), resolution_note)
        if updated:
            logger.info("Alert %s resolved", alert_id)
        return updated
