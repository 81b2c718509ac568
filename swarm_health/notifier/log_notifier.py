"""Notification stub that writes alerts to the log."""

from __future__ import annotations

import logging

from swarm_health.core.models import Alert
from swarm_health.core.utils import truncate
from swarm_health.notifier.base_notifier import BaseNotifier

logger = logging.getLogger(__name__)


class LogNotifier(BaseNotifier):
    """Logs one line per alert in place of email/push/webhook delivery."""

    def __init__(self, dry_run: bool = False) -> None:
        self._dry_run = dry_run
        self.sent = 0

    async def send(self, tenant_id: str, alert: Alert) -> None:
        msg = self._format_alert(alert)
        if self._dry_run:
            logger.info("[DRY-RUN] Would notify tenant %s: %s", tenant_id, msg)
        else:
            logger.info("[NOTIFICATION] Tenant %s: %s", tenant_id, msg)
        self.sent += 1

    @staticmethod
    def _format_alert(alert: Alert) -> str:
        who = alert.username or alert.account_id
        return (
            f"{str(alert.severity).upper()} {alert.alert_type} "
            f"on {who}: {truncate(alert.message)}"
        )
