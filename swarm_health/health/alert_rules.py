"""Declarative alert rule table."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from swarm_health.core.models import AccountMetrics
from swarm_health.core.types import AccountState, AlertSeverity, AlertType
from swarm_health.core.utils import hours_between

INACTIVE_AFTER_HOURS = 7 * 24


@dataclass(frozen=True, slots=True)
class AlertRule:
    """One row of the rule table.

    ``condition`` and ``message`` are pure functions of the metrics snapshot;
    ``cooldown_hours`` is how long a fired rule stays quiet for the account.
    """

    alert_type: AlertType
    severity: AlertSeverity
    condition: Callable[[AccountMetrics], bool]
    message: Callable[[AccountMetrics], str]
    cooldown_hours: int


def _hours_inactive(m: AccountMetrics) -> float | None:
    if m.last_post_at is None:
        return None
    return hours_between(m.last_post_at, m.calculated_at)


def _is_inactive(m: AccountMetrics) -> bool:
    hours = _hours_inactive(m)
    return hours is not None and hours > INACTIVE_AFTER_HOURS


def _inactive_message(m: AccountMetrics) -> str:
    days = int((_hours_inactive(m) or 0) // 24)
    return f"Account inactive for {days} days. Consider resuming posting."


DEFAULT_ALERT_RULES: tuple[AlertRule, ...] = (
    AlertRule(
        alert_type=AlertType.HEALTH_CRITICAL,
        severity=AlertSeverity.CRITICAL,
        condition=lambda m: m.post_success_rate < 25 and m.total_posts > 5,
        message=lambda m: (
            f"Critical health score with {m.post_success_rate:.1f}% success rate. "
            "Immediate action required."
        ),
        cooldown_hours=24,
    ),
    AlertRule(
        alert_type=AlertType.HEALTH_POOR,
        severity=AlertSeverity.WARNING,
        condition=lambda m: 25 <= m.post_success_rate < 50 and m.total_posts > 5,
        message=lambda m: (
            f"Poor account health with {m.post_success_rate:.1f}% success rate. "
            "Review posting strategy."
        ),
        cooldown_hours=12,
    ),
    AlertRule(
        alert_type=AlertType.HIGH_ERROR_RATE,
        severity=AlertSeverity.ERROR,
        condition=lambda m: m.error_rate_24h > 20,
        message=lambda m: (
            f"High error rate: {m.error_count_24h} errors in last 24h "
            f"({m.error_rate_24h:.1f}%)."
        ),
        cooldown_hours=6,
    ),
    AlertRule(
        alert_type=AlertType.RATE_LIMIT_FREQUENT,
        severity=AlertSeverity.ERROR,
        condition=lambda m: m.rate_limit_hits_24h > 2,
        message=lambda m: (
            f"Frequent rate limits: {m.rate_limit_hits_24h} hits in last 24h. "
            "Reduce posting frequency."
        ),
        cooldown_hours=12,
    ),
    AlertRule(
        alert_type=AlertType.LOGIN_CHALLENGE,
        severity=AlertSeverity.ERROR,
        condition=lambda m: m.login_challenges > 0,
        message=lambda m: (
            "Login challenge detected. Manual verification may be required."
        ),
        cooldown_hours=24,
    ),
    AlertRule(
        alert_type=AlertType.ACCOUNT_SUSPENDED,
        severity=AlertSeverity.CRITICAL,
        condition=lambda m: m.account_state == AccountState.SUSPENDED.value,
        message=lambda m: (
            "Account has been suspended. Stop all activity immediately."
        ),
        cooldown_hours=48,
    ),
    AlertRule(
        alert_type=AlertType.ACCOUNT_BANNED,
        severity=AlertSeverity.CRITICAL,
        condition=lambda m: m.account_state == AccountState.BANNED.value,
        message=lambda m: (
            "Account has been banned. This account may be permanently disabled."
        ),
        cooldown_hours=48,
    ),
    AlertRule(
        alert_type=AlertType.INACTIVE_ACCOUNT,
        severity=AlertSeverity.INFO,
        condition=_is_inactive,
        message=_inactive_message,
        cooldown_hours=72,
    ),
    AlertRule(
        alert_type=AlertType.WARMUP_STALLED,
        severity=AlertSeverity.WARNING,
        condition=lambda m: (
            m.account_state == AccountState.WARMING_UP.value
            and m.warmup_progress < 30
            and m.warmup_tasks_pending > 10
        ),
        message=lambda m: (
            f"Warmup progress stalled at {m.warmup_progress:.0f}%. "
            f"{m.warmup_tasks_pending} tasks pending."
        ),
        cooldown_hours=24,
    ),
)
