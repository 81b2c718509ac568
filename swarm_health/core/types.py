"""Shared enumerations."""

from __future__ import annotations

from enum import Enum


class _StrEnum(str, Enum):
    def __str__(self) -> str:
        return self.value


class AccountState(_StrEnum):
    """Lifecycle states an account moves through."""

    NEW_ACCOUNT = "NEW_ACCOUNT"
    WARMING_UP = "WARMING_UP"
    ACTIVE = "ACTIVE"
    RATE_LIMITED = "RATE_LIMITED"
    PAUSED = "PAUSED"
    SUSPENDED = "SUSPENDED"
    RECOVERY = "RECOVERY"
    BANNED = "BANNED"


class AlertType(_StrEnum):
    HEALTH_CRITICAL = "health_critical"
    HEALTH_POOR = "health_poor"
    SHADOWBAN_SUSPECTED = "shadowban_suspected"
    HIGH_ERROR_RATE = "high_error_rate"
    RATE_LIMIT_FREQUENT = "rate_limit_frequent"
    LOGIN_CHALLENGE = "login_challenge"
    ENGAGEMENT_DROP = "engagement_drop"
    ACCOUNT_SUSPENDED = "account_suspended"
    ACCOUNT_BANNED = "account_banned"
    WARMUP_STALLED = "warmup_stalled"
    INACTIVE_ACCOUNT = "inactive_account"


class AlertSeverity(_StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class HealthCategory(_StrEnum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    CRITICAL = "critical"


class Granularity(_StrEnum):
    """Bucket size for historical rollups."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
