"""Domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from swarm_health.core.serialization import parse_datetime, to_jsonable
from swarm_health.core.types import AlertSeverity, AlertType, HealthCategory
from swarm_health.core.utils import utcnow


# ---------------------------------------------------------------------------
# Storage rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AccountRecord:
    """The account attributes the health pipeline reads."""

    id: str
    tenant_id: str
    username: str
    account_state: str
    last_error: str | None = None


@dataclass(frozen=True, slots=True)
class PostStats:
    """Post-outcome aggregate over one or more accounts."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    avg_response_time: float = 0.0
    total_response_time: float = 0.0
    last_post_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class FailureCounts:
    total: int = 0
    last_24h: int = 0
    last_7d: int = 0


@dataclass(frozen=True, slots=True)
class WarmupCounts:
    completed: int = 0
    pending: int = 0
    total: int = 0


@dataclass(frozen=True, slots=True)
class PostBucket:
    """One time bucket of post outcomes."""

    bucket_start: datetime
    total: int
    successes: int
    failures: int
    avg_response_time: float
    active_days: int


@dataclass(frozen=True, slots=True)
class HealthSnapshot:
    """One row of the per-account score table."""

    account_id: str
    overall_score: int
    metrics: dict[str, Any]
    flags: list[str]
    recommendations: list[str]


@dataclass(frozen=True, slots=True)
class AlertCountRow:
    severity: str
    alert_type: str
    total: int
    unacknowledged: int
    unresolved: int


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AccountMetrics:
    """Point-in-time metrics for a single account.

    Every rate is a percentage and is 0 when its denominator is 0.
    """

    account_id: str

    total_posts: int = 0
    successful_posts: int = 0
    failed_posts: int = 0
    post_success_rate: float = 0.0

    avg_response_time: float = 0.0
    total_response_time: float = 0.0

    error_count_24h: int = 0
    error_count_7d: int = 0
    error_rate_24h: float = 0.0
    error_rate_7d: float = 0.0

    rate_limit_hits: int = 0
    rate_limit_hits_24h: int = 0
    rate_limit_hits_7d: int = 0

    login_challenges: int = 0
    account_state: str = "ACTIVE"
    last_error: str | None = None
    last_post_at: datetime | None = None

    warmup_tasks_completed: int = 0
    warmup_tasks_pending: int = 0
    warmup_progress: float = 0.0

    calculated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountMetrics:
        values = dict(data)
        values["last_post_at"] = parse_datetime(values.get("last_post_at"))
        values["calculated_at"] = parse_datetime(values["calculated_at"])
        return cls(**values)


@dataclass(frozen=True, slots=True)
class AccountSummary:
    """Compact per-account entry used in leaderboards."""

    account_id: str
    username: str
    health_score: int
    issues: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountSummary:
        return cls(
            account_id=data["account_id"],
            username=data["username"],
            health_score=data["health_score"],
            issues=list(data.get("issues") or []),
        )


@dataclass(slots=True)
class SwarmMetrics:
    """Tenant-wide aggregate over every account the tenant owns."""

    tenant_id: str
    total_accounts: int = 0
    active_accounts: int = 0
    suspended_accounts: int = 0
    accounts_by_state: dict[str, int] = field(default_factory=dict)

    total_posts: int = 0
    successful_posts: int = 0
    failed_posts: int = 0
    overall_success_rate: float = 0.0
    overall_error_rate: float = 0.0

    avg_health_score: float = 0.0
    avg_response_time: float = 0.0

    top_performers: list[AccountSummary] = field(default_factory=list)
    problem_accounts: list[AccountSummary] = field(default_factory=list)

    calculated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def empty(cls, tenant_id: str) -> SwarmMetrics:
        """All-zero metrics for a tenant without accounts."""
        return cls(tenant_id=tenant_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SwarmMetrics:
        values = dict(data)
        values["top_performers"] = [
            AccountSummary.from_dict(s) for s in values.get("top_performers", [])
        ]
        values["problem_accounts"] = [
            AccountSummary.from_dict(s) for s in values.get("problem_accounts", [])
        ]
        values["calculated_at"] = parse_datetime(values["calculated_at"])
        return cls(**values)


@dataclass(frozen=True, slots=True)
class MetricsDataPoint:
    date: datetime
    total_posts: int
    successful_posts: int
    failed_posts: int
    post_success_rate: float
    avg_response_time: float


@dataclass(slots=True)
class MetricsHistory:
    account_id: str
    period: str
    data_points: list[MetricsDataPoint] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class DailyMetrics:
    date: datetime
    posts: int
    successes: int
    failures: int
    avg_response_time: float
    error_count: int


@dataclass(frozen=True, slots=True)
class WeeklyMetrics:
    week_start: datetime
    week_end: datetime
    total_posts: int
    avg_daily_posts: float
    success_rate: float
    avg_response_time: float
    total_errors: int


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ScoreComponents:
    """Named sub-scores shown in dashboards."""

    post_success_score: int
    response_time_score: int
    error_score: float
    rate_limit_score: int
    account_state_score: int
    warmup_score: int


@dataclass(frozen=True, slots=True)
class HealthScoreBreakdown:
    overall: int
    engagement: int
    reliability: int
    risk: int
    category: HealthCategory
    breakdown: ScoreComponents

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HealthScoreBreakdown:
        return cls(
            overall=data["overall"],
            engagement=data["engagement"],
            reliability=data["reliability"],
            risk=data["risk"],
            category=HealthCategory(data["category"]),
            breakdown=ScoreComponents(**data["breakdown"]),
        )


@dataclass(frozen=True, slots=True)
class HealthTrend:
    direction: str
    change_percent: float
    period_days: int


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Alert:
    """A persisted alert; never deleted, only acknowledged or resolved."""

    id: str
    account_id: str
    tenant_id: str
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    metadata: dict[str, Any] | None = None
    acknowledged: bool = False
    resolved: bool = False
    created_at: datetime = field(default_factory=utcnow)
    acknowledged_at: datetime | None = None
    resolved_at: datetime | None = None
    username: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Alert:
        return cls(
            id=data["id"],
            account_id=data["account_id"],
            tenant_id=data["tenant_id"],
            alert_type=AlertType(data["alert_type"]),
            severity=AlertSeverity(data["severity"]),
            message=data["message"],
            metadata=data.get("metadata"),
            acknowledged=data.get("acknowledged", False),
            resolved=data.get("resolved", False),
            created_at=parse_datetime(data["created_at"]),
            acknowledged_at=parse_datetime(data.get("acknowledged_at")),
            resolved_at=parse_datetime(data.get("resolved_at")),
            username=data.get("username"),
        )


@dataclass(frozen=True, slots=True)
class AlertCandidate:
    """A rule that fired for a metrics snapshot, before persistence."""

    alert_type: AlertType
    severity: AlertSeverity
    message: str
    cooldown_hours: int


@dataclass(slots=True)
class AlertStats:
    total: int = 0
    unacknowledged: int = 0
    unresolved: int = 0
    by_severity: dict[str, int] = field(
        default_factory=lambda: {str(s): 0 for s in AlertSeverity}
    )
    by_type: dict[str, int] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class HealthReport:
    account_id: str
    username: str
    metrics: AccountMetrics
    score_breakdown: HealthScoreBreakdown
    flags: list[str]
    recommendations: list[str]
    alerts: list[Alert]
    last_updated: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HealthReport:
        return cls(
            account_id=data["account_id"],
            username=data["username"],
            metrics=AccountMetrics.from_dict(data["metrics"]),
            score_breakdown=HealthScoreBreakdown.from_dict(data["score_breakdown"]),
            flags=list(data["flags"]),
            recommendations=list(data["recommendations"]),
            alerts=[Alert.from_dict(a) for a in data["alerts"]],
            last_updated=parse_datetime(data["last_updated"]),
        )


@dataclass(slots=True)
class FleetOverview:
    avg_score: float
    category: HealthCategory
    critical_accounts: int
    healthy_accounts: int


@dataclass(slots=True)
class FleetHealthReport:
    tenant_id: str
    swarm_metrics: SwarmMetrics
    account_reports: list[HealthReport]
    overall_health: FleetOverview
    active_alerts: list[Alert]
    summary: str
    failed_accounts: list[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FleetHealthReport:
        overview = data["overall_health"]
        return cls(
            tenant_id=data["tenant_id"],
            swarm_metrics=SwarmMetrics.from_dict(data["swarm_metrics"]),
            account_reports=[
                HealthReport.from_dict(r) for r in data["account_reports"]
            ],
            overall_health=FleetOverview(
                avg_score=overview["avg_score"],
                category=HealthCategory(overview["category"]),
                critical_accounts=overview["critical_accounts"],
                healthy_accounts=overview["healthy_accounts"],
            ),
            active_alerts=[Alert.from_dict(a) for a in data["active_alerts"]],
            summary=data["summary"],
            failed_accounts=list(data.get("failed_accounts") or []),
            generated_at=parse_datetime(data["generated_at"]),
        )


@dataclass(slots=True)
class DailyHealthReport:
    tenant_id: str
    date: datetime
    swarm_metrics: SwarmMetrics
    top_performers: list[AccountSummary]
    problem_accounts: list[AccountSummary]
    new_alerts: list[Alert]
    summary: str


@dataclass(frozen=True, slots=True)
class HealthTrends:
    """Week-over-week deltas; not computed yet, always zero."""

    overall_health_change: float = 0.0
    posts_change: float = 0.0
    success_rate_change: float = 0.0


@dataclass(slots=True)
class WeeklyHealthReport:
    tenant_id: str
    week_start: datetime
    week_end: datetime
    swarm_metrics: SwarmMetrics
    trends: HealthTrends
    top_performers: list[AccountSummary]
    problem_accounts: list[AccountSummary]
    recommendations: list[str]
    summary: str
