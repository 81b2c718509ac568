"""Account and fleet health reports.

Orchestrates collection, scoring and alerting per account, fans out over a
tenant's fleet with bounded concurrency, and caches finished reports for a
fixed TTL.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import timedelta
from typing import Any, TypeVar

from swarm_health.cache.base_cache import (
    HEALTH_NAMESPACE,
    HEALTH_SWARM_NAMESPACE,
    BaseCache,
    cache_key,
)
from swarm_health.config import MonitorConfig
from swarm_health.core import telemetry
from swarm_health.core.errors import NotFoundError
from swarm_health.core.models import (
    AccountRecord,
    AccountSummary,
    DailyHealthReport,
    FleetHealthReport,
    FleetOverview,
    HealthReport,
    HealthSnapshot,
    HealthTrends,
    SwarmMetrics,
    WeeklyHealthReport,
)
from swarm_health.core.types import HealthCategory
from swarm_health.core.utils import utcnow
from swarm_health.health import health_scorer as scorer
from swarm_health.health.alert_manager import AlertManager
from swarm_health.health.metrics_collector import MetricsCollector
from swarm_health.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

REPORT_LEADERBOARD_SIZE = 5
PROBLEM_SCORE_THRESHOLD = 50

_CRITICAL_CATEGORIES = frozenset({HealthCategory.CRITICAL, HealthCategory.POOR})
_HEALTHY_CATEGORIES = frozenset({HealthCategory.EXCELLENT, HealthCategory.GOOD})


class HealthMonitor:
    """Produces per-account and fleet health reports.

    Reports are served from the cache when present. The monitor never
    invalidates its own keys, so a report can be up to one TTL stale.
    """

    def __init__(
        self,
        repository: BaseRepository,
        cache: BaseCache | None,
        collector: MetricsCollector,
        alert_manager: AlertManager,
        config: MonitorConfig | None = None,
        cache_ttl_seconds: int = 300,
    ) -> None:
        self._repo = repository
        self._cache = cache
        self._collector = collector
        self._alerts = alert_manager
        self._config = config or MonitorConfig()
        self._ttl = cache_ttl_seconds

    # ------------------------------------------------------------------
    # Per account
    # ------------------------------------------------------------------

    async def monitor_account(self, account_id: str) -> HealthReport:
        """Full health report for one account.

        On a cache miss this also persists alerts for every firing rule and
        upserts the account's score snapshot.

        Raises
        ------
        NotFoundError
            If the account does not exist.
        """
        key = cache_key(HEALTH_NAMESPACE, account_id)
        cached = await self._cache_get(key, HealthReport.from_dict)
        if cached is not None:
            return cached

        account = await self._repo.get_account(account_id)
        if account is None:
            raise NotFoundError("account", account_id)

        metrics = await self._collector.collect_account_metrics(account_id)
        breakdown = scorer.get_health_score_breakdown(metrics)
        flags = scorer.detect_flags(metrics)
        recommendations = scorer.generate_recommendations(metrics)

        await self._alerts.auto_create_alerts(account_id, metrics)
        recent_alerts = await self._alerts.get_account_alerts(
            account_id, limit=self._config.recent_alert_limit
        )

        await self._repo.upsert_health_snapshot(
            HealthSnapshot(
                account_id=account_id,
                overall_score=breakdown.overall,
                metrics=metrics.to_dict(),
                flags=flags,
                recommendations=recommendations,
            )
        )

        report = HealthReport(
            account_id=account_id,
            username=account.username,
            metrics=metrics,
            score_breakdown=breakdown,
            flags=flags,
            recommendations=recommendations,
            alerts=recent_alerts,
            last_updated=utcnow(),
        )
        telemetry.ACCOUNTS_SCORED.labels(category=str(breakdown.category)).inc()
        logger.debug(
            "Scored %s (%s): %d %s",
            account.username,
            account_id,
            breakdown.overall,
            breakdown.category,
        )

        await self._cache_set(key, report.to_dict())
        return report

    # ------------------------------------------------------------------
    # Fleet
    # ------------------------------------------------------------------

    async def monitor_swarm(self, tenant_id: str) -> FleetHealthReport:
        """Fleet report over every account *tenant_id* owns.

        Accounts whose report fails are logged, left out of the report and
        listed in ``failed_accounts``.
        """
        key = cache_key(HEALTH_SWARM_NAMESPACE, tenant_id)
        cached = await self._cache_get(key, FleetHealthReport.from_dict)
        if cached is not None:
            return cached

        with telemetry.FLEET_SCAN_SECONDS.time():
            accounts = await self._repo.list_accounts(tenant_id)
            swarm_metrics = await self._collector.collect_swarm_metrics(tenant_id)
            reports, failed = await self._fan_out(
                tenant_id, accounts, lambda a: self.monitor_account(a.id)
            )
            active_alerts = await self._alerts.get_active_alerts(tenant_id)

        scores = [r.score_breakdown.overall for r in reports]
        avg_score = sum(scores) / len(scores) if scores else 0.0
        categories = [r.score_breakdown.category for r in reports]
        overview = FleetOverview(
            avg_score=avg_score,
            category=scorer.categorize_health(avg_score),
            critical_accounts=sum(c in _CRITICAL_CATEGORIES for c in categories),
            healthy_accounts=sum(c in _HEALTHY_CATEGORIES for c in categories),
        )

        report = FleetHealthReport(
            tenant_id=tenant_id,
            swarm_metrics=swarm_metrics,
            account_reports=reports,
            overall_health=overview,
            active_alerts=active_alerts,
            summary=swarm_summary(
                swarm_metrics,
                avg_score,
                overview.critical_accounts,
                overview.healthy_accounts,
                len(active_alerts),
            ),
            failed_accounts=failed,
            generated_at=utcnow(),
        )
        logger.info(
            "Fleet scan for tenant %s: %d accounts, %d failed, avg score %.0f",
            tenant_id,
            len(accounts),
            len(failed),
            avg_score,
        )

        await self._cache_set(key, report.to_dict())
        return report

    async def generate_daily_report(self, tenant_id: str) -> DailyHealthReport:
        fleet = await self.monitor_swarm(tenant_id)
        new_alerts = await self._alerts.get_alerts_since(
            tenant_id, utcnow() - timedelta(hours=24)
        )

        summaries = [
            AccountSummary(
                account_id=r.account_id,
                username=r.username,
                health_score=r.score_breakdown.overall,
                issues=list(r.flags),
            )
            for r in fleet.account_reports
        ]
        top, problems = _rank(summaries)

        return DailyHealthReport(
            tenant_id=tenant_id,
            date=utcnow(),
            swarm_metrics=fleet.swarm_metrics,
            top_performers=top,
            problem_accounts=problems[:REPORT_LEADERBOARD_SIZE],
            new_alerts=new_alerts,
            summary=daily_summary(fleet.swarm_metrics, len(new_alerts), len(problems)),
        )

    async def generate_weekly_report(self, tenant_id: str) -> WeeklyHealthReport:
        """Weekly rollup computed from fresh metrics, bypassing the cache.

        Does not persist alerts or snapshots. Trend fields are always zero.
        """
        week_end = utcnow()
        week_start = week_end - timedelta(days=7)

        swarm_metrics = await self._collector.collect_swarm_metrics(tenant_id)
        accounts = await self._repo.list_accounts(tenant_id)
        summaries, _ = await self._fan_out(tenant_id, accounts, self._score_account)
        top, problems = _rank(summaries)

        return WeeklyHealthReport(
            tenant_id=tenant_id,
            week_start=week_start,
            week_end=week_end,
            swarm_metrics=swarm_metrics,
            trends=HealthTrends(),
            top_performers=top,
            problem_accounts=problems[:REPORT_LEADERBOARD_SIZE],
            recommendations=weekly_recommendations(swarm_metrics, len(problems)),
            summary=weekly_summary(swarm_metrics, len(top), len(problems)),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _score_account(self, account: AccountRecord) -> AccountSummary:
        metrics = await self._collector.collect_account_metrics(account.id)
        return AccountSummary(
            account_id=account.id,
            username=account.username,
            health_score=scorer.calculate_health_score(metrics),
            issues=scorer.detect_flags(metrics),
        )

    async def _fan_out(
        self,
        tenant_id: str,
        accounts: Sequence[AccountRecord],
        work: Callable[[AccountRecord], Awaitable[T]],
    ) -> tuple[list[T], list[str]]:
        """Run *work* for every account, at most ``fleet_concurrency`` at once.

        Results keep the order of *accounts*; failed account ids are returned
        separately.
        """
        semaphore = asyncio.Semaphore(self._config.fleet_concurrency)

        async def run(account: AccountRecord) -> T | None:
            async with semaphore:
                try:
                    return await work(account)
                except Exception:
                    telemetry.FLEET_SCAN_FAILURES.inc()
                    logger.exception(
                        "Failed to monitor account %s for tenant %s",
                        account.id,
                        tenant_id,
                    )
                    return None

        results = await asyncio.gather(*(run(a) for a in accounts))

        succeeded: list[T] = []
        failed: list[str] = []
        for account, result in zip(accounts, results):
            if result is None:
                failed.append(account.id)
            else:
                succeeded.append(result)
        return succeeded, failed

    async def _cache_get(
        self, key: str, decode: Callable[[dict[str, Any]], T]
    ) -> T | None:
        if self._cache is None:
            return None
        try:
            payload = await self._cache.get(key)
        except Exception:
            logger.warning("Cache read failed for %s, treating as miss", key, exc_info=True)
            telemetry.CACHE_LOOKUPS.labels(result="error").inc()
            return None
        if payload is None:
            telemetry.CACHE_LOOKUPS.labels(result="miss").inc()
            return None
        try:
            value = decode(payload)
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding unreadable cache entry %s", key, exc_info=True)
            telemetry.CACHE_LOOKUPS.labels(result="error").inc()
            return None
        telemetry.CACHE_LOOKUPS.labels(result="hit").inc()
        return value

    async def _cache_set(self, key: str, payload: dict[str, Any]) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(key, payload, self._ttl)
        except Exception:
            logger.warning("Cache write failed for %s", key, exc_info=True)


def _rank(
    summaries: Sequence[AccountSummary],
) -> tuple[list[AccountSummary], list[AccountSummary]]:
    """Top performers (best first) and every problem account (worst first)."""
    ranked = sorted(summaries, key=lambda s: s.health_score, reverse=True)
    problems = sorted(
        (s for s in ranked if s.health_score < PROBLEM_SCORE_THRESHOLD),
        key=lambda s: s.health_score,
    )
    return ranked[:REPORT_LEADERBOARD_SIZE], problems


# ---------------------------------------------------------------------------
# Report text
# ---------------------------------------------------------------------------


def swarm_summary(
    metrics: SwarmMetrics,
    avg_score: float,
    critical_count: int,
    healthy_count: int,
    active_alert_count: int,
) -> str:
    parts = [
        f"Your swarm has {metrics.total_accounts} accounts with an average "
        f"health score of {avg_score:.0f}/100."
    ]
    if healthy_count > 0:
        parts.append(f"{healthy_count} accounts are performing well.")
    if critical_count > 0:
        parts.append(f"{critical_count} accounts need attention.")
    parts.append(
        f"Overall success rate: {metrics.overall_success_rate:.1f}% "
        f"across {metrics.total_posts} posts."
    )
    if active_alert_count > 0:
        parts.append(f"You have {active_alert_count} active alerts.")
    return " ".join(parts)


def daily_summary(metrics: SwarmMetrics, new_alerts: int, problem_count: int) -> str:
    parts = [
        f"Daily Report: {metrics.total_posts} posts across "
        f"{metrics.active_accounts} active accounts.",
        f"Success rate: {metrics.overall_success_rate:.1f}%.",
    ]
    if new_alerts > 0:
        parts.append(f"{new_alerts} new alerts today.")
    if problem_count > 0:
        parts.append(f"{problem_count} accounts need attention.")
    else:
        parts.append("All accounts are healthy.")
    return " ".join(parts)


def weekly_summary(metrics: SwarmMetrics, top_count: int, problem_count: int) -> str:
    parts = [
        f"Weekly Report: {metrics.total_posts} posts this week.",
        f"Overall success rate: {metrics.overall_success_rate:.1f}%.",
    ]
    if top_count > 0:
        parts.append(f"Top {top_count} performers identified.")
    if problem_count > 0:
        parts.append(f"{problem_count} accounts need improvement.")
    return " ".join(parts)


def weekly_recommendations(metrics: SwarmMetrics, problem_count: int) -> list[str]:
    recs: list[str] = []
    if metrics.overall_success_rate < 80:
        recs.append(
            "Overall success rate is below 80%. Review posting strategy and error logs."
        )
    if problem_count > metrics.total_accounts * 0.3:
        recs.append(
            "More than 30% of accounts have issues. Consider reducing posting frequency."
        )
    if metrics.active_accounts < metrics.total_accounts * 0.7:
        recs.append(
            "Less than 70% of accounts are active. Review suspended/paused accounts."
        )
    if metrics.avg_response_time > 2000:
        recs.append(
            "Average response time is slow. Check proxy performance and network connectivity."
        )
    if not recs:
        recs.append("Keep up the good work! Your swarm is healthy.")
    return recs
