"""Point-in-time and historical metrics read from the persistent store."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta

from swarm_health.core.errors import NotFoundError
from swarm_health.core.models import (
    AccountMetrics,
    DailyMetrics,
    MetricsDataPoint,
    MetricsHistory,
    SwarmMetrics,
    WeeklyMetrics,
)
from swarm_health.core.types import AccountState, Granularity
from swarm_health.core.utils import utcnow
from swarm_health.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Upstream error text is not normalised, so rate limits are found by pattern.
# Kept to syntax shared by Python ``re`` and PostgreSQL ``~*``.
RATE_LIMIT_PATTERN = r"rate.?limit|429|too.?many.?requests"

LOGIN_CHALLENGE_TOKENS = ("challenge", "checkpoint")

TOP_PERFORMER_LIMIT = 5
PROBLEM_ACCOUNT_LIMIT = 5
PROBLEM_SCORE_THRESHOLD = 50

_SUSPENDED_STATES = frozenset(
    {AccountState.SUSPENDED.value, AccountState.BANNED.value}
)


def _percent(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


def has_login_challenge(last_error: str | None) -> bool:
    if not last_error:
        return False
    text = last_error.lower()
    return any(token in text for token in LOGIN_CHALLENGE_TOKENS)


class MetricsCollector:
    """Aggregates raw post, error and warmup history into metrics.

    No caching and no retries: every call reads the store and any store
    error propagates to the caller.
    """

    def __init__(self, repository: BaseRepository) -> None:
        self._repo = repository

    async def collect_account_metrics(self, account_id: str) -> AccountMetrics:
        """Collect current metrics for one account.

        Raises
        ------
        NotFoundError
            If the account does not exist.
        """
        account = await self._repo.get_account(account_id)
        if account is None:
            raise NotFoundError("account", account_id)

        now = utcnow()
        since_24h = now - timedelta(hours=24)
        since_7d = now - timedelta(days=7)

        posts = await self._repo.get_post_stats([account_id])
        errors = await self._repo.count_failures(
            account_id, since_24h=since_24h, since_7d=since_7d
        )
        rate_limits = await self._repo.count_failures(
            account_id,
            since_24h=since_24h,
            since_7d=since_7d,
            error_pattern=RATE_LIMIT_PATTERN,
        )
        warmup = await self._repo.get_warmup_counts(account_id)

        return AccountMetrics(
            account_id=account_id,
            total_posts=posts.total,
            successful_posts=posts.successful,
            failed_posts=posts.failed,
            post_success_rate=_percent(posts.successful, posts.total),
            avg_response_time=posts.avg_response_time,
            total_response_time=posts.total_response_time,
            error_count_24h=errors.last_24h,
            error_count_7d=errors.last_7d,
            error_rate_24h=_percent(errors.last_24h, posts.total),
            error_rate_7d=_percent(errors.last_7d, posts.total),
            rate_limit_hits=rate_limits.total,
            rate_limit_hits_24h=rate_limits.last_24h,
            rate_limit_hits_7d=rate_limits.last_7d,
            login_challenges=1 if has_login_challenge(account.last_error) else 0,
            account_state=account.account_state,
            last_error=account.last_error,
            last_post_at=posts.last_post_at,
            warmup_tasks_completed=warmup.completed,
            warmup_tasks_pending=warmup.pending,
            warmup_progress=_percent(warmup.completed, warmup.total),
            calculated_at=now,
        )

    async def collect_swarm_metrics(self, tenant_id: str) -> SwarmMetrics:
        """Aggregate metrics over every account owned by *tenant_id*."""
        accounts = await self._repo.list_accounts(tenant_id)
        if not accounts:
            return SwarmMetrics.empty(tenant_id)

        by_state = Counter(a.account_state for a in accounts)
        account_ids = [a.id for a in accounts]

        posts = await self._repo.get_post_stats(account_ids)
        scores = await self._repo.get_score_summaries(account_ids)

        avg_score = (
            sum(s.health_score for s in scores) / len(scores) if scores else 0.0
        )
        # scores arrive highest first; problem accounts are the worst five
        problems = [s for s in scores if s.health_score < PROBLEM_SCORE_THRESHOLD]
        worst = list(reversed(problems[-PROBLEM_ACCOUNT_LIMIT:]))

        return SwarmMetrics(
            tenant_id=tenant_id,
            total_accounts=len(accounts),
            active_accounts=by_state.get(AccountState.ACTIVE.value, 0),
            suspended_accounts=sum(
                n for state, n in by_state.items() if state in _SUSPENDED_STATES
            ),
            accounts_by_state=dict(by_state),
            total_posts=posts.total,
            successful_posts=posts.successful,
            failed_posts=posts.failed,
            overall_success_rate=_percent(posts.successful, posts.total),
            overall_error_rate=_percent(posts.failed, posts.total),
            avg_health_score=avg_score,
            avg_response_time=posts.avg_response_time,
            top_performers=scores[:TOP_PERFORMER_LIMIT],
            problem_accounts=worst,
            calculated_at=utcnow(),
        )

    # ------------------------------------------------------------------
    # Historical rollups (report composition only)
    # ------------------------------------------------------------------

    async def get_metrics_history(
        self,
        account_id: str,
        days: int = 30,
        granularity: Granularity | str = Granularity.DAILY,
    ) -> MetricsHistory:
        """Post outcomes over the last *days*, one point per bucket."""
        _require_positive("days", days)
        period = Granularity(granularity)
        buckets = await self._repo.get_post_buckets(
            account_id,
            since=utcnow() - timedelta(days=days),
            granularity=period,
        )
        return MetricsHistory(
            account_id=account_id,
            period=period.value,
            data_points=[
                MetricsDataPoint(
                    date=b.bucket_start,
                    total_posts=b.total,
                    successful_posts=b.successes,
                    failed_posts=b.failures,
                    post_success_rate=_percent(b.successes, b.total),
                    avg_response_time=b.avg_response_time,
                )
                for b in buckets
            ],
        )

    async def get_daily_aggregates(
        self, account_id: str, days: int = 7
    ) -> list[DailyMetrics]:
        """One row per active day, newest first."""
        _require_positive("days", days)
        buckets = await self._repo.get_post_buckets(
            account_id,
            since=utcnow() - timedelta(days=days),
            granularity=Granularity.DAILY,
        )
        return [
            DailyMetrics(
                date=b.bucket_start,
                posts=b.total,
                successes=b.successes,
                failures=b.failures,
                avg_response_time=b.avg_response_time,
                error_count=b.failures,
            )
            for b in reversed(buckets)
        ]

    async def get_weekly_aggregates(
        self, account_id: str, weeks: int = 4
    ) -> list[WeeklyMetrics]:
        """One row per active week, newest first."""
        _require_positive("weeks", weeks)
        buckets = await self._repo.get_post_buckets(
            account_id,
            since=utcnow() - timedelta(weeks=weeks),
            granularity=Granularity.WEEKLY,
        )
        return [
            WeeklyMetrics(
                week_start=b.bucket_start,
                week_end=b.bucket_start + timedelta(days=6),
                total_posts=b.total,
                avg_daily_posts=b.total / max(b.active_days, 1),
                success_rate=_percent(b.successes, b.total),
                avg_response_time=b.avg_response_time,
                total_errors=b.failures,
            )
            for b in reversed(buckets)
        ]


def _require_positive(name: str, value: int) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
