"""In-memory stand-ins for the repository, cache and notifier."""

from __future__ import annotations

import asyncio
import fnmatch
import re
import uuid
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any

from swarm_health.cache.base_cache import BaseCache
from swarm_health.core.models import (
    AccountMetrics,
    AccountRecord,
    AccountSummary,
    Alert,
    AlertCountRow,
    FailureCounts,
    HealthSnapshot,
    PostBucket,
    PostStats,
    WarmupCounts,
)
from swarm_health.core.types import AlertSeverity, AlertType, Granularity
from swarm_health.core.utils import utcnow
from swarm_health.notifier.base_notifier import BaseNotifier
from swarm_health.storage.base_repository import BaseRepository


@dataclass
class FakePost:
    account_id: str
    success: bool
    response_time_ms: float = 0.0
    error: str | None = None
    created_at: datetime = field(default_factory=utcnow)


def _bucket_start(ts: datetime, granularity: Granularity) -> datetime:
    day = ts.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity is Granularity.WEEKLY:
        return day - timedelta(days=day.weekday())
    if granularity is Granularity.MONTHLY:
        return day.replace(day=1)
    return day


class InMemoryRepository(BaseRepository):
    """Dict-backed repository with the same contract as PostgresRepository.

    ``failing_accounts`` makes every per-account failure count raise, which
    lets tests break one account inside a fleet scan.
    """

    def __init__(self) -> None:
        self.accounts: dict[str, AccountRecord] = {}
        self.posts: list[FakePost] = []
        self.warmup: dict[str, list[str]] = {}
        self.snapshots: dict[str, HealthSnapshot] = {}
        self.alerts: list[Alert] = []
        self.failing_accounts: set[str] = set()
        self.calls: Counter[str] = Counter()
        self.connected = False
        self._alert_lock = asyncio.Lock()

    # -- seeding --------------------------------------------------------

    def add_account(
        self,
        tenant_id: str = "tenant-1",
        username: str = "acct",
        state: str = "ACTIVE",
        last_error: str | None = None,
        account_id: str | None = None,
    ) -> AccountRecord:
        record = AccountRecord(
            id=account_id or str(uuid.uuid4()),
            tenant_id=tenant_id,
            username=username,
            account_state=state,
            last_error=last_error,
        )
        self.accounts[record.id] = record
        return record

    def add_posts(
        self,
        account_id: str,
        *,
        successes: int = 0,
        failures: int = 0,
        response_time_ms: float = 0.0,
        error: str = "upload failed",
        at: datetime | None = None,
    ) -> None:
        when = at or utcnow()
        for _ in range(successes):
            self.posts.append(FakePost(account_id, True, response_time_ms, None, when))
        for _ in range(failures):
            self.posts.append(FakePost(account_id, False, response_time_ms, error, when))

    def add_alert(self, alert: Alert) -> Alert:
        self.alerts.append(alert)
        return alert

    # -- lifecycle --------------------------------------------------------

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def is_connected(self) -> bool:
        return self.connected

    # -- accounts -----------------------------------------------------------

    async def get_account(self, account_id: str) -> AccountRecord | None:
        self.calls["get_account"] += 1
        return self.accounts.get(account_id)

    async def list_accounts(self, tenant_id: str) -> list[AccountRecord]:
        self.calls["list_accounts"] += 1
        return [a for a in self.accounts.values() if a.tenant_id == tenant_id]

    async def list_tenants(self) -> list[str]:
        return sorted({a.tenant_id for a in self.accounts.values()})

    # -- posts and warmup ---------------------------------------------------

    async def get_post_stats(self, account_ids: Sequence[str]) -> PostStats:
        self.calls["get_post_stats"] += 1
        ids = set(account_ids)
        posts = [p for p in self.posts if p.account_id in ids]
        if not posts:
            return PostStats()
        total_rt = sum(p.response_time_ms for p in posts)
        return PostStats(
            total=len(posts),
            successful=sum(p.success for p in posts),
            failed=sum(not p.success for p in posts),
            avg_response_time=total_rt / len(posts),
            total_response_time=total_rt,
            last_post_at=max(p.created_at for p in posts),
        )

    async def count_failures(
        self,
        account_id: str,
        *,
        since_24h: datetime,
        since_7d: datetime,
        error_pattern: str | None = None,
    ) -> FailureCounts:
        if account_id in self.failing_accounts:
            raise RuntimeError(f"store unavailable for {account_id}")
        failed = [
            p
            for p in self.posts
            if p.account_id == account_id
            and not p.success
            and (
                error_pattern is None
                or (p.error is not None and re.search(error_pattern, p.error, re.I))
            )
        ]
        return FailureCounts(
            total=len(failed),
            last_24h=sum(p.created_at >= since_24h for p in failed),
            last_7d=sum(p.created_at >= since_7d for p in failed),
        )

    async def get_warmup_counts(self, account_id: str) -> WarmupCounts:
        statuses = self.warmup.get(account_id, [])
        return WarmupCounts(
            completed=statuses.count("completed"),
            pending=sum(s in ("pending", "in_progress") for s in statuses),
            total=len(statuses),
        )

    async def get_post_buckets(
        self,
        account_id: str,
        *,
        since: datetime,
        granularity: Granularity,
    ) -> list[PostBucket]:
        grouped: dict[datetime, list[FakePost]] = {}
        for p in self.posts:
            if p.account_id == account_id and p.created_at >= since:
                grouped.setdefault(_bucket_start(p.created_at, granularity), []).append(p)
        buckets = []
        for start in sorted(grouped):
            posts = grouped[start]
            buckets.append(
                PostBucket(
                    bucket_start=start,
                    total=len(posts),
                    successes=sum(p.success for p in posts),
                    failures=sum(not p.success for p in posts),
                    avg_response_time=sum(p.response_time_ms for p in posts) / len(posts),
                    active_days=len({p.created_at.date() for p in posts}),
                )
            )
        return buckets

    # -- score snapshots ----------------------------------------------------

    async def get_score_summaries(
        self, account_ids: Sequence[str]
    ) -> list[AccountSummary]:
        summaries = [
            AccountSummary(
                account_id=s.account_id,
                username=self.accounts[s.account_id].username,
                health_score=s.overall_score,
                issues=list(s.flags),
            )
            for s in self.snapshots.values()
            if s.account_id in set(account_ids)
        ]
        return sorted(summaries, key=lambda s: (-s.health_score, s.username))

    async def upsert_health_snapshot(self, snapshot: HealthSnapshot) -> None:
        self.calls["upsert_health_snapshot"] += 1
        self.snapshots[snapshot.account_id] = snapshot

    # -- alerts ---------------------------------------------------------------

    def _with_username(self, alert: Alert) -> Alert:
        account = self.accounts.get(alert.account_id)
        return replace(alert, username=account.username if account else None)

    async def insert_alert_if_absent(
        self,
        *,
        account_id: str,
        tenant_id: str,
        alert_type: AlertType,
        severity: AlertSeverity,
        message: str,
        metadata: dict[str, Any] | None,
        since: datetime,
    ) -> tuple[Alert, bool]:
        async with self._alert_lock:
            existing = [
                a
                for a in self.alerts
                if a.account_id == account_id
                and a.alert_type == alert_type
                and a.created_at > since
            ]
            if existing:
                newest = max(existing, key=lambda a: a.created_at)
                return self._with_username(newest), False
            # yield inside the critical section so racing callers interleave
            await asyncio.sleep(0)
            alert = Alert(
                id=str(uuid.uuid4()),
                account_id=account_id,
                tenant_id=tenant_id,
                alert_type=alert_type,
                severity=severity,
                message=message,
                metadata=metadata,
            )
            self.alerts.append(alert)
            return replace(alert), True

    def _newest_first(self, alerts: list[Alert]) -> list[Alert]:
        ordered = sorted(alerts, key=lambda a: a.created_at, reverse=True)
        return [self._with_username(a) for a in ordered]

    async def list_active_alerts(
        self, tenant_id: str, *, unacknowledged_only: bool = False
    ) -> list[Alert]:
        return self._newest_first(
            [
                a
                for a in self.alerts
                if a.tenant_id == tenant_id
                and not a.resolved
                and not (unacknowledged_only and a.acknowledged)
            ]
        )

    async def list_account_alerts(
        self, account_id: str, *, limit: int
    ) -> list[Alert]:
        return self._newest_first(
            [a for a in self.alerts if a.account_id == account_id]
        )[:limit]

    async def list_alerts_since(
        self, tenant_id: str, since: datetime
    ) -> list[Alert]:
        return self._newest_first(
            [a for a in self.alerts if a.tenant_id == tenant_id and a.created_at > since]
        )

    def _find_alert(self, alert_id: str) -> Alert | None:
        return next((a for a in self.alerts if a.id == alert_id), None)

    async def acknowledge_alert(self, alert_id: str, at: datetime) -> bool:
        alert = self._find_alert(alert_id)
        if alert is None:
            return False
        alert.acknowledged = True
        alert.acknowledged_at = at
        return True

    async def resolve_alert(
        self, alert_id: str, at: datetime, resolution_note: str | None = None
    ) -> bool:
        alert = self._find_alert(alert_id)
        if alert is None:
            return False
        alert.resolved = True
        alert.resolved_at = at
        if resolution_note is not None:
            alert.metadata = {**(alert.metadata or {}), "resolution": resolution_note}
        return True

    async def get_alert_counts(self, tenant_id: str) -> list[AlertCountRow]:
        groups: dict[tuple[str, str], list[Alert]] = {}
        for a in self.alerts:
            if a.tenant_id == tenant_id:
                groups.setdefault((str(a.severity), str(a.alert_type)), []).append(a)
        return [
            AlertCountRow(
                severity=severity,
                alert_type=alert_type,
                total=len(group),
                unacknowledged=sum(not a.acknowledged for a in group),
                unresolved=sum(not a.resolved for a in group),
            )
            for (severity, alert_type), group in groups.items()
        ]


class InMemoryCache(BaseCache):
    """Dict cache that records TTLs; ``broken`` makes reads and writes raise."""

    def __init__(self) -> None:
        self.store: dict[str, dict[str, Any]] = {}
        self.ttls: dict[str, int] = {}
        self.broken = False

    async def get(self, key: str) -> dict[str, Any] | None:
        if self.broken:
            raise ConnectionError("cache unavailable")
        return self.store.get(key)

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        if self.broken:
            raise ConnectionError("cache unavailable")
        self.store[key] = value
        self.ttls[key] = ttl_seconds

    async def delete(self, key: str) -> None:
        self.store.pop(key, None)
        self.ttls.pop(key, None)

    async def delete_pattern(self, pattern: str) -> int:
        keys = [k for k in self.store if fnmatch.fnmatchcase(k, pattern)]
        for k in keys:
            await self.delete(k)
        return len(keys)


class RecordingNotifier(BaseNotifier):
    def __init__(self) -> None:
        self.sent: list[tuple[str, Alert]] = []

    async def send(self, tenant_id: str, alert: Alert) -> None:
        self.sent.append((tenant_id, alert))


class FailingNotifier(BaseNotifier):
    def __init__(self) -> None:
        self.attempts = 0

    async def send(self, tenant_id: str, alert: Alert) -> None:
        self.attempts += 1
        raise ConnectionError("notification backend down")


# ---------------------------------------------------------------
# Metrics factory
# ---------------------------------------------------------------

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def make_metrics(**overrides: Any) -> AccountMetrics:
    """A healthy, recently active account; override any field."""
    values: dict[str, Any] = {
        "account_id": "acct-1",
        "total_posts": 50,
        "successful_posts": 48,
        "failed_posts": 2,
        "post_success_rate": 96.0,
        "avg_response_time": 800.0,
        "account_state": "ACTIVE",
        "last_post_at": NOW - timedelta(hours=2),
        "calculated_at": NOW,
    }
    values.update(overrides)
    return AccountMetrics(**values)
