"""PostgreSQL storage backend using asyncpg."""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import asyncpg

from swarm_health.config import DatabaseConfig
from swarm_health.core.models import (
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
from swarm_health.core.utils import ensure_utc
from swarm_health.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Only the tables written by this package; accounts, post_results and
# warmup_tasks belong to the account-management schema.
_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS health_alerts (
    id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
    account_id      UUID            NOT NULL,
    user_id         TEXT            NOT NULL,
    alert_type      TEXT            NOT NULL,
    severity        TEXT            NOT NULL
        CHECK (severity IN ('info', 'warning', 'error', 'critical')),
    message         TEXT            NOT NULL,
    metadata        JSONB,
    acknowledged    BOOLEAN         NOT NULL DEFAULT FALSE,
    resolved        BOOLEAN         NOT NULL DEFAULT FALSE,
    created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
    acknowledged_at TIMESTAMPTZ,
    resolved_at     TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_alerts_account_type_time
    ON health_alerts (account_id, alert_type, created_at);

CREATE INDEX IF NOT EXISTS idx_alerts_user_time
    ON health_alerts (user_id, created_at);

CREATE TABLE IF NOT EXISTS account_health_scores (
    id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
    account_id      UUID            NOT NULL UNIQUE,
    overall_score   INTEGER         NOT NULL
        CHECK (overall_score >= 0 AND overall_score <= 100),
    metrics         JSONB           NOT NULL DEFAULT '{}',
    flags           TEXT[]          NOT NULL DEFAULT '{}',
    recommendations TEXT[]          NOT NULL DEFAULT '{}',
    last_calculated TIMESTAMPTZ     NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_health_overall_score
    ON account_health_scores (overall_score);
"""

_ALERT_COLUMNS = """
    ha.id, ha.account_id, ha.user_id, ha.alert_type, ha.severity, ha.message,
    ha.metadata, ha.acknowledged, ha.resolved, ha.created_at,
    ha.acknowledged_at, ha.resolved_at, a.username
"""

_ALERT_FROM = """
    FROM health_alerts ha
    LEFT JOIN accounts a ON a.id = ha.account_id
"""

# post_results and older health_alerts tables use TIMESTAMP without time zone.
# Bound datetimes are aware and cast with ::timestamptz; a UTC session makes
# the implicit timestamptz -> timestamp conversion exact.
_SERVER_SETTINGS = {"timezone": "UTC"}

_TRUNC_UNITS = {
    Granularity.DAILY: "day",
    Granularity.WEEKLY: "week",
    Granularity.MONTHLY: "month",
}


def _as_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _affected(status: str) -> int:
    """Row count from an asyncpg status string such as 'UPDATE 1'."""
    return int(status.split()[-1])


async def _init_connection(conn: asyncpg.Connection) -> None:
    for name in ("json", "jsonb"):
        await conn.set_type_codec(
            name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


class PostgresRepository(BaseRepository):
    """asyncpg-backed storage with connection pooling."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        self._pool = await asyncpg.create_pool(
            dsn=self._config.dsn,
            min_size=self._config.pool_min,
            max_size=self._config.pool_max,
            init=_init_connection,
            server_settings=_SERVER_SETTINGS,
        )
        async with self._pool.acquire() as conn:
            await conn.execute(_SCHEMA_SQL)
        logger.info(
            "PostgreSQL pool created (%d-%d) and schema ensured",
            self._config.pool_min,
            self._config.pool_max,
        )

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            logger.info("PostgreSQL pool closed")

    async def is_connected(self) -> bool:
        if not self._pool:
            return False
        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def get_account(self, account_id: str) -> AccountRecord | None:
        assert self._pool is not None
        key = _as_uuid(account_id)
        if key is None:
            return None
        sql = """
            SELECT id, user_id::text AS tenant_id, username,
                   account_state, last_error
            FROM accounts
            WHERE id = $1
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(sql, key)
        return self._row_to_account(row) if row else None

    async def list_accounts(self, tenant_id: str) -> list[AccountRecord]:
        assert self._pool is not None
        sql = """
            SELECT id, user_id::text AS tenant_id, username,
                   account_state, last_error
            FROM accounts
            WHERE user_id::text = $1
            ORDER BY username
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql, tenant_id)
        return [self._row_to_account(r) for r in rows]

    async def list_tenants(self) -> list[str]:
        assert self._pool is not None
        sql = """
            SELECT DISTINCT user_id::text AS tenant_id
            FROM accounts
            WHERE user_id IS NOT NULL
            ORDER BY 1
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql)
        return [r["tenant_id"] for r in rows]

    # ------------------------------------------------------------------
    # Post outcomes and warmup
    # ------------------------------------------------------------------

    async def get_post_stats(self, account_ids: Sequence[str]) -> PostStats:
        assert self._pool is not None
        keys = [k for k in (_as_uuid(a) for a in account_ids) if k is not None]
        if not keys:
            return PostStats()
        sql = """
            SELECT
                COUNT(*)::int                                       AS total,
                COUNT(*) FILTER (WHERE status = 'success')::int     AS successful,
                COUNT(*) FILTER (WHERE status = 'failed')::int      AS failed,
                AVG(response_time_ms)::float8                       AS avg_rt,
                SUM(response_time_ms)::float8                       AS total_rt,
                MAX(posted_at)                                      AS last_post_at
            FROM post_results
            WHERE account_id = ANY($1::uuid[])
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(sql, keys)
        return PostStats(
            total=row["total"] or 0,
            successful=row["successful"] or 0,
            failed=row["failed"] or 0,
            avg_response_time=row["avg_rt"] or 0.0,
            total_response_time=row["total_rt"] or 0.0,
            last_post_at=ensure_utc(row["last_post_at"]),
        )

    async def count_failures(
        self,
        account_id: str,
        *,
        since_24h: datetime,
        since_7d: datetime,
        error_pattern: str | None = None,
    ) -> FailureCounts:
        assert self._pool is not None
        key = _as_uuid(account_id)
        if key is None:
            return FailureCounts()
        sql = """
            SELECT
                COUNT(*)::int                                       AS total,
                COUNT(*) FILTER (WHERE created_at >= $2::timestamptz)::int AS last_24h,
                COUNT(*) FILTER (WHERE created_at >= $3::timestamptz)::int AS last_7d
            FROM post_results
            WHERE account_id = $1
              AND status = 'failed'
              AND ($4::text IS NULL OR error ~* $4::text)
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(sql, key, since_24h, since_7d, error_pattern)
        return FailureCounts(
            total=row["total"] or 0,
            last_24h=row["last_24h"] or 0,
            last_7d=row["last_7d"] or 0,
        )

    async def get_warmup_counts(self, account_id: str) -> WarmupCounts:
        assert self._pool is not None
        key = _as_uuid(account_id)
        if key is None:
            return WarmupCounts()
        sql = """
            SELECT
                COUNT(*) FILTER (WHERE status = 'completed')::int                    AS completed,
                COUNT(*) FILTER (WHERE status IN ('pending', 'in_progress'))::int    AS pending,
                COUNT(*)::int                                                        AS total
            FROM warmup_tasks
            WHERE account_id = $1
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(sql, key)
        return WarmupCounts(
            completed=row["completed"] or 0,
            pending=row["pending"] or 0,
            total=row["total"] or 0,
        )

    async def get_post_buckets(
        self,
        account_id: str,
        *,
        since: datetime,
        granularity: Granularity,
    ) -> list[PostBucket]:
        assert self._pool is not None
        key = _as_uuid(account_id)
        if key is None:
            return []
        sql = """
            SELECT
                date_trunc($3, created_at)                          AS bucket_start,
                COUNT(*)::int                                       AS total,
                COUNT(*) FILTER (WHERE status = 'success')::int     AS successes,
                COUNT(*) FILTER (WHERE status = 'failed')::int      AS failures,
                AVG(response_time_ms)::float8                       AS avg_rt,
                COUNT(DISTINCT created_at::date)::int               AS active_days
            FROM post_results
            WHERE account_id = $1
              AND created_at >= $2::timestamptz
            GROUP BY 1
            ORDER BY 1 ASC
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql, key, since, _TRUNC_UNITS[granularity])
        return [
            PostBucket(
                bucket_start=ensure_utc(r["bucket_start"]),
                total=r["total"],
                successes=r["successes"],
                failures=r["failures"],
                avg_response_time=r["avg_rt"] or 0.0,
                active_days=r["active_days"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Score snapshots
    # ------------------------------------------------------------------

    async def get_score_summaries(
        self, account_ids: Sequence[str]
    ) -> list[AccountSummary]:
        assert self._pool is not None
        keys = [k for k in (_as_uuid(a) for a in account_ids) if k is not None]
        if not keys:
            return []
        sql = """
            SELECT ahs.account_id, ahs.overall_score, ahs.flags, a.username
            FROM account_health_scores ahs
            JOIN accounts a ON a.id = ahs.account_id
            WHERE ahs.account_id = ANY($1::uuid[])
            ORDER BY ahs.overall_score DESC, a.username
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql, keys)
        return [
            AccountSummary(
                account_id=str(r["account_id"]),
                username=r["username"],
                health_score=r["overall_score"],
                issues=list(r["flags"] or []),
            )
            for r in rows
        ]

    async def upsert_health_snapshot(self, snapshot: HealthSnapshot) -> None:
        assert self._pool is not None
        sql = """
            INSERT INTO account_health_scores
                (account_id, overall_score, metrics, flags, recommendations,
                 last_calculated)
            VALUES ($1, $2, $3, $4, $5, NOW())
            ON CONFLICT (account_id) DO UPDATE
               SET overall_score   = EXCLUDED.overall_score,
                   metrics         = EXCLUDED.metrics,
                   flags           = EXCLUDED.flags,
                   recommendations = EXCLUDED.recommendations,
                   last_calculated = NOW()
        """
        async with self._pool.acquire() as conn:
            await conn.execute(
                sql,
                uuid.UUID(snapshot.account_id),
                snapshot.overall_score,
                snapshot.metrics,
                snapshot.flags,
                snapshot.recommendations,
            )

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

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
        assert self._pool is not None
        key = uuid.UUID(account_id)
        existing_sql = f"""
            SELECT {_ALERT_COLUMNS}
            {_ALERT_FROM}
            WHERE ha.account_id = $1
              AND ha.alert_type = $2
              AND ha.created_at > $3::timestamptz
            ORDER BY ha.created_at DESC
            LIMIT 1
        """
        insert_sql = """
            INSERT INTO health_alerts
                (account_id, user_id, alert_type, severity, message, metadata)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING id, account_id, user_id, alert_type, severity, message,
                      metadata, acknowledged, resolved, created_at,
                      acknowledged_at, resolved_at, NULL::text AS username
        """
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                # Serialises check-and-insert per (account, type) until commit
                await conn.execute(
                    "SELECT pg_advisory_xact_lock(hashtextextended($1, 0))",
                    f"{account_id}:{alert_type}",
                )
                row = await conn.fetchrow(existing_sql, key, str(alert_type), since)
                if row is not None:
                    return self._row_to_alert(row), False
                row = await conn.fetchrow(
                    insert_sql,
                    key,
                    tenant_id,
                    str(alert_type),
                    str(severity),
                    message,
                    metadata,
                )
        return self._row_to_alert(row), True

    async def list_active_alerts(
        self, tenant_id: str, *, unacknowledged_only: bool = False
    ) -> list[Alert]:
        assert self._pool is not None
        sql = f"""
            SELECT {_ALERT_COLUMNS}
            {_ALERT_FROM}
            WHERE ha.user_id = $1
              AND ha.resolved = FALSE
              AND ($2::bool = FALSE OR ha.acknowledged = FALSE)
            ORDER BY ha.created_at DESC
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql, tenant_id, unacknowledged_only)
        return [self._row_to_alert(r) for r in rows]

    async def list_account_alerts(
        self, account_id: str, *, limit: int
    ) -> list[Alert]:
        assert self._pool is not None
        key = _as_uuid(account_id)
        if key is None:
            return []
        sql = f"""
            SELECT {_ALERT_COLUMNS}
            {_ALERT_FROM}
            WHERE ha.account_id = $1
            ORDER BY ha.created_at DESC
            LIMIT $2
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql, key, limit)
        return [self._row_to_alert(r) for r in rows]

    async def list_alerts_since(
        self, tenant_id: str, since: datetime
    ) -> list[Alert]:
        assert self._pool is not None
        sql = f"""
            SELECT {_ALERT_COLUMNS}
            {_ALERT_FROM}
            WHERE ha.user_id = $1
              AND ha.created_at > $2::timestamptz
            ORDER BY ha.created_at DESC
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql, tenant_id, since)
        return [self._row_to_alert(r) for r in rows]

    async def acknowledge_alert(self, alert_id: str, at: datetime) -> bool:
        assert self._pool is not None
        key = _as_uuid(alert_id)
        if key is None:
            return False
        sql = """
            UPDATE health_alerts
               SET acknowledged = TRUE, acknowledged_at = $2::timestamptz
             WHERE id = $1
        """
        async with self._pool.acquire() as conn:
            status = await conn.execute(sql, key, at)
        return _affected(status) > 0

    async def resolve_alert(
        self, alert_id: str, at: datetime, resolution_note: str | None = None
    ) -> bool:
        assert self._pool is not None
        key = _as_uuid(alert_id)
        if key is None:
            return False
        sql = """
            UPDATE health_alerts
               SET resolved = TRUE,
                   resolved_at = $2::timestamptz,
                   metadata = CASE
                       WHEN $3::text IS NULL THEN metadata
                       ELSE COALESCE(metadata, '{}'::jsonb)
                            || jsonb_build_object('resolution', $3::text)
                   END
             WHERE id = $1
        """
        async with self._pool.acquire() as conn:
            status = await conn.execute(sql, key, at, resolution_note)
        return _affected(status) > 0

    async def get_alert_counts(self, tenant_id: str) -> list[AlertCountRow]:
        assert self._pool is not None
        sql = """
            SELECT severity, alert_type,
                   COUNT(*)::int                                   AS total,
                   COUNT(*) FILTER (WHERE NOT acknowledged)::int   AS unacknowledged,
                   COUNT(*) FILTER (WHERE NOT resolved)::int       AS unresolved
            FROM health_alerts
            WHERE user_id = $1
            GROUP BY severity, alert_type
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql, tenant_id)
        return [
            AlertCountRow(
                severity=r["severity"],
                alert_type=r["alert_type"],
                total=r["total"],
                unacknowledged=r["unacknowledged"],
                unresolved=r["unresolved"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_account(row: asyncpg.Record) -> AccountRecord:
        return AccountRecord(
            id=str(row["id"]),
            tenant_id=row["tenant_id"],
            username=row["username"],
            account_state=row["account_state"],
            last_error=row["last_error"],
        )

    @staticmethod
    def _row_to_alert(row: asyncpg.Record) -> Alert:
        return Alert(
            id=str(row["id"]),
            account_id=str(row["account_id"]),
            tenant_id=row["user_id"],
            alert_type=AlertType(row["alert_type"]),
            severity=AlertSeverity(row["severity"]),
            message=row["message"],
            metadata=row["metadata"],
            acknowledged=row["acknowledged"],
            resolved=row["resolved"],
            created_at=ensure_utc(row["created_at"]),
            acknowledged_at=ensure_utc(row["acknowledged_at"]),
            resolved_at=ensure_utc(row["resolved_at"]),
            username=row["username"],
        )
