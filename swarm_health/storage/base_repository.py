"""Abstract storage interface for the health pipeline.

Accounts, post results and warmup tasks are owned by other subsystems and only
read here; alerts and score snapshots are owned and written by this package.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import Any

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


class BaseRepository(ABC):
    """Contract for all storage backends."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection / pool and ensure owned tables exist."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release all connections."""
        ...

    @abstractmethod
    async def is_connected(self) -> bool:
        """Liveness check against the store."""
        ...

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_account(self, account_id: str) -> AccountRecord | None:
        ...

    @abstractmethod
    async def list_accounts(self, tenant_id: str) -> list[AccountRecord]:
        """All accounts owned by *tenant_id*, in a stable order."""
        ...

    @abstractmethod
    async def list_tenants(self) -> list[str]:
        """Every tenant that owns at least one account."""
        ...

    # ------------------------------------------------------------------
    # Post outcomes and warmup
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_post_stats(self, account_ids: Sequence[str]) -> PostStats:
        """Lifetime post outcomes summed over *account_ids*."""
        ...

    @abstractmethod
    async def count_failures(
        self,
        account_id: str,
        *,
        since_24h: datetime,
        since_7d: datetime,
        error_pattern: str | None = None,
    ) -> FailureCounts:
        """Count failed posts overall and inside both windows.

        When *error_pattern* is given, only failures whose error text matches
        the case-insensitive regular expression are counted.
        """
        ...

    @abstractmethod
    async def get_warmup_counts(self, account_id: str) -> WarmupCounts:
        ...

    @abstractmethod
    async def get_post_buckets(
        self,
        account_id: str,
        *,
        since: datetime,
        granularity: Granularity,
    ) -> list[PostBucket]:
        """Post outcomes since *since*, one row per bucket, oldest first."""
        ...

    # ------------------------------------------------------------------
    # Score snapshots
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_score_summaries(
        self, account_ids: Sequence[str]
    ) -> list[AccountSummary]:
        """Stored scores for *account_ids*, highest first."""
        ...

    @abstractmethod
    async def upsert_health_snapshot(self, snapshot: HealthSnapshot) -> None:
        """Insert the account's snapshot row, or update it if present."""
        ...

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    @abstractmethod
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
        """Atomically insert an alert unless one exists for the same
        (account, type) created after *since*.

        Returns the stored alert and whether it was newly created. Concurrent
        callers for the same pair must never both insert.
        """
        ...

    @abstractmethod
    async def list_active_alerts(
        self, tenant_id: str, *, unacknowledged_only: bool = False
    ) -> list[Alert]:
        """Unresolved alerts, newest first."""
        ...

    @abstractmethod
    async def list_account_alerts(
        self, account_id: str, *, limit: int
    ) -> list[Alert]:
        ...

    @abstractmethod
    async def list_alerts_since(
        self, tenant_id: str, since: datetime
    ) -> list[Alert]:
        ...

    @abstractmethod
    async def acknowledge_alert(self, alert_id: str, at: datetime) -> bool:
        """Return False if the alert does not exist."""
        ...

    @abstractmethod
    async def resolve_alert(
        self, alert_id: str, at: datetime, resolution_note: str | None = None
    ) -> bool:
        """Return False if the alert does not exist."""
        ...

    @abstractmethod
    async def get_alert_counts(self, tenant_id: str) -> list[AlertCountRow]:
        """Alert counts grouped by (severity, type)."""
        ...
