"""Prometheus instruments shared by the pipeline."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

ACCOUNTS_SCORED = Counter(
    "swarm_health_accounts_scored_total",
    "Account health reports computed (cache misses)",
    ["category"],
)
ALERTS_CREATED = Counter(
    "swarm_health_alerts_created_total",
    "New alerts persisted",
    ["severity"],
)
ALERTS_SUPPRESSED = Counter(
    "swarm_health_alerts_suppressed_total",
    "Alerts skipped because a matching alert is inside its cooldown",
)
FLEET_SCAN_FAILURES = Counter(
    "swarm_health_fleet_account_failures_total",
    "Accounts omitted from a fleet report because scoring failed",
)
CACHE_LOOKUPS = Counter(
    "swarm_health_cache_lookups_total",
    "Report cache lookups",
    ["result"],
)
FLEET_SCAN_SECONDS = Histogram(
    "swarm_health_fleet_scan_seconds",
    "Wall time of an uncached fleet scan",
)
