"""Environment-based configuration with validation."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from package dir or cwd
_env_path = Path(__file__).resolve().parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
else:
    load_dotenv()


def _env(key: str, default: str = "") -> str:
    return os.getenv(key, default)


def _env_int(key: str, default: int = 0) -> int:
    return int(os.getenv(key, str(default)))


def _env_float(key: str, default: float = 0.0) -> float:
    return float(os.getenv(key, str(default)))


def _env_bool(key: str, default: bool = False) -> bool:
    return os.getenv(key, str(default)).lower() in ("1", "true", "yes")


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """PostgreSQL connection settings."""

    host: str = field(default_factory=lambda: _env("DB_HOST", "localhost"))
    port: int = field(default_factory=lambda: _env_int("DB_PORT", 5432))
    user: str = field(default_factory=lambda: _env("DB_USER", "swarm"))
    password: str = field(default_factory=lambda: _env("DB_PASSWORD"))
    database: str = field(
        default_factory=lambda: _env("DB_NAME", "swarm_health")
    )
    pool_min: int = field(default_factory=lambda: _env_int("DB_POOL_MIN", 2))
    pool_max: int = field(default_factory=lambda: _env_int("DB_POOL_MAX", 10))

    @property
    def dsn(self) -> str:
        return (
            f"postgresql://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


@dataclass(frozen=True, slots=True)
class CacheConfig:
    """Redis report cache."""

    enabled: bool = field(
        default_factory=lambda: _env_bool("CACHE_ENABLED", True)
    )
    url: str = field(
        default_factory=lambda: _env("REDIS_URL", "redis://localhost:6379/0")
    )
    ttl_seconds: int = field(
        default_factory=lambda: _env_int("CACHE_TTL_SECONDS", 300)
    )
    socket_timeout: float = field(
        default_factory=lambda: _env_float("REDIS_SOCKET_TIMEOUT", 5.0)
    )


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    """Fleet scan behaviour."""

    fleet_concurrency: int = field(
        default_factory=lambda: _env_int("FLEET_CONCURRENCY", 8)
    )
    recent_alert_limit: int = field(
        default_factory=lambda: _env_int("RECENT_ALERT_LIMIT", 10)
    )
    sweep_enabled: bool = field(
        default_factory=lambda: _env_bool("SWEEP_ENABLED", True)
    )
    sweep_interval_seconds: int = field(
        default_factory=lambda: _env_int("SWEEP_INTERVAL_SECONDS", 6 * 3600)
    )


@dataclass(frozen=True, slots=True)
class AlertConfig:
    """Alert deduplication.

    ``dedup_hours`` is the lookback used for alerts created directly and,
    when ``use_rule_cooldown`` is off, for rule-generated alerts as well.
    """

    dedup_hours: int = field(
        default_factory=lambda: _env_int("ALERT_DEDUP_HOURS", 24)
    )
    use_rule_cooldown: bool = field(
        default_factory=lambda: _env_bool("ALERT_USE_RULE_COOLDOWN", True)
    )


@dataclass(frozen=True, slots=True)
class NotifierConfig:
    dry_run: bool = field(
        default_factory=lambda: _env_bool("NOTIFIER_DRY_RUN", False)
    )


@dataclass(frozen=True, slots=True)
class ApiConfig:
    """Dashboard HTTP API settings."""

    enabled: bool = field(
        default_factory=lambda: _env_bool("API_ENABLED", True)
    )
    host: str = field(default_factory=lambda: _env("API_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("API_PORT", 8080))


@dataclass(frozen=True, slots=True)
class MetricsConfig:
    """Prometheus metrics settings."""

    enabled: bool = field(
        default_factory=lambda: _env_bool("METRICS_ENABLED", False)
    )
    port: int = field(
        default_factory=lambda: _env_int("METRICS_PORT", 9090)
    )


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Root application configuration aggregating all sub-configs."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    notifier: NotifierConfig = field(default_factory=NotifierConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    log_level: str = field(
        default_factory=lambda: _env("LOG_LEVEL", "INFO")
    )
    log_json: bool = field(
        default_factory=lambda: _env_bool("LOG_JSON", False)
    )

    def errors(self) -> list[str]:
        errors: list[str] = []
        if not self.database.password:
            errors.append("DB_PASSWORD is required")
        if self.monitor.fleet_concurrency < 1:
            errors.append("FLEET_CONCURRENCY must be at least 1")
        if self.cache.ttl_seconds < 1:
            errors.append("CACHE_TTL_SECONDS must be at least 1")
        if self.alerts.dedup_hours < 0:
            errors.append("ALERT_DEDUP_HOURS must not be negative")
        return errors

    def validate(self) -> None:
        """Validate required fields; exits on failure."""
        errors = self.errors()
        if errors:
            for e in errors:
                print(f"[CONFIG ERROR] {e}", file=sys.stderr)
            raise SystemExit(1)
