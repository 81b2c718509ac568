"""Main application entry point: wires storage, cache, pipeline and API.

Usage:
    python -m swarm_health
    python -m swarm_health --debug
    python -m swarm_health --dry-run
    python -m swarm_health --once
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from typing import Any

from aiohttp import web
from prometheus_client import start_http_server

from swarm_health.api import create_app
from swarm_health.cache import RedisCache
from swarm_health.config import AppConfig
from swarm_health.core.utils import setup_logging
from swarm_health.health import AlertManager, HealthMonitor, MetricsCollector
from swarm_health.notifier import LogNotifier
from swarm_health.storage import PostgresRepository

logger = logging.getLogger(__name__)


class SwarmHealthApp:
    """Top-level orchestrator: repository -> collector -> alerts -> monitor."""

    def __init__(self, config: AppConfig, dry_run: bool = False) -> None:
        self._config = config
        self._dry_run = dry_run or config.notifier.dry_run

        self._repo = PostgresRepository(config.database)
        self._cache = RedisCache(config.cache) if config.cache.enabled else None
        self._collector = MetricsCollector(self._repo)
        self._alerts = AlertManager(
            self._repo,
            LogNotifier(dry_run=self._dry_run),
            config=config.alerts,
        )
        self._monitor = HealthMonitor(
            self._repo,
            self._cache,
            self._collector,
            self._alerts,
            config=config.monitor,
            cache_ttl_seconds=config.cache.ttl_seconds,
        )

        self._runner: web.AppRunner | None = None
        self._tasks: list[asyncio.Task[Any]] = []
        self._stopped = asyncio.Event()

    @property
    def monitor(self) -> HealthMonitor:
        return self._monitor

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        await self._repo.connect()
        if self._cache is not None:
            await self._cache.connect()

    async def start(self) -> None:
        """Connect, start the endpoints and sweep until shutdown."""
        logger.info("Starting swarm health monitor (dry_run=%s)", self._dry_run)
        await self.connect()

        if self._config.metrics.enabled:
            start_http_server(self._config.metrics.port)
            logger.info("Prometheus metrics on :%d/metrics", self._config.metrics.port)

        if self._config.api.enabled:
            await self._start_api()

        if self._config.monitor.sweep_enabled:
            self._tasks.append(
                asyncio.create_task(self._sweep_loop(), name="sweep")
            )

        await self._stopped.wait()

    async def sweep(self) -> int:
        """Build a fleet report for every tenant; return how many succeeded."""
        tenants = await self._repo.list_tenants()
        done = 0
        for tenant_id in tenants:
            try:
                report = await self._monitor.monitor_swarm(tenant_id)
            except Exception:
                logger.exception("Fleet sweep failed for tenant %s", tenant_id)
                continue
            done += 1
            logger.info("Tenant %s: %s", tenant_id, report.summary)
        logger.info("Sweep complete: %d/%d tenants", done, len(tenants))
        return done

    async def shutdown(self) -> None:
        """Graceful shutdown: cancel tasks, stop the API, close pools."""
        if self._stopped.is_set():
            return
        logger.info("Shutting down swarm health monitor...")
        self._stopped.set()

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._runner is not None:
            await self._runner.cleanup()
        if self._cache is not None:
            await self._cache.close()
        await self._repo.close()
        logger.info("Shutdown complete")

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    async def _sweep_loop(self) -> None:
        interval = self._config.monitor.sweep_interval_seconds
        while True:
            try:
                await self.sweep()
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in sweep loop")
                await asyncio.sleep(60)

    async def _start_api(self) -> None:
        app = create_app(
            self._monitor, self._collector, self._alerts, self._repo, self._cache
        )
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.api.host, self._config.api.port)
        await site.start()
        logger.info(
            "HTTP API on %s:%d", self._config.api.host, self._config.api.port
        )


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Swarm health: account fleet scoring and alerting"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log notifications as dry-run instead of dispatching them",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single fleet sweep and exit",
    )
    return parser.parse_args(argv)


async def _main() -> None:
    args = parse_args()

    config = AppConfig()

    log_level = "DEBUG" if args.debug else config.log_level
    setup_logging(level=log_level, json_format=config.log_json)

    config.validate()

    app = SwarmHealthApp(config=config, dry_run=args.dry_run)

    if args.once:
        try:
            await app.connect()
            await app.sweep()
        finally:
            await app.shutdown()
        return

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.create_task(app.shutdown()))

    try:
        await app.start()
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        await app.shutdown()


def main() -> None:
    asyncio.run(_main())


if __name__ == "__main__":
    main()
