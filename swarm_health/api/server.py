"""Dashboard HTTP API over the monitor, collector and alert manager."""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from swarm_health.cache.base_cache import BaseCache
from swarm_health.core.errors import NotFoundError
from swarm_health.core.serialization import to_jsonable
from swarm_health.health import health_scorer as scorer
from swarm_health.health.alert_manager import AlertManager
from swarm_health.health.health_monitor import HealthMonitor
from swarm_health.health.metrics_collector import MetricsCollector
from swarm_health.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

MONITOR_KEY = web.AppKey("monitor", HealthMonitor)
COLLECTOR_KEY = web.AppKey("collector", MetricsCollector)
ALERTS_KEY = web.AppKey("alerts", AlertManager)
REPOSITORY_KEY = web.AppKey("repository", BaseRepository)
CACHE_KEY = web.AppKey("cache", object)

routes = web.RouteTableDef()


def _ok(data: Any) -> web.Response:
    return web.json_response({"success": True, "data": to_jsonable(data)})


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"success": False, "error": message}, status=status)


def _tenant_id(request: web.Request) -> str:
    tenant_id = request.query.get("tenant_id", "").strip()
    if not tenant_id:
        raise ValueError("tenant_id query parameter is required")
    return tenant_id


def _int_param(request: web.Request, name: str, default: int) -> int:
    raw = request.query.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer") from None


def _bool_param(request: web.Request, name: str) -> bool:
    return request.query.get(name, "").lower() in ("1", "true", "yes")


@web.middleware
async def error_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except NotFoundError as exc:
        return _error(404, str(exc))
    except ValueError as exc:
        return _error(400, str(exc))
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _error(500, "Internal server error")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@routes.get("/health")
async def handle_health(request: web.Request) -> web.Response:
    repo = request.app[REPOSITORY_KEY]
    cache: BaseCache | None = request.app[CACHE_KEY]
    db_ok = await repo.is_connected()
    cache_ok = await cache.is_connected() if cache is not None else None
    return web.json_response(
        {
            "status": "ok" if db_ok else "degraded",
            "db_connected": db_ok,
            "cache_connected": cache_ok,
        },
        status=200 if db_ok else 503,
    )


@routes.get("/account/{account_id}")
async def handle_account(request: web.Request) -> web.Response:
    report = await request.app[MONITOR_KEY].monitor_account(
        request.match_info["account_id"]
    )
    return _ok(report)


@routes.get("/metrics/{account_id}")
async def handle_metrics(request: web.Request) -> web.Response:
    """Current metrics, 30-day history, daily/weekly rollups and success trend."""
    collector = request.app[COLLECTOR_KEY]
    account_id = request.match_info["account_id"]
    current = await collector.collect_account_metrics(account_id)
    history = await collector.get_metrics_history(account_id)
    trend = scorer.compare_to_baseline(
        current.post_success_rate,
        [p.post_success_rate for p in history.data_points],
    )
    return _ok(
        {
            "current": current,
            "history": history,
            "trend": trend,
            "daily": await collector.get_daily_aggregates(account_id),
            "weekly": await collector.get_weekly_aggregates(account_id),
        }
    )


@routes.get("/metrics/{account_id}/history")
async def handle_metrics_history(request: web.Request) -> web.Response:
    history = await request.app[COLLECTOR_KEY].get_metrics_history(
        request.match_info["account_id"],
        days=_int_param(request, "days", 30),
        granularity=request.query.get("granularity", "daily"),
    )
    return _ok(history)


@routes.get("/swarm")
async def handle_swarm(request: web.Request) -> web.Response:
    report = await request.app[MONITOR_KEY].monitor_swarm(_tenant_id(request))
    return _ok(report)


@routes.get("/alerts")
async def handle_alerts(request: web.Request) -> web.Response:
    alerts = await request.app[ALERTS_KEY].get_active_alerts(
        _tenant_id(request),
        unacknowledged_only=_bool_param(request, "unacknowledged"),
    )
    return _ok(alerts)


@routes.get("/alerts/stats")
async def handle_alert_stats(request: web.Request) -> web.Response:
    stats = await request.app[ALERTS_KEY].get_alert_stats(_tenant_id(request))
    return _ok(stats)


@routes.get("/alerts/account/{account_id}")
async def handle_account_alerts(request: web.Request) -> web.Response:
    alerts = await request.app[ALERTS_KEY].get_account_alerts(
        request.match_info["account_id"],
        limit=_int_param(request, "limit", 50),
    )
    return _ok(alerts)


@routes.post("/alerts/{alert_id}/acknowledge")
async def handle_acknowledge(request: web.Request) -> web.Response:
    alert_id = request.match_info["alert_id"]
    if not await request.app[ALERTS_KEY].acknowledge_alert(alert_id):
        raise NotFoundError("alert", alert_id)
    return web.json_response({"success": True, "message": "Alert acknowledged"})


@routes.post("/alerts/{alert_id}/resolve")
async def handle_resolve(request: web.Request) -> web.Response:
    alert_id = request.match_info["alert_id"]
    body: Any = await request.json() if request.can_read_body else {}
    if not isinstance(body, dict):
        raise ValueError("request body must be a JSON object")
    note = body.get("resolution")
    if note is not None and not isinstance(note, str):
        raise ValueError("resolution must be a string")

    if not await request.app[ALERTS_KEY].resolve_alert(alert_id, note):
        raise NotFoundError("alert", alert_id)
    return web.json_response({"success": True, "message": "Alert resolved"})


@routes.get("/reports/daily")
async def handle_daily_report(request: web.Request) -> web.Response:
    report = await request.app[MONITOR_KEY].generate_daily_report(_tenant_id(request))
    return _ok(report)


@routes.get("/reports/weekly")
async def handle_weekly_report(request: web.Request) -> web.Response:
    report = await request.app[MONITOR_KEY].generate_weekly_report(_tenant_id(request))
    return _ok(report)


def create_app(
    monitor: HealthMonitor,
    collector: MetricsCollector,
    alerts: AlertManager,
    repository: BaseRepository,
    cache: BaseCache | None = None,
) -> web.Application:
    app = web.Application(middlewares=[error_middleware])
    app[MONITOR_KEY] = monitor
    app[COLLECTOR_KEY] = collector
    app[ALERTS_KEY] = alerts
    app[REPOSITORY_KEY] = repository
    app[CACHE_KEY] = cache
    app.add_routes(routes)
    return app
