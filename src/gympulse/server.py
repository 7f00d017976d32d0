"""HTTP service exposing tracked facilities (the ``primary`` origin)."""

from __future__ import annotations

import json
import logging
from collections.abc import MutableMapping
from typing import Any

from aiohttp import web
from pydantic import ValidationError

from gympulse.models.facility import FacilityConfig
from gympulse.models.sample import Sample
from gympulse.monitor import PulseMonitor

_logger = logging.getLogger(__name__)

MONITOR_KEY: web.AppKey[PulseMonitor] = web.AppKey("monitor", PulseMonitor)


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _cors_headers(headers: MutableMapping[str, str]) -> None:
    headers["Access-Control-Allow-Origin"] = "*"
    headers["Access-Control-Allow-Headers"] = "Content-Type"
    headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"


@web.middleware
async def cors_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    if request.method == "OPTIONS":
        response: web.StreamResponse = web.Response(status=204)
    else:
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            # Router errors (unknown path, wrong method) are raised, not returned.
            _cors_headers(exc.headers)
            raise
    _cors_headers(response.headers)
    return response


async def list_facilities(request: web.Request) -> web.Response:
    monitor = request.app[MONITOR_KEY]
    return web.json_response([series.to_wire() for series in monitor.facilities()])


async def add_facility(request: web.Request) -> web.Response:
    monitor = request.app[MONITOR_KEY]
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return _error(400, "Invalid JSON body")
    if not isinstance(body, dict):
        return _error(400, "Invalid facility config")
    try:
        config = FacilityConfig.model_validate(body)
    except ValidationError as exc:
        return _error(400, f"Invalid facility config: {exc.error_count()} errors")

    outcome = await monitor.add_facility(config)
    _logger.info("Added facility %s", config.id)
    payload: dict[str, Any] = {"success": True, "facility": config.to_wire()}
    if isinstance(outcome, Sample):
        payload["current"] = outcome.to_wire()
    return web.json_response(payload)


async def refresh(request: web.Request) -> web.Response:
    monitor = request.app[MONITOR_KEY]
    result = await monitor.refresh()
    return web.json_response(
        {
            "success": True,
            "accepted": result.accepted,
            "skipped": result.skipped,
            "failed": result.failed,
        }
    )


async def facility_views(request: web.Request) -> web.Response:
    monitor = request.app[MONITOR_KEY]
    facility_id = request.match_info["facility_id"]
    try:
        views = monitor.views(facility_id)
    except KeyError:
        return _error(404, f"Unknown facility {facility_id}")
    return web.json_response(views.to_wire())


async def health(request: web.Request) -> web.Response:
    monitor = request.app[MONITOR_KEY]
    session = monitor.session
    return web.json_response(
        {
            "status": "healthy" if session is not None else "starting",
            "origin": str(session.origin) if session is not None else None,
            "sessionAge": round(session.age, 1) if session is not None else None,
            "facilities": len(monitor.store),
        }
    )


def create_app(monitor: PulseMonitor) -> web.Application:
    """Build the service application around an entered, resolved monitor."""
    app = web.Application(middlewares=[cors_middleware])
    app[MONITOR_KEY] = monitor
    app.router.add_get("/facilities", list_facilities)
    app.router.add_post("/facilities", add_facility)
    app.router.add_post("/refresh", refresh)
    app.router.add_get("/facilities/{facility_id}/aggregates", facility_views)
    app.router.add_get("/health", health)
    return app


async def serve(monitor: PulseMonitor, *, host: str, port: int) -> web.AppRunner:
    """Start the monitor's background refresh and listen on *host*:*port*."""
    await monitor.start()
    runner = web.AppRunner(create_app(monitor))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    _logger.info("gympulse service running on http://%s:%d", host, port)
    return runner
