# gridsync/observability/metrics.py
# prometheus instrumentation: request metrics plus sync-state gauges

from __future__ import annotations

import time

from fastapi import Request
from prometheus_client import Counter, Gauge, Histogram
from starlette.middleware.base import BaseHTTPMiddleware


REQUEST_COUNT = Counter(
    "gridsync_request_count",
    "Total request count",
    labelnames=("method", "path", "status"),
)
REQUEST_LATENCY = Histogram(
    "gridsync_request_latency_seconds",
    "Request latency in seconds",
    labelnames=("path",),
)
REQUEST_IN_PROGRESS = Gauge(
    "gridsync_request_in_progress",
    "Requests currently in progress",
    labelnames=("method",),
)

UPDATES_APPENDED = Counter(
    "gridsync_updates_appended",
    "Update records appended to the log",
    labelnames=("type",),
)
REQUESTS_REJECTED = Counter(
    "gridsync_requests_rejected",
    "Requests rejected before touching shared state",
    labelnames=("reason",),
)
LIVE_CLIENTS = Gauge("gridsync_live_clients", "Clients seen within the timeout")
PRESENCE_RECORDS = Gauge("gridsync_presence_records", "Active presence records")
LATEST_UPDATE_ID = Gauge("gridsync_latest_update_id", "Id of the newest update record")


def _route_path(request: Request) -> str:
    # route templates keep label cardinality bounded; static files collapse to one label
    route = request.scope.get("route")
    return getattr(route, "path", None) or "static"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Count and time every request."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        method = request.method
        status = 500
        in_progress = REQUEST_IN_PROGRESS.labels(method)
        in_progress.inc()
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            in_progress.dec()
            path = _route_path(request)
            REQUEST_LATENCY.labels(path).observe(time.perf_counter() - start)
            REQUEST_COUNT.labels(method, path, str(status)).inc()
