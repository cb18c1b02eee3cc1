from __future__ import annotations

import time
from typing import Callable, Optional

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info, generate_latest

from nerdtalk.core.settings import S

METRICS_ENABLED = S.metrics_enabled

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP requests resulting in server errors",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)
IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "In-progress HTTP requests",
    ["method", "path"],
)
UPTIME_SECONDS = Gauge(
    "app_uptime_seconds",
    "Application uptime in seconds",
)
APP_INFO = Info(
    "app",
    "Application metadata",
)

POSTS_CREATED = Counter(
    "nerdtalk_posts_created_total",
    "NerdTalks created",
    ["kind"],
)
CASCADE_DELETES = Counter(
    "nerdtalk_cascade_deletes_total",
    "Cascade delete operations completed",
)
POSTS_DELETED = Counter(
    "nerdtalk_posts_deleted_total",
    "Post records removed by cascade deletes",
)
DANGLING_REFS = Counter(
    "nerdtalk_dangling_refs_total",
    "Index references skipped because the post no longer exists",
    ["owner"],
)
CORRUPT_TREES = Counter(
    "nerdtalk_corrupt_trees_total",
    "Reply trees found with a cycle or shared child",
)
WEBHOOK_EVENTS = Counter(
    "nerdtalk_webhook_events_total",
    "Organization webhook deliveries by type and outcome",
    ["event_type", "outcome"],
)

_START_TIME = time.monotonic()


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    if route and getattr(route, "path", None):
        return route.path
    return request.url.path


def record_post_created(kind: str) -> None:
    POSTS_CREATED.labels(kind=kind).inc()


def record_cascade_delete(deleted: int) -> None:
    CASCADE_DELETES.inc()
    if deleted:
        POSTS_DELETED.inc(deleted)


def record_dangling_ref(owner: str) -> None:
    DANGLING_REFS.labels(owner=owner).inc()


def record_corrupt_tree() -> None:
    CORRUPT_TREES.inc()


def record_webhook_event(event_type: Optional[str], outcome: str) -> None:
    WEBHOOK_EVENTS.labels(event_type=event_type or "unknown", outcome=outcome).inc()


async def metrics_middleware(request: Request, call_next: Callable[[Request], Response]) -> Response:
    path = _route_path(request)
    method = request.method
    start = time.perf_counter()
    IN_PROGRESS.labels(method=method, path=path).inc()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        IN_PROGRESS.labels(method=method, path=path).dec()
        elapsed = time.perf_counter() - start
        REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
        REQUEST_COUNT.labels(method=method, path=path, status=str(status_code)).inc()
        if status_code >= 500:
            REQUEST_ERRORS.labels(method=method, path=path, status=str(status_code)).inc()


def set_app_info(name: str, version: str) -> None:
    APP_INFO.info({"name": name, "version": version})


def metrics_endpoint() -> Response:
    UPTIME_SECONDS.set(time.monotonic() - _START_TIME)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
