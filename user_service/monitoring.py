"""Prometheus metrics instrumentation for application monitoring."""

import time

from fastapi import FastAPI, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, Histogram, generate_latest

METRICS_PATH = "/metrics"


def _handler_label(request: Request) -> str:
    """Route template rather than the raw path, so ids don't explode cardinality.

    Depending on the FastAPI version the matched route's path may or may not carry
    the include_router prefixes, so the template's own segments replace the tail of
    the request path and whatever precedes them is kept as the literal prefix.
    """
    template = getattr(request.scope.get("route"), "path", None)
    if template is None:
        return "unmatched"

    depth = template.count("/")
    path = request.url.path
    prefix = path.rsplit("/", depth)[0] if depth else path
    return prefix + template


def setup_monitoring(app: FastAPI) -> None:
    """Record request metrics and expose them at /metrics.

    Each app gets its own registry, so several apps can live in one process.
    """
    registry = CollectorRegistry()
    requests_total = Counter(
        "http_requests_total",
        "Total number of HTTP requests.",
        ["method", "handler", "status"],
        registry=registry,
    )
    request_duration = Histogram(
        "http_request_duration_seconds",
        "HTTP request latency in seconds.",
        ["method", "handler"],
        registry=registry,
    )
    requests_inprogress = Gauge(
        "http_requests_inprogress",
        "HTTP requests currently being served.",
        ["method"],
        registry=registry,
    )

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        if request.url.path == METRICS_PATH:
            return await call_next(request)

        start = time.perf_counter()
        requests_inprogress.labels(request.method).inc()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            handler = _handler_label(request)
            requests_inprogress.labels(request.method).dec()
            requests_total.labels(request.method, handler, str(status)).inc()
            request_duration.labels(request.method, handler).observe(time.perf_counter() - start)

    async def metrics(request: Request) -> Response:
        return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    app.add_route(METRICS_PATH, metrics, methods=["GET"], include_in_schema=False)
