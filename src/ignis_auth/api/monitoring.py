"""Prometheus metrics for requests and authentication outcomes."""

import time
from typing import Callable, List, cast

from fastapi import FastAPI, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Histogram, generate_latest

from ignis_auth.utils.logging import request_logger


def get_or_create_counter(name: str, description: str, labels: List[str]) -> Counter:
    """Get existing counter or create new one."""
    try:
        return Counter(name, description, labels)
    except ValueError as exc:
        # Metric already registered
        existing = getattr(REGISTRY, "_names_to_collectors", {}).get(name)
        if existing is None:
            raise ValueError(f"Counter {name} not found") from exc
        return cast(Counter, existing)


def get_or_create_histogram(name: str, description: str, labels: List[str]) -> Histogram:
    """Get existing histogram or create new one."""
    try:
        return Histogram(name, description, labels)
    except ValueError as exc:
        existing = getattr(REGISTRY, "_names_to_collectors", {}).get(name)
        if existing is None:
            raise ValueError(f"Histogram {name} not found") from exc
        return cast(Histogram, existing)


http_requests_total = get_or_create_counter(
    "ignis_http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"]
)

http_request_duration_seconds = get_or_create_histogram(
    "ignis_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)

auth_events_total = get_or_create_counter(
    "ignis_auth_events_total",
    "Authentication operations by channel and outcome",
    ["channel", "operation", "outcome"],
)


def record_auth_event(channel: str, operation: str, outcome: str) -> None:
    auth_events_total.labels(channel=channel, operation=operation, outcome=outcome).inc()


class MonitoringService:
    """Request metrics middleware and the /metrics endpoint."""

    def __init__(self, app: FastAPI):
        self.app = app

    def setup_monitoring(self) -> None:
        """Set up monitoring middleware and endpoints."""
        self.app.middleware("http")(self.monitoring_middleware)
        self.app.get("/metrics", tags=["monitoring"], include_in_schema=False)(
            self.metrics_endpoint
        )

    async def monitoring_middleware(self, request: Request, call_next: Callable) -> Response:
        """Middleware to collect request metrics."""
        start_time = time.time()
        request_data = request_logger.log_request(request)

        response: Response = await call_next(request)

        duration = time.time() - start_time
        # Route template keeps label cardinality bounded
        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")
        http_requests_total.labels(
            method=request.method, endpoint=endpoint, status=response.status_code
        ).inc()
        http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(
            duration
        )
        request_logger.log_response(request_data, response, duration)
        return response

    async def metrics_endpoint(self) -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def setup_monitoring(app: FastAPI) -> MonitoringService:
    service = MonitoringService(app)
    service.setup_monitoring()
    return service
