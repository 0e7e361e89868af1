"""
Telemetry and monitoring utilities.
"""
import logging
import time

from fastapi import FastAPI, Response
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST

logger = logging.getLogger(__name__)

# Metrics definitions
request_count = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

rate_limit_decisions = Counter(
    'rate_limit_decisions_total',
    'Rate gate decisions',
    ['route', 'allowed']
)

limiter_records = Gauge(
    'rate_limiter_records',
    'Limiter records currently held in memory'
)

escalations = Counter(
    'escalations_total',
    'Escalation requests by outcome',
    ['outcome']
)

stats_cache_lookups = Counter(
    'stats_cache_lookups_total',
    'Stats cache lookups',
    ['result']
)


def setup_telemetry(app: FastAPI) -> None:
    """
    Setup telemetry and monitoring for the application.

    Args:
        app: FastAPI application instance
    """
    logger.info("Setting up telemetry...")

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.middleware("http")
    async def track_requests(request, call_next):
        """Track HTTP request metrics."""
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time

        # Route template keeps label cardinality bounded
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        request_count.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()

        request_duration.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(duration)

        return response

    logger.info("Telemetry setup complete")


def track_rate_limit(route: str, allowed: bool) -> None:
    """Track a rate gate decision."""
    rate_limit_decisions.labels(route=route, allowed=str(allowed)).inc()


def track_escalation(outcome: str) -> None:
    """Track escalation outcome ('created' or 'existing')."""
    escalations.labels(outcome=outcome).inc()


def track_stats_cache(result: str) -> None:
    """Track stats cache lookups (HIT, MISS, STALE)."""
    stats_cache_lookups.labels(result=result).inc()


def update_limiter_records(count: int) -> None:
    limiter_records.set(count)
