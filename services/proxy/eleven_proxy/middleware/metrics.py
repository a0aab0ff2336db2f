"""Metrics for monitoring and observability"""

import re
import time

from fastapi import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

logger = structlog.get_logger(__name__)

# Prometheus metrics
REQUEST_COUNT = Counter(
    'eleven_proxy_http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code']
)

REQUEST_DURATION = Histogram(
    'eleven_proxy_http_request_duration_seconds',
    'Time until response headers are sent',
    ['method', 'endpoint']
)

RELAY_OUTCOMES = Counter(
    'eleven_proxy_relay_outcomes_total',
    'Relay results by error kind (ok for streamed audio)',
    ['outcome']
)

UPSTREAM_LATENCY = Histogram(
    'eleven_proxy_upstream_headers_seconds',
    'Time until upstream response headers arrive'
)

STREAMED_BYTES = Counter(
    'eleven_proxy_streamed_bytes_total',
    'Audio bytes relayed to callers'
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP metrics"""

    async def dispatch(self, request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        endpoint = self._normalize_endpoint(request.url.path)

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code
        ).inc()

        REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(duration)

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Collapse numeric path segments so label cardinality stays bounded"""
        return re.sub(r'/\d+', '/{id}', path)


def record_outcome(outcome: str):
    RELAY_OUTCOMES.labels(outcome=outcome).inc()


def record_streamed_bytes(count: int):
    STREAMED_BYTES.inc(count)


async def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
