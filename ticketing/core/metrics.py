"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
reservation_attempts = Counter(
    'reservation_attempts_total',
    'Total inventory reservation attempts',
    ['status']  # success, conflict, rejected, error
)

reservation_latency = Histogram(
    'reservation_latency_seconds',
    'Inventory reservation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

reservation_transitions = Counter(
    'reservation_transitions_total',
    'Reservation lifecycle transitions',
    ['to_status']  # released, expired, converted
)

# Inventory gate metrics
gate_decisions = Counter(
    'inventory_gate_decisions_total',
    'Inventory gate decisions',
    ['result']  # admitted, rejected
)

# Order / payment metrics
orders_total = Counter(
    'orders_total',
    'Order status changes',
    ['status']  # pending, paid, failed, cancelled
)

payment_webhooks = Counter(
    'payment_webhooks_total',
    'Payment provider webhook deliveries',
    ['event']
)

db_retries = Counter(
    'db_retry_attempts_total',
    'Database retry attempts due to version conflicts'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation_attempt(status: str):
    """Record reservation attempt. Status: success, conflict, rejected, error"""
    reservation_attempts.labels(status=status).inc()


def record_reservation_transition(to_status: str, count: int = 1):
    if count:
        reservation_transitions.labels(to_status=to_status).inc(count)


def record_gate_decision(admitted: bool):
    """Record inventory gate decision."""
    result = "admitted" if admitted else "rejected"
    gate_decisions.labels(result=result).inc()


def record_order_status(status: str):
    orders_total.labels(status=status.lower()).inc()


def record_webhook(event: str):
    payment_webhooks.labels(event=event or "unknown").inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()


# HTTP metrics
http_requests = Counter(
    'http_requests_total',
    'HTTP requests by route template and status code',
    ['method', 'route', 'status_code']
)

http_request_latency = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency by route template',
    ['method', 'route'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)


def record_http_request(method: str, route: str, status_code: int, seconds: float):
    http_requests.labels(method=method, route=route, status_code=str(status_code)).inc()
    http_request_latency.labels(method=method, route=route).observe(seconds)
