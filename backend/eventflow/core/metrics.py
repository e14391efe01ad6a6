"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, insufficient_capacity, not_found, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking creation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_cancellations = Counter(
    'booking_cancellations_total',
    'Bookings cancelled',
    ['actor']  # owner, admin
)

seat_release_skipped = Counter(
    'seat_release_skipped_total',
    'Cancellations whose seats could not be returned to a slot',
    ['reason']  # slot_missing, capacity_clamped
)

# Payment metrics
payment_transitions = Counter(
    'payment_transitions_total',
    'Booking payment state transitions',
    ['source', 'result']  # client/webhook/admin, confirmed/already_confirmed/failed
)

webhook_deliveries = Counter(
    'payment_webhook_deliveries_total',
    'Verified payment webhook deliveries',
    ['outcome']  # confirmed, payment_failed, duplicate, noop, ignored
)

provider_errors = Counter(
    'payment_provider_errors_total',
    'Payment provider call failures',
    ['operation', 'reason']  # create_intent/retrieve_intent, timeout/unavailable
)

# Side effects
notification_failures = Counter(
    'notification_failures_total',
    'Notification deliveries that raised',
    ['kind']
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, insufficient_capacity, not_found, error"""
    booking_attempts.labels(status=status).inc()


def record_payment_transition(source: str, result: str):
    payment_transitions.labels(source=source, result=result).inc()


def record_webhook(outcome: str):
    webhook_deliveries.labels(outcome=outcome).inc()


# HTTP
http_requests = Counter(
    'http_requests_total',
    'HTTP requests by method and status class',
    ['method', 'status']  # 2xx, 4xx, 5xx
)


def record_http_request(method: str, status_code: int):
    http_requests.labels(method=method, status=f"{status_code // 100}xx").inc()
