"""
Prometheus metrics for the reservation engine.
Exposed at /metrics.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

booking_attempts = Counter(
    'booking_attempts_total',
    'Booking creation attempts',
    ['kind', 'status']  # kind: non_seated/seated/pre_reserve, status: success/conflict/rejected
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking write latency',
    ['kind'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

seat_conflicts = Counter(
    'seat_conflicts_total',
    'Seat reservations rejected because the seat was already taken',
    ['stage']  # advisory: caught by the pre-check, constraint: caught by the unique index
)

booking_status_transitions = Counter(
    'booking_status_transitions_total',
    'Booking status transitions',
    ['from_status', 'to_status']
)

booking_number_fallbacks = Counter(
    'booking_number_fallbacks_total',
    'Booking numbers produced by the time-derived fallback'
)

booking_assignments = Counter(
    'booking_assignments_total',
    'Pre-reserved booking assignments',
    ['result']  # linked, created_user, failed
)

guest_users_deleted = Counter(
    'guest_users_deleted_total',
    'Guest users removed after losing their last booking'
)

worker_assignments = Counter(
    'worker_assignments_total',
    'Worker to schedule assignment attempts',
    ['result']  # created, already_assigned
)

cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(kind: str, status: str):
    """Status: success, conflict, rejected"""
    booking_attempts.labels(kind=kind, status=status).inc()


def record_seat_conflict(stage: str):
    seat_conflicts.labels(stage=stage).inc()


def record_transition(from_status: str, to_status: str):
    booking_status_transitions.labels(from_status=from_status, to_status=to_status).inc()


def record_assignment(result: str):
    booking_assignments.labels(result=result).inc()


def record_worker_assignment(created: bool):
    worker_assignments.labels(result="created" if created else "already_assigned").inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
