"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Registration metrics
registration_attempts = Counter(
    'registration_attempts_total',
    'Total event registration attempts',
    ['result']  # success, conflict, sold_out, invalid
)

tickets_issued = Counter(
    'tickets_issued_total',
    'Tickets issued',
    ['source']  # direct, team
)

# Attendance metrics
attendance_scans = Counter(
    'attendance_scans_total',
    'QR scans at the gate',
    ['result']  # accepted, duplicate, invalid_status, unknown
)

manual_overrides = Counter(
    'attendance_manual_overrides_total',
    'Manual attendance overrides applied by organizers'
)

# Team metrics
team_completions = Counter(
    'team_completions_total',
    'Teams that reached their target size'
)

team_join_retries = Counter(
    'team_join_retry_attempts_total',
    'Team join retries due to version conflicts'
)

# Chat metrics
chat_messages = Counter(
    'chat_messages_total',
    'Chat messages persisted and fanned out'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_registration(result: str):
    """Record a registration attempt. Result: success, conflict, sold_out, invalid"""
    registration_attempts.labels(result=result).inc()


def record_scan(result: str):
    attendance_scans.labels(result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
