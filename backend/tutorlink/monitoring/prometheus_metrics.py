"""
Prometheus metrics for TutorLink.

Everything lives in a private registry exposed at /metrics/prometheus.
Service timings are fed by ``BaseService.measure_operation``; the rest
are domain counters for bookings, lifecycle transitions, notifications
and reminders.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "tutorlink_service_operation_duration_seconds",
    "Time spent in measured service operations",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

service_errors_total = Counter(
    "tutorlink_service_errors_total",
    "Measured service operations that raised, by exception type",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_outcomes_total = Counter(
    "tutorlink_booking_outcomes_total",
    "Booking attempts by outcome",
    ["outcome"],  # booked | *_conflict | no_tutor | not_available | race_conflict | invalid
    registry=REGISTRY,
)

session_transitions_total = Counter(
    "tutorlink_session_transitions_total",
    "Lifecycle transitions applied to sessions",
    ["transition"],
    registry=REGISTRY,
)

notifications_total = Counter(
    "tutorlink_notifications_total",
    "Notifications written, by type and result",
    ["type", "status"],  # delivered | failed
    registry=REGISTRY,
)

reminders_sent_total = Counter(
    "tutorlink_reminders_sent_total",
    "Session reminders recorded in the ledger",
    ["kind"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade so callers never touch metric objects directly."""

    @staticmethod
    def record_service_operation(
        service: str, operation: str, duration: float, error_type: Optional[str] = None
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        if error_type:
            service_errors_total.labels(
                service=service, operation=operation, error_type=error_type
            ).inc()

    @staticmethod
    def inc_booking_outcome(outcome: str) -> None:
        booking_outcomes_total.labels(outcome=outcome).inc()

    @staticmethod
    def inc_session_transition(transition: str) -> None:
        session_transitions_total.labels(transition=transition).inc()

    @staticmethod
    def inc_notification(notification_type: str, status: str) -> None:
        notifications_total.labels(type=notification_type, status=status).inc()

    @staticmethod
    def inc_reminder_sent(kind: str) -> None:
        reminders_sent_total.labels(kind=kind).inc()

    @staticmethod
    def get_metrics() -> bytes:
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
