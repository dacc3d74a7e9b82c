"""
Prometheus counters for activation, PIN authentication and revocation.

Scraped from /metrics; labels never carry PINs, tokens or device IDs.
"""

from enum import Enum
from typing import Callable

from prometheus_client import Counter, Gauge, Histogram, Info

from licensegate.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    OUTCOME = "outcome"
    ROLE = "role"
    ERROR_TYPE = "error_type"


class LicenseGateMetrics:
    """
    Centralized metrics for the LicenseGate terminal API.

    Covers:
    - HTTP requests (rate, duration, in flight)
    - Activations by outcome
    - Logins and admin PIN re-verifications by outcome
    - Lockouts engaged
    - Revocations and rows removed
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "licensegate_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "licensegate_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "licensegate_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "licensegate_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # License Metrics
        # ====================================================================
        self.activations_total = Counter(
            "licensegate_activations_total",
            "Activation attempts by outcome (VALID or the rejection reason)",
            [MetricLabels.OUTCOME],
        )

        self.codes_issued_total = Counter(
            "licensegate_codes_issued_total",
            "Activation codes issued",
        )

        self.revocations_total = Counter(
            "licensegate_revocations_total",
            "Revocation attempts",
            ["scope", "success"],
        )

        self.revocation_rows_deleted_total = Counter(
            "licensegate_revocation_rows_deleted_total",
            "Operational rows deleted by revocation",
            ["table"],
        )

        # ====================================================================
        # Credential Metrics
        # ====================================================================
        self.logins_total = Counter(
            "licensegate_logins_total",
            "PIN login attempts",
            [MetricLabels.ROLE, MetricLabels.OUTCOME],
        )

        self.admin_pin_verifications_total = Counter(
            "licensegate_admin_pin_verifications_total",
            "Admin PIN re-verifications",
            [MetricLabels.OPERATION, MetricLabels.OUTCOME],
        )

        self.lockouts_total = Counter(
            "licensegate_lockouts_total",
            "Lockouts engaged after repeated failures",
            ["tier"],
        )

        self.pin_hash_duration_seconds = Histogram(
            "licensegate_pin_hash_duration_seconds",
            "Time spent hashing or verifying a PIN",
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "licensegate_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_activation(self, outcome: str) -> None:
        """Record an activation attempt."""
        self.activations_total.labels(outcome=outcome).inc()

    def record_login(self, role: str, success: bool) -> None:
        """Record a login attempt."""
        self.logins_total.labels(role=role, outcome="success" if success else "failure").inc()

    def record_admin_pin_check(self, operation: str, success: bool) -> None:
        """Record an admin PIN re-verification."""
        self.admin_pin_verifications_total.labels(
            operation=operation, outcome="success" if success else "failure"
        ).inc()

    def record_lockout(self, tier: str) -> None:
        """Record a lockout being engaged."""
        self.lockouts_total.labels(tier=tier).inc()

    def record_revocation(
        self, scope: str, success: bool, deleted: tuple[tuple[str, int], ...] = ()
    ) -> None:
        """Record a revocation and the rows it removed."""
        self.revocations_total.labels(scope=scope, success=str(success)).inc()
        for table, count in deleted:
            self.revocation_rows_deleted_total.labels(table=table).inc(count)

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = LicenseGateMetrics()


def get_metrics_handler() -> Callable[[], bytes]:
    """Get the Prometheus exposition handler for the /metrics endpoint."""
    from prometheus_client import REGISTRY, generate_latest

    def metrics_endpoint() -> bytes:
        return generate_latest(REGISTRY)

    return metrics_endpoint
