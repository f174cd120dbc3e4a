"""
Metrics instrumentation.

Wraps prometheus_client collectors in a single typed registry.
"""
import logging
import time
from functools import wraps

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)


class MetricsRegistry:
    """
    Central metrics registry for the Prontu API.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        """Initialize metrics registry."""
        self._setup_metrics()

    def _create_counter(self, name, description, labels=None):
        """Create a counter metric."""
        return Counter(name, description, labels or [])

    def _create_histogram(self, name, description, labels=None, buckets=None):
        """Create a histogram metric."""
        if buckets:
            return Histogram(name, description, labels or [], buckets=buckets)
        return Histogram(name, description, labels or [])

    def _setup_metrics(self):
        """Setup all application metrics."""

        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.http_requests_total = self._create_counter(
            'http_requests_total',
            'Total HTTP requests',
            ['path', 'method', 'status']
        )

        self.http_request_duration_seconds = self._create_histogram(
            'http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['path', 'method'],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
        )

        self.exceptions_total = self._create_counter(
            'exceptions_total',
            'Total exceptions',
            ['exception_type', 'location']
        )

        # ===================================================================
        # Scheduling Metrics
        # ===================================================================
        self.appointments_materialized_total = self._create_counter(
            'appointments_materialized_total',
            'Appointments created from patient recurrence'
        )

        self.appointment_reconciliation_failures_total = self._create_counter(
            'appointment_reconciliation_failures_total',
            'Recurring appointment materialization failures'
        )

        self.appointment_rejections_total = self._create_counter(
            'appointment_rejections_total',
            'Appointment writes rejected by scheduling rules',
            ['reason']  # patient_day_taken, slot_taken
        )

        self.appointment_status_changes_total = self._create_counter(
            'appointment_status_changes_total',
            'Appointment status changes',
            ['from_status', 'to_status']
        )

        self.appointment_deletions_total = self._create_counter(
            'appointment_deletions_total',
            'Appointments deleted'
        )

        self.agenda_build_duration_seconds = self._create_histogram(
            'agenda_build_duration_seconds',
            'Weekly agenda aggregation duration',
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5]
        )

        # ===================================================================
        # Patient Metrics
        # ===================================================================
        self.patient_activation_total = self._create_counter(
            'patient_activation_total',
            'Patient activation and deactivation attempts',
            ['action', 'result']  # action: activate|deactivate, result: success|failure
        )

    def track_duration(self, histogram_metric):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.agenda_build_duration_seconds)
            def build_week(...):
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    histogram_metric.observe(time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics = MetricsRegistry()
