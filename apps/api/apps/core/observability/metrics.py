"""
Metrics instrumentation.

Prometheus counters and histograms for HTTP traffic and the clinical
record engine.
"""
import logging
from functools import wraps
import time

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)


class MetricsRegistry:
    """
    Central metrics registry for the clinical records API.

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
        # Access Control Metrics
        # ===================================================================
        self.clinical_access_decisions_total = self._create_counter(
            'clinical_access_decisions_total',
            'Patient record access decisions',
            ['role', 'result']  # result: allowed|denied
        )

        # ===================================================================
        # Transfer Metrics
        # ===================================================================
        self.clinical_patient_transfers_total = self._create_counter(
            'clinical_patient_transfers_total',
            'Patient ownership transfers',
            ['result']  # success|denied|conflict|failure
        )

        self.clinical_patient_transfer_duration_seconds = self._create_histogram(
            'clinical_patient_transfer_duration_seconds',
            'Duration of the patient transfer transaction',
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
        )

        # ===================================================================
        # Audit Trail Metrics
        # ===================================================================
        self.clinical_audit_entries_total = self._create_counter(
            'clinical_audit_entries_total',
            'Audit trail entries written',
            ['action']
        )

        self.clinical_audit_write_failures_total = self._create_counter(
            'clinical_audit_write_failures_total',
            'Audit trail writes that failed and were discarded',
            ['action']
        )

        # ===================================================================
        # Session Versioning Metrics
        # ===================================================================
        self.clinical_session_updates_total = self._create_counter(
            'clinical_session_updates_total',
            'Versioned clinical session updates',
            ['result']  # success|conflict
        )

    def track_duration(self, histogram_metric):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.clinical_patient_transfer_duration_seconds)
            def _commit_transfer(...):
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    duration = time.time() - start_time
                    histogram_metric.observe(duration)
            return wrapper
        return decorator


# Global metrics instance
metrics = MetricsRegistry()
