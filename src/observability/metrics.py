"""Prometheus metric definitions for GRC portal self-instrumentation.

All metrics are module-level singletons registered with the default
prometheus_client registry.  Import them wherever instrumentation is needed.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# ---------------------------------------------------------------------------
# Histogram bucket definitions
# ---------------------------------------------------------------------------

REQUEST_DURATION_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 15.0)

# ---------------------------------------------------------------------------
# Request-level metrics
# ---------------------------------------------------------------------------

REQUEST_DURATION = Histogram(
    "grc_portal_request_duration_seconds",
    "End-to-end request duration in seconds",
    labelnames=["endpoint"],
    buckets=REQUEST_DURATION_BUCKETS,
)

REQUESTS_TOTAL = Counter(
    "grc_portal_requests_total",
    "Total number of requests",
    labelnames=["endpoint", "status"],
)

# ---------------------------------------------------------------------------
# Storage metrics (populated by the storage client)
# ---------------------------------------------------------------------------

STORAGE_ERRORS_TOTAL = Counter(
    "grc_portal_storage_errors_total",
    "Total number of failed storage requests",
    labelnames=["table"],
)

# ---------------------------------------------------------------------------
# Report metrics
# ---------------------------------------------------------------------------

REPORTS_TOTAL = Counter(
    "grc_portal_reports_total",
    "Total number of report refreshes",
    labelnames=["status"],
)

SECURITY_SCORE = Gauge(
    "grc_portal_security_score",
    "Security score of the most recently computed report snapshot",
)

# ---------------------------------------------------------------------------
# Health / info metrics
# ---------------------------------------------------------------------------

COMPONENT_HEALTHY = Gauge(
    "grc_portal_component_healthy",
    "Whether a dependency component is healthy (1=healthy, 0=unhealthy)",
    labelnames=["component"],
)

APP_INFO = Info(
    "grc_portal",
    "GRC portal build information",
)
