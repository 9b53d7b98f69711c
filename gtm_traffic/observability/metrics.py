"""Prometheus metric definitions for datasource self-instrumentation.

All metrics are module-level singletons registered with the default
prometheus_client registry.  Import them wherever instrumentation is needed.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# ---------------------------------------------------------------------------
# Histogram bucket definitions
# ---------------------------------------------------------------------------

REQUEST_DURATION_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 15.0, 30.0)
QUERY_DURATION_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 15.0)
REPORT_ROW_BUCKETS = (0, 12, 48, 288, 672, 2016, 8064)

# ---------------------------------------------------------------------------
# HTTP front end
# ---------------------------------------------------------------------------

REQUEST_DURATION = Histogram(
    "gtm_traffic_request_duration_seconds",
    "End-to-end request duration in seconds",
    labelnames=["endpoint"],
    buckets=REQUEST_DURATION_BUCKETS,
)

REQUESTS_TOTAL = Counter(
    "gtm_traffic_requests_total",
    "Total number of requests",
    labelnames=["endpoint", "status"],
)

# ---------------------------------------------------------------------------
# Per-query pipeline
# ---------------------------------------------------------------------------

QUERIES_TOTAL = Counter(
    "gtm_traffic_queries_total",
    "Total number of processed queries",
    labelnames=["status", "kind"],
)

QUERY_DURATION = Histogram(
    "gtm_traffic_query_duration_seconds",
    "Duration of a single query from validation to series, in seconds",
    buckets=QUERY_DURATION_BUCKETS,
)

# ---------------------------------------------------------------------------
# Reporting API calls
# ---------------------------------------------------------------------------

REPORT_API_CALLS_TOTAL = Counter(
    "gtm_traffic_report_api_calls_total",
    "Total number of reporting API calls",
    labelnames=["method", "status"],
)

REPORT_ROWS = Histogram(
    "gtm_traffic_report_rows",
    "Rows returned per report-data response",
    buckets=REPORT_ROW_BUCKETS,
)

# ---------------------------------------------------------------------------
# Health / info metrics
# ---------------------------------------------------------------------------

DATASOURCE_HEALTHY = Gauge(
    "gtm_traffic_datasource_healthy",
    "Result of the last health check (1=working, 0=failed)",
)

APP_INFO = Info(
    "gtm_traffic",
    "GTM traffic datasource build information",
)
