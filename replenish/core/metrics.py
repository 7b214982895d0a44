"""Prometheus metrics exposed on /metrics.

HTTP series are labelled by route template, never by raw path.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# HTTP
http_requests_total = Counter(
    "replenish_http_requests_total",
    "HTTP requests served",
    ["method", "route", "status"],
)

http_request_duration_seconds = Histogram(
    "replenish_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "route"],
    buckets=[0.005, 0.025, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

http_requests_in_progress = Gauge(
    "replenish_http_requests_in_progress",
    "HTTP requests currently being served",
    ["method"],
)

# Pipeline
sales_rollup_rebuilds_total = Counter(
    "replenish_sales_rollup_rebuilds_total",
    "Total daily sales rollup rebuilds",
    ["status"],  # status: success, failed
)

buffers_updated_total = Counter(
    "replenish_buffers_updated_total",
    "Total buffer rows upserted by recalculation",
)

buffer_recalc_duration_seconds = Histogram(
    "replenish_buffer_recalc_duration_seconds",
    "Buffer recalculation duration per warehouse",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0],
)

recommendations_served_total = Counter(
    "replenish_recommendations_served_total",
    "Total recommendation rows served",
    ["zone"],  # zone: red, yellow, green
)

ingest_rows_total = Counter(
    "replenish_ingest_rows_total",
    "Total rows upserted by ingestion",
    ["entity"],
)

# Scheduler
scheduler_jobs_total = Counter(
    "replenish_scheduler_jobs_total",
    "Scheduled job runs",
    ["job_name", "status"],  # status: success, failed
)

scheduler_job_duration_seconds = Histogram(
    "replenish_scheduler_job_duration_seconds",
    "Wall time of a scheduled job run",
    ["job_name"],
    buckets=[0.1, 1.0, 5.0, 30.0, 60.0, 300.0, 900.0],
)

# Process
app_uptime_seconds = Gauge(
    "replenish_app_uptime_seconds",
    "Seconds since the process started",
)

app_info = Gauge(
    "replenish_app_info",
    "Build and environment labels",
    ["version", "environment"],
)

# Errors
errors_total = Counter(
    "replenish_errors_total",
    "Domain errors by type and component",
    ["error_type", "component"],
)

tenant_violations_total = Counter(
    "replenish_tenant_violations_total",
    "Requests rejected for org scope violations",
    ["error_type"],  # error_type: mismatch, missing_org_id, invalid_key
)