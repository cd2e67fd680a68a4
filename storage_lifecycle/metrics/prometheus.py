"""
Prometheus metrics for application monitoring.

This module defines all Prometheus metrics used throughout the engine:
- API request metrics (requests, duration, in-progress)
- Lifecycle job metrics (started, completed, failed, duration)
- Per-file lifecycle actions (delete, anonymize, transfer, retain)
- Storage operation and usage metrics
- Compliance and alert metrics
"""
from prometheus_client import Counter, Gauge, Histogram


# ============================================================================
# API Metrics
# ============================================================================

api_requests_total = Counter(
    "api_requests_total",
    "Total number of API requests",
    ["method", "endpoint", "status"],
)

api_request_duration_seconds = Histogram(
    "api_request_duration_seconds",
    "API request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

api_requests_in_progress = Gauge(
    "api_requests_in_progress",
    "Number of API requests currently being processed",
    ["method", "endpoint"],
)


# ============================================================================
# Lifecycle Job Metrics
# ============================================================================

lifecycle_jobs_started_total = Counter(
    "lifecycle_jobs_started_total",
    "Total number of lifecycle jobs started",
    ["job_type"],
)

lifecycle_jobs_completed_total = Counter(
    "lifecycle_jobs_completed_total",
    "Total number of lifecycle jobs completed",
    ["job_type", "partial"],
)

lifecycle_jobs_failed_total = Counter(
    "lifecycle_jobs_failed_total",
    "Total number of lifecycle jobs that failed",
    ["job_type"],
)

lifecycle_job_duration_seconds = Histogram(
    "lifecycle_job_duration_seconds",
    "Time taken to run a lifecycle job from start to completion",
    ["job_type"],
    buckets=[0.1, 0.5, 1, 5, 10, 30, 60, 300, 900, 3600],
)


# ============================================================================
# File Lifecycle Metrics
# ============================================================================

lifecycle_file_actions_total = Counter(
    "lifecycle_file_actions_total",
    "Per-file lifecycle actions by outcome",
    ["action", "outcome"],
)

lifecycle_bytes_deleted_total = Counter(
    "lifecycle_bytes_deleted_total",
    "Total bytes removed from the blob store by lifecycle jobs",
)

store_retries_total = Counter(
    "store_retries_total",
    "Transient store failures that were retried",
    ["store"],
)


# ============================================================================
# Storage Metrics
# ============================================================================

storage_operations_total = Counter(
    "storage_operations_total",
    "Total number of storage operations",
    ["operation", "status"],
)

storage_operation_duration_seconds = Histogram(
    "storage_operation_duration_seconds",
    "Duration of storage operations",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

storage_used_bytes = Gauge(
    "storage_used_bytes",
    "Total storage used across all files in the last aggregate",
)

storage_files_total = Gauge(
    "storage_files_total",
    "Total number of files in the last aggregate",
)

storage_monthly_cost_usd = Gauge(
    "storage_monthly_cost_usd",
    "Estimated monthly storage cost",
)


# ============================================================================
# Compliance & Alert Metrics
# ============================================================================

compliance_score = Gauge(
    "compliance_score",
    "Compliance score (percent) of the last global report",
)

compliance_violations_total = Counter(
    "compliance_violations_total",
    "Compliance violations detected",
    ["violation_type", "severity"],
)

storage_alerts_raised_total = Counter(
    "storage_alerts_raised_total",
    "Storage alerts created",
    ["alert_type", "severity"],
)

storage_alerts_active = Gauge(
    "storage_alerts_active",
    "Number of unresolved storage alerts",
)


# ============================================================================
# Application Info
# ============================================================================

app_info = Gauge(
    "app_info",
    "Application information",
    ["version"],
)

app_uptime_seconds = Gauge(
    "app_uptime_seconds",
    "Application uptime in seconds",
)


# ============================================================================
# Helper Functions
# ============================================================================

def record_api_request(method: str, endpoint: str, status_code: int, duration: float):
    """Record API request metrics."""
    api_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc()
    api_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)


def record_job_started(job_type: str):
    lifecycle_jobs_started_total.labels(job_type=job_type).inc()


def record_job_completed(job_type: str, duration_seconds: float, partial: bool = False):
    """Record job completion metrics."""
    lifecycle_jobs_completed_total.labels(job_type=job_type, partial=str(partial).lower()).inc()
    lifecycle_job_duration_seconds.labels(job_type=job_type).observe(duration_seconds)


def record_job_failed(job_type: str):
    lifecycle_jobs_failed_total.labels(job_type=job_type).inc()


def record_file_action(action: str, success: bool, bytes_deleted: int = 0):
    """Record one per-file lifecycle action."""
    lifecycle_file_actions_total.labels(action=action, outcome="success" if success else "failure").inc()
    if bytes_deleted:
        lifecycle_bytes_deleted_total.inc(bytes_deleted)


def record_store_retry(store: str):
    store_retries_total.labels(store=store).inc()


def record_storage_operation(operation: str, success: bool, duration: float):
    """Record storage operation metrics."""
    status = "success" if success else "failure"
    storage_operations_total.labels(operation=operation, status=status).inc()
    storage_operation_duration_seconds.labels(operation=operation).observe(duration)


def update_usage_metrics(total_files: int, total_bytes: int):
    storage_files_total.set(total_files)
    storage_used_bytes.set(total_bytes)


def update_cost_metrics(monthly_cost: float):
    storage_monthly_cost_usd.set(monthly_cost)


def record_compliance_report(score: float, violations):
    """Record compliance score and violation counts (iterable of (type, severity))."""
    compliance_score.set(score)
    for violation_type, severity in violations:
        compliance_violations_total.labels(violation_type=violation_type, severity=severity).inc()


def record_alert_raised(alert_type: str, severity: str):
    storage_alerts_raised_total.labels(alert_type=alert_type, severity=severity).inc()


def update_active_alerts(count: int):
    storage_alerts_active.set(count)
