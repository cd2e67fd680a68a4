"""
Metrics module for application monitoring.

This module provides Prometheus metrics collection and helper functions.
"""
from storage_lifecycle.metrics.prometheus import (
    # API Metrics
    api_requests_total,
    api_request_duration_seconds,
    api_requests_in_progress,

    # Lifecycle Metrics
    lifecycle_jobs_started_total,
    lifecycle_jobs_completed_total,
    lifecycle_jobs_failed_total,
    lifecycle_job_duration_seconds,
    lifecycle_file_actions_total,
    lifecycle_bytes_deleted_total,
    store_retries_total,

    # Storage Metrics
    storage_operations_total,
    storage_operation_duration_seconds,
    storage_used_bytes,
    storage_files_total,
    storage_monthly_cost_usd,

    # Compliance & Alerts
    compliance_score,
    compliance_violations_total,
    storage_alerts_raised_total,
    storage_alerts_active,

    # Application Info
    app_info,
    app_uptime_seconds,

    # Helper Functions
    record_api_request,
    record_job_started,
    record_job_completed,
    record_job_failed,
    record_file_action,
    record_store_retry,
    record_storage_operation,
    update_usage_metrics,
    update_cost_metrics,
    record_compliance_report,
    record_alert_raised,
    update_active_alerts,
)

__all__ = [
    "api_requests_total",
    "api_request_duration_seconds",
    "api_requests_in_progress",
    "lifecycle_jobs_started_total",
    "lifecycle_jobs_completed_total",
    "lifecycle_jobs_failed_total",
    "lifecycle_job_duration_seconds",
    "lifecycle_file_actions_total",
    "lifecycle_bytes_deleted_total",
    "store_retries_total",
    "storage_operations_total",
    "storage_operation_duration_seconds",
    "storage_used_bytes",
    "storage_files_total",
    "storage_monthly_cost_usd",
    "compliance_score",
    "compliance_violations_total",
    "storage_alerts_raised_total",
    "storage_alerts_active",
    "app_info",
    "app_uptime_seconds",
    "record_api_request",
    "record_job_started",
    "record_job_completed",
    "record_job_failed",
    "record_file_action",
    "record_store_retry",
    "record_storage_operation",
    "update_usage_metrics",
    "update_cost_metrics",
    "record_compliance_report",
    "record_alert_raised",
    "update_active_alerts",
]
