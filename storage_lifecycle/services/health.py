"""
Health Monitor

Evaluates quota, error, security, compliance and job-failure conditions
and persists them as alerts. Each condition has a fingerprint; a repeated
scan refreshes the active alert for it instead of creating a duplicate.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.metrics import record_alert_raised, update_active_alerts
from storage_lifecycle.models import StorageAlert
from storage_lifecycle.models.enums import AlertType, Classification, JobStatus, Severity

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(hours=24)


class HealthMonitor:
    """
    Storage health checks.

    Checks:
    - Per-owner quota usage (warning / critical thresholds)
    - Failed storage operations in the last 24 hours
    - Personal files that are publicly accessible
    - Unresolved critical compliance violations
    - Lifecycle jobs that failed in the last 24 hours
    """

    def __init__(self, store, classifier, settings):
        self.store = store
        self.classifier = classifier
        self.default_quota_bytes = settings.default_quota_bytes
        self.warning_percent = settings.QUOTA_WARNING_PERCENT
        self.critical_percent = settings.QUOTA_CRITICAL_PERCENT
        self.error_threshold = settings.ERROR_ALERT_THRESHOLD

    async def _raise(self, fingerprint: str, now: datetime, **fields) -> StorageAlert:
        alert, created = await self.store.upsert_alert(fingerprint, fields, now)
        if created:
            record_alert_raised(alert.alert_type, alert.severity)
            logger.warning(f"Alert raised [{alert.severity}] {alert.title}: {alert.description}")
        return alert

    async def check_quotas(self, now: datetime) -> List[StorageAlert]:
        alerts = []
        for summary in await self.store.list_usage():
            percent = summary.usage_percentage(self.default_quota_bytes)
            if percent < self.warning_percent:
                continue
            severity = Severity.CRITICAL if percent >= self.critical_percent else Severity.WARNING
            alerts.append(await self._raise(
                f"quota:{summary.owner_id}",
                now,
                alert_type=AlertType.QUOTA.value,
                severity=severity.value,
                title="Storage Quota Warning",
                description=f"Owner {summary.owner_id} is using {percent:.1f}% of their storage quota",
                affected_resources=[summary.owner_id],
                recommendations=[
                    "Delete unnecessary files",
                    "Move old files to cold storage",
                    "Consider upgrading storage plan",
                ],
            ))
        return alerts

    async def check_errors(self, now: datetime) -> List[StorageAlert]:
        failures = await self.store.list_operation_logs(since=now - RECENT_WINDOW, until=now, errors_only=True)
        if len(failures) <= self.error_threshold:
            return []
        return [await self._raise(
            "performance:errors",
            now,
            alert_type=AlertType.PERFORMANCE.value,
            severity=Severity.HIGH.value,
            title="Performance Degradation Detected",
            description=f"{len(failures)} storage operations failed in the last 24 hours",
            affected_resources=sorted({f.path for f in failures if f.path}),
            recommendations=["Review error logs", "Consider reducing load"],
        )]

    async def check_public_personal(self, now: datetime) -> List[StorageAlert]:
        alerts = []
        for record in await self.store.list_files():
            if not record.is_public or self.classifier.classify(record) != Classification.PERSONAL:
                continue
            alerts.append(await self._raise(
                f"security:public_personal:{record.id}",
                now,
                alert_type=AlertType.SECURITY.value,
                severity=Severity.CRITICAL.value,
                title="Personal Data Publicly Accessible",
                description=f"Personal file {record.path} is publicly accessible",
                affected_resources=[record.id, record.path],
                recommendations=["Make the file private", "Review access controls for personal data"],
            ))
        return alerts

    async def check_compliance(self, now: datetime) -> List[StorageAlert]:
        critical = await self.store.list_violations(severity=Severity.CRITICAL, unresolved_only=True)
        if not critical:
            return []
        resources = sorted({p for v in critical for p in (v.affected_paths or [])})
        return [await self._raise(
            "compliance:critical_violations",
            now,
            alert_type=AlertType.COMPLIANCE.value,
            severity=Severity.CRITICAL.value,
            title="Critical Compliance Violations",
            description=f"{len(critical)} critical compliance violations are unresolved",
            affected_resources=resources,
            recommendations=[
                "Delete or anonymize expired files",
                "Run retention enforcement",
            ],
        )]

    async def check_failed_jobs(self, now: datetime) -> List[StorageAlert]:
        alerts = []
        failed = await self.store.list_jobs(status=JobStatus.FAILED, completed_from=now - RECENT_WINDOW)
        for job in failed:
            alerts.append(await self._raise(
                f"jobs:failed:{job.id}",
                now,
                alert_type=AlertType.COMPLIANCE.value,
                severity=Severity.HIGH.value,
                title="Lifecycle Job Failed",
                description=f"{job.job_type} job for {job.target_id} failed: {job.error_message or 'unknown error'}",
                affected_resources=[job.id, job.target_id],
                recommendations=["Inspect the job errors and re-run it"],
            ))
        return alerts

    async def run_checks(self, now: Optional[datetime] = None) -> List[StorageAlert]:
        """Run every check; returns the alerts raised or refreshed by this scan."""
        now = now or utcnow()
        alerts: List[StorageAlert] = []
        alerts.extend(await self.check_quotas(now))
        alerts.extend(await self.check_errors(now))
        alerts.extend(await self.check_public_personal(now))
        alerts.extend(await self.check_compliance(now))
        alerts.extend(await self.check_failed_jobs(now))

        update_active_alerts(len(await self.store.list_alerts(active_only=True)))
        logger.info(f"Health scan finished with {len(alerts)} alerts")
        return alerts

    async def system_health(self) -> dict:
        active = await self.store.list_alerts(active_only=True)
        if any(a.severity == Severity.CRITICAL.value for a in active):
            status = "critical"
        elif active:
            status = "warning"
        else:
            status = "healthy"
        return {
            "status": status,
            "active_alerts": len(active),
            "issues": [f"[{a.severity}] {a.title}: {a.description}" for a in active],
        }

    async def resolve_alert(self, alert_id: str) -> StorageAlert:
        alert = await self.store.resolve_alert(alert_id, utcnow())
        update_active_alerts(len(await self.store.list_alerts(active_only=True)))
        logger.info(f"Resolved alert {alert_id}")
        return alert
