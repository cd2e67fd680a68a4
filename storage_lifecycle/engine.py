"""
Engine assembly.

Builds every lifecycle component once from an immutable Settings object
and wires them together.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from storage_lifecycle.core.blob_store import BlobStore, MinioBlobStore
from storage_lifecycle.core.cache import AggregateCache, CacheManager
from storage_lifecycle.core.config import Settings
from storage_lifecycle.db import MetadataStore, create_session_factory, init_db
from storage_lifecycle.services import AnalyticsAggregator, ComplianceReporter, CostEngine, HealthMonitor
from storage_lifecycle.storage import (
    Anonymizer,
    ContentScanner,
    DeletionExecutor,
    DeletionStrategyPlanner,
    ErasureService,
    FileClassifier,
    JobTracker,
    RetentionPolicyTable,
    RetentionScheduler,
    UploadService,
)

logger = logging.getLogger(__name__)


@dataclass
class LifecycleEngine:
    settings: Settings
    store: MetadataStore
    blob_store: BlobStore
    classifier: FileClassifier
    retention: RetentionPolicyTable
    anonymizer: Anonymizer
    jobs: JobTracker
    planner: DeletionStrategyPlanner
    executor: DeletionExecutor
    erasure: ErasureService
    scheduler: RetentionScheduler
    uploads: UploadService
    analytics: AnalyticsAggregator
    cost: CostEngine
    compliance: ComplianceReporter
    health: HealthMonitor
    db_engine: Optional[Engine] = None
    cache: Optional[CacheManager] = None

    async def shutdown(self) -> None:
        await self.erasure.wait_all()
        if self.db_engine is not None:
            self.db_engine.dispose()


def build_engine(
    settings: Settings,
    store: Optional[MetadataStore] = None,
    blob_store: Optional[BlobStore] = None,
    cache: Optional[CacheManager] = None,
    scanner: Optional[ContentScanner] = None,
) -> LifecycleEngine:
    """
    Assemble a LifecycleEngine.

    Args:
        settings: Application settings
        store: Metadata store (built from DATABASE_URL when omitted)
        blob_store: Blob store (MinIO from MINIO_* settings when omitted)
        cache: Redis cache (from REDIS_URL when omitted and configured)
        scanner: Content scanner for uploads

    Raises:
        ConfigurationError: Retention policy table is invalid
    """
    db_engine = None
    if store is None:
        db_engine, session_factory = create_session_factory(settings.DATABASE_URL, settings.DATABASE_POOL_SIZE)
        init_db(db_engine)
        store = MetadataStore(session_factory, offload=not settings.DATABASE_URL.startswith("sqlite"))
    if blob_store is None:
        blob_store = MinioBlobStore.from_settings(settings)
    if cache is None and settings.REDIS_URL:
        cache = CacheManager.from_url(settings.REDIS_URL, settings.CACHE_TTL_SECONDS)

    classifier = FileClassifier()
    retention = RetentionPolicyTable()
    retention.validate()
    anonymizer = Anonymizer(settings.ANONYMIZATION_KEY)
    jobs = JobTracker(store)

    aggregate_cache = AggregateCache(cache, settings.CACHE_TTL_SECONDS) if cache is not None else None
    analytics = AnalyticsAggregator(store, classifier, settings, aggregate_cache)

    planner = DeletionStrategyPlanner(store, classifier, retention, settings.PLATFORM_OWNER_ID)
    executor = DeletionExecutor(
        store,
        blob_store,
        classifier,
        retention,
        anonymizer,
        jobs,
        settings,
        on_data_changed=analytics.invalidate_cache,
    )
    erasure = ErasureService(planner, executor, jobs)
    scheduler = RetentionScheduler(store, blob_store, planner, executor, retention, jobs, settings)

    logger.info(f"Lifecycle engine built (cache {'enabled' if cache else 'disabled'})")
    return LifecycleEngine(
        settings=settings,
        store=store,
        blob_store=blob_store,
        classifier=classifier,
        retention=retention,
        anonymizer=anonymizer,
        jobs=jobs,
        planner=planner,
        executor=executor,
        erasure=erasure,
        scheduler=scheduler,
        uploads=UploadService(store, blob_store, settings, scanner, on_data_changed=analytics.invalidate_cache),
        analytics=analytics,
        cost=CostEngine(store, settings.PRICING),
        compliance=ComplianceReporter(store, classifier, retention),
        health=HealthMonitor(store, classifier, settings),
        db_engine=db_engine,
        cache=cache,
    )
