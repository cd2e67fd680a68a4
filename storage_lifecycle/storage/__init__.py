"""
Storage Lifecycle Module

This module provides the lifecycle core of the engine:
- File classification and retention policies
- Erasure planning and execution with job tracking
- Scheduled temp-file, retention and orphan cleanup
- Upload validation and registration
"""

from .classification import FileClassifier, KIND_CLASSIFICATION
from .retention import RetentionPolicyTable, RetentionPolicy, LegalRetention
from .anonymization import Anonymizer
from .planner import DeletionStrategyPlanner, DeletionStrategy
from .jobs import JobTracker
from .executor import DeletionExecutor, FileOutcome
from .erasure import ErasureService, ErasureHandle
from .scheduler import RetentionScheduler
from .uploads import UploadService, ContentScanner, NoopContentScanner

__all__ = [
    # Classification & retention
    'FileClassifier',
    'KIND_CLASSIFICATION',
    'RetentionPolicyTable',
    'RetentionPolicy',
    'LegalRetention',
    'Anonymizer',

    # Erasure
    'DeletionStrategyPlanner',
    'DeletionStrategy',
    'JobTracker',
    'DeletionExecutor',
    'FileOutcome',
    'ErasureService',
    'ErasureHandle',

    # Scheduled cleanup
    'RetentionScheduler',

    # Uploads
    'UploadService',
    'ContentScanner',
    'NoopContentScanner',
]
