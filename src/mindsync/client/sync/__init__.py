"""Sync engine for tracking data.

Architecture:
    SyncRequestCoordinator → SyncCoordinator → (ChangeDetectionService,
    FileMetadataManager, MergeCoordinator) → CloudStorageProvider

Components:
- **SyncCoordinator**: Single-flight orchestrator, current period then archive
- **ChangeDetectionService**: Pure decisions from dirty flags and remote checks
- **FileMetadataManager**: Cached revision handles per remote file
- **MergeCoordinator**: Payload validation and per-unit merge strategies
- **SyncRequestCoordinator**: Debounce, throttle, cooldown and priority of triggers
- **AutoSyncScheduler**: Periodic TIMER triggers

All public symbols are re-exported here.
"""

# types must be imported first: provider modules depend on it
from mindsync.client.sync.types import (
    DEFAULT_PRIORITIES,
    AuthenticationRequiredError,
    LocalFlags,
    MergeFailureError,
    NetworkConstraintError,
    NotFoundError,
    ProviderError,
    ProviderTransientError,
    RemoteChange,
    SyncError,
    SyncNeeds,
    SyncOutcome,
    SyncStatus,
    SyncUnit,
    TriggerPriority,
    TriggerSource,
    UnitOutcome,
    UnitStatus,
    UploadDecision,
)

from mindsync.client.sync.change_detection import ChangeDetectionService
from mindsync.client.sync.coordinator import (
    CURRENT_FILE_NAME,
    INDEX_FILE_NAME,
    SyncCoordinator,
    archive_file_name,
)
from mindsync.client.sync.merge import MergeCoordinator
from mindsync.client.sync.metadata import FileMetadataManager, compare_revisions
from mindsync.client.sync.retry import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    exponential_backoff,
    is_transient,
    linear_backoff,
    retry_with_backoff,
)
from mindsync.client.sync.scheduler import AutoSyncScheduler
from mindsync.client.sync.triggers import (
    RequestStatus,
    SyncRequestCoordinator,
    SyncRequestResult,
)

__all__ = [
    # Coordinators
    "AutoSyncScheduler",
    "ChangeDetectionService",
    "FileMetadataManager",
    "MergeCoordinator",
    "SyncCoordinator",
    "SyncRequestCoordinator",
    # File names
    "CURRENT_FILE_NAME",
    "INDEX_FILE_NAME",
    "archive_file_name",
    # Retry
    "DEFAULT_BASE_DELAY",
    "DEFAULT_MAX_ATTEMPTS",
    "exponential_backoff",
    "is_transient",
    "linear_backoff",
    "retry_with_backoff",
    # Errors
    "AuthenticationRequiredError",
    "MergeFailureError",
    "NetworkConstraintError",
    "NotFoundError",
    "ProviderError",
    "ProviderTransientError",
    "SyncError",
    # Outcomes and decisions
    "LocalFlags",
    "RemoteChange",
    "SyncNeeds",
    "SyncOutcome",
    "SyncStatus",
    "SyncUnit",
    "UnitOutcome",
    "UnitStatus",
    "UploadDecision",
    "compare_revisions",
    # Triggers
    "DEFAULT_PRIORITIES",
    "RequestStatus",
    "SyncRequestResult",
    "TriggerPriority",
    "TriggerSource",
]
