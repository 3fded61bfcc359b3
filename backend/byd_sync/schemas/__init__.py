# Pydantic request/response schemas (API contract).

from byd_sync.schemas.common import ErrorDetail, HealthResponse
from byd_sync.schemas.sync_log import SyncLogEntry, SyncLogListResponse
from byd_sync.schemas.sync_run import (
    EntitySyncResult,
    FailureReason,
    NormalizedRecord,
    RunState,
    SyncRunAccepted,
    SyncRunAcceptedBody,
    SyncRunReport,
)

__all__ = [
    "HealthResponse",
    "ErrorDetail",
    "SyncLogEntry",
    "SyncLogListResponse",
    "EntitySyncResult",
    "FailureReason",
    "NormalizedRecord",
    "RunState",
    "SyncRunAccepted",
    "SyncRunAcceptedBody",
    "SyncRunReport",
]
