"""
Sync run schemas (API contract): normalized records, per-entity results, run reports.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RunState(str, Enum):
    PENDING = "pending"
    IDLE = "idle"
    LOADING_WATERMARK = "loading_watermark"
    FETCHING = "fetching"
    AGGREGATING = "aggregating"
    DONE = "done"
    FAILED = "failed"


class FailureReason(str, Enum):
    CONFIG_UNAVAILABLE = "config_unavailable"
    REMOTE_ERROR = "remote_error"
    AUTH_ERROR = "auth_error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class NormalizedRecord(BaseModel):
    """
    Canonical, entity-agnostic record. Raw source fields (minus __metadata) pass
    through as extra fields; serialize with by_alias=True for the wire shape.
    """
    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    generic_id: str = Field(..., alias="genericId")
    generic_type: str = Field(..., alias="genericType")
    created: datetime | None = None
    last_changed: datetime | None = Field(None, alias="lastChanged")
    updated: bool
    date_str: datetime | None = Field(None, alias="dateStr")


class EntitySyncResult(BaseModel):
    """Outcome of one entity pipeline: normalized records or a failure reason."""
    entity: str
    ok: bool
    records: list[NormalizedRecord] = []
    raw_count: int = 0
    dropped_count: int = 0
    failure_reason: FailureReason | None = None
    error: str | None = None
    duration_ms: int = 0


class SyncRunReport(BaseModel):
    """Per-run report across all configured entity types."""
    run_id: str
    state: RunState
    watermark: str | None = None
    failure_reason: FailureReason | None = None
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    entities: dict[str, EntitySyncResult] = {}

    @property
    def succeeded(self) -> bool:
        """Run reached Done and every entity pipeline succeeded."""
        return self.state == RunState.DONE and all(r.ok for r in self.entities.values())

    @property
    def record_count(self) -> int:
        return sum(len(r.records) for r in self.entities.values())

    def summary(self) -> dict[str, Any]:
        """Compact per-entity view for logs and the sync log metadata column."""
        return {
            "run_id": self.run_id,
            "state": self.state.value,
            "watermark": self.watermark,
            "failure_reason": self.failure_reason.value if self.failure_reason else None,
            "entities": {
                name: {
                    "ok": r.ok,
                    "records": len(r.records),
                    "dropped": r.dropped_count,
                    "failure_reason": r.failure_reason.value if r.failure_reason else None,
                }
                for name, r in self.entities.items()
            },
        }


class SyncRunAcceptedBody(BaseModel):
    message: str
    run_id: str


class SyncRunAccepted(BaseModel):
    """Immediate acknowledgment of a submitted run; completion is observed via status."""
    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(202, alias="statusCode")
    body: SyncRunAcceptedBody
