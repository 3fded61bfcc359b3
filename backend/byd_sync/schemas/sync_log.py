"""Sync log schema (API contract). One entry per delta sync run."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class SyncLogEntry(BaseModel):
    """Single sync log entry; metadata holds the run summary (per-entity counts)."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    source: str
    action: str
    status: Literal["success", "error"]
    started_at: str
    finished_at: str
    duration_ms: int
    details: str | None = None
    metadata: dict[str, Any] = {}
    created_at: str | None = None


class SyncLogListResponse(BaseModel):
    """Paginated sync log list."""
    entries: list[SyncLogEntry]
    total: int
    page: int
    page_size: int
