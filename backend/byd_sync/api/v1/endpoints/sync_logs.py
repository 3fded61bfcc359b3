"""
Sync log endpoints. List delta sync runs recorded in the sync_log table.
"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status as http_status

from byd_sync.core.security import require_sync_token
from byd_sync.schemas.common import ErrorDetail
from byd_sync.schemas.sync_log import SyncLogEntry, SyncLogListResponse
from byd_sync.services.supabase_service import SupabaseService, SyncLogError, get_supabase_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync-logs", tags=["sync-logs"], dependencies=[Depends(require_sync_token)])


@router.get(
    "",
    response_model=SyncLogListResponse,
    summary="List sync logs",
    description="Paginated list of sync log entries, newest first. Filter by status.",
    responses={503: {"model": ErrorDetail, "description": "Sync log store unavailable"}},
)
async def list_sync_logs(
    supabase: SupabaseService = Depends(get_supabase_service),
    status: Literal["all", "success", "error"] = Query("all", description="Filter by status"),
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
) -> SyncLogListResponse:
    """GET /api/v1/sync-logs: list sync log entries with optional status filter and pagination."""
    offset = (page - 1) * page_size
    try:
        rows, total = await supabase.list_sync_logs(
            status_filter=status if status != "all" else None,
            source_filter="byd",
            limit=page_size,
            offset=offset,
        )
    except SyncLogError as e:
        logger.warning("Sync log unavailable: %s", e)
        raise HTTPException(
            status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sync log unavailable",
        )
    entries = [
        SyncLogEntry(
            id=r["id"],
            source=r["source"],
            action=r["action"],
            status=r["status"],
            started_at=r["started_at"],
            finished_at=r["finished_at"],
            duration_ms=r["duration_ms"],
            details=r.get("details"),
            metadata=r.get("metadata") or {},
            created_at=r.get("created_at"),
        )
        for r in rows
    ]
    return SyncLogListResponse(
        entries=entries,
        total=total,
        page=page,
        page_size=page_size,
    )
