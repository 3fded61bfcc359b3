"""
Supabase client: sync log (audit trail of delta sync runs).
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from supabase import Client, create_client

from byd_sync.core.config import get_settings

logger = logging.getLogger(__name__)

SYNC_LOG_TABLE = "sync_log"


class SyncLogError(Exception):
    """Raised when the sync log cannot be written or read."""


class SupabaseService:
    def __init__(self, client: Optional[Client] = None) -> None:
        if client is None:
            settings = get_settings()
            client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
        self.client: Client = client

    # -------------------------------------------------------------------------
    # Sync log (integration sync audit trail)
    # -------------------------------------------------------------------------

    async def insert_sync_log(
        self,
        source: str,
        action: str,
        status: str,
        started_at: datetime,
        finished_at: datetime,
        duration_ms: int,
        details: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Append a sync log entry. One row per delta sync run."""
        row: Dict[str, Any] = {
            "source": source,
            "action": action,
            "status": status,
            "started_at": started_at.isoformat().replace("+00:00", "Z"),
            "finished_at": finished_at.isoformat().replace("+00:00", "Z"),
            "duration_ms": duration_ms,
            "details": details,
            "metadata": metadata or {},
        }
        try:
            # supabase-py is synchronous; run the request in a worker thread
            response = await asyncio.to_thread(
                lambda: self.client.table(SYNC_LOG_TABLE).insert(row).execute()
            )
        except Exception as e:
            logger.error("Insert sync log error: %s", str(e))
            raise SyncLogError("Failed to record sync log") from e
        if response.data:
            out = dict(response.data[0])
            out["id"] = str(out["id"])
            return out
        return {"id": "", **row}

    def _select_sync_logs(
        self,
        status_filter: Optional[str],
        source_filter: Optional[str],
        limit: int,
        offset: int,
    ) -> Any:
        q = (
            self.client.table(SYNC_LOG_TABLE)
            .select(
                "id, source, action, status, started_at, finished_at, duration_ms, details, metadata, created_at",
                count="exact",
            )
            .order("created_at", desc=True)
        )
        if status_filter and status_filter != "all":
            q = q.eq("status", status_filter)
        if source_filter and source_filter != "all":
            q = q.eq("source", source_filter)
        return q.range(offset, offset + limit - 1).execute()

    async def list_sync_logs(
        self,
        status_filter: Optional[str] = None,
        source_filter: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Dict[str, Any]], int]:
        """
        List sync log entries, newest first. Returns (rows, total_count).
        Raises SyncLogError when the store cannot be read.
        """
        try:
            response = await asyncio.to_thread(
                self._select_sync_logs, status_filter, source_filter, limit, offset
            )
        except Exception as e:
            logger.error("List sync logs error: %s", str(e))
            raise SyncLogError("Failed to read sync log") from e
        rows = list(response.data or [])
        total = response.count if response.count is not None else len(rows)
        for r in rows:
            if r.get("id"):
                r["id"] = str(r["id"])
        return rows, total


def get_supabase_service() -> SupabaseService:
    """Dependency for FastAPI."""
    return SupabaseService()
