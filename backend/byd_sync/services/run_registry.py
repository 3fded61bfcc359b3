"""
Submitted sync runs: accept immediately, run in the background, query status later.
Completed reports are logged and published to the sync log.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from byd_sync.core.config import get_settings
from byd_sync.schemas.sync_run import FailureReason, RunState, SyncRunReport
from byd_sync.services.supabase_service import SupabaseService, SyncLogError
from byd_sync.services.sync_orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

SYNC_LOG_SOURCE = "byd"
SYNC_LOG_ACTION = "delta_sync"


class RunRegistry:
    def __init__(self, sync_log: Optional[SupabaseService] = None, history: int = 50) -> None:
        self._sync_log = sync_log
        self._history = history
        self._reports: "OrderedDict[str, SyncRunReport]" = OrderedDict()
        self._active: dict[str, SyncOrchestrator] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def submit(self, orchestrator: SyncOrchestrator) -> SyncRunReport:
        """Schedule orchestrator.run() on the running loop; returns the pending report at once."""
        run_id = orchestrator.run_id
        if run_id in self._active or run_id in self._reports:
            raise ValueError(f"Run {run_id} already submitted")
        self._active[run_id] = orchestrator
        self._tasks[run_id] = asyncio.create_task(self._execute(orchestrator), name=f"byd-sync-run-{run_id}")
        logger.info("Run %s submitted", run_id)
        return SyncRunReport(run_id=run_id, state=RunState.PENDING)

    def status(self, run_id: str) -> Optional[SyncRunReport]:
        """Final report when finished, a progress report while running, None if unknown."""
        if run_id in self._reports:
            return self._reports[run_id]
        orchestrator = self._active.get(run_id)
        if orchestrator is None:
            return None
        state = orchestrator.state
        return SyncRunReport(
            run_id=run_id,
            state=RunState.PENDING if state == RunState.IDLE else state,
            started_at=orchestrator.started_at,
        )

    async def wait(self, run_id: str) -> Optional[SyncRunReport]:
        """Block until a submitted run finishes and return its report."""
        task = self._tasks.get(run_id)
        if task is not None:
            await asyncio.shield(task)
        return self._reports.get(run_id)

    async def shutdown(self) -> None:
        """Cancel in-flight runs (app shutdown)."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _execute(self, orchestrator: SyncOrchestrator) -> None:
        run_id = orchestrator.run_id
        try:
            report = await orchestrator.run()
        except asyncio.CancelledError:
            self._store(SyncRunReport(
                run_id=run_id,
                state=RunState.FAILED,
                failure_reason=FailureReason.CANCELLED,
                error="Run cancelled",
                started_at=orchestrator.started_at,
                finished_at=datetime.now(timezone.utc),
            ))
            raise
        except Exception as e:
            logger.exception("Run %s crashed", run_id)
            report = SyncRunReport(
                run_id=run_id,
                state=RunState.FAILED,
                error=str(e),
                started_at=orchestrator.started_at,
                finished_at=datetime.now(timezone.utc),
            )
        finally:
            self._active.pop(run_id, None)
            self._tasks.pop(run_id, None)
        self._store(report)
        await self.publish(report)

    def _store(self, report: SyncRunReport) -> None:
        self._reports[report.run_id] = report
        while len(self._reports) > self._history:
            self._reports.popitem(last=False)

    async def publish(self, report: SyncRunReport) -> None:
        """Log the report and append it to the sync log. Publishing never alters the report."""
        logger.info("Run %s finished: %s", report.run_id, report.summary())
        if self._sync_log is None:
            return
        started = report.started_at or datetime.now(timezone.utc)
        finished = report.finished_at or started
        try:
            await self._sync_log.insert_sync_log(
                source=SYNC_LOG_SOURCE,
                action=SYNC_LOG_ACTION,
                status="success" if report.succeeded else "error",
                started_at=started,
                finished_at=finished,
                duration_ms=int((finished - started).total_seconds() * 1000),
                details=report.error,
                metadata=report.summary(),
            )
        except SyncLogError as e:
            logger.warning("Could not publish run %s to sync log: %s", report.run_id, e)


@lru_cache()
def get_run_registry() -> RunRegistry:
    """Process-wide registry; sync log publishing only when Supabase is configured."""
    settings = get_settings()
    sync_log = None
    if not settings.is_local and settings.SUPABASE_URL and settings.SUPABASE_SERVICE_KEY:
        sync_log = SupabaseService()
    return RunRegistry(sync_log=sync_log, history=settings.SYNC_RUN_HISTORY)
