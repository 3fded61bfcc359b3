"""
Delta sync endpoints: trigger a run, query its status, read the watermark.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from byd_sync.core.config import Settings, get_settings
from byd_sync.core.security import require_sync_token
from byd_sync.models.entity import Watermark
from byd_sync.schemas.common import ErrorDetail
from byd_sync.schemas.sync_run import SyncRunAccepted, SyncRunAcceptedBody, SyncRunReport
from byd_sync.services.byd_service import ByDService, get_byd_service
from byd_sync.services.run_registry import RunRegistry, get_run_registry
from byd_sync.services.sync_orchestrator import SyncOrchestrator
from byd_sync.services.watermark_store import WatermarkStore, WatermarkStoreError, get_watermark_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"], dependencies=[Depends(require_sync_token)])

STARTED_MESSAGE = "get ByD objects Started"


def get_sync_orchestrator(
    settings: Settings = Depends(get_settings),
    watermark_store: WatermarkStore = Depends(get_watermark_store),
    byd: ByDService = Depends(get_byd_service),
) -> SyncOrchestrator:
    """Dependency: a fresh orchestrator over every configured entity type."""
    return SyncOrchestrator(
        watermark_store=watermark_store,
        byd_service=byd,
        entities=settings.entities(),
        config_id=settings.CONFIG_ID,
        run_timeout=settings.SYNC_RUN_TIMEOUT_SECONDS,
    )


@router.post(
    "/runs",
    response_model=SyncRunAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a sync run",
    description="Accept a delta sync run and return immediately. Poll GET /sync/runs/{run_id} for the report.",
)
async def start_sync_run(
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
    registry: RunRegistry = Depends(get_run_registry),
) -> SyncRunAccepted:
    """POST /api/v1/sync/runs: fire-and-forget trigger with a run handle."""
    pending = registry.submit(orchestrator)
    return SyncRunAccepted(
        status_code=status.HTTP_202_ACCEPTED,
        body=SyncRunAcceptedBody(message=STARTED_MESSAGE, run_id=pending.run_id),
    )


@router.get(
    "/runs/{run_id}",
    response_model=SyncRunReport,
    summary="Get sync run status",
    description="Progress while running; the full per-entity report once done.",
    responses={404: {"model": ErrorDetail, "description": "Unknown run"}},
)
async def get_sync_run(
    run_id: str,
    registry: RunRegistry = Depends(get_run_registry),
) -> SyncRunReport:
    """GET /api/v1/sync/runs/{run_id}: run status or report."""
    report = registry.status(run_id)
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Run not found")
    return report


@router.post(
    "/run",
    response_model=SyncRunReport,
    summary="Run a sync and wait",
    description="Run a delta sync to completion and return the report (for schedulers that wait).",
)
async def run_sync(
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
    registry: RunRegistry = Depends(get_run_registry),
) -> SyncRunReport:
    """POST /api/v1/sync/run: blocking run."""
    report = await orchestrator.run()
    await registry.publish(report)
    return report


@router.get(
    "/watermark",
    response_model=Watermark,
    summary="Get watermark",
    description="Current lastRun value from the configuration store.",
    responses={503: {"model": ErrorDetail, "description": "Configuration unavailable"}},
)
async def get_watermark(
    settings: Settings = Depends(get_settings),
    watermark_store: WatermarkStore = Depends(get_watermark_store),
) -> Watermark:
    """GET /api/v1/sync/watermark: current lastRun."""
    try:
        return await watermark_store.get(settings.CONFIG_ID)
    except WatermarkStoreError as e:
        logger.warning("Watermark unavailable: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Configuration unavailable",
        )
