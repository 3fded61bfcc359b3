"""
Delta sync orchestration.

One run: load the watermark, fan out one build -> fetch -> normalize pipeline per
entity type, wait for every pipeline to finish, and report per-entity results.
Idle -> LoadingWatermark -> Fetching -> Aggregating -> Done | Failed.

The watermark is read once and never advanced here; advancing it belongs to the
downstream sink once one exists.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Sequence

from byd_sync.models.entity import EntityDefinition
from byd_sync.schemas.sync_run import (
    EntitySyncResult,
    FailureReason,
    RunState,
    SyncRunReport,
)
from byd_sync.services.byd_service import ByDAuthError, ByDService, ByDServiceError
from byd_sync.services.delta_query import build_delta_query
from byd_sync.services.normalizer import normalize_records
from byd_sync.services.watermark_store import WatermarkStore, WatermarkStoreError

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class SyncOrchestrator:
    """Drives one delta sync run across all configured entity types."""

    def __init__(
        self,
        watermark_store: WatermarkStore,
        byd_service: ByDService,
        entities: Sequence[EntityDefinition],
        config_id: str,
        run_timeout: float | None = None,
        run_id: str | None = None,
    ) -> None:
        names = [e.name for e in entities]
        if len(set(names)) != len(names):
            raise ValueError(f"Entity names must be unique: {names}")
        self.run_id = run_id or str(uuid.uuid4())
        self._watermark_store = watermark_store
        self._byd = byd_service
        self._entities = tuple(entities)
        self._config_id = config_id
        self._run_timeout = run_timeout
        self._state = RunState.IDLE
        self._started_at: datetime | None = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def started_at(self) -> datetime | None:
        return self._started_at

    async def run(self) -> SyncRunReport:
        if self._state != RunState.IDLE:
            raise RuntimeError(f"Run {self.run_id} already started (state={self._state.value})")
        self._started_at = _now()
        logger.info("Starting ByD delta sync run %s", self.run_id)

        self._state = RunState.LOADING_WATERMARK
        try:
            watermark = await self._watermark_store.get(self._config_id)
        except WatermarkStoreError as e:
            logger.error("Run %s failed: configuration unavailable: %s", self.run_id, e)
            self._state = RunState.FAILED
            return SyncRunReport(
                run_id=self.run_id,
                state=RunState.FAILED,
                failure_reason=FailureReason.CONFIG_UNAVAILABLE,
                error=str(e),
                started_at=self._started_at,
                finished_at=_now(),
            )
        logger.info("Config loaded, lastRun=%s", watermark.last_run)

        self._state = RunState.FETCHING
        results = await self._fetch_all(watermark.last_run)

        self._state = RunState.AGGREGATING
        report = SyncRunReport(
            run_id=self.run_id,
            state=RunState.DONE,
            watermark=watermark.last_run,
            started_at=self._started_at,
            finished_at=_now(),
            entities={e.name: results[e.name] for e in self._entities},
        )
        self._state = RunState.DONE
        for name, result in report.entities.items():
            if result.ok:
                logger.info("%s: %d records (%d dropped)", name, len(result.records), result.dropped_count)
            else:
                logger.error("%s failed (%s): %s", name, result.failure_reason.value, result.error)
        return report

    async def _fetch_all(self, watermark: str) -> dict[str, EntitySyncResult]:
        """Run every entity pipeline concurrently; one failure never cancels its siblings."""
        tasks = {
            entity.name: asyncio.create_task(
                self._run_entity(entity, watermark), name=f"byd-sync-{entity.name}"
            )
            for entity in self._entities
        }
        if not tasks:
            return {}
        try:
            _, pending = await asyncio.wait(tasks.values(), timeout=self._run_timeout)
        except asyncio.CancelledError:
            # Run aborted externally: propagate cancellation to every in-flight pipeline
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            self._state = RunState.FAILED
            logger.warning("Run %s cancelled", self.run_id)
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.error("Run %s deadline of %ss exceeded", self.run_id, self._run_timeout)

        results: dict[str, EntitySyncResult] = {}
        for name, task in tasks.items():
            if task in pending:
                results[name] = EntitySyncResult(
                    entity=name,
                    ok=False,
                    failure_reason=FailureReason.TIMEOUT,
                    error=f"Run deadline of {self._run_timeout}s exceeded",
                )
            elif task.cancelled():
                results[name] = EntitySyncResult(
                    entity=name, ok=False, failure_reason=FailureReason.CANCELLED, error="Pipeline cancelled"
                )
            elif task.exception() is not None:
                exc = task.exception()
                logger.error("Unexpected error in %s pipeline", name, exc_info=exc)
                results[name] = EntitySyncResult(
                    entity=name, ok=False, failure_reason=FailureReason.REMOTE_ERROR, error=str(exc)
                )
            else:
                results[name] = task.result()
        return results

    async def _run_entity(self, entity: EntityDefinition, watermark: str) -> EntitySyncResult:
        """build query -> fetch -> normalize, for one entity type."""
        start = time.monotonic()
        query = build_delta_query(entity, watermark)
        logger.info("Retrieving ByD %s", entity.name)
        try:
            raws = await asyncio.to_thread(self._byd.fetch_entity, query)
        except ByDAuthError as e:
            return EntitySyncResult(
                entity=entity.name,
                ok=False,
                failure_reason=FailureReason.AUTH_ERROR,
                error=e.message,
                duration_ms=_elapsed_ms(start),
            )
        except ByDServiceError as e:
            return EntitySyncResult(
                entity=entity.name,
                ok=False,
                failure_reason=FailureReason.REMOTE_ERROR,
                error=e.message,
                duration_ms=_elapsed_ms(start),
            )

        records, dropped = normalize_records(raws, entity.id_attribute)
        return EntitySyncResult(
            entity=entity.name,
            ok=True,
            records=records,
            raw_count=len(raws),
            dropped_count=dropped,
            duration_ms=_elapsed_ms(start),
        )
