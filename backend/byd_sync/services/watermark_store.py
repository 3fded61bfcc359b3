"""
Watermark store: lastRun timestamp per sync configuration.
Supabase table in deployed environments, in-memory store for ENVIRONMENT=local.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from supabase import Client, create_client

from byd_sync.core.config import get_settings
from byd_sync.models.entity import Watermark

logger = logging.getLogger(__name__)


class WatermarkStoreError(Exception):
    """Watermark record missing or backing store unavailable (ConfigUnavailable)."""


class WatermarkNotFoundError(WatermarkStoreError):
    """The store answered, but holds no lastRun for the configuration."""


def parse_watermark(value: str) -> datetime:
    """Parse an ISO-8601 watermark (trailing Z allowed) into an aware datetime."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_watermark(value: datetime) -> str:
    """Format as ISO-8601 UTC with millisecond precision, e.g. 2020-09-13T09:31:06.393Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _check_forward(config_id: str, current: Optional[str], new: str) -> None:
    """Watermarks never move backwards."""
    try:
        new_at = parse_watermark(new)
        if current and new_at < parse_watermark(current):
            raise WatermarkStoreError(
                f"Refusing to move watermark {config_id} backwards: {current} -> {new}"
            )
    except ValueError as e:
        raise WatermarkStoreError(f"Invalid watermark value for {config_id}: {e}") from e


class WatermarkStore(ABC):
    @abstractmethod
    async def get(self, config_id: str) -> Watermark:
        """Return the stored watermark; raise WatermarkStoreError if unavailable."""

    @abstractmethod
    async def set(self, config_id: str, last_run: str) -> Dict[str, Any]:
        """Persist a new watermark and return the stored row."""


class SupabaseWatermarkStore(WatermarkStore):
    """Rows of CONFIG_TABLE: {config_id, last_run, updated_at}."""

    def __init__(self, client: Optional[Client] = None, table: Optional[str] = None) -> None:
        settings = get_settings()
        self.table = table or settings.CONFIG_TABLE
        self._client = client

    @property
    def client(self) -> Client:
        # Created lazily so a misconfigured store fails inside get(), not at import
        if self._client is None:
            settings = get_settings()
            try:
                self._client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
            except Exception as e:
                raise WatermarkStoreError(f"Watermark store unavailable: {e}") from e
        return self._client

    def _select(self, config_id: str) -> Any:
        return (
            self.client.table(self.table)
            .select("config_id, last_run")
            .eq("config_id", config_id)
            .limit(1)
            .execute()
        )

    def _upsert(self, row: Dict[str, Any]) -> Any:
        return self.client.table(self.table).upsert(row, on_conflict="config_id").execute()

    async def get(self, config_id: str) -> Watermark:
        # supabase-py is synchronous; keep its network I/O off the event loop
        try:
            response = await asyncio.to_thread(self._select, config_id)
        except WatermarkStoreError:
            raise
        except Exception as e:
            logger.error("Error loading configuration %s from %s: %s", config_id, self.table, str(e))
            raise WatermarkStoreError(f"Error loading configuration {config_id}: {e}") from e

        rows = response.data or []
        if not rows or not rows[0].get("last_run"):
            raise WatermarkNotFoundError(f"No lastRun found for configuration {config_id} in {self.table}")
        return Watermark(config_id=str(config_id), last_run=str(rows[0]["last_run"]))

    async def set(self, config_id: str, last_run: str) -> Dict[str, Any]:
        # Only a genuinely missing row skips the forward check; read failures propagate
        try:
            current = await self.get(config_id)
            current_value: Optional[str] = current.last_run
        except WatermarkNotFoundError:
            current_value = None
        _check_forward(config_id, current_value, last_run)

        row = {
            "config_id": config_id,
            "last_run": last_run,
            "updated_at": format_watermark(datetime.now(timezone.utc)),
        }
        try:
            response = await asyncio.to_thread(self._upsert, row)
        except WatermarkStoreError:
            raise
        except Exception as e:
            logger.error("Error updating lastRun for %s: %s", config_id, str(e))
            raise WatermarkStoreError(f"Error updating configuration {config_id}: {e}") from e
        logger.info("Updated lastRun for configuration %s: %s", config_id, last_run)
        if response.data:
            return dict(response.data[0])
        return row


class LocalWatermarkStore(WatermarkStore):
    """In-memory store for local development; seeded with LOCAL_LAST_RUN."""

    def __init__(self, seed: Optional[Dict[str, str]] = None) -> None:
        self._rows: Dict[str, str] = dict(seed or {})

    async def get(self, config_id: str) -> Watermark:
        last_run = self._rows.get(str(config_id))
        if not last_run:
            raise WatermarkNotFoundError(f"No lastRun found for configuration {config_id}")
        return Watermark(config_id=str(config_id), last_run=last_run)

    async def set(self, config_id: str, last_run: str) -> Dict[str, Any]:
        _check_forward(config_id, self._rows.get(str(config_id)), last_run)
        self._rows[str(config_id)] = last_run
        return {"config_id": str(config_id), "last_run": last_run}


@lru_cache()
def get_watermark_store() -> WatermarkStore:
    """Dependency: local in-memory store for ENVIRONMENT=local, else Supabase."""
    settings = get_settings()
    if settings.is_local:
        logger.info("Local environment detected, using in-memory watermark store")
        return LocalWatermarkStore({settings.CONFIG_ID: settings.LOCAL_LAST_RUN})
    return SupabaseWatermarkStore()
