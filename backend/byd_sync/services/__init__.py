# Services: ByD OData client, normalization, watermark store, orchestration, Supabase sync log

from byd_sync.services.byd_service import (
    ByDAuthError,
    ByDService,
    ByDServiceError,
    get_byd_service,
)
from byd_sync.services.delta_query import build_delta_query
from byd_sync.services.normalizer import (
    MalformedRecordError,
    decode_byd_timestamp,
    normalize_record,
    normalize_records,
)
from byd_sync.services.run_registry import RunRegistry, get_run_registry
from byd_sync.services.supabase_service import (
    SupabaseService,
    SyncLogError,
    get_supabase_service,
)
from byd_sync.services.sync_orchestrator import SyncOrchestrator
from byd_sync.services.watermark_store import (
    LocalWatermarkStore,
    SupabaseWatermarkStore,
    WatermarkStore,
    WatermarkStoreError,
    get_watermark_store,
)

__all__ = [
    "ByDService",
    "ByDServiceError",
    "ByDAuthError",
    "get_byd_service",
    "build_delta_query",
    "MalformedRecordError",
    "decode_byd_timestamp",
    "normalize_record",
    "normalize_records",
    "RunRegistry",
    "get_run_registry",
    "SupabaseService",
    "SyncLogError",
    "get_supabase_service",
    "SyncOrchestrator",
    "WatermarkStore",
    "WatermarkStoreError",
    "SupabaseWatermarkStore",
    "LocalWatermarkStore",
    "get_watermark_store",
]
