# Domain models: ByD entity definitions, delta queries, watermark

from byd_sync.models.entity import (
    BASE_SELECT_FIELDS,
    CHANGE_FIELD,
    DeltaQuery,
    EntityDefinition,
    Watermark,
)

__all__ = [
    "BASE_SELECT_FIELDS",
    "CHANGE_FIELD",
    "DeltaQuery",
    "EntityDefinition",
    "Watermark",
]
