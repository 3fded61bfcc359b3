"""
Delta query construction: select clause and LastChangeDateTime filter for one entity.
"""

from byd_sync.models.entity import (
    BASE_SELECT_FIELDS,
    CHANGE_FIELD,
    DeltaQuery,
    EntityDefinition,
)


def quote_literal(value: str) -> str:
    """Render value as an OData string literal: single-quoted, embedded quotes doubled."""
    return "'" + value.replace("'", "''") + "'"


def build_select(entity: EntityDefinition) -> tuple[str, ...]:
    """id attribute, ObjectID, CreationDateTime, LastChangeDateTime, then any extras (no duplicates)."""
    fields: list[str] = []
    for name in (entity.id_attribute, *BASE_SELECT_FIELDS, *entity.additional_attributes):
        if name and name not in fields:
            fields.append(name)
    return tuple(fields)


def build_delta_query(entity: EntityDefinition, watermark: str) -> DeltaQuery:
    """
    Build the delta query for entity: records whose LastChangeDateTime >= watermark.
    The watermark is not validated here; the source rejects a malformed timestamp.
    """
    return DeltaQuery(
        entity_name=entity.name,
        endpoint=entity.endpoint,
        select=build_select(entity),
        filter=f"{CHANGE_FIELD} ge datetimeoffset{quote_literal(watermark)}",
    )
