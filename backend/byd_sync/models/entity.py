"""
Pydantic models for ByD entity types and the delta queries derived from them.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Fields every delta query selects after the entity's own id attribute
BASE_SELECT_FIELDS = ("ObjectID", "CreationDateTime", "LastChangeDateTime")
CHANGE_FIELD = "LastChangeDateTime"


class Watermark(BaseModel):
    """lastRun value read from the watermark store (ISO-8601, millisecond precision)."""
    model_config = ConfigDict(frozen=True)

    config_id: str
    last_run: str


class EntityDefinition(BaseModel):
    """Static descriptor of one ByD entity type (e.g. Invoices, Customers)."""
    model_config = ConfigDict(frozen=True)

    name: str
    endpoint: str = Field(..., min_length=1, description="Collection path relative to BYD_ODATA")
    id_attribute: str = Field(..., description="Native identifier field of the entity")
    additional_attributes: tuple[str, ...] = ()


class DeltaQuery(BaseModel):
    """Source query for records changed at or after a watermark. Derived, never persisted."""
    model_config = ConfigDict(frozen=True)

    entity_name: str
    endpoint: str
    select: tuple[str, ...]
    filter: str

    def to_params(self) -> dict[str, Any]:
        """OData system query options, in the order the source expects them."""
        return {
            "$format": "json",
            "$select": ",".join(self.select),
            "$filter": self.filter,
        }
