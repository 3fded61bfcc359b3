"""
Common Pydantic schemas (errors, health).
"""

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    detail: str


class HealthResponse(BaseModel):
    status: str
    environment: str
    entities: list[str]
