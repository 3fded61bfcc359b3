"""
Application configuration from environment variables.
Settings class using pydantic-settings with optional validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from byd_sync.models.entity import EntityDefinition

# Resolve .env from backend root so it loads when running from backend/ or project root
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"

LOCAL_ENVIRONMENT = "local"


class Settings(BaseSettings):
    """
    Application settings loaded from environment and .env.
    Names match the deployment environment (CONFIG_TABLE, BYD_ODATA, ...).
    Everything has a default so the app boots for local dev; validate for production.
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Watermark store (Supabase table holding one row per sync configuration)
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""
    CONFIG_TABLE: str = Field(default="byd_sync_config", description="Table holding lastRun per config")
    CONFIG_ID: str = Field(default="0", description="Watermark-store lookup key")
    LOCAL_LAST_RUN: str = Field(
        default="2020-09-13T09:31:06.393Z",
        description="Seed watermark for ENVIRONMENT=local (no Supabase)",
    )

    # ByD OData source
    BYD_ODATA: str = Field(default="", description="OData service base URL")
    BYD_AUTH: str = Field(default="", description="Pre-encoded Basic credentials")
    BYD_INVOICES: str = ""
    BYD_INVOICES_ID: str = ""
    BYD_CUSTOMERS: str = ""
    BYD_CUSTOMERS_ID: str = ""
    BYD_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)
    BYD_MAX_RETRIES: int = Field(default=2, ge=0)
    BYD_MAX_PAGES: int = Field(default=100, ge=1)

    # Run lifecycle
    SYNC_RUN_TIMEOUT_SECONDS: float | None = Field(
        default=None,
        gt=0,
        description="Deadline for one run; pending entity pipelines are cancelled when exceeded",
    )
    SYNC_RUN_HISTORY: int = Field(default=50, ge=1)
    SYNC_API_TOKEN: str = Field(default="", description="Bearer token for sync endpoints (optional)")

    @field_validator("BYD_ODATA", "BYD_AUTH", "LOG_LEVEL", mode="before")
    @classmethod
    def strip_whitespace(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("SYNC_RUN_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def empty_timeout_is_none(cls, v: object) -> object:
        """Empty env value (SYNC_RUN_TIMEOUT_SECONDS=) means no deadline."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_local(self) -> bool:
        return self.ENVIRONMENT.lower() == LOCAL_ENVIRONMENT

    def entities(self) -> List[EntityDefinition]:
        """Configured entity types, in run order. Entities without an endpoint are skipped."""
        pairs = [
            ("Invoices", self.BYD_INVOICES, self.BYD_INVOICES_ID),
            ("Customers", self.BYD_CUSTOMERS, self.BYD_CUSTOMERS_ID),
        ]
        return [
            EntityDefinition(name=name, endpoint=endpoint, id_attribute=id_attribute)
            for name, endpoint, id_attribute in pairs
            if endpoint
        ]

    def validate_for_production(self) -> None:
        """
        Call to validate that required env vars are set (e.g. on startup in production).
        Raises ValueError with missing keys.
        """
        missing: List[str] = []
        if not self.is_local:
            if not self.SUPABASE_URL:
                missing.append("SUPABASE_URL")
            if not self.SUPABASE_SERVICE_KEY:
                missing.append("SUPABASE_SERVICE_KEY")
            if not self.CONFIG_TABLE:
                missing.append("CONFIG_TABLE")
        if not self.BYD_ODATA:
            missing.append("BYD_ODATA")
        if not self.BYD_AUTH:
            missing.append("BYD_AUTH")
        for endpoint_key, id_key in (
            ("BYD_INVOICES", "BYD_INVOICES_ID"),
            ("BYD_CUSTOMERS", "BYD_CUSTOMERS_ID"),
        ):
            if getattr(self, endpoint_key) and not getattr(self, id_key):
                missing.append(id_key)
        if not self.entities():
            missing.append("BYD_INVOICES or BYD_CUSTOMERS")
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
