"""
Shared fixtures. The environment is pinned before byd_sync is imported so Settings
never reads a developer .env or reaches Supabase.
"""

import os
import threading
from typing import Any, Callable

import pytest

os.environ.update({
    "ENVIRONMENT": "local",
    "LOG_LEVEL": "DEBUG",
    "CONFIG_ID": "0",
    "CONFIG_TABLE": "byd_sync_config",
    "LOCAL_LAST_RUN": "2020-09-13T09:31:06.393Z",
    "BYD_ODATA": "https://my000000.sapbydesign.com/sap/byd/odata/cust/v1/",
    "BYD_AUTH": "dXNlcjpwYXNz",
    "BYD_INVOICES": "khcustomerinvoice/CustomerInvoiceCollection",
    "BYD_INVOICES_ID": "ID",
    "BYD_CUSTOMERS": "khcustomer/CustomerCollection",
    "BYD_CUSTOMERS_ID": "InternalID",
    "SYNC_API_TOKEN": "",
})

from byd_sync.core.config import get_settings  # noqa: E402
from byd_sync.models.entity import DeltaQuery, EntityDefinition  # noqa: E402
from byd_sync.services.byd_service import ByDAuthError, ByDServiceError  # noqa: E402
from byd_sync.services.watermark_store import LocalWatermarkStore  # noqa: E402

WATERMARK = "2020-09-13T09:31:06.393Z"


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def invoices() -> EntityDefinition:
    return EntityDefinition(
        name="Invoices",
        endpoint="khcustomerinvoice/CustomerInvoiceCollection",
        id_attribute="ID",
    )


@pytest.fixture
def customers() -> EntityDefinition:
    return EntityDefinition(
        name="Customers",
        endpoint="khcustomer/CustomerCollection",
        id_attribute="InternalID",
    )


@pytest.fixture
def watermark_store() -> LocalWatermarkStore:
    return LocalWatermarkStore({"0": WATERMARK})


@pytest.fixture
def make_raw() -> Callable[..., dict[str, Any]]:
    """Raw ByD record factory; id_attribute/id_value vary per entity type."""

    def _make(
        id_value: str = "1001",
        id_attribute: str = "ID",
        type_name: str = "ByDOData.Invoice",
        created: str = "/Date(1600183555000)/",
        changed: str | None = None,
        **extra: Any,
    ) -> dict[str, Any]:
        return {
            "__metadata": {
                "uri": f"https://my000000.sapbydesign.com/odata/Collection('{id_value}')",
                "type": type_name,
            },
            id_attribute: id_value,
            "ObjectID": f"00163E{id_value}",
            "CreationDateTime": created,
            "LastChangeDateTime": changed if changed is not None else created,
            **extra,
        }

    return _make


class FakeByDService:
    """Stands in for ByDService: per-endpoint canned records or errors, call log."""

    def __init__(
        self,
        responses: dict[str, Any] | None = None,
        gates: dict[str, threading.Event] | None = None,
    ) -> None:
        self.responses = responses or {}
        self.calls: list[DeltaQuery] = []
        self.gates = gates or {}
        self._lock = threading.Lock()

    def fetch_entity(self, query: DeltaQuery) -> list[dict[str, Any]]:
        with self._lock:
            self.calls.append(query)
        gate = self.gates.get(query.endpoint)
        if gate is not None:
            gate.wait(timeout=5)
        outcome = self.responses.get(query.endpoint, [])
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)


@pytest.fixture
def fake_byd_factory() -> Callable[..., FakeByDService]:
    return FakeByDService


@pytest.fixture
def remote_error() -> ByDServiceError:
    return ByDServiceError("ByD OData error: 500: GET https://byd/x", status_code=500)


@pytest.fixture
def auth_error() -> ByDAuthError:
    return ByDAuthError("ByD OData error: 401: GET https://byd/x", status_code=401)
