"""Tests for Settings (environment surface)."""

import pytest
from pydantic import ValidationError

from byd_sync.core.config import get_settings, Settings


class TestEntities:
    def test_entities_from_environment(self):
        settings = get_settings()
        entities = settings.entities()

        assert [e.name for e in entities] == ["Invoices", "Customers"]
        assert entities[0].endpoint == "khcustomerinvoice/CustomerInvoiceCollection"
        assert entities[0].id_attribute == "ID"
        assert entities[1].id_attribute == "InternalID"
        assert entities[0].additional_attributes == ()

    def test_entity_without_endpoint_skipped(self, monkeypatch):
        monkeypatch.setenv("BYD_CUSTOMERS", "")
        assert [e.name for e in Settings().entities()] == ["Invoices"]


class TestValues:
    def test_defaults_and_local_flag(self):
        settings = get_settings()
        assert settings.is_local
        assert settings.CONFIG_ID == "0"
        assert settings.BYD_TIMEOUT_SECONDS == 30.0
        assert settings.SYNC_RUN_TIMEOUT_SECONDS is None

    def test_empty_run_timeout_means_no_deadline(self, monkeypatch):
        monkeypatch.setenv("SYNC_RUN_TIMEOUT_SECONDS", "")
        assert Settings().SYNC_RUN_TIMEOUT_SECONDS is None

    def test_run_timeout_parsed(self, monkeypatch):
        monkeypatch.setenv("SYNC_RUN_TIMEOUT_SECONDS", "120")
        assert Settings().SYNC_RUN_TIMEOUT_SECONDS == 120.0

    def test_odata_url_stripped(self, monkeypatch):
        monkeypatch.setenv("BYD_ODATA", "  https://byd.example/odata/  ")
        assert Settings().BYD_ODATA == "https://byd.example/odata/"


class TestValidateForProduction:
    def test_local_configuration_valid(self):
        get_settings().validate_for_production()

    def test_production_requires_supabase(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        with pytest.raises(ValueError, match="SUPABASE_URL"):
            Settings().validate_for_production()

    def test_missing_id_attribute_reported(self, monkeypatch):
        monkeypatch.setenv("BYD_INVOICES_ID", "")
        with pytest.raises(ValueError, match="BYD_INVOICES_ID"):
            Settings().validate_for_production()

    def test_missing_credentials_reported(self, monkeypatch):
        monkeypatch.setenv("BYD_AUTH", "")
        with pytest.raises(ValueError, match="BYD_AUTH"):
            Settings().validate_for_production()


class TestRunTimeout:
    @pytest.mark.parametrize("value", ["0", "-5"])
    def test_non_positive_deadline_rejected(self, monkeypatch, value):
        monkeypatch.setenv("SYNC_RUN_TIMEOUT_SECONDS", value)
        with pytest.raises(ValidationError):
            Settings()
