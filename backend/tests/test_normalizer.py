"""Tests for ByD record normalization."""

import logging
from datetime import datetime, timezone

import pytest

from byd_sync.services.normalizer import (
    decode_byd_timestamp,
    extract_generic_type,
    MalformedRecordError,
    normalize_record,
    normalize_records,
)

CREATED = "/Date(1600183555000)/"
CHANGED = "/Date(1600269955000)/"


class TestDecodeTimestamp:
    def test_wrapped_epoch_millis(self):
        assert decode_byd_timestamp("/Date(1600183555000)/") == datetime(
            2020, 9, 15, 15, 25, 55, tzinfo=timezone.utc
        )

    def test_millisecond_part_kept(self):
        decoded = decode_byd_timestamp("/Date(1600183555123)/")
        assert decoded.microsecond == 123000

    def test_offset_suffix_ignored(self):
        assert decode_byd_timestamp("/Date(1600183555000+0120)/") == decode_byd_timestamp(CREATED)

    @pytest.mark.parametrize("value", ["1600183555000", "/Date()/", "/Date(abc)/", "", None, 1600183555000])
    def test_unwrapped_or_invalid_yields_none(self, value):
        assert decode_byd_timestamp(value) is None

    def test_decode_failure_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="byd_sync.services.normalizer"):
            decode_byd_timestamp("garbage")
        assert "Cannot decode ByD timestamp" in caplog.text


class TestGenericType:
    def test_second_segment(self):
        assert extract_generic_type({"__metadata": {"type": "ByDOData.Invoice"}}) == "Invoice"

    def test_no_separator_is_malformed(self):
        with pytest.raises(MalformedRecordError):
            extract_generic_type({"__metadata": {"type": "Invoice"}})

    def test_missing_metadata_is_malformed(self):
        with pytest.raises(MalformedRecordError):
            extract_generic_type({})


class TestNormalizeRecord:
    def test_created_record(self, make_raw):
        record = normalize_record(make_raw(created=CREATED, changed=CREATED), "ID")

        assert record.updated is False
        assert record.date_str == decode_byd_timestamp(CREATED)
        assert record.generic_id == "1001"
        assert record.generic_type == "Invoice"

    def test_updated_record_uses_last_change(self, make_raw):
        record = normalize_record(make_raw(created=CREATED, changed=CHANGED), "ID")

        assert record.updated is True
        assert record.date_str == decode_byd_timestamp(CHANGED)
        assert record.created == decode_byd_timestamp(CREATED)
        assert record.last_changed == decode_byd_timestamp(CHANGED)

    def test_equality_is_raw_value_comparison(self, make_raw):
        # Same instant, different wire forms: still counted as updated
        record = normalize_record(make_raw(created=CREATED, changed="/Date(1600183555000+0000)/"), "ID")
        assert record.updated is True

    def test_undecodable_stamp_keeps_record(self, make_raw):
        record = normalize_record(make_raw(created="bogus", changed="bogus"), "ID")

        assert record is not None
        assert record.updated is False
        assert record.date_str is None

    def test_metadata_stripped_and_fields_passed_through(self, make_raw):
        raw = make_raw(id_value="C-7", id_attribute="InternalID", type_name="ByDOData.Customer",
                       BusinessPartnerFormattedName="ACME")
        record = normalize_record(raw, "InternalID")
        dumped = record.model_dump(by_alias=True)

        assert "__metadata" not in dumped
        assert dumped["genericId"] == "C-7"
        assert dumped["genericType"] == "Customer"
        assert dumped["InternalID"] == "C-7"
        assert dumped["BusinessPartnerFormattedName"] == "ACME"
        assert dumped["CreationDateTime"] == CREATED
        assert set(dumped) >= {"genericId", "genericType", "created", "lastChanged", "updated", "dateStr"}

    def test_raw_input_not_mutated(self, make_raw):
        raw = make_raw()
        before = dict(raw)
        normalize_record(raw, "ID")
        assert raw == before

    def test_numeric_id_stringified(self, make_raw):
        assert normalize_record(make_raw(id_value=42), "ID").generic_id == "42"

    def test_normalizing_twice_is_stable(self, make_raw):
        raw = make_raw(changed=CHANGED)
        assert normalize_record(raw, "ID") == normalize_record(raw, "ID")

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "not a record",
            [],
            {},
            {"ID": "1", "__metadata": {"type": "Invoice"}},
            {"ID": "1", "__metadata": {"type": None}},
            {"ID": "1", "__metadata": "ByDOData.Invoice"},
            {"__metadata": {"type": "ByDOData.Invoice"}},
        ],
    )
    def test_malformed_returns_none(self, raw):
        assert normalize_record(raw, "ID") is None

    def test_malformed_is_logged(self, caplog):
        with caplog.at_level(logging.ERROR, logger="byd_sync.services.normalizer"):
            normalize_record({"ID": "1", "__metadata": {"type": "Invoice"}}, "ID")
        assert "dropped" in caplog.text


class TestNormalizeRecords:
    def test_malformed_excluded_and_counted(self, make_raw):
        raws = [
            make_raw(id_value="1"),
            make_raw(id_value="2", type_name="NoSeparator"),
            "junk",
            make_raw(id_value="3", changed=CHANGED),
        ]
        records, dropped = normalize_records(raws, "ID")

        assert dropped == 2
        assert len(records) == len(raws) - dropped
        assert [r.generic_id for r in records] == ["1", "3"]

    def test_empty_batch(self):
        assert normalize_records([], "ID") == ([], 0)
