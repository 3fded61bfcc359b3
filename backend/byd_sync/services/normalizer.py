"""
Record normalization: raw ByD OData records -> NormalizedRecord.

Failures are per record. A malformed record is logged and dropped; nothing here
raises into the caller.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from pydantic import ValidationError

from byd_sync.schemas.sync_run import NormalizedRecord

logger = logging.getLogger(__name__)

METADATA_FIELD = "__metadata"
CREATED_FIELD = "CreationDateTime"
CHANGED_FIELD = "LastChangeDateTime"

# /Date(1600183555000)/ or /Date(1600183555000+0120)/; millis are UTC either way
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_BYD_DATE_RE = re.compile(r"\(\s*(-?\d+)\s*(?:[+-]\d{4})?\s*\)")


class MalformedRecordError(ValueError):
    """A raw record that cannot be normalized (missing id or type discriminator)."""


def decode_byd_timestamp(value: Any) -> datetime | None:
    """
    Decode the ByD wrapped-epoch format /Date(<millis>)/ into an aware UTC datetime.
    Returns None (logged) when value has no (...) wrapper around an integer.
    """
    if not isinstance(value, str):
        logger.warning("Cannot decode ByD timestamp %r: not a string", value)
        return None
    start, end = value.rfind("("), value.rfind(")")
    match = _BYD_DATE_RE.fullmatch(value[start:end + 1]) if 0 <= start < end else None
    if not match:
        logger.warning("Cannot decode ByD timestamp %r", value)
        return None
    try:
        return _EPOCH + timedelta(milliseconds=int(match.group(1)))
    except OverflowError as e:
        logger.warning("Cannot decode ByD timestamp %r: %s", value, e)
        return None


def extract_generic_type(raw: dict[str, Any]) -> str:
    """Second segment of the dotted type discriminator, e.g. ByDOData.Invoice -> Invoice."""
    metadata = raw.get(METADATA_FIELD)
    type_name = metadata.get("type") if isinstance(metadata, dict) else None
    if not isinstance(type_name, str):
        raise MalformedRecordError("missing __metadata.type")
    parts = type_name.split(".")
    if len(parts) < 2 or not parts[1]:
        raise MalformedRecordError(f"type discriminator {type_name!r} has no second segment")
    return parts[1]


def _normalize(raw: Any, id_attribute: str) -> NormalizedRecord:
    if not isinstance(raw, dict):
        raise MalformedRecordError(f"expected an object, got {type(raw).__name__}")
    generic_id = raw.get(id_attribute)
    if generic_id is None or generic_id == "":
        raise MalformedRecordError(f"missing id attribute {id_attribute!r}")
    generic_type = extract_generic_type(raw)

    created_raw = raw.get(CREATED_FIELD)
    changed_raw = raw.get(CHANGED_FIELD)
    # Raw value comparison: identical stamps mean the record was created, not changed
    updated = created_raw != changed_raw
    created = decode_byd_timestamp(created_raw)
    last_changed = decode_byd_timestamp(changed_raw)

    passthrough = {k: v for k, v in raw.items() if k != METADATA_FIELD}
    try:
        return NormalizedRecord.model_validate({
            **passthrough,
            "genericId": str(generic_id),
            "genericType": generic_type,
            "created": created,
            "lastChanged": last_changed,
            "updated": updated,
            "dateStr": last_changed if updated else created,
        })
    except (ValidationError, TypeError) as e:
        raise MalformedRecordError(str(e)) from e


def normalize_record(raw: Any, id_attribute: str) -> NormalizedRecord | None:
    """Normalize one raw record; None when the record is malformed."""
    try:
        return _normalize(raw, id_attribute)
    except MalformedRecordError as e:
        logger.error("Error formatting ByD record (dropped): %s", e)
        return None


def normalize_records(
    raws: Iterable[Any],
    id_attribute: str,
) -> tuple[list[NormalizedRecord], int]:
    """Normalize a batch. Returns (records, dropped_count); input order is preserved."""
    records: list[NormalizedRecord] = []
    dropped = 0
    for raw in raws:
        record = normalize_record(raw, id_attribute)
        if record is None:
            dropped += 1
        else:
            records.append(record)
    return records, dropped
