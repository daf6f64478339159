"""Unit tests for payload decoding and reading normalization."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from services.errors import DecodeError, ValidationError
from services.normalizer import decode_payload, normalize, parse_timestamp


def test_normalize_minimal_payload_leaves_optional_fields_unset() -> None:
    reading = normalize({"device_id": "dev1", "alcohol_ppm": 123.4})

    assert reading.device_id == "dev1"
    assert reading.alcohol_ppm == 123.4
    assert reading.raw_value is None
    assert reading.voltage is None
    assert reading.resistance is None
    assert reading.ratio is None
    assert reading.timestamp is None


def test_normalize_passes_optional_numbers_through() -> None:
    reading = normalize(
        {
            "device_id": "dev1",
            "alcohol_ppm": 5,
            "raw_value": 812,
            "voltage": 2.61,
            "resistance": 9.1,
            "ratio": 0.0,
            "received_at": "ignored",
            "firmware": "1.2.3",
        }
    )

    assert reading.alcohol_ppm == 5.0
    assert reading.raw_value == 812.0
    assert reading.voltage == 2.61
    assert reading.resistance == 9.1
    assert reading.ratio == 0.0


@pytest.mark.parametrize(
    "payload",
    [
        {"alcohol_ppm": 1.0},
        {"device_id": "", "alcohol_ppm": 1.0},
        {"device_id": "   ", "alcohol_ppm": 1.0},
        {"device_id": 42, "alcohol_ppm": 1.0},
        {"device_id": "dev1"},
        {"device_id": "dev1", "alcohol_ppm": "12.5"},
        {"device_id": "dev1", "alcohol_ppm": True},
        {"device_id": "dev1", "alcohol_ppm": float("nan")},
        {"device_id": "dev1", "alcohol_ppm": float("inf")},
        {"device_id": "dev1", "alcohol_ppm": None},
    ],
)
def test_normalize_rejects_missing_or_ill_typed_required_fields(payload) -> None:
    with pytest.raises(ValidationError):
        normalize(payload)


def test_normalize_reports_offending_field() -> None:
    with pytest.raises(ValidationError) as excinfo:
        normalize({"device_id": "dev1", "alcohol_ppm": 1.0, "voltage": "high"})

    assert excinfo.value.field == "voltage"


def test_normalize_rejects_non_mapping_payload() -> None:
    with pytest.raises(ValidationError):
        normalize([{"device_id": "dev1", "alcohol_ppm": 1.0}])


def test_normalize_does_not_mutate_input() -> None:
    payload = {"device_id": "dev1", "alcohol_ppm": 1.0, "timestamp": 1700000000000}
    snapshot = dict(payload)

    normalize(payload)

    assert payload == snapshot


def test_integer_timestamp_is_epoch_milliseconds() -> None:
    expected = datetime(2023, 11, 14, 22, 13, 20, 123000, tzinfo=timezone.utc)

    assert parse_timestamp(1700000000123) == expected
    assert parse_timestamp("1700000000123") == expected
    assert parse_timestamp(1700000000123.0) == expected


def test_iso_timestamp_is_accepted() -> None:
    assert parse_timestamp("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp("2024-01-01T02:00:00+02:00") == datetime(
        2024, 1, 1, tzinfo=timezone.utc
    )
    assert parse_timestamp("2024-01-01T00:00:00") == datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", [True, 1.5, "yesterday", "", [1], 10**30])
def test_invalid_timestamps_are_rejected(value) -> None:
    with pytest.raises(ValidationError):
        parse_timestamp(value)


def test_decode_payload_returns_json_object() -> None:
    assert decode_payload(b'{"device_id": "dev1", "alcohol_ppm": 2}') == {
        "device_id": "dev1",
        "alcohol_ppm": 2,
    }


@pytest.mark.parametrize("data", [None, b"\xff\xfe", b"{not json", b"[1, 2]", b'"text"'])
def test_decode_payload_failures_are_decode_errors(data) -> None:
    with pytest.raises(DecodeError):
        decode_payload(data)
