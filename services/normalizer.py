"""Conversion of raw payloads into canonical sensor readings."""

from __future__ import annotations

import json
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from models.records import SensorReading
from services.errors import DecodeError, ValidationError

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
_OPTIONAL_NUMERIC_FIELDS = ("raw_value", "voltage", "resistance", "ratio")


def decode_payload(data: bytes | str | None) -> Mapping[str, Any]:
    """Decode a broker message body into a JSON object."""
    if data is None:
        raise DecodeError("Message has no body.")
    if isinstance(data, (bytes, bytearray)):
        try:
            text = bytes(data).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError("Message body is not valid UTF-8.") from exc
    else:
        text = data

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Message body is not valid JSON: {exc.msg}") from exc

    if not isinstance(payload, dict):
        raise DecodeError("Message body must be a JSON object.")
    return payload


def normalize(raw: Any) -> SensorReading:
    """Validate ``raw`` and build a :class:`SensorReading` from it.

    Only ``device_id`` and ``alcohol_ppm`` are required. Optional numeric
    fields stay ``None`` when absent, and ``timestamp`` is left unset when the
    payload has none so the device's instant is never confused with ours.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("Reading payload must be a JSON object.")

    device_id = raw.get("device_id")
    if not isinstance(device_id, str) or not device_id.strip():
        raise ValidationError("device_id must be a non-empty string.", field="device_id")

    alcohol_ppm = _require_number(raw, "alcohol_ppm")
    optional = {name: _optional_number(raw, name) for name in _OPTIONAL_NUMERIC_FIELDS}

    return SensorReading(
        device_id=device_id,
        alcohol_ppm=alcohol_ppm,
        timestamp=parse_timestamp(raw.get("timestamp")),
        **optional,
    )


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Interpret a payload timestamp.

    Integer-like values are epoch milliseconds. ISO-8601 strings are accepted
    as well; naive ones are assumed to be UTC.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError("timestamp must be epoch milliseconds.", field="timestamp")

    if isinstance(value, int):
        return _from_epoch_ms(value)
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ValidationError(
                "timestamp must be whole epoch milliseconds.", field="timestamp"
            )
        return _from_epoch_ms(int(value))
    if isinstance(value, str):
        candidate = value.strip()
        if _INTEGER_PATTERN.match(candidate):
            return _from_epoch_ms(int(candidate))
        return _from_iso(candidate)

    raise ValidationError("timestamp has an unsupported type.", field="timestamp")


def _from_epoch_ms(millis: int) -> datetime:
    try:
        return _EPOCH + timedelta(milliseconds=millis)
    except OverflowError as exc:
        raise ValidationError("timestamp is out of range.", field="timestamp") from exc


def _from_iso(candidate: str) -> datetime:
    if not candidate:
        raise ValidationError("timestamp is empty.", field="timestamp")
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValidationError("timestamp has an invalid format.", field="timestamp") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _finite_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        converted = float(value)
    except OverflowError:
        return None
    return converted if math.isfinite(converted) else None


def _require_number(raw: Mapping[str, Any], name: str) -> float:
    value = _finite_float(raw.get(name))
    if value is None:
        raise ValidationError(f"{name} must be a finite number.", field=name)
    return value


def _optional_number(raw: Mapping[str, Any], name: str) -> Optional[float]:
    raw_value = raw.get(name)
    if raw_value is None:
        return None
    value = _finite_float(raw_value)
    if value is None:
        raise ValidationError(f"{name} must be a finite number when present.", field=name)
    return value
