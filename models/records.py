"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True, slots=True)
class SensorReading:
    """A normalized gas sensor reading that has not been persisted yet.

    ``timestamp`` is the device's observation instant and stays ``None`` when
    the payload did not carry one; the recorder fills it in at insert time.
    """

    device_id: str
    alcohol_ppm: float
    raw_value: Optional[float] = None
    voltage: Optional[float] = None
    resistance: Optional[float] = None
    ratio: Optional[float] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class StoredReading:
    """A reading as it exists in the store, identified and stamped."""

    id: str
    device_id: str
    alcohol_ppm: float
    timestamp: datetime
    received_at: datetime
    raw_value: Optional[float] = None
    voltage: Optional[float] = None
    resistance: Optional[float] = None
    ratio: Optional[float] = None


@dataclass(frozen=True, slots=True)
class ReadingStatistics:
    """Aggregate view over every stored reading."""

    avg_ppm: float = 0.0
    max_ppm: float = 0.0
    min_ppm: float = 0.0
    count: int = 0
