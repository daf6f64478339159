"""The point where both ingestion paths meet the store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Optional

from datastore.readings import ReadingStore
from models.records import SensorReading, StoredReading

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MonotonicClock:
    """Wall clock that never hands out an instant earlier than the last one."""

    def __init__(self, source: Optional[Callable[[], datetime]] = None) -> None:
        self._source = source or _utc_now
        self._last: Optional[datetime] = None
        self._lock = Lock()

    def now(self) -> datetime:
        with self._lock:
            current = self._source()
            if self._last is not None and current < self._last:
                current = self._last
            self._last = current
            return current


def record_reading(
    store: ReadingStore, reading: SensorReading, clock: MonotonicClock
) -> StoredReading:
    """Stamp ``reading`` with the ingestion instant and persist it."""
    stored = store.insert(reading, received_at=clock.now())
    logger.debug(
        "Reading persisted",
        extra={"device_id": stored.device_id, "reading_id": stored.id},
    )
    return stored
