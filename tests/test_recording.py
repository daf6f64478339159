from __future__ import annotations

from datetime import datetime, timedelta, timezone

from conftest import SteppingClock
from datastore.readings import ReadingStore
from models.records import SensorReading
from services.recording import MonotonicClock, record_reading


def test_clock_never_moves_backwards() -> None:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    instants = iter([start, start - timedelta(seconds=30), start + timedelta(seconds=1)])
    clock = MonotonicClock(lambda: next(instants))

    assert clock.now() == start
    assert clock.now() == start
    assert clock.now() == start + timedelta(seconds=1)


def test_record_reading_stamps_received_at_from_clock(store: ReadingStore) -> None:
    source = SteppingClock(datetime(2024, 6, 1, tzinfo=timezone.utc))
    clock = MonotonicClock(source)

    stored = record_reading(store, SensorReading(device_id="dev1", alcohol_ppm=4.0), clock)

    assert stored.received_at == datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert stored.timestamp == stored.received_at


def test_record_reading_keeps_device_timestamp(store: ReadingStore, clock: MonotonicClock) -> None:
    observed = datetime(2023, 12, 31, 23, 59, tzinfo=timezone.utc)

    stored = record_reading(
        store, SensorReading(device_id="dev1", alcohol_ppm=4.0, timestamp=observed), clock
    )

    assert stored.timestamp == observed
    assert stored.received_at != observed
