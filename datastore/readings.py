from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional, Sequence

from sqlalchemy import Engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from datastore.db import SensorReadingRow, build_engine, build_session_factory, init_schema
from models.records import ReadingStatistics, SensorReading, StoredReading
from services.errors import StoreError


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is written as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _apply_time_filter(stmt, from_ts: Optional[datetime], to_ts: Optional[datetime]):
    if from_ts is not None:
        stmt = stmt.where(SensorReadingRow.timestamp >= _as_utc(from_ts))
    if to_ts is not None:
        stmt = stmt.where(SensorReadingRow.timestamp <= _as_utc(to_ts))
    return stmt


def _to_record(row: SensorReadingRow) -> StoredReading:
    return StoredReading(
        id=row.id,
        device_id=row.device_id,
        alcohol_ppm=row.alcohol_ppm,
        timestamp=_as_utc(row.timestamp),
        received_at=_as_utc(row.received_at),
        raw_value=row.raw_value,
        voltage=row.voltage,
        resistance=row.resistance,
        ratio=row.ratio,
    )


class ReadingStore:
    """Append-only collection of sensor readings backed by SQLAlchemy.

    Each operation checks a session out of the pool and returns it when done,
    so the store can be shared by concurrent request handlers and the
    subscriber thread.
    """

    def __init__(self, session_factory: sessionmaker, engine: Optional[Engine] = None) -> None:
        self._session_factory = session_factory
        self._engine = engine

    @classmethod
    def from_uri(cls, uri: str) -> "ReadingStore":
        engine = build_engine(uri)
        try:
            init_schema(engine)
        except SQLAlchemyError as exc:
            engine.dispose()
            raise StoreError(f"Could not initialise the reading store: {exc}") from exc
        return cls(build_session_factory(engine), engine=engine)

    def insert(self, reading: SensorReading, received_at: datetime) -> StoredReading:
        """Persist ``reading`` and return it with its assigned id.

        A reading without a device timestamp is stamped with ``received_at``.
        """
        row = SensorReadingRow(
            id=str(uuid.uuid4()),
            device_id=reading.device_id,
            raw_value=reading.raw_value,
            voltage=reading.voltage,
            resistance=reading.resistance,
            ratio=reading.ratio,
            alcohol_ppm=reading.alcohol_ppm,
            timestamp=_as_utc(reading.timestamp or received_at),
            received_at=_as_utc(received_at),
        )
        with self._session(write=True) as session:
            session.add(row)
            session.flush()
            stored = _to_record(row)
        return stored

    def list_readings(
        self,
        limit: int,
        from_ts: Optional[datetime] = None,
        to_ts: Optional[datetime] = None,
    ) -> list[StoredReading]:
        """Return readings newest first.

        ``limit`` is taken as-is: zero means unbounded and a negative value
        counts as its absolute value.
        """
        stmt = _apply_time_filter(select(SensorReadingRow), from_ts, to_ts)
        stmt = stmt.order_by(
            SensorReadingRow.timestamp.desc(),
            SensorReadingRow.received_at.desc(),
        )
        if limit:
            stmt = stmt.limit(abs(limit))

        with self._session() as session:
            rows: Sequence[SensorReadingRow] = session.execute(stmt).scalars().all()
            return [_to_record(row) for row in rows]

    def statistics(self) -> ReadingStatistics:
        stmt = select(
            func.avg(SensorReadingRow.alcohol_ppm),
            func.max(SensorReadingRow.alcohol_ppm),
            func.min(SensorReadingRow.alcohol_ppm),
            func.count(SensorReadingRow.id),
        )
        with self._session() as session:
            avg_ppm, max_ppm, min_ppm, count = session.execute(stmt).one()

        if not count:
            return ReadingStatistics()
        return ReadingStatistics(
            avg_ppm=float(avg_ppm),
            max_ppm=float(max_ppm),
            min_ppm=float(min_ppm),
            count=int(count),
        )

    def count(self) -> int:
        with self._session() as session:
            return int(session.execute(select(func.count(SensorReadingRow.id))).scalar_one())

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()

    @contextmanager
    def _session(self, write: bool = False) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                if write:
                    with session.begin():
                        yield session
                else:
                    yield session
        except SQLAlchemyError as exc:
            raise StoreError(f"Reading store operation failed: {exc}") from exc
