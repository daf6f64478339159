from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Double, Engine, Index, String, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


class SensorReadingRow(Base):
    __tablename__ = "sensor_readings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    device_id: Mapped[str] = mapped_column(String(255), nullable=False)

    raw_value: Mapped[Optional[float]] = mapped_column(Double, nullable=True)
    voltage: Mapped[Optional[float]] = mapped_column(Double, nullable=True)
    resistance: Mapped[Optional[float]] = mapped_column(Double, nullable=True)
    ratio: Mapped[Optional[float]] = mapped_column(Double, nullable=True)
    alcohol_ppm: Mapped[float] = mapped_column(Double, nullable=False)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


Index("idx_sensor_readings_timestamp", SensorReadingRow.timestamp)


def build_engine(uri: str) -> Engine:
    """Create an engine for ``uri``, smoothing over SQLite's threading rules."""
    url = make_url(uri)
    kwargs: Dict[str, Any] = {"pool_pre_ping": True}

    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        database = url.database
        if not database or database == ":memory:":
            # every session must see the same in-memory database
            kwargs["poolclass"] = StaticPool
        else:
            Path(database).parent.mkdir(parents=True, exist_ok=True)

    return create_engine(url, **kwargs)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_schema(engine: Engine) -> None:
    Base.metadata.create_all(engine)
