"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from broker.subscriber import SubscriberState


class SuccessResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    error: str


class TopicResponse(BaseModel):
    """Result of ensuring the readings topic exists."""

    success: bool = True
    message: str


class ReadingResponse(BaseModel):
    """A stored reading as returned by the query endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Identifier assigned by the store.")
    device_id: str
    raw_value: Optional[float] = None
    voltage: Optional[float] = None
    resistance: Optional[float] = None
    ratio: Optional[float] = None
    alcohol_ppm: float
    timestamp: datetime = Field(..., description="Instant the device took the reading.")
    received_at: datetime = Field(..., description="Instant the service stored the reading.")


class StatisticsResponse(BaseModel):
    """Aggregate over every stored reading; zeros when there are none."""

    model_config = ConfigDict(populate_by_name=True)

    avg_ppm: float = Field(0.0, alias="avgPpm")
    max_ppm: float = Field(0.0, alias="maxPpm")
    min_ppm: float = Field(0.0, alias="minPpm")
    count: int = Field(0, ge=0)


class HealthStatus(str, Enum):
    ok = "ok"
    degraded = "degraded"


class SubscriberHealth(BaseModel):
    state: SubscriberState
    processed: int = 0
    persisted: int = 0
    skipped: int = 0
    last_error: Optional[str] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    subscriber: Optional[SubscriberHealth] = None
