"""HTTP route definitions for the service."""

from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from starlette.concurrency import run_in_threadpool

from app.schemas import (
    ErrorResponse,
    HealthResponse,
    HealthStatus,
    ReadingResponse,
    StatisticsResponse,
    SubscriberHealth,
    SuccessResponse,
    TopicResponse,
)
from broker.subscriber import SubscriberState
from services.container import ServiceContainer
from services.normalizer import decode_payload
from services.query import parse_limit

router = APIRouter()


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("Service container is not initialised.")
    return container


@router.post(
    "/api/sensor-data",
    response_model=SuccessResponse,
    status_code=status.HTTP_200_OK,
    summary="Store a sensor reading and forward it to the broker.",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def submit_reading(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> SuccessResponse:
    payload = decode_payload(await request.body())
    await run_in_threadpool(container.gateway.ingest, payload)
    return SuccessResponse()


@router.post(
    "/api/test",
    response_model=SuccessResponse,
    summary="Diagnostic endpoint that only logs the request body.",
)
async def test_endpoint(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> SuccessResponse:
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else None
    except ValueError:
        body = raw.decode("utf-8", errors="replace")
    container.gateway.record_test(body)
    return SuccessResponse()


@router.get(
    "/api/create-kafka-topic",
    response_model=TopicResponse,
    summary="Ensure the readings topic exists on the broker.",
)
def create_topic(container: ServiceContainer = Depends(get_container)) -> TopicResponse:
    result = container.provisioner.ensure_topic()
    return TopicResponse(success=True, message=result.message)


@router.get(
    "/api/sensor-data",
    response_model=list[ReadingResponse],
    response_model_exclude_none=True,
    summary="List stored readings, newest first.",
    responses={400: {"model": ErrorResponse}},
)
def list_readings(
    limit: Optional[str] = Query(None, description="Maximum number of readings (default 100)."),
    from_: Optional[str] = Query(None, alias="from", description="Inclusive lower bound."),
    to: Optional[str] = Query(None, description="Inclusive upper bound."),
    container: ServiceContainer = Depends(get_container),
) -> list[ReadingResponse]:
    readings = container.query.list_readings(limit=parse_limit(limit), from_=from_, to=to)
    return [ReadingResponse.model_validate(reading) for reading in readings]


@router.get(
    "/api/statistics",
    response_model=StatisticsResponse,
    summary="Average, maximum and minimum alcohol ppm over all readings.",
)
def statistics(container: ServiceContainer = Depends(get_container)) -> StatisticsResponse:
    stats = container.query.statistics()
    return StatisticsResponse(
        avg_ppm=stats.avg_ppm,
        max_ppm=stats.max_ppm,
        min_ppm=stats.min_ppm,
        count=stats.count,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint.",
)
def healthcheck(container: ServiceContainer = Depends(get_container)) -> HealthResponse:
    subscriber = container.subscriber
    if subscriber is None:
        return HealthResponse(status=HealthStatus.ok)

    details = SubscriberHealth(**subscriber.describe())
    health = HealthStatus.degraded if details.state is SubscriberState.failed else HealthStatus.ok
    return HealthResponse(status=health, subscriber=details)
