from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import router
from logging_config import configure_logging
from services.container import ServiceContainer
from services.errors import DecodeError, StoreError, TopicProvisionError, ValidationError
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    container: Optional[ServiceContainer] = app.state.container
    owned = container is None
    if container is None:
        container = ServiceContainer.from_settings(get_settings())
        app.state.container = container

    container.start()
    try:
        yield
    finally:
        container.shutdown()
        if owned:
            app.state.container = None


async def _client_error(_request: Request, exc: Exception) -> JSONResponse:
    logger.info("Rejected request", extra={"reason": str(exc)})
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})


async def _store_error(_request: Request, exc: Exception) -> JSONResponse:
    logger.error("Error processing sensor data", extra={"error": exc})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Reading store is unavailable, please retry."},
    )


async def _topic_error(_request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(exc)}
    )


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Gas Sensor Ingest",
        description="Dual-path ingestion of gas sensor readings over HTTP and Kafka.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.add_exception_handler(ValidationError, _client_error)
    app.add_exception_handler(DecodeError, _client_error)
    app.add_exception_handler(StoreError, _store_error)
    app.add_exception_handler(TopicProvisionError, _topic_error)
    app.include_router(router)
    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(create_app(), host="0.0.0.0", port=settings.port, log_config=None)


app = create_app()


if __name__ == "__main__":
    run()
