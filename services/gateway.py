"""HTTP-side ingestion: normalize, persist, then fan out to the broker."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from broker.publisher import PublishResult
from datastore.readings import ReadingStore
from models.records import StoredReading
from services.normalizer import normalize
from services.recording import MonotonicClock, record_reading

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    def publish(self, payload: Mapping[str, Any]) -> PublishResult: ...


@dataclass(frozen=True)
class IngestOutcome:
    reading: StoredReading
    publish: PublishResult

    @property
    def published(self) -> bool:
        return self.publish.ok


class IngestionGateway:
    """Accepts readings submitted over HTTP.

    The store is the source of truth: once the insert succeeds the caller is
    told so, whatever happens to the broker publish that follows it.
    """

    def __init__(self, store: ReadingStore, publisher: Publisher, clock: MonotonicClock) -> None:
        self.store = store
        self.publisher = publisher
        self.clock = clock

    def ingest(self, raw: Mapping[str, Any]) -> IngestOutcome:
        """Persist ``raw`` and forward it to the broker.

        ``ValidationError`` and ``StoreError`` propagate to the caller; a
        failed publish is only logged.
        """
        reading = normalize(raw)
        stored = record_reading(self.store, reading, self.clock)

        # Publish the payload exactly as received, not the normalized record.
        result = self.publisher.publish(raw)
        if not result.ok:
            logger.warning(
                "Reading stored but not forwarded to broker",
                extra={
                    "device_id": stored.device_id,
                    "reading_id": stored.id,
                    "error": result.error,
                },
            )
        return IngestOutcome(reading=stored, publish=result)

    def record_test(self, body: Any) -> None:
        logger.info("Test endpoint hit")
        logger.info("Request body: %s", body)
