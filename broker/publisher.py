"""Best-effort forwarding of accepted readings onto the readings topic."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Mapping, Optional, Sequence

from kafka import KafkaProducer
from kafka.errors import KafkaError

from services.errors import PublishError
from settings import PRODUCER_CLIENT_ID, READINGS_TOPIC

logger = logging.getLogger(__name__)

ProducerFactory = Callable[[], Any]


@dataclass(frozen=True)
class PublishResult:
    """Outcome of a publish attempt.

    Publishing is best-effort: a failed result is a normal return value that
    callers may log and discard, never an exception.
    """

    error: Optional[PublishError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls) -> "PublishResult":
        return cls()

    @classmethod
    def failure(cls, error: PublishError) -> "PublishResult":
        return cls(error=error)


def build_kafka_producer_factory(bootstrap_servers: Sequence[str]) -> ProducerFactory:
    def factory() -> KafkaProducer:
        return KafkaProducer(
            bootstrap_servers=list(bootstrap_servers),
            client_id=PRODUCER_CLIENT_ID,
        )

    return factory


class KafkaPublisher:
    """Publishes raw reading payloads over one long-lived producer.

    The lock only guards creating and swapping the producer; sends run
    concurrently on the shared, thread-safe client. A failed send discards
    the producer it used, so the next call reconnects.
    """

    def __init__(
        self,
        producer_factory: ProducerFactory,
        topic: str = READINGS_TOPIC,
        publish_timeout: float = 10.0,
    ) -> None:
        self.topic = topic
        self.publish_timeout = publish_timeout
        self._producer_factory = producer_factory
        self._producer: Optional[Any] = None
        self._lock = Lock()

    def publish(self, payload: Mapping[str, Any]) -> PublishResult:
        """Send ``payload`` as one UTF-8 JSON message and wait for the ack."""
        try:
            body = json.dumps(payload).encode("utf-8")
        except (TypeError, ValueError) as exc:
            return PublishResult.failure(PublishError(f"Payload is not serialisable: {exc}"))

        try:
            producer = self._checkout()
        except Exception as exc:  # noqa: BLE001 - publishing never raises into the caller
            return self._failure(exc)

        try:
            future = producer.send(self.topic, value=body)
            future.get(timeout=self.publish_timeout)
        except Exception as exc:  # noqa: BLE001 - publishing never raises into the caller
            self._discard(producer)
            return self._failure(exc)

        logger.info("Reading forwarded to broker", extra={"topic": self.topic})
        return PublishResult.success()

    def close(self) -> None:
        with self._lock:
            producer, self._producer = self._producer, None
        if producer is not None:
            self._close_producer(producer)

    def _checkout(self) -> Any:
        with self._lock:
            if self._producer is None:
                self._producer = self._producer_factory()
            return self._producer

    def _discard(self, producer: Any) -> None:
        # Another call may already have replaced the producer that failed here.
        with self._lock:
            if self._producer is not producer:
                return
            self._producer = None
        self._close_producer(producer)

    def _close_producer(self, producer: Any) -> None:
        try:
            producer.close(timeout=self.publish_timeout)
        except Exception as exc:  # noqa: BLE001 - the producer is being dropped anyway
            logger.warning("Failed to close broker producer", extra={"error": exc})

    def _failure(self, exc: Exception) -> PublishResult:
        if not isinstance(exc, (KafkaError, OSError)):
            logger.exception("Unexpected error while publishing", extra={"topic": self.topic})
        return PublishResult.failure(
            PublishError(f"Broker rejected message for {self.topic}: {exc}")
        )
