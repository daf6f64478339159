"""Long-lived consumer that persists readings arriving on the topic."""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence

from kafka import KafkaConsumer
from kafka.errors import KafkaError

from datastore.readings import ReadingStore
from services.errors import DecodeError, StoreError, ValidationError
from services.normalizer import decode_payload, normalize
from services.recording import MonotonicClock, record_reading
from settings import CONSUMER_CLIENT_ID, CONSUMER_GROUP_ID, READINGS_TOPIC

logger = logging.getLogger(__name__)

ConsumerFactory = Callable[[], Any]


class SubscriberState(str, Enum):
    """Lifecycle of the subscriber thread."""

    disconnected = "disconnected"
    connecting = "connecting"
    subscribed = "subscribed"
    processing = "processing"
    stopped = "stopped"
    failed = "failed"


@dataclass
class SubscriberStats:
    processed: int = 0
    persisted: int = 0
    skipped: int = 0
    last_error: Optional[str] = None


def build_kafka_consumer_factory(
    bootstrap_servers: Sequence[str],
    group_id: str = CONSUMER_GROUP_ID,
) -> ConsumerFactory:
    def factory() -> KafkaConsumer:
        # Offsets are committed by hand once a batch has been handled, which
        # keeps delivery at-least-once.
        return KafkaConsumer(
            bootstrap_servers=list(bootstrap_servers),
            group_id=group_id,
            client_id=CONSUMER_CLIENT_ID,
            auto_offset_reset="latest",
            enable_auto_commit=False,
        )

    return factory


class ReadingSubscriber:
    """Consumes the readings topic on a dedicated thread.

    Messages are handled one at a time in delivery order. A message that
    cannot be decoded, validated or stored is logged and skipped; only a
    broker-level failure ends the loop, and restarting after that is left to
    whatever supervises the process.
    """

    def __init__(
        self,
        consumer_factory: ConsumerFactory,
        store: ReadingStore,
        clock: MonotonicClock,
        topic: str = READINGS_TOPIC,
        poll_timeout_ms: int = 500,
    ) -> None:
        self.topic = topic
        self.poll_timeout_ms = poll_timeout_ms
        self.stats = SubscriberStats()
        self._consumer_factory = consumer_factory
        self._store = store
        self._clock = clock
        self._state = SubscriberState.disconnected
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> SubscriberState:
        return self._state

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run, name="reading-subscriber", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float = 10.0) -> bool:
        """Ask the loop to exit; returns ``False`` if it is still running."""
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning(
                "Subscriber did not stop in time",
                extra={"state": self._state.value, "reason": f"timeout={timeout}s"},
            )
            return False
        self._thread = None
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the loop exits; returns ``False`` on timeout."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        return not thread.is_alive()

    def describe(self) -> Dict[str, Any]:
        return {"state": self._state.value, **asdict(self.stats)}

    def run(self) -> None:
        """Connect, subscribe and consume until stopped or the broker fails."""
        self._set_state(SubscriberState.connecting)
        try:
            consumer = self._consumer_factory()
        except KafkaError as exc:
            self._fail("Could not connect to broker", exc)
            return
        except Exception as exc:  # noqa: BLE001 - the thread must not die silently
            self._fail("Could not create broker consumer", exc, exc_info=True)
            return

        try:
            consumer.subscribe(topics=[self.topic])
            self._set_state(SubscriberState.subscribed)
            self._consume(consumer)
        except KafkaError as exc:
            self._fail("Broker connection failed", exc)
        except Exception as exc:  # noqa: BLE001 - the thread must not die silently
            self._fail("Subscriber loop crashed", exc, exc_info=True)
        else:
            self._set_state(SubscriberState.stopped)
        finally:
            consumer.close()

    def handle_message(self, value: Any, context: Optional[Dict[str, Any]] = None) -> bool:
        """Persist one message body; returns ``False`` when it was skipped."""
        context = dict(context or {})
        self.stats.processed += 1
        try:
            payload = decode_payload(value)
            reading = normalize(payload)
            stored = record_reading(self._store, reading, self._clock)
        except DecodeError as exc:
            return self._skip("undecodable message", exc, context)
        except ValidationError as exc:
            return self._skip("invalid reading", exc, context)
        except StoreError as exc:
            return self._skip("store write failed", exc, context)
        except Exception as exc:  # noqa: BLE001 - one bad message must not end the loop
            self.stats.skipped += 1
            self.stats.last_error = str(exc)
            logger.exception(
                "Skipping message", extra={**context, "reason": "unexpected error"}
            )
            return False

        self.stats.persisted += 1
        logger.info(
            "Message persisted",
            extra={**context, "device_id": stored.device_id, "reading_id": stored.id},
        )
        return True

    def _consume(self, consumer: Any) -> None:
        while not self._stop_event.is_set():
            batches = consumer.poll(timeout_ms=self.poll_timeout_ms)
            if not batches:
                continue

            self._set_state(SubscriberState.processing)
            for records in batches.values():
                for record in records:
                    self.handle_message(
                        record.value,
                        {
                            "topic": record.topic,
                            "partition": record.partition,
                            "offset": record.offset,
                        },
                    )
            consumer.commit()
            self._set_state(SubscriberState.subscribed)

    def _skip(self, reason: str, exc: Exception, context: Dict[str, Any]) -> bool:
        self.stats.skipped += 1
        self.stats.last_error = str(exc)
        logger.warning(
            "Skipping message",
            extra={**context, "reason": reason, "error": exc},
        )
        return False

    def _fail(self, message: str, exc: Exception, exc_info: bool = False) -> None:
        self.stats.last_error = str(exc)
        self._set_state(SubscriberState.failed)
        logger.error(message, exc_info=exc_info, extra={"topic": self.topic, "error": exc})

    def _set_state(self, state: SubscriberState) -> None:
        if state is self._state:
            return
        self._state = state
        logger.debug("Subscriber state changed", extra={"state": state.value})
