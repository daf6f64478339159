"""Shared fakes standing in for the Kafka client objects."""

from __future__ import annotations

from collections import namedtuple
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional

import pytest
from kafka.errors import NoBrokersAvailable

from broker.admin import TopicProvisioner
from broker.publisher import KafkaPublisher
from broker.subscriber import ReadingSubscriber
from datastore.readings import ReadingStore
from services.container import ServiceContainer
from services.recording import MonotonicClock

ConsumerRecord = namedtuple("ConsumerRecord", ["topic", "partition", "offset", "value"])


class FakeFuture:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error

    def get(self, timeout: Optional[float] = None) -> object:
        if self.error is not None:
            raise self.error
        return object()


class FakeProducer:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.sent: List[tuple[str, bytes]] = []
        self.closed = False

    def send(self, topic: str, value: bytes) -> FakeFuture:
        self.sent.append((topic, value))
        return FakeFuture(self.error)

    def close(self, timeout: Optional[float] = None) -> None:
        self.closed = True


class ClosedProducer(FakeProducer):
    """Producer whose client was already shut down underneath it."""

    def send(self, topic: str, value: bytes) -> FakeFuture:
        raise AssertionError("KafkaProducer already closed!")


class ProducerFactory:
    """Hands out producers and remembers each one it built."""

    def __init__(self, error: Optional[Exception] = None, unavailable: bool = False) -> None:
        self.error = error
        self.unavailable = unavailable
        self.producers: List[FakeProducer] = []

    def __call__(self) -> FakeProducer:
        if self.unavailable:
            raise NoBrokersAvailable()
        producer = FakeProducer(self.error)
        self.producers.append(producer)
        return producer

    @property
    def sent(self) -> List[tuple[str, bytes]]:
        return [message for producer in self.producers for message in producer.sent]


class FakeConsumer:
    """Replays scripted poll batches, then returns empty polls."""

    def __init__(
        self,
        batches: Optional[List[Dict[Any, List[ConsumerRecord]]]] = None,
        poll_error: Optional[Exception] = None,
    ) -> None:
        self.batches = list(batches or [])
        self.poll_error = poll_error
        self.subscribed: List[str] = []
        self.commits = 0
        self.closed = False

    def subscribe(self, topics: List[str]) -> None:
        self.subscribed.extend(topics)

    def poll(self, timeout_ms: int = 0) -> Dict[Any, List[ConsumerRecord]]:
        if self.batches:
            return self.batches.pop(0)
        if self.poll_error is not None:
            raise self.poll_error
        return {}

    def commit(self) -> None:
        self.commits += 1

    def close(self) -> None:
        self.closed = True


class FakeAdmin:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.created: List[Any] = []
        self.closed = False

    def create_topics(self, new_topics: List[Any]) -> None:
        if self.error is not None:
            raise self.error
        self.created.extend(new_topics)

    def close(self) -> None:
        self.closed = True


class SteppingClock:
    """Clock source that advances one second per call from a fixed start."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + timedelta(seconds=1)
        return value


def stop_when_drained(subscriber: ReadingSubscriber, consumer: FakeConsumer) -> None:
    """Run ``subscriber`` inline until ``consumer`` has no batches left."""
    original_poll = consumer.poll

    def poll(timeout_ms: int = 0):
        batch = original_poll(timeout_ms)
        if not consumer.batches:
            subscriber._stop_event.set()  # type: ignore[attr-defined]
        return batch

    consumer.poll = poll  # type: ignore[method-assign]
    subscriber.run()


@pytest.fixture
def store() -> Iterator[ReadingStore]:
    reading_store = ReadingStore.from_uri("sqlite://")
    yield reading_store
    reading_store.close()


@pytest.fixture
def clock() -> MonotonicClock:
    return MonotonicClock(SteppingClock())


@pytest.fixture
def producer_factory() -> ProducerFactory:
    return ProducerFactory()


@pytest.fixture
def container(store: ReadingStore, clock: MonotonicClock, producer_factory: ProducerFactory) -> ServiceContainer:
    return ServiceContainer(
        store=store,
        publisher=KafkaPublisher(producer_factory),
        provisioner=TopicProvisioner(FakeAdmin),
        subscriber=None,
        clock=clock,
    )
