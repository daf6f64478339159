"""Process-wide resource handles and their lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from broker.admin import TopicProvisioner, build_kafka_admin_factory
from broker.publisher import KafkaPublisher, build_kafka_producer_factory
from broker.subscriber import ReadingSubscriber, build_kafka_consumer_factory
from datastore.readings import ReadingStore
from services.gateway import IngestionGateway
from services.query import QueryService
from services.recording import MonotonicClock
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Owns the store, broker clients and the services built on them.

    Built once when the process starts and handed to the HTTP layer; nothing
    below it reaches for module-level state.
    """

    store: ReadingStore
    publisher: KafkaPublisher
    provisioner: TopicProvisioner
    subscriber: Optional[ReadingSubscriber]
    clock: MonotonicClock = field(default_factory=MonotonicClock)
    gateway: IngestionGateway = field(init=False)
    query: QueryService = field(init=False)

    def __post_init__(self) -> None:
        self.gateway = IngestionGateway(self.store, self.publisher, self.clock)
        self.query = QueryService(self.store)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ServiceContainer":
        settings = settings or get_settings()
        servers = settings.kafka_bootstrap_servers
        store = ReadingStore.from_uri(settings.store_uri)
        clock = MonotonicClock()
        return cls(
            store=store,
            publisher=KafkaPublisher(build_kafka_producer_factory(servers)),
            provisioner=TopicProvisioner(build_kafka_admin_factory(servers)),
            subscriber=ReadingSubscriber(build_kafka_consumer_factory(servers), store, clock),
            clock=clock,
        )

    def start(self) -> None:
        if self.subscriber is not None:
            self.subscriber.start()
        logger.info("Ingestion services started")

    def shutdown(self, timeout: float = 10.0) -> None:
        stopped = self.subscriber is None or self.subscriber.stop(timeout)
        self.publisher.close()
        if not stopped:
            # The loop may still be writing; the store goes with the process.
            logger.warning("Leaving reading store open for running subscriber")
            return
        self.store.close()
        logger.info("Ingestion services stopped")
