from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from kafka import KafkaAdminClient
from kafka.admin import NewTopic
from kafka.errors import KafkaError, TopicAlreadyExistsError, for_code

from services.errors import TopicProvisionError
from settings import (
    ADMIN_CLIENT_ID,
    READINGS_TOPIC,
    TOPIC_PARTITIONS,
    TOPIC_REPLICATION_FACTOR,
)

logger = logging.getLogger(__name__)

AdminFactory = Callable[[], Any]


@dataclass(frozen=True)
class TopicProvisionResult:
    created: bool
    message: str


def build_kafka_admin_factory(bootstrap_servers: Sequence[str]) -> AdminFactory:
    def factory() -> KafkaAdminClient:
        return KafkaAdminClient(
            bootstrap_servers=list(bootstrap_servers),
            client_id=ADMIN_CLIENT_ID,
        )

    return factory


class TopicProvisioner:
    """Makes sure the readings topic exists; safe to call repeatedly."""

    def __init__(
        self,
        admin_factory: AdminFactory,
        topic: str = READINGS_TOPIC,
        partitions: int = TOPIC_PARTITIONS,
        replication_factor: int = TOPIC_REPLICATION_FACTOR,
    ) -> None:
        self._admin_factory = admin_factory
        self.topic = topic
        self.partitions = partitions
        self.replication_factor = replication_factor

    def ensure_topic(self) -> TopicProvisionResult:
        try:
            admin = self._admin_factory()
        except KafkaError as exc:
            logger.error("Broker unavailable for topic provisioning", extra={"error": exc})
            raise TopicProvisionError(f"Broker unavailable: {exc}") from exc

        try:
            response = admin.create_topics(
                [
                    NewTopic(
                        name=self.topic,
                        num_partitions=self.partitions,
                        replication_factor=self.replication_factor,
                    )
                ]
            )
            _raise_topic_errors(response)
        except TopicAlreadyExistsError:
            logger.info("Topic already exists", extra={"topic": self.topic})
            return TopicProvisionResult(created=False, message="Topic already exists")
        except KafkaError as exc:
            logger.error(
                "Error creating topic", extra={"topic": self.topic, "error": exc}
            )
            raise TopicProvisionError(f"Could not create topic {self.topic}: {exc}") from exc
        finally:
            admin.close()

        logger.info("Topic created", extra={"topic": self.topic})
        return TopicProvisionResult(created=True, message="Topic created successfully")


def _raise_topic_errors(response: Any) -> None:
    # Some client versions report per-topic failures in the response instead
    # of raising them.
    for topic_error in getattr(response, "topic_errors", None) or ():
        error_code = topic_error[1]
        if error_code:
            error_type = for_code(error_code)
            raise error_type(topic_error[2] if len(topic_error) > 2 else topic_error[0])
