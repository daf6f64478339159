from __future__ import annotations

import pytest
from kafka.errors import NoBrokersAvailable, TopicAlreadyExistsError, UnknownError

from broker.admin import TopicProvisioner
from conftest import FakeAdmin
from services.errors import TopicProvisionError


def test_ensure_topic_creates_topic_with_fixed_layout() -> None:
    admin = FakeAdmin()
    provisioner = TopicProvisioner(lambda: admin)

    result = provisioner.ensure_topic()

    assert result.created is True
    assert result.message == "Topic created successfully"
    (topic,) = admin.created
    assert topic.name == "gas-sensor-readings"
    assert topic.num_partitions == 3
    assert topic.replication_factor == 1
    assert admin.closed is True


def test_existing_topic_is_success() -> None:
    admin = FakeAdmin(error=TopicAlreadyExistsError("exists"))
    provisioner = TopicProvisioner(lambda: admin)

    result = provisioner.ensure_topic()

    assert result.created is False
    assert admin.closed is True


def test_broker_errors_raise_provision_error() -> None:
    admin = FakeAdmin(error=UnknownError("boom"))
    provisioner = TopicProvisioner(lambda: admin)

    with pytest.raises(TopicProvisionError):
        provisioner.ensure_topic()
    assert admin.closed is True


def test_unreachable_broker_raises_provision_error() -> None:
    def factory():
        raise NoBrokersAvailable()

    with pytest.raises(TopicProvisionError):
        TopicProvisioner(factory).ensure_topic()
