"""Failure taxonomy for the ingestion pipeline."""

from __future__ import annotations


class IngestError(Exception):
    """Base class for every pipeline failure."""


class ValidationError(IngestError):
    """The payload is missing a required field or carries an ill-typed one."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class DecodeError(IngestError):
    """Message bytes could not be turned into a JSON object."""


class StoreError(IngestError):
    """The persistence store is unavailable or rejected the write."""


class PublishError(IngestError):
    """The broker could not accept a message."""


class TopicProvisionError(IngestError):
    """The readings topic could not be ensured on the broker."""
