"""Read-only access to stored readings."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional

from datastore.readings import ReadingStore
from models.records import ReadingStatistics, StoredReading
from services.errors import ValidationError
from services.normalizer import parse_timestamp
from settings import DEFAULT_LIST_LIMIT

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def parse_limit(value: Optional[str]) -> int:
    """Read the leading integer of a ``limit`` query value.

    Trailing text is ignored, so ``"10abc"`` is 10 and ``"1.5"`` is 1. A value
    with no leading digits is rejected.
    """
    if value is None or not value.strip():
        return DEFAULT_LIST_LIMIT
    match = _LEADING_INT_RE.match(value)
    if match is None:
        raise ValidationError(f"limit must be an integer, got {value!r}", field="limit")
    return int(match.group(1))


def parse_bound(value: Optional[str]) -> Optional[datetime]:
    """Parse a ``from``/``to`` query bound.

    Bounds are not validated: one that cannot be parsed is logged and
    dropped, so the query runs as if it had not been given.
    """
    if value is None or not value.strip():
        return None
    try:
        return parse_timestamp(value)
    except ValidationError:
        logger.warning("Ignoring unparseable time bound", extra={"reason": value})
        return None


class QueryService:
    def __init__(self, store: ReadingStore) -> None:
        self.store = store

    def list_readings(
        self,
        limit: int = DEFAULT_LIST_LIMIT,
        from_: Optional[str] = None,
        to: Optional[str] = None,
    ) -> list[StoredReading]:
        """Newest readings first, optionally bounded on ``timestamp``."""
        return self.store.list_readings(
            limit=limit,
            from_ts=parse_bound(from_),
            to_ts=parse_bound(to),
        )

    def statistics(self) -> ReadingStatistics:
        return self.store.statistics()
