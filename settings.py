from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_PORT_ENV = "PORT"
_STORE_URI_ENV = "STORE_URI"
_KAFKA_BROKER_ENV = "KAFKA_BROKER"
_LOG_LEVEL_ENV = "LOG_LEVEL"

READINGS_TOPIC = "gas-sensor-readings"
CONSUMER_GROUP_ID = "gas-sensor-group"
CONSUMER_CLIENT_ID = "gas-sensor-consumer"
PRODUCER_CLIENT_ID = "gas-sensor-producer"
ADMIN_CLIENT_ID = "topic-creator"
TOPIC_PARTITIONS = 3
TOPIC_REPLICATION_FACTOR = 1
DEFAULT_LIST_LIMIT = 100


@dataclass(frozen=True)
class Settings:
    port: int
    store_uri: str
    kafka_bootstrap_servers: tuple[str, ...]
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_port(default: int) -> int:
    value = os.getenv(_PORT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bootstrap_servers(default: str) -> tuple[str, ...]:
    raw = _read_str_env(_KAFKA_BROKER_ENV, default)
    servers = tuple(part.strip() for part in raw.split(",") if part.strip())
    return servers or (default,)


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        port=_read_port(3000),
        store_uri=_read_str_env(_STORE_URI_ENV, "sqlite:///./tmp/readings.db"),
        kafka_bootstrap_servers=_read_bootstrap_servers("localhost:9092"),
        log_level=_read_log_level("INFO"),
    )
