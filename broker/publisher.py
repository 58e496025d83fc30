"""Synchronous event publishing on top of KafkaProducer."""

from __future__ import annotations

import logging

from kafka import KafkaProducer
from kafka.errors import KafkaError

from broker.config import PUBLISH_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class PublishError(RuntimeError):
    """The broker did not acknowledge a produced message."""


class EventPublisher:
    """Sends one message and waits for the broker acknowledgement."""

    def __init__(self, producer: KafkaProducer, timeout: float = PUBLISH_TIMEOUT_SECONDS) -> None:
        self._producer = producer
        self._timeout = timeout

    def publish(
        self,
        topic: str,
        key: str,
        value: bytes,
        headers: list[tuple[str, bytes | None]] | None = None,
    ) -> None:
        try:
            future = self._producer.send(topic, key=key.encode("utf-8"), value=value, headers=headers or [])
            md = future.get(timeout=self._timeout)  # forces error visibility + confirms publish
        except KafkaError as e:
            raise PublishError(f"publish to {topic} (key {key}) failed: {e}") from e
        logger.debug("Published %s key=%s partition=%s offset=%s", topic, key, md.partition, md.offset)

    def close(self) -> None:
        self._producer.flush(timeout=self._timeout)
        self._producer.close(timeout=self._timeout)
