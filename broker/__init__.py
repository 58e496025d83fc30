"""Shared Kafka broker config, clients, topic setup and publisher."""

from broker.config import (
    ALL_TOPICS,
    TOPIC_ALBUM_CREATED,
    TOPIC_ORDER_CREATED,
    TOPIC_ORDER_FAILED,
    TOPIC_ORDER_SUCCEEDED,
)
from broker.publisher import EventPublisher, PublishError

__all__ = [
    "ALL_TOPICS",
    "TOPIC_ALBUM_CREATED",
    "TOPIC_ORDER_CREATED",
    "TOPIC_ORDER_SUCCEEDED",
    "TOPIC_ORDER_FAILED",
    "EventPublisher",
    "PublishError",
]
