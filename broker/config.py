"""Kafka configuration."""

import os


def _broker_address(raw: str) -> str:
    """Strip a protocol prefix such as PLAINTEXT:// from a broker address."""
    return raw.split("://", 1)[1] if "://" in raw else raw


KAFKA_BROKER = _broker_address(os.getenv("KAFKA_BROKER", "localhost:9092"))
CLIENT_ID = os.getenv("KAFKA_CLIENT_ID", "inventory-service")

TOPIC_ALBUM_CREATED = "album-created"
TOPIC_ORDER_CREATED = "order-created"
TOPIC_ORDER_SUCCEEDED = "order-succeeded"
TOPIC_ORDER_FAILED = "order-failed"
ALL_TOPICS = (TOPIC_ALBUM_CREATED, TOPIC_ORDER_CREATED, TOPIC_ORDER_SUCCEEDED, TOPIC_ORDER_FAILED)

GROUP_ORDERS = os.getenv("ORDER_CONSUMER_GROUP", "inventory-service-consumers")
GROUP_ALBUMS = os.getenv("ALBUM_CONSUMER_GROUP", "inventory-service-album-init")

PUBLISH_TIMEOUT_SECONDS = float(os.getenv("PUBLISH_TIMEOUT_SECONDS", "10"))
CONNECT_ATTEMPTS = int(os.getenv("KAFKA_CONNECT_ATTEMPTS", "30"))
CONNECT_BACKOFF_SECONDS = float(os.getenv("KAFKA_CONNECT_BACKOFF_SECONDS", "2"))
