"""Create the Kafka topics used by the inventory flow."""

from __future__ import annotations

import logging

from kafka.admin import KafkaAdminClient, NewTopic
from kafka.errors import TopicAlreadyExistsError

from broker.clients import connect_with_retry
from broker.config import ALL_TOPICS, CLIENT_ID, KAFKA_BROKER

logger = logging.getLogger(__name__)


def ensure_topics(topics: tuple[str, ...] = ALL_TOPICS) -> list[str]:
    """Create missing topics with one partition each. Returns the names created."""
    admin = connect_with_retry(
        lambda: KafkaAdminClient(bootstrap_servers=KAFKA_BROKER, client_id=f"{CLIENT_ID}-admin"),
        "admin",
    )
    try:
        existing = set(admin.list_topics())
        missing = [t for t in topics if t not in existing]
        if not missing:
            logger.info("Kafka topics already exist: %s", ", ".join(topics))
            return []
        try:
            admin.create_topics(
                new_topics=[NewTopic(name=t, num_partitions=1, replication_factor=1) for t in missing],
                validate_only=False,
            )
        except TopicAlreadyExistsError:
            # another replica created them first
            logger.info("Kafka topics created concurrently: %s", ", ".join(missing))
            return []
        logger.info("Kafka topics created: %s", ", ".join(missing))
        return missing
    finally:
        admin.close()
