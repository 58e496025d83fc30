"""Kafka client factories with connect retries."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from kafka import KafkaConsumer, KafkaProducer
from kafka.errors import NoBrokersAvailable

from broker.config import CLIENT_ID, CONNECT_ATTEMPTS, CONNECT_BACKOFF_SECONDS, KAFKA_BROKER

logger = logging.getLogger(__name__)

T = TypeVar("T")


def connect_with_retry(factory: Callable[[], T], what: str) -> T:
    """Call factory until the broker answers, up to CONNECT_ATTEMPTS times."""
    for attempt in range(CONNECT_ATTEMPTS):
        try:
            return factory()
        except NoBrokersAvailable as e:
            logger.warning("Kafka %s connect attempt %s failed: %s", what, attempt + 1, e)
            time.sleep(CONNECT_BACKOFF_SECONDS)
    raise RuntimeError(f"Could not connect {what} to Kafka at {KAFKA_BROKER}")


def make_consumer(topic: str, group_id: str) -> KafkaConsumer:
    """
    Consumer for one topic with manual offset commits.

    One record per poll keeps processing strictly in arrival order and lets a
    failed message be re-read by seeking back to its offset.
    """
    return connect_with_retry(
        lambda: KafkaConsumer(
            topic,
            bootstrap_servers=KAFKA_BROKER,
            client_id=f"{CLIENT_ID}-{topic}",
            group_id=group_id,
            enable_auto_commit=False,
            auto_offset_reset="earliest",
            max_poll_records=1,
            key_deserializer=lambda b: b.decode("utf-8") if b else None,
        ),
        f"consumer[{topic}]",
    )


def make_producer() -> KafkaProducer:
    return connect_with_retry(
        lambda: KafkaProducer(
            bootstrap_servers=KAFKA_BROKER,
            client_id=CLIENT_ID,
            acks="all",
            retries=5,
            linger_ms=5,
        ),
        "producer",
    )
