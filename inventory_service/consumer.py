"""
Kafka consuming loops for the inventory service.

One loop per topic, each on its own thread, each handling a single partition
strictly in arrival order. Offsets are committed manually after a message is
handled (poison messages included). A storage failure leaves the offset
uncommitted and rewinds to the failed message so it is redelivered; so does
any other unexpected handler error, which is logged and retried without
ending the loop.

Run standalone with ``python -m inventory_service.consumer``.
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import Protocol

from kafka import KafkaConsumer
from kafka.errors import KafkaError

from broker.clients import make_consumer, make_producer
from broker.config import GROUP_ALBUMS, GROUP_ORDERS, TOPIC_ALBUM_CREATED, TOPIC_ORDER_CREATED
from broker.publisher import EventPublisher
from broker.setup import ensure_topics
from common.logging import setup_logging
from common.storage import InventoryStore, StorageUnavailableError
from common.tracing import KafkaHeaders, setup_tracing
from inventory_service import config
from inventory_service.bootstrap import CatalogBootstrapListener
from inventory_service.coordinator import Outcome, Publisher, ReservationCoordinator

logger = logging.getLogger(__name__)


class MessageHandler(Protocol):
    def handle(self, value: bytes | None, headers: KafkaHeaders | None = None) -> Outcome: ...


class ConsumerLoop:
    def __init__(
        self,
        consumer: KafkaConsumer,
        handler: MessageHandler,
        name: str,
        *,
        retry_backoff: float = config.RETRY_BACKOFF_SECONDS,
    ) -> None:
        self.name = name
        self._consumer = consumer
        self._handler = handler
        self._retry_backoff = retry_backoff
        self._stop = threading.Event()

    def run_once(self, timeout_ms: int = 1000) -> int:
        """Poll once and handle what arrived. Returns the number of messages committed."""
        records = self._consumer.poll(timeout_ms=timeout_ms, max_records=1)
        committed = 0
        for tp, msgs in records.items():
            for m in msgs:
                try:
                    outcome = self._handler.handle(m.value, m.headers)
                except StorageUnavailableError as e:
                    logger.warning(
                        "%s: storage unavailable at partition=%s offset=%s, will retry: %s",
                        self.name,
                        tp.partition,
                        m.offset,
                        e,
                    )
                    self._rewind(tp, m.offset)
                    return committed
                except Exception:
                    logger.exception(
                        "%s: unexpected error at partition=%s offset=%s, will retry",
                        self.name,
                        tp.partition,
                        m.offset,
                    )
                    self._rewind(tp, m.offset)
                    return committed
                self._commit(tp.partition, m.offset, outcome)
                committed += 1
        return committed

    def _rewind(self, tp, offset: int) -> None:
        # Offset stays uncommitted; the same message comes back on the next poll.
        self._consumer.seek(tp, offset)
        self._stop.wait(self._retry_backoff)

    def _commit(self, partition: int, offset: int, outcome: Outcome) -> None:
        try:
            self._consumer.commit()
        except KafkaError as e:
            # Handling is idempotent; the message will simply be seen again.
            logger.warning("%s: commit failed for offset %s (%s): %s", self.name, offset, outcome.value, e)
            return
        logger.debug("%s: committed partition=%s offset=%s (%s)", self.name, partition, offset, outcome.value)

    def run(self) -> None:
        logger.info("%s consuming", self.name)
        try:
            while not self._stop.is_set():
                try:
                    self.run_once()
                except KafkaError as e:
                    logger.warning("%s: poll failed, backing off: %s", self.name, e)
                    self._stop.wait(self._retry_backoff)
        finally:
            self._consumer.close()
            logger.info("%s stopped", self.name)

    def stop(self) -> None:
        self._stop.set()


class InventoryConsumers:
    """The order-created and album-created loops, run in parallel threads."""

    def __init__(self, loops: list[ConsumerLoop]) -> None:
        self.loops = loops
        self._threads: list[threading.Thread] = []

    @classmethod
    def from_config(cls, store: InventoryStore, publisher: Publisher) -> InventoryConsumers:
        coordinator = ReservationCoordinator(
            store,
            publisher,
            split_failure_reasons=config.SPLIT_FAILURE_REASONS,
        )
        return cls(
            [
                ConsumerLoop(make_consumer(TOPIC_ORDER_CREATED, GROUP_ORDERS), coordinator, "order-created-loop"),
                ConsumerLoop(
                    make_consumer(TOPIC_ALBUM_CREATED, GROUP_ALBUMS),
                    CatalogBootstrapListener(store),
                    "album-created-loop",
                ),
            ]
        )

    def start(self) -> None:
        for loop in self.loops:
            thread = threading.Thread(target=loop.run, name=loop.name, daemon=True)
            thread.start()
            self._threads.append(thread)

    def stop(self, timeout: float = 10.0) -> None:
        for loop in self.loops:
            loop.stop()
        for thread in self._threads:
            thread.join(timeout)
        self._threads.clear()


def main() -> None:
    setup_logging(config.SERVICE_NAME)
    provider = setup_tracing(config.SERVICE_NAME)

    store = InventoryStore(config.DB_PATH, timeout=config.SQLITE_TIMEOUT_SECONDS)
    store.init_db()
    if config.CREATE_TOPICS:
        ensure_topics()

    publisher = EventPublisher(make_producer())
    consumers = InventoryConsumers.from_config(store, publisher)

    done = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: done.set())
    signal.signal(signal.SIGINT, lambda *_: done.set())

    consumers.start()
    logger.info("Inventory consumers running against %s", config.DB_PATH)
    done.wait()

    consumers.stop()
    publisher.close()
    provider.shutdown()


if __name__ == "__main__":
    main()
