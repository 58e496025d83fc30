"""
ReservationCoordinator: consumes OrderCreated, deducts stock atomically and
publishes exactly one OrderSucceeded or OrderFailed per order.

Per order: RECEIVED -> DECREMENTING -> SUCCEEDED | FAILED. The idempotency
check, the conditional deduction and the processed-order marker share one
storage transaction, so a redelivered order is acknowledged without a second
deduction and without a second outcome event.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from opentelemetry import trace
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

from broker.config import TOPIC_ORDER_CREATED, TOPIC_ORDER_FAILED, TOPIC_ORDER_SUCCEEDED
from broker.publisher import PublishError
from common.models import (
    REASON_INSUFFICIENT_INVENTORY,
    REASON_ITEM_NOT_FOUND,
    EventDecodeError,
    OrderFailedEvent,
    OrderSucceededEvent,
    OutcomeEvent,
    decode_order_created,
    encode_event,
)
from common.storage import OUTCOME_DUPLICATE, OUTCOME_SUCCEEDED, InventoryStore, Resolution
from common.tracing import KafkaHeaders, TraceCarrier, extract_context

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class Outcome(str, Enum):
    """What handling one message amounted to. Every value means "commit the offset"."""

    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CREATED = "CREATED"
    DUPLICATE = "DUPLICATE"
    SKIPPED = "SKIPPED"


class Publisher(Protocol):
    def publish(
        self,
        topic: str,
        key: str,
        value: bytes,
        headers: list[tuple[str, bytes | None]] | None = None,
    ) -> None: ...


class ReservationCoordinator:
    def __init__(
        self,
        store: InventoryStore,
        publisher: Publisher,
        *,
        split_failure_reasons: bool = False,
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._split_failure_reasons = split_failure_reasons

    def handle(self, value: bytes | None, headers: KafkaHeaders | None = None) -> Outcome:
        """
        Process one order-created message.

        Raises StorageUnavailableError when the unit of work could not run;
        the caller must then leave the message uncommitted.
        """
        carrier = TraceCarrier.from_headers(headers)
        with tracer.start_as_current_span(
            "process_order_created",
            context=extract_context(carrier),
            kind=SpanKind.CONSUMER,
        ) as span:
            span.set_attribute("messaging.destination.name", TOPIC_ORDER_CREATED)
            try:
                event = decode_order_created(value)
            except EventDecodeError as e:
                logger.warning("Skipping malformed order-created message: %s", e)
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, "Failed to parse order message"))
                return Outcome.SKIPPED

            span.set_attributes(
                {
                    "order.id": event.order_id,
                    "album.id": event.album_id,
                    "order.quantity": event.quantity,
                    "user.id": event.user_id,
                }
            )
            logger.info(
                "Processing order %s: album=%s quantity=%s user=%s",
                event.order_id,
                event.album_id,
                event.quantity,
                event.user_id,
            )

            with tracer.start_as_current_span("db.resolve_order"):
                resolution = self._store.resolve_order(event.order_id, event.album_id, event.quantity)

            if resolution.status == OUTCOME_DUPLICATE:
                logger.info(
                    "Order %s already resolved as %s, acknowledging redelivery",
                    event.order_id,
                    resolution.previous_outcome,
                )
                span.set_attribute("order.duplicate", True)
                return Outcome.DUPLICATE

            if resolution.status == OUTCOME_SUCCEEDED:
                logger.info(
                    "Inventory deducted for order %s, album %s now has %s",
                    event.order_id,
                    event.album_id,
                    resolution.available,
                )
                self._publish(TOPIC_ORDER_SUCCEEDED, OrderSucceededEvent(order_id=event.order_id), carrier, span)
                return Outcome.SUCCEEDED

            span.set_attribute("inventory.exists", bool(resolution.item_exists))
            if resolution.item_exists:
                span.set_attribute("inventory.available", resolution.available)
                logger.info(
                    "Insufficient inventory for order %s: requested=%s available=%s",
                    event.order_id,
                    event.quantity,
                    resolution.available,
                )
            else:
                logger.info("No inventory record for album %s (order %s)", event.album_id, event.order_id)

            failed = OrderFailedEvent(order_id=event.order_id, reason=self._failure_reason(resolution))
            self._publish(TOPIC_ORDER_FAILED, failed, carrier, span)
            return Outcome.FAILED

    def _failure_reason(self, resolution: Resolution) -> str:
        if self._split_failure_reasons and not resolution.item_exists:
            return REASON_ITEM_NOT_FOUND
        return REASON_INSUFFICIENT_INVENTORY

    def _publish(
        self,
        topic: str,
        event: OutcomeEvent,
        carrier: TraceCarrier,
        span: Span,
    ) -> None:
        # The resolution is already committed; a lost outcome event needs an operator.
        try:
            with tracer.start_as_current_span(f"send_{topic}", kind=SpanKind.PRODUCER):
                self._publisher.publish(topic, event.order_id, encode_event(event), carrier.to_headers())
        except PublishError as e:
            logger.error("Order %s resolved but %s event was not published: %s", event.order_id, topic, e)
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, "Outcome publish failed"))
            return
        logger.info("Published %s for order %s", topic, event.order_id)
