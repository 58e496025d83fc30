"""
CatalogBootstrapListener: consumes AlbumCreated and creates the album's
ledger entry at its declared initial quantity (or 0). Duplicate and
out-of-order creation events leave an existing entry untouched.
"""

from __future__ import annotations

import logging

from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

from broker.config import TOPIC_ALBUM_CREATED
from common.models import EventDecodeError, decode_album_created
from common.storage import InventoryStore
from common.tracing import KafkaHeaders, TraceCarrier, extract_context
from inventory_service.coordinator import Outcome

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CatalogBootstrapListener:
    def __init__(self, store: InventoryStore) -> None:
        self._store = store

    def handle(self, value: bytes | None, headers: KafkaHeaders | None = None) -> Outcome:
        """Process one album-created message. Storage errors propagate."""
        carrier = TraceCarrier.from_headers(headers)
        with tracer.start_as_current_span(
            "process_album_created",
            context=extract_context(carrier),
            kind=SpanKind.CONSUMER,
        ) as span:
            span.set_attribute("messaging.destination.name", TOPIC_ALBUM_CREATED)
            try:
                event = decode_album_created(value)
            except EventDecodeError as e:
                logger.warning("Skipping malformed album-created message: %s", e)
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, "Failed to parse album created event"))
                return Outcome.SKIPPED

            quantity = event.quantity_to_insert()
            span.set_attributes({"album.id": event.album_id, "album.title": event.title})
            if event.initial_quantity is not None:
                span.set_attribute("album.initial_quantity", event.initial_quantity)
            if quantity != event.initial_quantity:
                logger.info(
                    "Album %s: initial quantity %r not provided or invalid, defaulting to 0",
                    event.album_id,
                    event.initial_quantity,
                )

            with tracer.start_as_current_span("db.insert_inventory"):
                created = self._store.upsert_if_absent(event.album_id, quantity)

            if not created:
                logger.info("Inventory for album %s already exists, leaving it untouched", event.album_id)
                return Outcome.DUPLICATE
            logger.info(
                "Initialized inventory for album %s (%r by %r) with quantity %s",
                event.album_id,
                event.title,
                event.artist,
                quantity,
            )
            return Outcome.CREATED
