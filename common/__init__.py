"""
Shared common module for the inventory service: event models, storage,
logging, time utilities and trace propagation.

Framework-agnostic; no FastAPI or Kafka dependency. Uses Pydantic v2 for schemas.
"""

from common.logging import setup_logging
from common.models import (
    MAX_QUANTITY,
    REASON_INSUFFICIENT_INVENTORY,
    REASON_ITEM_NOT_FOUND,
    AlbumCreatedEvent,
    EventDecodeError,
    OrderCreatedEvent,
    OrderFailedEvent,
    OrderSucceededEvent,
    decode_album_created,
    decode_order_created,
    encode_event,
)
from common.storage import (
    InsufficientInventoryError,
    InventoryItem,
    InventoryNotFoundError,
    InventoryStore,
    Resolution,
    StorageUnavailableError,
    init_db,
)
from common.timeutils import iso_to_dt, now_iso, to_rfc3339, utc_now
from common.tracing import TraceCarrier, extract_context, setup_tracing

__all__ = [
    "setup_logging",
    "MAX_QUANTITY",
    "REASON_INSUFFICIENT_INVENTORY",
    "REASON_ITEM_NOT_FOUND",
    "AlbumCreatedEvent",
    "OrderCreatedEvent",
    "OrderSucceededEvent",
    "OrderFailedEvent",
    "EventDecodeError",
    "decode_album_created",
    "decode_order_created",
    "encode_event",
    "InventoryStore",
    "InventoryItem",
    "Resolution",
    "StorageUnavailableError",
    "InventoryNotFoundError",
    "InsufficientInventoryError",
    "init_db",
    "utc_now",
    "now_iso",
    "to_rfc3339",
    "iso_to_dt",
    "TraceCarrier",
    "extract_context",
    "setup_tracing",
]
