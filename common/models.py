"""
Pydantic v2 models for the inventory events and the wire codec.

Field names on the wire are camelCase (albumId, orderId, initialQuantity).
Unknown fields are ignored on read so producers can add fields without
breaking this service; missing optional fields fall back to the defaults
declared below.
"""

from __future__ import annotations

from datetime import datetime
from typing import TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from common.timeutils import utc_now

REASON_INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
REASON_ITEM_NOT_FOUND = "ITEM_NOT_FOUND"

# SQLite INTEGER is a signed 64-bit value
MAX_QUANTITY = 2**63 - 1


class EventDecodeError(ValueError):
    """Payload could not be decoded into the expected event (poison message)."""


class WireModel(BaseModel):
    """Base for everything that travels through the broker."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )


# -----------------------------------------------------------------------------
# Consumed events
# -----------------------------------------------------------------------------


class AlbumCreatedEvent(WireModel):
    """Published by the album service when a new album enters the catalog."""

    album_id: str = Field(..., min_length=1)
    title: str = ""
    artist: str = ""
    timestamp: datetime | None = None
    initial_quantity: int | None = Field(None, le=MAX_QUANTITY)

    def quantity_to_insert(self) -> int:
        """Declared initial quantity, or 0 when missing or negative."""
        if self.initial_quantity is not None and self.initial_quantity >= 0:
            return self.initial_quantity
        return 0


class OrderCreatedEvent(WireModel):
    """Published by the order service for every submitted order."""

    order_id: str = Field(..., min_length=1)
    album_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0, le=MAX_QUANTITY, description="Quantity must be positive")
    user_id: str = ""
    timestamp: datetime | None = None


# -----------------------------------------------------------------------------
# Produced events
# -----------------------------------------------------------------------------


class OrderSucceededEvent(WireModel):
    """Stock was deducted for the order."""

    order_id: str
    timestamp: datetime = Field(default_factory=utc_now)


class OrderFailedEvent(WireModel):
    """Stock could not be deducted for the order."""

    order_id: str
    reason: str = REASON_INSUFFICIENT_INVENTORY
    timestamp: datetime = Field(default_factory=utc_now)


OutcomeEvent = Union[OrderSucceededEvent, OrderFailedEvent]

_E = TypeVar("_E", bound=WireModel)


def _decode(model: type[_E], raw: bytes | None) -> _E:
    if not raw:
        raise EventDecodeError(f"empty {model.__name__} payload")
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        raise EventDecodeError(
            f"undecodable {model.__name__}: {e.error_count()} error(s), first: {e.errors()[0]['msg']}"
        ) from e
    except (TypeError, ValueError) as e:
        raise EventDecodeError(f"undecodable {model.__name__}: {e}") from e


def decode_album_created(raw: bytes | None) -> AlbumCreatedEvent:
    """
    Parse an album-created payload.

    >>> decode_album_created(b'{"albumId": "a1", "extra": 1}').album_id
    'a1'
    """
    return _decode(AlbumCreatedEvent, raw)


def decode_order_created(raw: bytes | None) -> OrderCreatedEvent:
    """
    Parse an order-created payload. Raises EventDecodeError if malformed.

    >>> decode_order_created(b'{"orderId": "o1", "albumId": "a1", "quantity": 2}').quantity
    2
    """
    return _decode(OrderCreatedEvent, raw)


def encode_event(event: WireModel) -> bytes:
    """Serialize an event to UTF-8 JSON with camelCase names; None fields are omitted."""
    return event.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
