"""
InventoryService: HTTP API over the inventory ledger. Runs the Kafka
consuming loops (order-created, album-created) in the same process.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from broker.clients import make_producer
from broker.publisher import EventPublisher
from broker.setup import ensure_topics
from common import (
    MAX_QUANTITY,
    InsufficientInventoryError,
    InventoryItem,
    InventoryNotFoundError,
    InventoryStore,
    StorageUnavailableError,
    now_iso,
    setup_logging,
    setup_tracing,
)
from inventory_service import config
from inventory_service.consumer import InventoryConsumers

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InventoryView(_CamelModel):
    album_id: str
    quantity_available: int
    last_updated: str

    @classmethod
    def from_item(cls, item: InventoryItem) -> InventoryView:
        return cls(
            album_id=item.album_id,
            quantity_available=item.quantity_available,
            last_updated=item.last_updated,
        )


class UpdateInventoryRequest(_CamelModel):
    quantity_available: int = Field(..., ge=0, le=MAX_QUANTITY)


class ReserveRequest(_CamelModel):
    quantity: int = Field(..., gt=0, le=MAX_QUANTITY, description="Quantity must be positive")


def get_store(request: Request) -> InventoryStore:
    return request.app.state.store


def require_admin(client_type: str | None = Header(default=None)) -> None:
    """Admin routes need the Client-Type: admin header."""
    if client_type != "admin":
        raise HTTPException(status_code=403, detail="Forbidden: Admin privileges required")


router = APIRouter(prefix="/api/inventory")


@router.get("/{album_id}", response_model=InventoryView)
def get_inventory(album_id: str, store: InventoryStore = Depends(get_store)):
    item = store.get_inventory(album_id)
    if item is None:
        # unknown albums report zero stock
        return InventoryView(album_id=album_id, quantity_available=0, last_updated=now_iso())
    return InventoryView.from_item(item)


@router.get("", response_model=list[InventoryView], dependencies=[Depends(require_admin)])
def list_inventory(store: InventoryStore = Depends(get_store)):
    return [InventoryView.from_item(item) for item in store.list_inventory()]


@router.put("/{album_id}", response_model=InventoryView, dependencies=[Depends(require_admin)])
def update_inventory(album_id: str, payload: UpdateInventoryRequest, store: InventoryStore = Depends(get_store)):
    item = store.set_quantity(album_id, payload.quantity_available)
    logger.info("Inventory updated via API for album %s, quantity %s", album_id, item.quantity_available)
    return InventoryView.from_item(item)


@router.post("/{album_id}/reserve", response_model=InventoryView)
def reserve_inventory(album_id: str, payload: ReserveRequest, store: InventoryStore = Depends(get_store)):
    try:
        remaining = store.reserve_inventory(album_id, payload.quantity)
    except InventoryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InsufficientInventoryError as e:
        raise HTTPException(status_code=409, detail=str(e))
    logger.info("Reserved %s of album %s, %s left", payload.quantity, album_id, remaining)
    return InventoryView(album_id=album_id, quantity_available=remaining, last_updated=now_iso())


def create_app(store: InventoryStore | None = None, start_consumers: bool | None = None) -> FastAPI:
    store = store or InventoryStore(config.DB_PATH, timeout=config.SQLITE_TIMEOUT_SECONDS)
    run_consumers = config.CONSUMERS_ENABLED if start_consumers is None else start_consumers

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.init_db()
        consumers = publisher = None
        if run_consumers:
            # Broker connects retry with sleeps; keep them off the event loop.
            if config.CREATE_TOPICS:
                await asyncio.to_thread(ensure_topics)
            publisher = EventPublisher(await asyncio.to_thread(make_producer))
            consumers = await asyncio.to_thread(InventoryConsumers.from_config, store, publisher)
            consumers.start()
        yield
        if consumers is not None:
            consumers.stop()
        if publisher is not None:
            publisher.close()

    app = FastAPI(title="Inventory Service", lifespan=lifespan)
    app.state.store = store

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable(request: Request, exc: StorageUnavailableError):
        logger.error("Storage unavailable on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "Inventory storage unavailable"})

    @app.get("/health")
    def health():
        return {"ok": True}

    app.include_router(router)
    return app


app = create_app()


def main() -> None:
    setup_logging(config.SERVICE_NAME)
    provider = setup_tracing(config.SERVICE_NAME)
    try:
        uvicorn.run(app, host="0.0.0.0", port=config.SERVICE_PORT)
    finally:
        provider.shutdown()


if __name__ == "__main__":
    main()
