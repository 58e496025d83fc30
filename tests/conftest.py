import pytest

from common.storage import InventoryStore
from inventory_service.bootstrap import CatalogBootstrapListener
from inventory_service.coordinator import ReservationCoordinator
from tests.helpers import FakePublisher


@pytest.fixture
def store(tmp_path):
    s = InventoryStore(str(tmp_path / "inventory.db"))
    s.init_db()
    return s


@pytest.fixture
def unavailable_store(tmp_path):
    """Store whose database directory does not exist, so every call fails."""
    return InventoryStore(str(tmp_path / "missing" / "inventory.db"), timeout=0.1)


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def coordinator(store, publisher):
    return ReservationCoordinator(store, publisher)


@pytest.fixture
def listener(store):
    return CatalogBootstrapListener(store)
