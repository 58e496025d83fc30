"""Inventory service configuration (environment variables)."""

import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


SERVICE_NAME = "inventory-service"
SERVICE_PORT = int(os.getenv("SERVICE_PORT", "8081"))
DB_PATH = os.environ.get("DB_PATH", "/data/inventory.db")
SQLITE_TIMEOUT_SECONDS = float(os.getenv("SQLITE_TIMEOUT_SECONDS", "30"))

CONSUMERS_ENABLED = _flag("CONSUMERS_ENABLED", "true")
CREATE_TOPICS = _flag("CREATE_TOPICS", "true")
# Report ITEM_NOT_FOUND instead of INSUFFICIENT_INVENTORY for unknown albums.
SPLIT_FAILURE_REASONS = _flag("SPLIT_FAILURE_REASONS", "false")
RETRY_BACKOFF_SECONDS = float(os.getenv("RETRY_BACKOFF_SECONDS", "1"))
