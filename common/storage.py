"""
SQLite persistence for the inventory ledger and the processed-order record.

Tables:
- inventory(album_id, quantity_available, last_updated)
- processed_orders(order_id, outcome, processed_at)

Every stock deduction is a single conditional UPDATE evaluated by SQLite
(``... WHERE quantity_available >= ?``) and reported through the affected
row count; there is no read-then-write in Python. Writers take the database
write lock up front (BEGIN IMMEDIATE), so the idempotency check, the
deduction and the processed-order marker commit or roll back together.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Literal

from common.timeutils import now_iso

OUTCOME_SUCCEEDED = "SUCCEEDED"
OUTCOME_FAILED = "FAILED"
OUTCOME_DUPLICATE = "DUPLICATE"

DEFAULT_TIMEOUT_SECONDS = 30.0


class StorageUnavailableError(RuntimeError):
    """Storage could not be opened, locked or written. Safe to retry."""


class InventoryNotFoundError(LookupError):
    """No ledger entry exists for the album."""

    def __init__(self, album_id: str) -> None:
        super().__init__(f"no inventory record found for album {album_id}")
        self.album_id = album_id


class InsufficientInventoryError(ValueError):
    """Ledger entry exists but holds less than the requested quantity."""

    def __init__(self, album_id: str, requested: int, available: int) -> None:
        super().__init__(
            f"insufficient inventory for album {album_id}: requested={requested}, available={available}"
        )
        self.album_id = album_id
        self.requested = requested
        self.available = available


@dataclass(frozen=True)
class InventoryItem:
    album_id: str
    quantity_available: int
    last_updated: str


@dataclass(frozen=True)
class Resolution:
    """Result of resolving one order against the ledger."""

    status: Literal["SUCCEEDED", "FAILED", "DUPLICATE"]
    item_exists: bool | None = None
    available: int | None = None
    previous_outcome: str | None = None


def init_db(db_path: str) -> None:
    """
    Create database and tables if they do not exist.
    Enables WAL mode for better concurrency.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with _connection(db_path) as conn:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS inventory (
                album_id TEXT PRIMARY KEY,
                quantity_available INTEGER NOT NULL DEFAULT 0
                    CHECK (quantity_available >= 0),
                last_updated TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS processed_orders (
                order_id TEXT PRIMARY KEY,
                outcome TEXT NOT NULL,
                processed_at TEXT NOT NULL
            )
        """)


@contextmanager
def _connection(db_path: str, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Iterator[sqlite3.Connection]:
    """
    Autocommit connection. Database-level failures (locked, unreadable or
    corrupt file, missing schema) surface as StorageUnavailableError;
    constraint violations stay IntegrityError.
    """
    try:
        conn = sqlite3.connect(db_path, timeout=timeout, isolation_level=None)
    except sqlite3.Error as e:
        raise StorageUnavailableError(f"cannot open {db_path}: {e}") from e
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    except sqlite3.IntegrityError:
        raise
    except sqlite3.DatabaseError as e:
        raise StorageUnavailableError(str(e)) from e
    finally:
        conn.close()


@contextmanager
def _transaction(db_path: str, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Iterator[sqlite3.Connection]:
    """Write transaction holding the database write lock; commit on exit, rollback on error."""
    with _connection(db_path, timeout) as conn:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise


def _try_decrement(conn: sqlite3.Connection, album_id: str, quantity: int) -> bool:
    if quantity <= 0:
        raise ValueError(f"quantity must be positive, got {quantity}")
    cur = conn.execute(
        """
        UPDATE inventory
        SET quantity_available = quantity_available - ?, last_updated = ?
        WHERE album_id = ? AND quantity_available >= ?
        """,
        (quantity, now_iso(), album_id, quantity),
    )
    return cur.rowcount == 1


def _available(conn: sqlite3.Connection, album_id: str) -> int | None:
    row = conn.execute(
        "SELECT quantity_available FROM inventory WHERE album_id = ?",
        (album_id,),
    ).fetchone()
    return None if row is None else row["quantity_available"]


def _processed_outcome(conn: sqlite3.Connection, order_id: str) -> str | None:
    row = conn.execute(
        "SELECT outcome FROM processed_orders WHERE order_id = ?",
        (order_id,),
    ).fetchone()
    return None if row is None else row["outcome"]


def _mark_processed(conn: sqlite3.Connection, order_id: str, outcome: str) -> bool:
    cur = conn.execute(
        """
        INSERT INTO processed_orders (order_id, outcome, processed_at)
        VALUES (?, ?, ?)
        ON CONFLICT (order_id) DO NOTHING
        """,
        (order_id, outcome, now_iso()),
    )
    return cur.rowcount == 1


def _row_to_item(row: sqlite3.Row) -> InventoryItem:
    return InventoryItem(
        album_id=row["album_id"],
        quantity_available=row["quantity_available"],
        last_updated=row["last_updated"],
    )


class InventoryStore:
    """
    Handle on the inventory database, constructed once per process and
    passed to the coordinator, the bootstrap listener and the HTTP app.
    """

    def __init__(self, db_path: str, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.db_path = db_path
        self.timeout = timeout

    def init_db(self) -> None:
        init_db(self.db_path)

    # -- ledger ---------------------------------------------------------------

    def try_decrement(self, album_id: str, quantity: int) -> bool:
        """
        Deduct quantity only if enough stock is available.
        Returns True if applied, False if the album is unknown or short.

        >>> import tempfile, os
        >>> store = InventoryStore(os.path.join(tempfile.mkdtemp(), "inv.db"))
        >>> store.init_db()
        >>> store.upsert_if_absent("a1", 1)
        True
        >>> store.try_decrement("a1", 1), store.try_decrement("a1", 1)
        (True, False)
        """
        with _transaction(self.db_path, self.timeout) as conn:
            return _try_decrement(conn, album_id, quantity)

    def upsert_if_absent(self, album_id: str, initial_quantity: int) -> bool:
        """Insert a ledger entry unless one exists. Returns True if inserted."""
        if initial_quantity < 0:
            raise ValueError(f"initial quantity must not be negative, got {initial_quantity}")
        with _transaction(self.db_path, self.timeout) as conn:
            cur = conn.execute(
                """
                INSERT INTO inventory (album_id, quantity_available, last_updated)
                VALUES (?, ?, ?)
                ON CONFLICT (album_id) DO NOTHING
                """,
                (album_id, initial_quantity, now_iso()),
            )
            return cur.rowcount == 1

    def reserve_inventory(self, album_id: str, quantity: int) -> int:
        """
        Synchronous reservation path: conditional deduction, returning the
        new available quantity. Raises InventoryNotFoundError or
        InsufficientInventoryError when nothing was deducted.
        """
        with _transaction(self.db_path, self.timeout) as conn:
            applied = _try_decrement(conn, album_id, quantity)
            available = _available(conn, album_id)
            if available is None:
                raise InventoryNotFoundError(album_id)
            if not applied:
                raise InsufficientInventoryError(album_id, quantity, available)
            return available

    def set_quantity(self, album_id: str, quantity: int) -> InventoryItem:
        """Administrative overwrite; creates the entry if missing."""
        if quantity < 0:
            raise ValueError(f"quantity must not be negative, got {quantity}")
        updated = now_iso()
        with _transaction(self.db_path, self.timeout) as conn:
            conn.execute(
                """
                INSERT INTO inventory (album_id, quantity_available, last_updated)
                VALUES (?, ?, ?)
                ON CONFLICT (album_id)
                DO UPDATE SET quantity_available = excluded.quantity_available,
                              last_updated = excluded.last_updated
                """,
                (album_id, quantity, updated),
            )
        return InventoryItem(album_id=album_id, quantity_available=quantity, last_updated=updated)

    def get_inventory(self, album_id: str) -> InventoryItem | None:
        with _connection(self.db_path, self.timeout) as conn:
            row = conn.execute(
                "SELECT album_id, quantity_available, last_updated FROM inventory WHERE album_id = ?",
                (album_id,),
            ).fetchone()
        return None if row is None else _row_to_item(row)

    def list_inventory(self) -> list[InventoryItem]:
        with _connection(self.db_path, self.timeout) as conn:
            rows = conn.execute(
                "SELECT album_id, quantity_available, last_updated FROM inventory ORDER BY album_id"
            ).fetchall()
        return [_row_to_item(r) for r in rows]

    # -- processed-order record -----------------------------------------------

    def is_processed(self, order_id: str) -> bool:
        with _connection(self.db_path, self.timeout) as conn:
            return _processed_outcome(conn, order_id) is not None

    def mark_processed(self, order_id: str, outcome: str) -> bool:
        """Record a terminal outcome. Returns False if the order was already recorded."""
        with _transaction(self.db_path, self.timeout) as conn:
            return _mark_processed(conn, order_id, outcome)

    def processed_outcome(self, order_id: str) -> str | None:
        with _connection(self.db_path, self.timeout) as conn:
            return _processed_outcome(conn, order_id)

    # -- unit of work -----------------------------------------------------------

    def resolve_order(self, order_id: str, album_id: str, quantity: int) -> Resolution:
        """
        Resolve an order in one transaction: skip it if already processed,
        otherwise attempt the conditional deduction and record the outcome.
        A failed deduction never creates a ledger row.
        """
        with _transaction(self.db_path, self.timeout) as conn:
            previous = _processed_outcome(conn, order_id)
            if previous is not None:
                return Resolution(status=OUTCOME_DUPLICATE, previous_outcome=previous)

            if _try_decrement(conn, album_id, quantity):
                _mark_processed(conn, order_id, OUTCOME_SUCCEEDED)
                return Resolution(
                    status=OUTCOME_SUCCEEDED,
                    item_exists=True,
                    available=_available(conn, album_id),
                )

            available = _available(conn, album_id)
            _mark_processed(conn, order_id, OUTCOME_FAILED)
            return Resolution(
                status=OUTCOME_FAILED,
                item_exists=available is not None,
                available=available,
            )
