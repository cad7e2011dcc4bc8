"""SQLite-backed entity store for menu items and orders."""

from __future__ import annotations

import logging
import math
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Mapping, TypeVar

from foodorder.config import DB_PATH
from foodorder.errors import NotFoundError, ValidationError
from foodorder.ids import IdGenerator, RandomIdGenerator, fresh_id
from foodorder.models import MenuItem, Order, OrderLine, StoreSnapshot

logger = logging.getLogger(__name__)

Subscriber = Callable[[], None]
T = TypeVar("T")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def validate_menu_fields(name: object, price: object) -> tuple[str, float]:
    """Check a menu item's fields; returns the name as given and the price as a float."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Menu item name is required")
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise ValidationError(f"Price must be a number, got {price!r}")
    if not math.isfinite(price) or price < 0:
        raise ValidationError(f"Price must be a finite non-negative number, got {price!r}")
    return name, float(price)


def build_order_lines(line_quantities: Mapping[str, int]) -> tuple[OrderLine, ...]:
    """Drop non-positive quantities and turn the rest into order lines."""
    lines = []
    for menu_item_id, quantity in line_quantities.items():
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError(f"Quantity for {menu_item_id!r} must be an integer")
        if quantity <= 0:
            continue
        if not menu_item_id:
            raise ValidationError("Order line must reference a menu item")
        lines.append(OrderLine(menu_item_id=menu_item_id, quantity=quantity))
    return tuple(lines)


def validate_order_fields(customer_name: object, lines: tuple[OrderLine, ...]) -> str:
    if not isinstance(customer_name, str) or not customer_name.strip():
        raise ValidationError("Customer name is required")
    if not lines:
        raise ValidationError("An order needs at least one item with a positive quantity")
    return customer_name


def _validate_collections(menu_items: list[MenuItem], orders: list[Order]) -> None:
    seen_items: set[str] = set()
    for item in menu_items:
        if not item.id:
            raise ValidationError("Menu item id is required")
        if item.id in seen_items:
            raise ValidationError(f"Duplicate menu item id {item.id!r}")
        seen_items.add(item.id)
        validate_menu_fields(item.name, item.price)

    seen_orders: set[str] = set()
    for order in orders:
        if not order.id:
            raise ValidationError("Order id is required")
        if order.id in seen_orders:
            raise ValidationError(f"Duplicate order id {order.id!r}")
        seen_orders.add(order.id)
        validate_order_fields(order.customer_name, order.lines)
        line_items = [line.menu_item_id for line in order.lines]
        if len(set(line_items)) != len(line_items):
            raise ValidationError(f"Order {order.id!r} lists the same menu item twice")
        if any(line.quantity <= 0 for line in order.lines):
            raise ValidationError(f"Order {order.id!r} has a non-positive quantity")


class EntityStore:
    """Canonical home of menu items and orders.

    Every mutation runs in one SQLite transaction under a re-entrant lock, so
    readers never observe a half-applied change. Subscribers are called after
    each committed mutation.
    """

    def __init__(
        self,
        db_path: str | Path = DB_PATH,
        id_generator: IdGenerator | None = None,
        clock: Callable[[], str] = _utc_now_iso,
    ) -> None:
        self.db_path = Path(db_path)
        self.id_generator = id_generator or RandomIdGenerator()
        self.clock = clock
        self._lock = threading.RLock()
        self._subscribers: list[Subscriber] = []
        self.bootstrap_schema()

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def bootstrap_schema(self) -> None:
        """Create persistence schema if it does not already exist."""
        with self._connect() as conn:
            # order_lines.menu_item_id has no foreign key:
            # deleting a menu item leaves orders pointing at it.
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS menu_items (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    price REAL NOT NULL
                );

                CREATE TABLE IF NOT EXISTS orders (
                    id TEXT PRIMARY KEY,
                    customer_name TEXT NOT NULL,
                    placed_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS order_lines (
                    order_id TEXT NOT NULL,
                    line_index INTEGER NOT NULL,
                    menu_item_id TEXT NOT NULL,
                    quantity INTEGER NOT NULL,
                    PRIMARY KEY (order_id, line_index),
                    FOREIGN KEY(order_id) REFERENCES orders(id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_orders_placed_at
                    ON orders(placed_at);
                """
            )
        conn.close()

    # Subscriptions

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for change notifications and return an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            try:
                callback()
            except Exception:
                logger.exception("store subscriber %r failed", callback)

    def _commit(self, work: Callable[[sqlite3.Connection], T]) -> T:
        with self._lock:
            conn = self._connect()
            try:
                with conn:
                    result = work(conn)
            finally:
                conn.close()
        return result

    # Reads

    def get_menu_item(self, item_id: str) -> MenuItem | None:
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute("SELECT id, name, price FROM menu_items WHERE id = ?", (item_id,)).fetchone()
            finally:
                conn.close()
        return MenuItem(row[0], row[1], row[2]) if row else None

    def list_menu_items(self) -> list[MenuItem]:
        with self._lock:
            conn = self._connect()
            try:
                return self._read_menu_items(conn)
            finally:
                conn.close()

    def count_menu_items(self) -> int:
        with self._lock:
            conn = self._connect()
            try:
                return int(conn.execute("SELECT COUNT(*) FROM menu_items").fetchone()[0])
            finally:
                conn.close()

    def get_order(self, order_id: str) -> Order | None:
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT id, customer_name, placed_at FROM orders WHERE id = ?", (order_id,)
                ).fetchone()
                if row is None:
                    return None
                return self._order_from_row(conn, row)
            finally:
                conn.close()

    def list_orders(self) -> list[Order]:
        """Return all orders, newest first."""
        with self._lock:
            conn = self._connect()
            try:
                return self._read_orders(conn)
            finally:
                conn.close()

    def snapshot(self) -> StoreSnapshot:
        """Read both collections in one consistent pass."""
        with self._lock:
            conn = self._connect()
            try:
                return StoreSnapshot(menu_items=self._read_menu_items(conn), orders=self._read_orders(conn))
            finally:
                conn.close()

    def _read_menu_items(self, conn: sqlite3.Connection) -> list[MenuItem]:
        rows = conn.execute("SELECT id, name, price FROM menu_items ORDER BY rowid")
        return [MenuItem(id=row[0], name=row[1], price=row[2]) for row in rows]

    def _read_orders(self, conn: sqlite3.Connection) -> list[Order]:
        rows = conn.execute(
            "SELECT id, customer_name, placed_at FROM orders ORDER BY placed_at DESC, rowid DESC"
        ).fetchall()
        return [self._order_from_row(conn, row) for row in rows]

    def _order_from_row(self, conn: sqlite3.Connection, row: tuple) -> Order:
        lines = conn.execute(
            "SELECT menu_item_id, quantity FROM order_lines WHERE order_id = ? ORDER BY line_index",
            (row[0],),
        )
        return Order(
            id=row[0],
            customer_name=row[1],
            lines=tuple(OrderLine(menu_item_id=line[0], quantity=line[1]) for line in lines),
            placed_at=row[2],
        )

    # Writes

    def _insert_menu_items(self, conn: sqlite3.Connection, items: Iterable[MenuItem]) -> None:
        conn.executemany(
            "INSERT INTO menu_items (id, name, price) VALUES (?, ?, ?)",
            [(item.id, item.name, float(item.price)) for item in items],
        )

    def _insert_orders(self, conn: sqlite3.Connection, orders: Iterable[Order]) -> None:
        for order in orders:
            conn.execute(
                "INSERT INTO orders (id, customer_name, placed_at) VALUES (?, ?, ?)",
                (order.id, order.customer_name, order.placed_at),
            )
            self._insert_lines(conn, order.id, order.lines)

    def _insert_lines(self, conn: sqlite3.Connection, order_id: str, lines: Iterable[OrderLine]) -> None:
        conn.executemany(
            "INSERT INTO order_lines (order_id, line_index, menu_item_id, quantity) VALUES (?, ?, ?, ?)",
            [(order_id, idx, line.menu_item_id, line.quantity) for idx, line in enumerate(lines)],
        )

    def _taken_ids(self, conn: sqlite3.Connection, table: str) -> set[str]:
        return {row[0] for row in conn.execute(f"SELECT id FROM {table}")}

    def add_menu_item(self, name: str, price: float) -> MenuItem:
        """Create a menu item with a fresh id."""
        clean_name, clean_price = validate_menu_fields(name, price)

        def work(conn: sqlite3.Connection) -> MenuItem:
            item = MenuItem(
                id=fresh_id(self.id_generator, self._taken_ids(conn, "menu_items")),
                name=clean_name,
                price=clean_price,
            )
            self._insert_menu_items(conn, [item])
            return item

        item = self._commit(work)
        logger.info("menu item added id=%s name=%r price=%s", item.id, item.name, item.price)
        self._notify()
        return item

    def remove_menu_item(self, item_id: str) -> None:
        """Delete a menu item if present. Orders referencing it are left alone."""
        self._commit(lambda conn: conn.execute("DELETE FROM menu_items WHERE id = ?", (item_id,)))
        logger.info("menu item removed id=%s", item_id)
        self._notify()

    def add_order(self, customer_name: str, line_quantities: Mapping[str, int]) -> Order:
        """Create an order from a ``menu_item_id -> quantity`` map."""
        lines = build_order_lines(line_quantities)
        clean_name = validate_order_fields(customer_name, lines)

        def work(conn: sqlite3.Connection) -> Order:
            order = Order(
                id=fresh_id(self.id_generator, self._taken_ids(conn, "orders")),
                customer_name=clean_name,
                lines=lines,
                placed_at=self.clock(),
            )
            self._insert_orders(conn, [order])
            return order

        order = self._commit(work)
        logger.info("order added id=%s customer=%r lines=%d", order.id, order.customer_name, len(order.lines))
        self._notify()
        return order

    def update_order(self, order_id: str, customer_name: str, line_quantities: Mapping[str, int]) -> Order:
        """Replace an order's customer and lines, keeping its id and ``placed_at``."""
        lines = build_order_lines(line_quantities)
        clean_name = validate_order_fields(customer_name, lines)

        def work(conn: sqlite3.Connection) -> Order:
            row = conn.execute("SELECT placed_at FROM orders WHERE id = ?", (order_id,)).fetchone()
            if row is None:
                raise NotFoundError("Order", order_id)
            conn.execute("UPDATE orders SET customer_name = ? WHERE id = ?", (clean_name, order_id))
            conn.execute("DELETE FROM order_lines WHERE order_id = ?", (order_id,))
            self._insert_lines(conn, order_id, lines)
            return Order(id=order_id, customer_name=clean_name, lines=lines, placed_at=row[0])

        order = self._commit(work)
        logger.info("order updated id=%s lines=%d", order_id, len(lines))
        self._notify()
        return order

    def remove_order(self, order_id: str) -> None:
        """Delete an order and its lines if present."""
        self._commit(lambda conn: conn.execute("DELETE FROM orders WHERE id = ?", (order_id,)))
        logger.info("order removed id=%s", order_id)
        self._notify()

    def replace_all(self, menu_items: list[MenuItem], orders: list[Order]) -> None:
        """Swap both collections for the given ones in a single transaction."""
        menu_items = list(menu_items)
        orders = list(orders)
        _validate_collections(menu_items, orders)

        def work(conn: sqlite3.Connection) -> None:
            conn.execute("DELETE FROM order_lines")
            conn.execute("DELETE FROM orders")
            conn.execute("DELETE FROM menu_items")
            self._insert_menu_items(conn, menu_items)
            # Equal placed_at values list by rowid descending, so insert in reverse to read back in order.
            self._insert_orders(conn, reversed(orders))

        self._commit(work)
        logger.info("store replaced menu_items=%d orders=%d", len(menu_items), len(orders))
        self._notify()

    def migrate_if_empty(self, menu_items: list[MenuItem], orders: list[Order]) -> bool:
        """Load legacy data only while the menu is empty. Returns True if anything was written."""
        menu_items = list(menu_items)
        orders = list(orders)
        _validate_collections(menu_items, orders)

        def work(conn: sqlite3.Connection) -> bool:
            count = conn.execute("SELECT COUNT(*) FROM menu_items").fetchone()[0]
            if count:
                return False
            # Orders may already exist with an empty menu; legacy ids must not collide.
            existing = self._taken_ids(conn, "orders")
            new_orders = [order for order in orders if order.id not in existing]
            self._insert_menu_items(conn, menu_items)
            self._insert_orders(conn, reversed(new_orders))
            return bool(menu_items or new_orders)

        migrated = self._commit(work)
        if migrated:
            logger.info("legacy data migrated menu_items=%d orders=%d", len(menu_items), len(orders))
            self._notify()
        return migrated
