"""Order totals and sales aggregates.

Every function takes the menu snapshot explicitly and never raises: a line
whose menu item no longer exists is worth 0.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import Iterable, Mapping, Sequence, TypeVar

from foodorder.config import ORDERS_PER_PAGE, RECENT_ORDERS_LIMIT
from foodorder.models import MenuItem, Order, OrderLine, menu_index

T = TypeVar("T")

MenuLookup = Mapping[str, MenuItem]


def _as_lookup(menu_items: Iterable[MenuItem] | MenuLookup) -> MenuLookup:
    if isinstance(menu_items, Mapping):
        return menu_items
    return menu_index(list(menu_items))


def line_total(line: OrderLine, menu_items: Iterable[MenuItem] | MenuLookup) -> float:
    item = _as_lookup(menu_items).get(line.menu_item_id)
    if item is None:
        return 0
    return item.price * line.quantity


def order_total(order: Order, menu_items: Iterable[MenuItem] | MenuLookup) -> float:
    lookup = _as_lookup(menu_items)
    return sum(line_total(line, lookup) for line in order.lines)


def aggregate_revenue(orders: Iterable[Order], menu_items: Iterable[MenuItem] | MenuLookup) -> float:
    lookup = _as_lookup(menu_items)
    return sum(order_total(order, lookup) for order in orders)


def sales_by_item(orders: Iterable[Order]) -> dict[str, int]:
    """Total quantity sold per menu item id, deleted items included."""
    totals: Counter[str] = Counter()
    for order in orders:
        for line in order.lines:
            totals[line.menu_item_id] += line.quantity
    return dict(totals)


def draft_total(line_quantities: Mapping[str, int], menu_items: Iterable[MenuItem] | MenuLookup) -> float:
    """Value an unsaved draft; non-positive quantities count as nothing."""
    lookup = _as_lookup(menu_items)
    total: float = 0
    for menu_item_id, quantity in line_quantities.items():
        item = lookup.get(menu_item_id)
        if item is not None and quantity > 0:
            total += item.price * quantity
    return total


def best_sellers(
    orders: Iterable[Order], menu_items: Iterable[MenuItem] | MenuLookup, limit: int = 5
) -> list[tuple[MenuItem, int]]:
    """Most sold items still on the menu, highest quantity first."""
    lookup = _as_lookup(menu_items)
    ranked = sorted(sales_by_item(orders).items(), key=lambda pair: pair[1], reverse=True)
    return [(lookup[item_id], qty) for item_id, qty in ranked if item_id in lookup][:limit]


def recent_orders(orders: Sequence[Order], limit: int = RECENT_ORDERS_LIMIT) -> list[Order]:
    """First ``limit`` orders of an already newest-first sequence."""
    return list(orders[:limit])


def filter_menu_items(menu_items: Iterable[MenuItem], term: str) -> list[MenuItem]:
    needle = term.strip().lower()
    return [item for item in menu_items if needle in item.name.lower()]


def filter_orders(orders: Iterable[Order], term: str) -> list[Order]:
    needle = term.strip().lower()
    return [order for order in orders if needle in order.customer_name.lower()]


def paginate(rows: Sequence[T], page: int, per_page: int = ORDERS_PER_PAGE) -> tuple[list[T], int]:
    """Return rows of the 1-based ``page`` (clamped) and the page count."""
    total_pages = math.ceil(len(rows) / per_page) if rows else 0
    page = min(max(1, page), max(1, total_pages))
    start = (page - 1) * per_page
    return list(rows[start : start + per_page]), total_pages
