"""Rich text rendering for menu items, orders and totals."""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from rich.text import Text

from foodorder.constant import DELETED_ITEM_NAME
from foodorder.models import MenuItem, Order, menu_index
from foodorder.valuation import best_sellers, order_total, recent_orders


def badge_style(kind: str) -> str:
    """Return a consistent badge style for status tags."""
    if kind == "EDIT":
        return "bold #ffffff on #b23a48"
    if kind == "SYNC":
        return "bold #ffffff on #2f6db5"
    return "bold #0b1f0f on #5fbf72"


def format_amount(amount: float) -> str:
    """Whole-unit amount with thousands separators, e.g. ``25,000``."""
    return f"{amount:,.0f}"


def format_menu_row(item: MenuItem, quantity: int = 0) -> Text:
    text = Text()
    text.append(item.name)
    text.append(f"  {format_amount(item.price)}", style="dim")
    if quantity > 0:
        text.append(" ")
        text.append(f" x{quantity} ", style=badge_style("QTY"))
    return text


def format_order_lines(order: Order, lookup: Mapping[str, MenuItem]) -> Text:
    """One ``name xQty`` tag per line; deleted items are shown struck out."""
    text = Text()
    for idx, line in enumerate(order.lines):
        if idx > 0:
            text.append(" ")
        item = lookup.get(line.menu_item_id)
        if item is None:
            text.append(f"[{DELETED_ITEM_NAME} x{line.quantity}]", style="dim strike")
        else:
            text.append(f"[{item.name} x{line.quantity}]", style="white")
    return text


def format_order_label(order: Order, lookup: Mapping[str, MenuItem], editing: bool = False) -> Text:
    text = Text()
    if editing:
        text.append("EDIT", style=badge_style("EDIT"))
        text.append(" ")
    text.append(order.customer_name, style="bold")
    text.append(f"  {format_amount(order_total(order, lookup))}")
    text.append(f"  {order.placed_at}", style="dim")
    return text


def format_dashboard(orders: Sequence[Order], menu_items: Iterable[MenuItem]) -> Text:
    """Latest orders and best sellers on one line each."""
    lookup = menu_index(menu_items)
    text = Text()
    text.append("Latest: ", style="bold")
    latest = recent_orders(orders)
    if not latest:
        text.append("-", style="dim")
    for idx, order in enumerate(latest):
        if idx > 0:
            text.append(" | ", style="dim")
        text.append(f"{order.customer_name} {format_amount(order_total(order, lookup))}")
    text.append("\nTop: ", style="bold")
    top = best_sellers(orders, lookup)
    if not top:
        text.append("-", style="dim")
    for idx, (item, quantity) in enumerate(top):
        if idx > 0:
            text.append(", ")
        text.append(f"{item.name} x{quantity}")
    return text
