"""Domain models for foodorder."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MenuItem:
    """A priced dish on the menu."""

    id: str
    name: str
    price: float


@dataclass(frozen=True)
class OrderLine:
    """A quantity of one menu item. References the item by id, never owns it."""

    menu_item_id: str
    quantity: int


@dataclass(frozen=True)
class Order:
    """A customer's order. ``placed_at`` is fixed at creation."""

    id: str
    customer_name: str
    lines: tuple[OrderLine, ...]
    placed_at: str


@dataclass(frozen=True)
class StoreSnapshot:
    """Point-in-time copy of both collections, as exchanged by the codecs."""

    menu_items: list[MenuItem] = field(default_factory=list)
    orders: list[Order] = field(default_factory=list)


def menu_index(menu_items: list[MenuItem]) -> dict[str, MenuItem]:
    """Map menu item ids to items."""
    return {item.id: item for item in menu_items}
