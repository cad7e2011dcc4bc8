"""Working copy of an order before it is saved."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from foodorder.models import MenuItem, Order
from foodorder.persistence import EntityStore
from foodorder.valuation import draft_total


@dataclass
class OrderDraft:
    """Customer name plus per-item quantities, optionally editing a saved order.

    Keys are menu item ids, so each item appears at most once.
    """

    customer_name: str = ""
    quantities: dict[str, int] = field(default_factory=dict)
    editing_order_id: str | None = None

    def adjust(self, menu_item_id: str, delta: int) -> int:
        """Change one quantity, never below zero. Returns the new quantity."""
        quantity = max(0, self.quantities.get(menu_item_id, 0) + delta)
        self.quantities[menu_item_id] = quantity
        return quantity

    def line_quantities(self) -> dict[str, int]:
        return {item_id: qty for item_id, qty in self.quantities.items() if qty > 0}

    def total(self, menu_items: Iterable[MenuItem]) -> float:
        return draft_total(self.quantities, list(menu_items))

    def start_edit(self, order: Order) -> None:
        self.editing_order_id = order.id
        self.customer_name = order.customer_name
        self.quantities = {line.menu_item_id: line.quantity for line in order.lines}

    def cancel(self) -> None:
        self.customer_name = ""
        self.quantities = {}
        self.editing_order_id = None

    def forget_order(self, order_id: str) -> None:
        """Drop the edit if the order being edited was deleted."""
        if self.editing_order_id == order_id:
            self.cancel()

    def commit(self, store: EntityStore) -> Order:
        """Save as a new order or update the edited one, then reset.

        Store errors propagate and leave the draft untouched.
        """
        if self.editing_order_id is not None:
            order = store.update_order(self.editing_order_id, self.customer_name, self.line_quantities())
        else:
            order = store.add_order(self.customer_name, self.line_quantities())
        self.cancel()
        return order
