from __future__ import annotations

import math

import pytest

from foodorder.errors import NotFoundError, ValidationError
from foodorder.ids import SequentialIdGenerator
from foodorder.models import MenuItem, Order, OrderLine
from foodorder.persistence import EntityStore


def test_add_menu_item_round_trips_through_lookup(store):
    first = store.add_menu_item("Phở bò", 45000)
    second = store.add_menu_item("Bún chả", 40000.5)

    assert store.get_menu_item(first.id) == MenuItem(first.id, "Phở bò", 45000.0)
    assert store.get_menu_item(second.id).price == 40000.5
    assert first.id != second.id
    assert store.list_menu_items() == [first, second]


def test_duplicate_names_are_allowed(store):
    store.add_menu_item("Trà", 5000)
    store.add_menu_item("Trà", 6000)
    assert len(store.list_menu_items()) == 2


@pytest.mark.parametrize("name, price", [("", 1000), ("   ", 1000), ("Phở", -1), ("Phở", "abc"), ("Phở", math.nan), ("Phở", math.inf), ("Phở", True)])
def test_add_menu_item_rejects_invalid_input(store, name, price):
    with pytest.raises(ValidationError):
        store.add_menu_item(name, price)
    assert store.count_menu_items() == 0


def test_generated_ids_skip_existing_ones(tmp_path):
    store = EntityStore(tmp_path / "db.sqlite", id_generator=SequentialIdGenerator("m"))
    store.replace_all([MenuItem("m1", "Taken", 1.0)], [])
    item = store.add_menu_item("Fresh", 2)
    assert item.id == "m2"


def test_remove_menu_item_is_idempotent_and_keeps_orders(stocked_store):
    pho = stocked_store.list_menu_items()[0]
    before = stocked_store.list_orders()

    stocked_store.remove_menu_item(pho.id)
    stocked_store.remove_menu_item(pho.id)
    stocked_store.remove_menu_item("missing")

    assert stocked_store.get_menu_item(pho.id) is None
    assert stocked_store.list_orders() == before


def test_add_order_drops_zero_quantities(store):
    a = store.add_menu_item("A", 1000)
    b = store.add_menu_item("B", 2000)

    order = store.add_order("Chi", {a.id: 0, b.id: 3})

    assert order.lines == (OrderLine(b.id, 3),)
    assert store.get_order(order.id) == order


def test_add_order_keeps_line_order_and_sets_timestamp(store):
    a = store.add_menu_item("A", 1000)
    b = store.add_menu_item("B", 2000)

    order = store.add_order("  Chi  ", {b.id: 1, a.id: 2})

    assert order.customer_name == "  Chi  "
    assert store.get_order(order.id).customer_name == "  Chi  "
    assert [line.menu_item_id for line in order.lines] == [b.id, a.id]
    assert order.placed_at.startswith("2026-01-01T00:00:")


@pytest.mark.parametrize("customer, quantities", [("", {"x": 1}), ("Chi", {}), ("Chi", {"x": 0}), ("Chi", {"x": -2})])
def test_add_order_rejects_empty_orders(store, customer, quantities):
    with pytest.raises(ValidationError):
        store.add_order(customer, quantities)
    assert store.list_orders() == []


def test_add_order_rejects_non_integer_quantity(store):
    with pytest.raises(ValidationError):
        store.add_order("Chi", {"x": 1.5})


def test_update_order_preserves_id_and_timestamp(stocked_store):
    order = stocked_store.list_orders()[-1]
    tea = stocked_store.list_menu_items()[1]

    updated = stocked_store.update_order(order.id, "An Nguyễn", {tea.id: 4})

    assert updated.id == order.id
    assert updated.placed_at == order.placed_at
    assert stocked_store.get_order(order.id) == Order(order.id, "An Nguyễn", (OrderLine(tea.id, 4),), order.placed_at)


def test_update_missing_order_raises_and_changes_nothing(stocked_store):
    before = stocked_store.list_orders()

    with pytest.raises(NotFoundError):
        stocked_store.update_order("nope", "Chi", {"id1": 1})

    assert stocked_store.list_orders() == before


def test_update_order_validation_leaves_order_intact(stocked_store):
    order = stocked_store.list_orders()[0]
    with pytest.raises(ValidationError):
        stocked_store.update_order(order.id, "Chi", {"id1": 0})
    assert stocked_store.get_order(order.id) == order


def test_remove_order_is_idempotent(stocked_store):
    order = stocked_store.list_orders()[0]
    stocked_store.remove_order(order.id)
    stocked_store.remove_order(order.id)
    assert stocked_store.get_order(order.id) is None
    assert len(stocked_store.list_orders()) == 1


def test_orders_are_listed_newest_first(stocked_store):
    names = [order.customer_name for order in stocked_store.list_orders()]
    assert names == ["Bình", "An"]


def test_replace_all_swaps_both_collections(stocked_store):
    items = [MenuItem("x1", "Cơm tấm", 35000.0)]
    orders = [Order("o1", "Dũng", (OrderLine("x1", 2),), "19/10/2026")]

    stocked_store.replace_all(items, orders)

    assert stocked_store.snapshot().menu_items == items
    assert stocked_store.snapshot().orders == orders


@pytest.mark.parametrize(
    "items, orders",
    [
        ([MenuItem("x", "A", 1.0), MenuItem("x", "B", 2.0)], []),
        ([MenuItem("x", "", 1.0)], []),
        ([], [Order("o", "Dũng", (), "t")]),
        ([], [Order("o", "Dũng", (OrderLine("x", 1), OrderLine("x", 2)), "t")]),
        ([], [Order("o", "A", (OrderLine("x", 1),), "t"), Order("o", "B", (OrderLine("x", 1),), "t")]),
    ],
)
def test_replace_all_rejects_invalid_collections(stocked_store, items, orders):
    before = stocked_store.snapshot()
    with pytest.raises(ValidationError):
        stocked_store.replace_all(items, orders)
    assert stocked_store.snapshot() == before


def test_migrate_if_empty_populates_empty_store(store):
    items = [MenuItem("f1", "Bánh mì", 20000.0)]
    orders = [Order("o1", "Em", (OrderLine("f1", 1),), "1/1/2025")]

    assert store.migrate_if_empty(items, orders) is True
    assert store.snapshot().menu_items == items

    # A second run is a no-op.
    assert store.migrate_if_empty(items, orders) is False
    assert len(store.list_orders()) == 1


def test_migrate_if_empty_is_noop_on_populated_store(stocked_store):
    before = stocked_store.snapshot()
    migrated = stocked_store.migrate_if_empty(
        [MenuItem("f1", "Bánh mì", 20000.0)], [Order("o1", "Em", (OrderLine("f1", 1),), "x")]
    )
    assert migrated is False
    assert stocked_store.snapshot() == before


def test_subscribers_are_notified_after_each_mutation(store):
    calls = []
    unsubscribe = store.subscribe(lambda: calls.append(store.count_menu_items()))

    item = store.add_menu_item("A", 1)
    order = store.add_order("Chi", {item.id: 1})
    store.update_order(order.id, "Chi", {item.id: 2})
    store.remove_order(order.id)
    store.remove_menu_item(item.id)
    store.replace_all([], [])
    unsubscribe()
    store.add_menu_item("B", 1)

    assert calls == [1, 1, 1, 1, 0, 0]


def test_failing_subscriber_does_not_break_mutation(store):
    seen = []

    def broken() -> None:
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(lambda: seen.append(True))

    item = store.add_menu_item("A", 1)

    assert store.get_menu_item(item.id) == item
    assert seen == [True]


def test_no_notification_when_validation_fails(store):
    calls = []
    store.subscribe(lambda: calls.append(True))
    with pytest.raises(ValidationError):
        store.add_menu_item("", 1)
    assert calls == []


def test_separate_stores_are_isolated(make_store):
    first = make_store("a.db")
    second = make_store("b.db")
    first.add_menu_item("A", 1)
    assert second.list_menu_items() == []


def test_names_are_stored_exactly_as_given(store):
    item = store.add_menu_item(" Phở ", 10000)
    assert store.get_menu_item(item.id).name == " Phở "


def test_orders_sharing_a_date_keep_their_order_through_replace_all(store, make_store):
    orders = [
        Order("o1", "An", (OrderLine("x1", 1),), "19/10/2026"),
        Order("o2", "Bình", (OrderLine("x1", 2),), "19/10/2026"),
    ]
    store.replace_all([MenuItem("x1", "Cơm", 1.0)], orders)
    before = store.snapshot()
    assert [o.id for o in before.orders] == ["o1", "o2"]

    other = make_store()
    other.replace_all(before.menu_items, before.orders)

    assert other.snapshot() == before


def test_migrated_orders_sharing_a_date_keep_their_order(store):
    orders = [
        Order("o1", "An", (OrderLine("x1", 1),), "19/10/2026"),
        Order("o2", "Bình", (OrderLine("x1", 2),), "19/10/2026"),
    ]
    store.migrate_if_empty([MenuItem("x1", "Cơm", 1.0)], orders)
    assert store.list_orders() == orders
