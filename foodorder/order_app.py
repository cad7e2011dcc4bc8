"""Main Textual app class."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.reactive import reactive
from textual.widgets import Header, Static

from foodorder.config import LEGACY_SNAPSHOT_PATH, ORDERS_PER_PAGE
from foodorder.confirm_modal import ConfirmModal
from foodorder.drafts import OrderDraft
from foodorder.errors import DataImportError, NotFoundError, SyncWriteError, ValidationError
from foodorder.models import MenuItem, Order, StoreSnapshot, menu_index
from foodorder.persistence import EntityStore
from foodorder.prompt_modal import PromptModal
from foodorder.reconcile import (
    AutoSync,
    confirm_and_replace,
    export_snapshot_file,
    export_workbook_file,
    migrate_legacy,
    read_import_file,
)
from foodorder.rendering import badge_style, format_amount, format_dashboard, format_menu_row, format_order_label, format_order_lines
from foodorder.snapshot import decode_snapshot
from foodorder.valuation import aggregate_revenue, filter_menu_items, filter_orders, paginate
from foodorder.workbook import decode_workbook, export_filename

logger = logging.getLogger(__name__)


def _parse_price(value: str) -> float | None:
    try:
        return float(value.replace(",", ""))
    except ValueError:
        return None


class FoodOrderApp(App):
    """A Textual app for managing a menu and customer orders."""

    TITLE = "Food Order"
    SUB_TITLE = "Menu / Orders"

    CSS = """
    Screen {
        layout: vertical;
    }

    #main-layout {
        height: 1fr;
    }

    #menu-pane {
        width: 2fr;
        border: round $secondary;
        padding: 1;
    }

    #orders-pane {
        width: 3fr;
        border: round $primary;
        padding: 1;
    }

    #menu-list, #orders-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #status-bar {
        border: heavy $secondary;
        padding: 0 1;
        height: 7;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    focus_pane = reactive("menu")
    menu_selected_index = reactive(0)
    order_selected_index = reactive(0)
    order_page = reactive(1)

    BINDINGS = [
        ("tab", "switch_pane", "Switch pane"),
        ("j", "move_selection(1)", "Next"),
        ("k", "move_selection(-1)", "Previous"),
        ("down", "move_selection(1)", "Next"),
        ("up", "move_selection(-1)", "Previous"),
        ("plus,equals_sign,right", "adjust_draft(1)", "Qty +1"),
        ("minus,left", "adjust_draft(-1)", "Qty -1"),
        ("a", "add_menu_item", "Add item"),
        ("c", "set_customer", "Customer"),
        ("e", "edit_order", "Edit order"),
        ("x", "delete_selected", "Delete"),
        ("slash", "search", "Search"),
        ("left_square_bracket", "change_page(-1)", "Prev page"),
        ("right_square_bracket", "change_page(1)", "Next page"),
        ("escape", "cancel_edit", "Cancel edit"),
        Binding("ctrl+s", "save_order", "Save order", priority=True),
        Binding("ctrl+e", "export_workbook", "Export xlsx", priority=True),
        Binding("ctrl+o", "import_workbook", "Import xlsx", priority=True),
        Binding("ctrl+t", "export_snapshot", "Export JSON", priority=True),
        Binding("ctrl+l", "import_snapshot", "Import JSON", priority=True),
        Binding("ctrl+y", "auto_sync", "Auto-sync", priority=True),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, store: EntityStore, legacy_path: str | Path = LEGACY_SNAPSHOT_PATH) -> None:
        super().__init__()
        self.store = store
        self.legacy_path = Path(legacy_path)
        self.draft = OrderDraft()
        self.menu_filter = ""
        self.order_filter = ""
        self.system_status = ""
        self._sync_errors: list[SyncWriteError] = []
        self._snapshot = StoreSnapshot()
        self.auto_sync = AutoSync(store, on_error=self._sync_errors.append)
        self._unsubscribe = store.subscribe(self._on_store_changed)

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            with Vertical(id="menu-pane"):
                yield Static("Menu", classes="pane-title")
                yield Static("(no items yet)", id="menu-list")
            with Vertical(id="orders-pane"):
                yield Static("Orders", classes="pane-title")
                yield Static("(no orders yet)", id="orders-list")
        yield Static(id="status-bar")

    def on_mount(self) -> None:
        if migrate_legacy(self.store, self.legacy_path):
            self.system_status = f"Migrated legacy data from {self.legacy_path}"
        self._on_store_changed()
        # Sync failures arrive on timer threads; surface them from the UI loop.
        self.set_interval(1.0, self._drain_sync_errors)

    def on_unmount(self) -> None:
        self._unsubscribe()
        self.auto_sync.close()

    def _on_store_changed(self) -> None:
        self._snapshot = self.store.snapshot()
        self._refresh_all()

    def _drain_sync_errors(self) -> None:
        if not self._sync_errors:
            return
        error = self._sync_errors.pop()
        self._sync_errors.clear()
        self._set_status(f"Auto-sync failed: {error.reason}")

    def _set_status(self, message: str) -> None:
        self.system_status = message
        logger.info("status %s", message)
        self._refresh_status()

    # Selection helpers

    def _visible_menu(self) -> list[MenuItem]:
        return filter_menu_items(self._snapshot.menu_items, self.menu_filter)

    def _visible_orders(self) -> tuple[list[Order], int]:
        orders = filter_orders(self._snapshot.orders, self.order_filter)
        return paginate(orders, self.order_page, ORDERS_PER_PAGE)

    def _selected_menu_item(self) -> MenuItem | None:
        items = self._visible_menu()
        if not (0 <= self.menu_selected_index < len(items)):
            return None
        return items[self.menu_selected_index]

    def _selected_order(self) -> Order | None:
        orders, _ = self._visible_orders()
        if not (0 <= self.order_selected_index < len(orders)):
            return None
        return orders[self.order_selected_index]

    # Actions

    def action_switch_pane(self) -> None:
        self.focus_pane = "orders" if self.focus_pane == "menu" else "menu"
        self._refresh_all()

    def action_move_selection(self, delta: int) -> None:
        if self.focus_pane == "menu":
            total = len(self._visible_menu())
            if total:
                self.menu_selected_index = (self.menu_selected_index + delta) % total
        else:
            orders, _ = self._visible_orders()
            if orders:
                self.order_selected_index = (self.order_selected_index + delta) % len(orders)
        self._refresh_all()

    def action_adjust_draft(self, delta: int) -> None:
        item = self._selected_menu_item()
        if self.focus_pane != "menu" or item is None:
            return
        self.draft.adjust(item.id, delta)
        self._refresh_all()

    def action_change_page(self, delta: int) -> None:
        _, total_pages = self._visible_orders()
        self.order_page = min(max(1, self.order_page + delta), max(1, total_pages))
        self.order_selected_index = 0
        self._refresh_orders()

    def action_cancel_edit(self) -> None:
        if self.draft.editing_order_id is None and not self.draft.quantities:
            return
        self.draft.cancel()
        self._set_status("Draft cleared")
        self._refresh_all()

    def action_add_menu_item(self) -> None:
        def with_price(name: str | None) -> None:
            if not name:
                return
            self.push_screen(
                PromptModal(
                    "New menu item",
                    f"Price for {name}",
                    validate=lambda value: None if _parse_price(value) is not None else "Price must be a number.",
                ),
                lambda price: self._add_menu_item(name, price),
            )

        self.push_screen(PromptModal("New menu item", "Dish name"), with_price)

    def _add_menu_item(self, name: str, price_text: str | None) -> None:
        if price_text is None:
            return
        try:
            item = self.store.add_menu_item(name, _parse_price(price_text))
        except ValidationError as exc:
            self._set_status(str(exc))
            return
        self._set_status(f"Added {item.name}")

    def action_set_customer(self) -> None:
        def apply(name: str | None) -> None:
            if name is None:
                return
            self.draft.customer_name = name
            self._refresh_status()

        self.push_screen(PromptModal("Customer", "Customer name", value=self.draft.customer_name), apply)

    def action_save_order(self) -> None:
        editing = self.draft.editing_order_id is not None
        try:
            order = self.draft.commit(self.store)
        except (ValidationError, NotFoundError) as exc:
            self._set_status(str(exc))
            return
        self._set_status(f"{'Updated' if editing else 'Saved'} order for {order.customer_name}")

    def action_edit_order(self) -> None:
        order = self._selected_order()
        if self.focus_pane != "orders" or order is None:
            return
        self.draft.start_edit(order)
        self.focus_pane = "menu"
        self._set_status(f"Editing order for {order.customer_name}")
        self._refresh_all()

    def action_delete_selected(self) -> None:
        if self.focus_pane == "menu":
            item = self._selected_menu_item()
            if item is None:
                return

            def remove_item(ok: bool) -> None:
                if ok:
                    self.store.remove_menu_item(item.id)

            self.push_screen(ConfirmModal("Delete menu item", f"Remove {item.name} from the menu?"), remove_item)
            return

        order = self._selected_order()
        if order is None:
            return

        def remove(ok: bool) -> None:
            if not ok:
                return
            self.store.remove_order(order.id)
            self.draft.forget_order(order.id)

        self.push_screen(ConfirmModal("Delete order", f"Delete the order for {order.customer_name}?"), remove)

    def action_search(self) -> None:
        current = self.menu_filter if self.focus_pane == "menu" else self.order_filter

        def apply(term: str | None) -> None:
            if term is None:
                return
            if self.focus_pane == "menu":
                self.menu_filter = term
                self.menu_selected_index = 0
            else:
                self.order_filter = term
                self.order_page = 1
                self.order_selected_index = 0
            self._refresh_all()

        label = "Dish name contains" if self.focus_pane == "menu" else "Customer name contains"
        self.push_screen(PromptModal("Search", label, value=current), apply)

    def action_export_workbook(self) -> None:
        def export(path: str | None) -> None:
            if not path:
                return
            try:
                target = export_workbook_file(self.store, path)
            except OSError as exc:
                self._set_status(f"Export failed: {exc}")
                return
            self._set_status(f"Exported {target}")

        self.push_screen(PromptModal("Export Excel", "Save to file", value=export_filename()), export)

    def action_export_snapshot(self) -> None:
        def export(path: str | None) -> None:
            if not path:
                return
            try:
                target = export_snapshot_file(self.store, path)
            except OSError as exc:
                self._set_status(f"Export failed: {exc}")
                return
            self._set_status(f"Exported {target}")

        self.push_screen(PromptModal("Export snapshot", "Save to file", value="foodorder.json"), export)

    def action_import_workbook(self) -> None:
        def load(path: str | None) -> None:
            if not path:
                return
            try:
                snapshot = decode_workbook(
                    read_import_file(path), id_generator=self.store.id_generator, clock=self.store.clock
                )
            except DataImportError as exc:
                self._set_status(f"Import failed: {exc}")
                return
            self._confirm_replace(snapshot, path)

        self.push_screen(PromptModal("Import Excel", "Read from file"), load)

    def action_import_snapshot(self) -> None:
        def load(path: str | None) -> None:
            if not path:
                return
            try:
                snapshot = decode_snapshot(read_import_file(path))
            except DataImportError as exc:
                self._set_status(f"Import failed: {exc}")
                return
            self._confirm_replace(snapshot, path)

        self.push_screen(PromptModal("Import snapshot", "Read from file"), load)

    def _confirm_replace(self, snapshot: StoreSnapshot, source: str) -> None:
        def replace(ok: bool) -> None:
            try:
                replaced = confirm_and_replace(self.store, snapshot, lambda _: ok)
            except ValidationError as exc:
                self._set_status(f"Import failed: {exc}")
                return
            if replaced:
                self.draft.cancel()
                self._set_status(f"Imported {source}")
            else:
                self._set_status("Import cancelled")

        message = (
            f"Load {len(snapshot.menu_items)} menu items and {len(snapshot.orders)} orders from {source}?\n"
            "Everything currently stored will be replaced."
        )
        self.push_screen(ConfirmModal("Replace all data", message), replace)

    def action_auto_sync(self) -> None:
        def apply(path: str | None) -> None:
            if path is None:
                return
            if not path:
                self.auto_sync.revoke()
                self._set_status("Auto-sync off")
                return
            if self.auto_sync.grant(path):
                self._set_status(f"Auto-sync to {path}")
            else:
                self._set_status(f"Cannot write {path}; auto-sync off")

        current = str(self.auto_sync.path) if self.auto_sync.path else ""
        self.push_screen(PromptModal("Auto-sync", "Workbook file (empty to turn off)", value=current), apply)

    # Rendering

    def _visible_rows(self, widget: Static) -> int:
        height = widget.size.height
        if height <= 0:
            return 8
        return max(1, height)

    def _window_bounds(self, total: int, rows: int, selected: int | None) -> tuple[int, int]:
        if total <= 0:
            return (0, 0)

        rows = max(1, rows)
        if total <= rows:
            return (0, total)

        if selected is None:
            start = 0
        else:
            half = rows // 2
            start = selected - half
            start = max(0, start)
            start = min(start, total - rows)

        return (start, start + rows)

    def _refresh_all(self) -> None:
        self._refresh_menu()
        self._refresh_orders()
        self._refresh_status()

    def _refresh_menu(self) -> None:
        try:
            menu_widget = self.query_one("#menu-list", Static)
        except NoMatches:
            return
        items = self._visible_menu()
        if not items:
            menu_widget.update("(no items yet)" if not self.menu_filter else "No results")
            return
        if self.menu_selected_index >= len(items):
            self.menu_selected_index = len(items) - 1

        start, end = self._window_bounds(len(items), self._visible_rows(menu_widget), self.menu_selected_index)
        lines = Text()
        if start > 0:
            lines.append("⋮\n", style="dim")
        for idx in range(start, end):
            if idx > start:
                lines.append("\n")
            focused = self.focus_pane == "menu" and idx == self.menu_selected_index
            lines.append("➤ " if focused else "  ")
            lines.append_text(format_menu_row(items[idx], self.draft.quantities.get(items[idx].id, 0)))
        if end < len(items):
            lines.append("\n⋮", style="dim")
        menu_widget.update(lines)

    def _refresh_orders(self) -> None:
        try:
            orders_widget = self.query_one("#orders-list", Static)
        except NoMatches:
            return
        orders, total_pages = self._visible_orders()
        if not orders:
            orders_widget.update("(no orders yet)" if not self.order_filter else "No results")
            return
        if self.order_selected_index >= len(orders):
            self.order_selected_index = len(orders) - 1

        lookup = menu_index(self._snapshot.menu_items)
        lines = Text()
        for idx, order in enumerate(orders):
            if idx > 0:
                lines.append("\n")
            focused = self.focus_pane == "orders" and idx == self.order_selected_index
            lines.append("➤ " if focused else "  ")
            lines.append_text(format_order_label(order, lookup, editing=order.id == self.draft.editing_order_id))
            lines.append("\n    ")
            lines.append_text(format_order_lines(order, lookup))
        if total_pages > 1:
            lines.append(f"\n\nPage {min(self.order_page, total_pages)}/{total_pages}", style="dim")
        orders_widget.update(lines)

    def _refresh_status(self) -> None:
        try:
            bar = self.query_one("#status-bar", Static)
        except NoMatches:
            return
        revenue = aggregate_revenue(self._snapshot.orders, self._snapshot.menu_items)
        text = Text()
        if self.draft.editing_order_id is not None:
            text.append("EDIT", style=badge_style("EDIT"))
            text.append(" ")
        text.append(f"Customer: {self.draft.customer_name or '-'}  ")
        text.append(f"Draft: {format_amount(self.draft.total(self._snapshot.menu_items))}  ")
        text.append(f"Orders: {len(self._snapshot.orders)}  Revenue: {format_amount(revenue)}")
        if self.auto_sync.enabled:
            text.append("  ")
            text.append("SYNC", style=badge_style("SYNC"))
        text.append("\n")
        text.append(format_dashboard(self._snapshot.orders, self._snapshot.menu_items))
        text.append(f"\n{self.system_status or 'Ready'}")
        text.append("\nTab pane  +/- qty  c customer  Ctrl+S save  e edit  x delete  a add item", style="dim")
        bar.update(text)
