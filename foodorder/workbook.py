"""Two-sheet Excel export/import of the store.

The order sheet is a flattened, denormalised view: one row per order line,
with the item name and price resolved at export time. On import, lines are
matched back to menu items by *name* against the imported menu sheet, not
by id. Renaming an item between export and import therefore drops the lines
that used the old name. Earlier exports rely on this behaviour, so it is kept.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from io import BytesIO
from typing import Any, Callable, Iterable, Iterator
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from foodorder.constant import (
    ANONYMOUS_CUSTOMER,
    DELETED_ITEM_NAME,
    EXPORT_FILENAME_PREFIX,
    MENU_COL_ID,
    MENU_COL_NAME,
    MENU_COL_PRICE,
    MENU_HEADERS,
    MENU_SHEET,
    ORDER_COL_CUSTOMER,
    ORDER_COL_DATE,
    ORDER_COL_ID,
    ORDER_COL_ITEM,
    ORDER_COL_QUANTITY,
    ORDER_HEADERS,
    ORDER_SHEET,
    UNNAMED_ITEM_NAME,
)
from foodorder.errors import DataImportError
from foodorder.ids import IdGenerator, RandomIdGenerator, fresh_id
from foodorder.models import MenuItem, Order, OrderLine, StoreSnapshot, menu_index
from foodorder.valuation import line_total

logger = logging.getLogger(__name__)

Record = dict[str, Any]


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def export_filename(day: date | None = None) -> str:
    """File name for a download, e.g. ``QuanLyDatMon_19-10-2026.xlsx``."""
    day = day or date.today()
    return f"{EXPORT_FILENAME_PREFIX}_{day.day}-{day.month}-{day.year}.xlsx"


def encode_workbook(menu_items: Iterable[MenuItem], orders: Iterable[Order]) -> bytes:
    """Serialise the store into xlsx bytes."""
    menu_items = list(menu_items)
    lookup = menu_index(menu_items)

    wb = Workbook()
    menu_ws = wb.active
    menu_ws.title = MENU_SHEET
    menu_ws.append(list(MENU_HEADERS))
    for item in menu_items:
        menu_ws.append([item.id, item.name, item.price])

    order_ws = wb.create_sheet(ORDER_SHEET)
    order_ws.append(list(ORDER_HEADERS))
    for order in orders:
        for line in order.lines:
            item = lookup.get(line.menu_item_id)
            order_ws.append(
                [
                    order.id,
                    order.customer_name,
                    item.name if item else DELETED_ITEM_NAME,
                    item.price if item else 0,
                    line.quantity,
                    line_total(line, lookup),
                    order.placed_at,
                ]
            )

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def _to_price(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        price = float(value) if isinstance(value, (int, float)) else float(_cell_text(value))
    except ValueError:
        return 0.0
    if not math.isfinite(price) or price < 0:
        return 0.0
    return price


def _to_quantity(value: Any) -> int:
    if isinstance(value, bool):
        return 1
    try:
        quantity = int(float(value)) if isinstance(value, (int, float)) else int(float(_cell_text(value)))
    except (ValueError, OverflowError):
        return 1
    return quantity if quantity > 0 else 1


def _sheet_records(ws) -> Iterator[Record]:
    rows = ws.iter_rows(values_only=True)
    header_row = next(rows, None)
    if header_row is None:
        return
    headers = [_cell_text(cell) for cell in header_row]
    for row in rows:
        if all(cell is None or _cell_text(cell) == "" for cell in row):
            continue
        yield {header: value for header, value in zip(headers, row) if header}


def _read_records(data: bytes) -> tuple[list[Record], list[Record]]:
    # Read-only sheets parse XML lazily, so iteration can fail as late as load.
    try:
        wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
        try:
            if MENU_SHEET not in wb.sheetnames and ORDER_SHEET not in wb.sheetnames:
                raise DataImportError(f"Workbook has neither a {MENU_SHEET!r} nor a {ORDER_SHEET!r} sheet")
            menu_records = list(_sheet_records(wb[MENU_SHEET])) if MENU_SHEET in wb.sheetnames else []
            order_records = list(_sheet_records(wb[ORDER_SHEET])) if ORDER_SHEET in wb.sheetnames else []
        finally:
            wb.close()
    except (InvalidFileException, BadZipFile, SyntaxError, KeyError, OSError, TypeError, ValueError) as exc:
        raise DataImportError(f"Not a readable Excel workbook: {exc}") from exc
    return menu_records, order_records


def decode_workbook(
    data: bytes,
    id_generator: IdGenerator | None = None,
    clock: Callable[[], str] = _utc_now_iso,
) -> StoreSnapshot:
    """Rebuild menu items and orders from xlsx bytes.

    Raises DataImportError when the bytes are not a workbook or contain
    neither expected sheet. Bad cells degrade row by row instead.
    """
    menu_records, order_records = _read_records(data)

    generate = id_generator or RandomIdGenerator()
    menu_items = _decode_menu(menu_records, generate)
    orders = _decode_orders(order_records, menu_items, generate, clock)
    logger.info("workbook decoded menu_items=%d orders=%d", len(menu_items), len(orders))
    return StoreSnapshot(menu_items=menu_items, orders=orders)


def _decode_menu(records: list[Record], generate: IdGenerator) -> list[MenuItem]:
    taken = {_cell_text(record.get(MENU_COL_ID)) for record in records} - {""}
    items: list[MenuItem] = []
    seen: set[str] = set()
    for record in records:
        item_id = _cell_text(record.get(MENU_COL_ID))
        if not item_id:
            item_id = fresh_id(generate, taken)
            taken.add(item_id)
        if item_id in seen:
            logger.warning("skipping menu row with duplicate id %r", item_id)
            continue
        seen.add(item_id)
        items.append(
            MenuItem(
                id=item_id,
                name=_cell_text(record.get(MENU_COL_NAME)) or UNNAMED_ITEM_NAME,
                price=_to_price(record.get(MENU_COL_PRICE)),
            )
        )
    return items


def _decode_orders(
    records: list[Record],
    menu_items: list[MenuItem],
    generate: IdGenerator,
    clock: Callable[[], str],
) -> list[Order]:
    by_name: dict[str, MenuItem] = {}
    for item in menu_items:
        by_name.setdefault(item.name, item)

    taken = {_cell_text(record.get(ORDER_COL_ID)) for record in records} - {""}
    headers: dict[object, tuple[str, str, str]] = {}
    quantities: dict[object, dict[str, int]] = {}

    for record in records:
        order_id = _cell_text(record.get(ORDER_COL_ID))
        customer = _cell_text(record.get(ORDER_COL_CUSTOMER))
        placed_at = _cell_text(record.get(ORDER_COL_DATE))
        # Rows without an order id are grouped by customer and date.
        key: object = order_id if order_id else ("synthetic", customer, placed_at)

        if key not in headers:
            if not order_id:
                order_id = fresh_id(generate, taken)
                taken.add(order_id)
            headers[key] = (order_id, customer or ANONYMOUS_CUSTOMER, placed_at or clock())
            quantities[key] = {}

        item = by_name.get(_cell_text(record.get(ORDER_COL_ITEM)))
        if item is None:
            continue
        lines = quantities[key]
        lines[item.id] = lines.get(item.id, 0) + _to_quantity(record.get(ORDER_COL_QUANTITY))

    orders: list[Order] = []
    for key, (order_id, customer, placed_at) in headers.items():
        lines = quantities[key]
        if not lines:
            logger.warning("dropping imported order %s: no line matched a menu item", order_id)
            continue
        orders.append(
            Order(
                id=order_id,
                customer_name=customer,
                lines=tuple(OrderLine(menu_item_id=item_id, quantity=qty) for item_id, qty in lines.items()),
                placed_at=placed_at,
            )
        )
    return orders
