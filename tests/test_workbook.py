from __future__ import annotations

from collections import Counter
from datetime import date
from io import BytesIO
from zipfile import ZipFile

import pytest
from openpyxl import Workbook, load_workbook

from foodorder.constant import (
    DELETED_ITEM_NAME,
    MENU_HEADERS,
    MENU_SHEET,
    ORDER_HEADERS,
    ORDER_SHEET,
    UNNAMED_ITEM_NAME,
    ANONYMOUS_CUSTOMER,
)
from foodorder.errors import DataImportError
from foodorder.ids import SequentialIdGenerator
from foodorder.models import MenuItem, Order, OrderLine
from foodorder.workbook import decode_workbook, encode_workbook, export_filename


def _fixed_clock() -> str:
    return "2026-10-19T00:00:00+00:00"


def _workbook_bytes(menu_rows=None, order_rows=None, extra_sheet=None) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)
    if menu_rows is not None:
        ws = wb.create_sheet(MENU_SHEET)
        ws.append(list(MENU_HEADERS))
        for row in menu_rows:
            ws.append(row)
    if order_rows is not None:
        ws = wb.create_sheet(ORDER_SHEET)
        ws.append(list(ORDER_HEADERS))
        for row in order_rows:
            ws.append(row)
    if extra_sheet is not None:
        wb.create_sheet(extra_sheet).append(["x"])
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _decode(data: bytes):
    return decode_workbook(data, id_generator=SequentialIdGenerator("gen"), clock=_fixed_clock)


def _triples(snapshot):
    names = {item.id: item.name for item in snapshot.menu_items}
    return {
        order.customer_name: Counter((names[line.menu_item_id], line.quantity) for line in order.lines)
        for order in snapshot.orders
    }


def test_export_writes_menu_and_flattened_order_lines():
    menu = [MenuItem("a", "Phở bò", 10000.0), MenuItem("b", "Trà đá", 5000.0)]
    orders = [Order("o1", "An", (OrderLine("a", 2), OrderLine("gone", 1)), "19/10/2026")]

    wb = load_workbook(BytesIO(encode_workbook(menu, orders)))

    assert wb.sheetnames == [MENU_SHEET, ORDER_SHEET]
    menu_rows = list(wb[MENU_SHEET].iter_rows(values_only=True))
    assert menu_rows[0] == MENU_HEADERS
    assert menu_rows[1] == ("a", "Phở bò", 10000)
    order_rows = list(wb[ORDER_SHEET].iter_rows(values_only=True))
    assert order_rows[0] == ORDER_HEADERS
    assert order_rows[1] == ("o1", "An", "Phở bò", 10000, 2, 20000, "19/10/2026")
    assert order_rows[2] == ("o1", "An", DELETED_ITEM_NAME, 0, 1, 0, "19/10/2026")


def test_round_trip_preserves_customer_item_quantity_triples(stocked_store):
    before = stocked_store.snapshot()

    after = _decode(encode_workbook(before.menu_items, before.orders))

    assert after.menu_items == before.menu_items
    assert _triples(after) == _triples(before)
    assert {o.id for o in after.orders} == {o.id for o in before.orders}


def test_import_groups_rows_by_order_id_and_resolves_by_name():
    data = _workbook_bytes(
        menu_rows=[["a", "Phở", 10000], ["b", "Trà", 5000]],
        order_rows=[
            ["o1", "An", "Phở", 10000, 2, 20000, "d1"],
            ["o1", "An", "Trà", 5000, 1, 5000, "d1"],
            ["o2", "Bình", "Trà", 5000, 3, 15000, "d2"],
        ],
    )

    snapshot = _decode(data)

    assert snapshot.orders == [
        Order("o1", "An", (OrderLine("a", 2), OrderLine("b", 1)), "d1"),
        Order("o2", "Bình", (OrderLine("b", 3),), "d2"),
    ]


def test_renamed_item_orphans_its_lines():
    data = _workbook_bytes(
        menu_rows=[["a", "Phở đặc biệt", 10000], ["b", "Trà", 5000]],
        order_rows=[
            ["o1", "An", "Phở", 10000, 2, 20000, "d1"],
            ["o1", "An", "Trà", 5000, 1, 5000, "d1"],
            ["o2", "Chi", "Phở", 10000, 1, 10000, "d2"],
        ],
    )

    snapshot = _decode(data)

    # o2 had nothing left that resolves, so it is not imported at all.
    assert snapshot.orders == [Order("o1", "An", (OrderLine("b", 1),), "d1")]


def test_rows_without_order_id_group_by_customer_and_date():
    data = _workbook_bytes(
        menu_rows=[["a", "Phở", 10000]],
        order_rows=[
            [None, "An", "Phở", 10000, 1, 10000, "d1"],
            [None, "An", "Phở", 10000, 2, 20000, "d1"],
            [None, "An", "Phở", 10000, 1, 10000, "d2"],
        ],
    )

    snapshot = _decode(data)

    assert [(o.customer_name, o.placed_at, o.lines) for o in snapshot.orders] == [
        ("An", "d1", (OrderLine("a", 3),)),
        ("An", "d2", (OrderLine("a", 1),)),
    ]
    assert len({o.id for o in snapshot.orders}) == 2


def test_blank_and_malformed_cells_use_defaults():
    data = _workbook_bytes(
        menu_rows=[[None, None, "abc"], ["c", "Chè", -5], [7, "Cơm", "12000"]],
        order_rows=[
            ["o1", None, "Chè", 0, "many", 0, None],
            ["o1", None, "Cơm", 0, 0, 0, None],
        ],
    )

    snapshot = _decode(data)

    assert snapshot.menu_items == [
        MenuItem("gen1", UNNAMED_ITEM_NAME, 0.0),
        MenuItem("c", "Chè", 0.0),
        MenuItem("7", "Cơm", 12000.0),
    ]
    assert snapshot.orders == [
        Order("o1", ANONYMOUS_CUSTOMER, (OrderLine("c", 1), OrderLine("7", 1)), _fixed_clock()),
    ]


def test_duplicate_menu_ids_keep_first_row():
    data = _workbook_bytes(menu_rows=[["a", "Phở", 1], ["a", "Bún", 2]], order_rows=[])
    assert _decode(data).menu_items == [MenuItem("a", "Phở", 1.0)]


def test_missing_order_sheet_imports_menu_only():
    snapshot = _decode(_workbook_bytes(menu_rows=[["a", "Phở", 1]]))
    assert snapshot.menu_items == [MenuItem("a", "Phở", 1.0)]
    assert snapshot.orders == []


def test_workbook_without_expected_sheets_is_rejected():
    with pytest.raises(DataImportError):
        _decode(_workbook_bytes(extra_sheet="Sheet1"))


@pytest.mark.parametrize("data", [b"", b"not a workbook", b"PK\x03\x04garbage"])
def test_unreadable_bytes_are_rejected(data):
    with pytest.raises(DataImportError):
        _decode(data)


def test_export_filename_uses_day_month_year():
    assert export_filename(date(2026, 3, 7)) == "QuanLyDatMon_7-3-2026.xlsx"


def _with_member(data: bytes, member: str, content: bytes) -> bytes:
    source = ZipFile(BytesIO(data))
    buffer = BytesIO()
    with ZipFile(buffer, "w") as target:
        for info in source.infolist():
            target.writestr(info, content if info.filename == member else source.read(info.filename))
    return buffer.getvalue()


@pytest.mark.parametrize(
    "member, content",
    [
        ("xl/worksheets/sheet1.xml", b"<worksheet><sheetData><row"),
        ("[Content_Types].xml", b"garbage<"),
    ],
)
def test_workbook_with_malformed_xml_is_rejected(member, content):
    valid = _workbook_bytes(menu_rows=[["a", "Phở", 1]], order_rows=[])
    with pytest.raises(DataImportError):
        _decode(_with_member(valid, member, content))
