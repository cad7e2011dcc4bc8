"""Workbook schema and placeholder text.

Sheet names and header strings are the compatibility contract with
previously exported workbooks; do not translate or reword them.
"""

from __future__ import annotations

MENU_SHEET = "Thực đơn"
ORDER_SHEET = "Danh sách đặt hàng"

MENU_COL_ID = "Mã món"
MENU_COL_NAME = "Tên món ăn"
MENU_COL_PRICE = "Giá (VNĐ)"

MENU_HEADERS = (MENU_COL_ID, MENU_COL_NAME, MENU_COL_PRICE)

ORDER_COL_ID = "Mã đơn hàng"
ORDER_COL_CUSTOMER = "Tên khách hàng"
ORDER_COL_ITEM = "Món ăn"
ORDER_COL_UNIT_PRICE = "Đơn giá"
ORDER_COL_QUANTITY = "Số lượng"
ORDER_COL_AMOUNT = "Thành tiền"
ORDER_COL_DATE = "Ngày đặt"

ORDER_HEADERS = (
    ORDER_COL_ID,
    ORDER_COL_CUSTOMER,
    ORDER_COL_ITEM,
    ORDER_COL_UNIT_PRICE,
    ORDER_COL_QUANTITY,
    ORDER_COL_AMOUNT,
    ORDER_COL_DATE,
)

DELETED_ITEM_NAME = "Đã xóa"
UNNAMED_ITEM_NAME = "Không tên"
ANONYMOUS_CUSTOMER = "Khách ẩn danh"

EXPORT_FILENAME_PREFIX = "QuanLyDatMon"
