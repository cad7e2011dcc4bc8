"""JSON snapshot of the whole store.

Used for clipboard copy/paste, direct file round-tripping, and for reading
the legacy local-storage dump, which has the same shape. Ids are preserved
exactly; nothing is re-resolved.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as SchemaError

from foodorder.errors import DataImportError
from foodorder.models import MenuItem, Order, OrderLine, StoreSnapshot


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


class FoodModel(_CamelModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    price: float = Field(ge=0, allow_inf_nan=False)

    name_not_blank = field_validator("name")(_not_blank)


class OrderItemModel(_CamelModel):
    food_id: str = Field(alias="foodId", min_length=1)
    quantity: int = Field(gt=0)


class OrderModel(_CamelModel):
    id: str = Field(min_length=1)
    customer_name: str = Field(alias="customerName", min_length=1)
    items: list[OrderItemModel] = Field(min_length=1)
    order_date: str = Field(alias="orderDate")

    customer_not_blank = field_validator("customer_name")(_not_blank)

    @model_validator(mode="after")
    def one_line_per_food(self) -> OrderModel:
        food_ids = [item.food_id for item in self.items]
        if len(set(food_ids)) != len(food_ids):
            raise ValueError(f"order {self.id!r} lists the same foodId twice")
        return self


class SnapshotModel(_CamelModel):
    foods: list[FoodModel] = Field(default_factory=list)
    orders: list[OrderModel] = Field(default_factory=list)


def _to_model(snapshot: StoreSnapshot) -> SnapshotModel:
    return SnapshotModel(
        foods=[FoodModel(id=item.id, name=item.name, price=item.price) for item in snapshot.menu_items],
        orders=[
            OrderModel(
                id=order.id,
                customer_name=order.customer_name,
                items=[OrderItemModel(food_id=line.menu_item_id, quantity=line.quantity) for line in order.lines],
                order_date=order.placed_at,
            )
            for order in snapshot.orders
        ],
    )


def _from_model(model: SnapshotModel) -> StoreSnapshot:
    return StoreSnapshot(
        menu_items=[MenuItem(id=food.id, name=food.name, price=food.price) for food in model.foods],
        orders=[
            Order(
                id=order.id,
                customer_name=order.customer_name,
                lines=tuple(OrderLine(menu_item_id=item.food_id, quantity=item.quantity) for item in order.items),
                placed_at=order.order_date,
            )
            for order in model.orders
        ],
    )


def encode_snapshot(snapshot: StoreSnapshot) -> str:
    return _to_model(snapshot).model_dump_json(by_alias=True, indent=2)


def decode_snapshot(text: str | bytes) -> StoreSnapshot:
    """Parse snapshot JSON; any syntax or schema problem raises DataImportError."""
    try:
        model = SnapshotModel.model_validate_json(text)
    except SchemaError as exc:
        raise DataImportError(f"Invalid snapshot: {exc.error_count()} problem(s), first: {exc.errors()[0]['msg']}") from exc
    return _from_model(model)


def load_snapshot_file(path: Path) -> StoreSnapshot:
    with path.open("r", encoding="utf-8") as fh:
        return decode_snapshot(fh.read())


def write_snapshot_file(path: Path, snapshot: StoreSnapshot) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(encode_snapshot(snapshot), encoding="utf-8")
