"""Domain models for superbecks."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

_CENT = Decimal("0.01")


def money(value: Any) -> Decimal:
    """Quantize a currency value to two decimals."""
    if value is None or value == "":
        return Decimal("0.00")
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class MenuItem:
    """A sellable menu item."""

    id: str
    name: str
    category: str | None
    price: Decimal
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "MenuItem":
        return cls(
            id=str(row["id"]),
            name=str(row.get("name") or ""),
            category=row.get("category"),
            price=money(row.get("price")),
            is_active=bool(row.get("is_active", True)),
        )


@dataclass(frozen=True)
class Branch:
    """A physical sales location."""

    id: str
    name: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Branch":
        return cls(id=str(row["id"]), name=str(row.get("name") or row["id"]))


@dataclass(frozen=True)
class Profile:
    """Role and branch assignment for an authenticated user."""

    user_id: str
    role: str
    branch_id: str | None = None


@dataclass(frozen=True)
class Order:
    """An order header row."""

    id: str
    branch_id: str
    created_at: str
    payment_type: str
    total_amount: Decimal
    status: str | None = None
    created_by: str | None = None
    replaces: str | None = None
    replaced_by: str | None = None
    voided_at: str | None = None
    voided_by: str | None = None
    void_reason: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Order":
        return cls(
            id=str(row["id"]),
            branch_id=str(row.get("branch_id") or ""),
            created_at=str(row.get("created_at") or ""),
            payment_type=str(row.get("payment_type") or ""),
            total_amount=money(row.get("total_amount")),
            status=row.get("status"),
            created_by=row.get("created_by"),
            replaces=row.get("replaces"),
            replaced_by=row.get("replaced_by"),
            voided_at=row.get("voided_at"),
            voided_by=row.get("voided_by"),
            void_reason=row.get("void_reason"),
        )


@dataclass(frozen=True)
class OrderLine:
    """One item-quantity entry of an order, optionally hydrated with the item name."""

    order_id: str
    menu_item_id: str
    qty: int
    line_total: Decimal
    unit_price: Decimal | None = None
    item_name: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "OrderLine":
        unit_price = row.get("unit_price")
        return cls(
            order_id=str(row["order_id"]),
            menu_item_id=str(row["menu_item_id"]),
            qty=int(row.get("qty") or 0),
            line_total=money(row.get("line_total")),
            unit_price=money(unit_price) if unit_price is not None else None,
        )


@dataclass(frozen=True)
class LineDraft:
    """A line about to be written: quantity and price snapshot for one item."""

    menu_item_id: str
    qty: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.qty)

    def to_row(self, order_id: str) -> dict[str, Any]:
        return {
            "order_id": order_id,
            "menu_item_id": self.menu_item_id,
            "qty": self.qty,
            "unit_price": money(self.unit_price),
            "line_total": self.line_total,
        }
