"""Backend persistence for orders, order lines and catalog rows."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from superbecks.backend import Backend
from superbecks.constant import UNKNOWN_ITEM_NAME
from superbecks.errors import BackendError
from superbecks.models import Branch, LineDraft, MenuItem, Order, OrderLine, money
from superbecks.timerange import UtcRange

ORDER_COLUMNS = (
    "id,branch_id,created_at,created_by,payment_type,total_amount,status,"
    "replaces,replaced_by,voided_at,voided_by,void_reason"
)
LINE_COLUMNS = "order_id,menu_item_id,qty,unit_price,line_total"


@dataclass(frozen=True)
class SavedOrder:
    """Saved order header id and the lines written for it."""

    order_id: str
    total_amount: Decimal
    lines: list[LineDraft]


def fetch_active_menu(backend: Backend) -> list[MenuItem]:
    """Active menu items ordered by category, then name."""
    rows = (
        backend.table("menu_items")
        .select("id,name,category,price,is_active")
        .eq("is_active", True)
        .order("category")
        .order("name")
        .execute()
        .unwrap()
    )
    return [MenuItem.from_row(row) for row in rows or []]


def fetch_branches(backend: Backend) -> list[Branch]:
    rows = backend.table("branches").select("id,name").order("name").execute().unwrap()
    return [Branch.from_row(row) for row in rows or []]


def fetch_order(backend: Backend, order_id: str) -> Order:
    row = backend.table("orders").select(ORDER_COLUMNS).eq("id", order_id).single().execute().unwrap()
    return Order.from_row(row)


def fetch_orders(backend: Backend, order_ids: Iterable[str]) -> list[Order]:
    ids = list(dict.fromkeys(order_ids))
    if not ids:
        return []
    rows = backend.table("orders").select(ORDER_COLUMNS).in_("id", ids).execute().unwrap()
    return [Order.from_row(row) for row in rows or []]


def fetch_orders_in_range(backend: Backend, utc_range: UtcRange) -> list[Order]:
    rows = (
        backend.table("orders")
        .select(ORDER_COLUMNS)
        .gte("created_at", utc_range.start_iso)
        .lt("created_at", utc_range.end_iso)
        .execute()
        .unwrap()
    )
    return [Order.from_row(row) for row in rows or []]


def fetch_order_lines(backend: Backend, order_ids: Iterable[str]) -> list[OrderLine]:
    ids = list(dict.fromkeys(order_ids))
    if not ids:
        return []
    rows = backend.table("order_lines").select(LINE_COLUMNS).in_("order_id", ids).execute().unwrap()
    return [OrderLine.from_row(row) for row in rows or []]


def fetch_item_names(backend: Backend, item_ids: Iterable[str]) -> dict[str, str]:
    ids = list(dict.fromkeys(item_ids))
    if not ids:
        return {}
    rows = backend.table("menu_items").select("id,name").in_("id", ids).execute().unwrap()
    return {str(row["id"]): str(row.get("name") or UNKNOWN_ITEM_NAME) for row in rows or []}


def hydrate_item_names(backend: Backend, lines: list[OrderLine]) -> list[OrderLine]:
    """Attach menu item names to lines with one lookup for the distinct item ids."""
    names = fetch_item_names(backend, (line.menu_item_id for line in lines))
    return [
        OrderLine(
            order_id=line.order_id,
            menu_item_id=line.menu_item_id,
            qty=line.qty,
            line_total=line.line_total,
            unit_price=line.unit_price,
            item_name=names.get(line.menu_item_id, UNKNOWN_ITEM_NAME),
        )
        for line in lines
    ]


def insert_order(
    backend: Backend,
    *,
    branch_id: str,
    created_by: str | None,
    payment_type: str,
    status: str,
    total_amount: Decimal,
    replaces: str | None = None,
) -> str:
    """Insert one order header and return its generated id."""
    values: dict[str, Any] = {
        "branch_id": branch_id,
        "created_by": created_by,
        "payment_type": payment_type,
        "status": status,
        "total_amount": money(total_amount),
    }
    if replaces is not None:
        values["replaces"] = replaces
    rows = backend.table("orders").insert(values).execute().unwrap() or []
    row = rows[0] if rows else None
    if not row or not row.get("id"):
        raise BackendError("Order insert returned no id")
    return str(row["id"])


def insert_order_lines(backend: Backend, order_id: str, lines: Iterable[LineDraft]) -> list[dict[str, Any]]:
    rows = [line.to_row(order_id) for line in lines]
    if not rows:
        return []
    return backend.table("order_lines").insert(rows).execute().unwrap() or []


def insert_raw_order_lines(backend: Backend, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Insert already-shaped line rows verbatim."""
    if not rows:
        return []
    return backend.table("order_lines").insert(rows).execute().unwrap() or []


def delete_order_lines(backend: Backend, order_id: str) -> None:
    backend.table("order_lines").delete().eq("order_id", order_id).execute().unwrap()


def update_order(backend: Backend, order_id: str, values: dict[str, Any], *, unless_status: str | None = None) -> list[dict[str, Any]]:
    """Patch one order and return the rows that changed.

    With ``unless_status`` the patch only applies while the order is in any
    other status, so an already-transitioned order is left untouched.
    """
    query = backend.table("orders").update(values).eq("id", order_id)
    if unless_status is not None:
        query = query.neq_or_null("status", unless_status)
    return query.execute().unwrap() or []
