"""Rendering helpers for menu, cart, order and dashboard rows."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from rich.text import Text

from superbecks.constant import (
    MENU_CATEGORY_BY_MODE,
    PAYMENT_CASH,
    STATUS_DRAFT,
    STATUS_PAID,
    STATUS_VOIDED,
)
from superbecks.models import MenuItem, Order, money
from superbecks.timerange import BUSINESS_TZ


def format_money(amount: Decimal | int | float | None) -> str:
    return f"₱{money(amount):.2f}"


def badge_style(mode: str) -> str:
    """Return a consistent badge style for menu category tags."""
    if mode == "A":
        return "bold #ffffff on #2f6db5"
    return "bold #0b1f0f on #5fbf72"


def mode_for_category(category: str | None) -> str | None:
    wanted = (category or "").lower()
    for mode, name in MENU_CATEGORY_BY_MODE.items():
        if name == wanted:
            return mode
    return None


def payment_style(payment_type: str) -> str:
    if payment_type == PAYMENT_CASH:
        return "bold #0b1f0f on #e0c341"
    return "bold #ffffff on #1f5fbf"


def status_style(status: str | None) -> str:
    if status == STATUS_VOIDED:
        return "bold #ffffff on #b23a48"
    if status == STATUS_DRAFT:
        return "bold #0b1f0f on #bbbbbb"
    if status == STATUS_PAID:
        return "bold #0b1f0f on #5fbf72"
    return "bold #ffffff on #555555"


def format_menu_label(item: MenuItem) -> Text:
    """Render a menu item with an optional colored category tag and its price."""
    text = Text()
    mode = mode_for_category(item.category)
    if mode is not None:
        text.append(mode, style=badge_style(mode))
        text.append(" ")
    text.append(item.name)
    text.append(f"  {format_money(item.price)}", style="dim")
    return text


def format_qty_line(name: str, unit_price: Decimal, qty: int) -> Text:
    """``Name`` followed by ``₱price × qty = ₱total``."""
    text = Text()
    text.append(name, style="bold")
    text.append(f"  {format_money(unit_price)} × {qty} = {format_money(unit_price * qty)}", style="dim")
    return text


def format_created_at(created_at: str) -> str:
    """Show a stored UTC timestamp in business time."""
    raw = created_at.strip()
    if not raw:
        return ""
    try:
        moment = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return raw
    if moment.tzinfo is None:
        return raw
    return moment.astimezone(BUSINESS_TZ).strftime("%Y-%m-%d %H:%M")


def format_order_row(order: Order, branch_name: str) -> Text:
    text = Text()
    text.append(f"{branch_name} ", style="bold")
    text.append(order.payment_type, style=payment_style(order.payment_type))
    if order.status:
        text.append(" ")
        text.append(order.status, style=status_style(order.status))
    text.append(f"  {format_money(order.total_amount)}", style="bold")
    text.append(f"\n      {format_created_at(order.created_at)} • {order.id[:8]}", style="dim")
    return text


def window_bounds(total: int, rows: int, selected: int | None) -> tuple[int, int]:
    """Visible slice of a list that keeps the selection roughly centered."""
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


def render_pointer_list(rows: list[Text], selected: int | None, visible_rows: int) -> Text:
    """Render rows with a ➤ pointer on the selection and ⋮ markers for clipped ends."""
    start, end = window_bounds(len(rows), visible_rows, selected)

    lines = Text()
    if start > 0:
        lines.append("⋮\n", style="dim")

    for idx in range(start, end):
        if idx > start:
            lines.append("\n")
        pointer = "➤ " if idx == selected else "  "
        lines.append(pointer)
        lines.append_text(rows[idx])

    if end < len(rows):
        lines.append("\n⋮", style="dim")
    return lines
