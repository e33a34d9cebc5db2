"""Cashier cart state and order placement."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from superbecks.backend import Backend
from superbecks.constant import PAYMENT_CASH, PAYMENT_GCASH, PAYMENT_TYPES, STATUS_NEW
from superbecks.errors import BackendError, ValidationError
from superbecks.logs import get_logger
from superbecks.models import LineDraft, MenuItem, money
from superbecks.persistence import SavedOrder, insert_order, insert_order_lines

_logger = get_logger("cart")


@dataclass
class CartLine:
    """One menu item in the cart with its price at the time it was added."""

    menu_item_id: str
    name: str
    price: Decimal
    qty: int = 1

    @property
    def line_total(self) -> Decimal:
        return self.price * self.qty


class Cart:
    """Menu item quantities plus the selected payment method."""

    def __init__(self) -> None:
        self.lines: list[CartLine] = []
        self.payment_type = PAYMENT_CASH

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def total(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    def _find(self, menu_item_id: str) -> CartLine | None:
        for line in self.lines:
            if line.menu_item_id == menu_item_id:
                return line
        return None

    def add(self, item: MenuItem) -> CartLine:
        line = self._find(item.id)
        if line is not None:
            line.qty += 1
            return line
        line = CartLine(menu_item_id=item.id, name=item.name, price=item.price)
        self.lines.append(line)
        return line

    def increment(self, menu_item_id: str) -> None:
        line = self._find(menu_item_id)
        if line is not None:
            line.qty += 1

    def decrement(self, menu_item_id: str) -> None:
        """Lower a quantity; a line that would reach zero is dropped."""
        line = self._find(menu_item_id)
        if line is None:
            return
        if line.qty <= 1:
            self.lines.remove(line)
            return
        line.qty -= 1

    def remove(self, menu_item_id: str) -> None:
        self.lines = [line for line in self.lines if line.menu_item_id != menu_item_id]

    def clear(self) -> None:
        self.lines.clear()

    def set_payment_type(self, payment_type: str) -> None:
        if payment_type not in PAYMENT_TYPES:
            raise ValidationError(f"Unknown payment type {payment_type!r}")
        self.payment_type = payment_type

    def toggle_payment_type(self) -> str:
        self.payment_type = PAYMENT_GCASH if self.payment_type == PAYMENT_CASH else PAYMENT_CASH
        return self.payment_type

    def snapshot(self) -> list[LineDraft]:
        return [LineDraft(menu_item_id=line.menu_item_id, qty=line.qty, unit_price=money(line.price)) for line in self.lines]


def place_order(backend: Backend, cart: Cart, *, branch_id: str | None, user_id: str | None) -> SavedOrder:
    """Write one NEW order and its lines, then clear the cart.

    The header and the lines are separate inserts. If the lines fail, the
    header stays behind without lines and the error names it.
    """
    if cart.is_empty:
        raise ValidationError("Cart is empty.")
    if not branch_id:
        raise ValidationError("No branch assigned to this cashier.")

    lines = cart.snapshot()
    total_amount = money(sum((line.unit_price * line.qty for line in lines), Decimal("0")))
    payment_type = cart.payment_type

    order_id = insert_order(
        backend,
        branch_id=branch_id,
        created_by=user_id,
        payment_type=payment_type,
        status=STATUS_NEW,
        total_amount=total_amount,
    )
    _logger.info("order_header_saved order_id=%s total=%s lines=%d", order_id, total_amount, len(lines))

    try:
        insert_order_lines(backend, order_id, lines)
    except BackendError as exc:
        _logger.warning("order_lines_failed order_id=%s error=%r", order_id, exc.message)
        raise BackendError(f"Order {order_id} saved without lines: {exc.message}") from exc

    cart.clear()
    _logger.info("order_placed order_id=%s payment=%s", order_id, payment_type)
    return SavedOrder(order_id=order_id, total_amount=total_amount, lines=lines)
