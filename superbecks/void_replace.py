"""Void an order and substitute it with a newly composed replacement.

The workflow moves IDLE -> EDITING -> FINALIZED, or back to IDLE on cancel.
Starting creates a DRAFT order that copies the old one; edits stay in memory
until ``save_draft``; ``finalize`` marks the replacement PAID and the old
order VOIDED with its audit fields.

The backend offers no transactions, so each step is a separate request and
a failure part-way leaves the partial state visible for manual correction.
Cancelling leaves the DRAFT row in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import cast

from superbecks.backend import Backend
from superbecks.constant import MIN_VOID_REASON_LENGTH, STATUS_DRAFT, STATUS_PAID, STATUS_VOIDED, UNKNOWN_ITEM_NAME
from superbecks.errors import BackendError, ValidationError
from superbecks.logs import get_logger
from superbecks.models import LineDraft, MenuItem, Order, OrderLine, money
from superbecks.persistence import (
    delete_order_lines,
    fetch_order,
    fetch_order_lines,
    fetch_orders,
    hydrate_item_names,
    insert_order,
    insert_order_lines,
    insert_raw_order_lines,
    update_order,
)
from superbecks.timerange import to_utc_iso

_logger = get_logger("void_replace")

STATE_IDLE = "IDLE"
STATE_EDITING = "EDITING"
STATE_FINALIZED = "FINALIZED"


@dataclass
class ReplacementLine:
    """Editable quantity and price for one menu item of the replacement."""

    menu_item_id: str
    name: str
    unit_price: Decimal
    qty: int = 1

    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.qty)

    def to_draft(self) -> LineDraft:
        return LineDraft(menu_item_id=self.menu_item_id, qty=self.qty, unit_price=self.unit_price)


def _unit_price(line: OrderLine) -> Decimal:
    if line.unit_price is not None:
        return line.unit_price
    if line.qty > 0:
        return money(line.line_total / line.qty)
    return Decimal("0.00")


def merge_lines(lines: list[OrderLine]) -> list[ReplacementLine]:
    """Collapse order lines into one editable entry per menu item."""
    merged: dict[str, ReplacementLine] = {}
    for line in lines:
        entry = merged.get(line.menu_item_id)
        if entry is None:
            merged[line.menu_item_id] = ReplacementLine(
                menu_item_id=line.menu_item_id,
                name=line.item_name or UNKNOWN_ITEM_NAME,
                unit_price=_unit_price(line),
                qty=line.qty,
            )
        else:
            entry.qty += line.qty
    return list(merged.values())


class VoidReplaceWorkflow:
    """Owner-side correction of one finalized order."""

    def __init__(self, backend: Backend, actor_id: str) -> None:
        self.backend = backend
        self.actor_id = actor_id
        self.state = STATE_IDLE
        self.old_order: Order | None = None
        self.new_order_id: str | None = None
        self.lines: list[ReplacementLine] = []

    @property
    def total(self) -> Decimal:
        return money(sum((line.unit_price * line.qty for line in self.lines), Decimal("0")))

    def _require_editing(self) -> str:
        """Return the draft order id, or fail when nothing is being edited."""
        if self.state != STATE_EDITING or self.new_order_id is None or self.old_order is None:
            raise ValidationError("No replacement order is being edited.")
        return self.new_order_id

    def _find(self, menu_item_id: str) -> ReplacementLine | None:
        for line in self.lines:
            if line.menu_item_id == menu_item_id:
                return line
        return None

    def start(self, old_order_id: str) -> str:
        """Create the DRAFT replacement, copy the old lines onto it and load them for editing."""
        if self.state == STATE_EDITING:
            raise ValidationError("A replacement is already being edited.")

        old_order = fetch_order(self.backend, old_order_id)
        if old_order.status == STATUS_VOIDED:
            raise ValidationError(f"Order {old_order_id} is already voided.")
        old_lines = hydrate_item_names(self.backend, fetch_order_lines(self.backend, [old_order_id]))

        new_order_id = insert_order(
            self.backend,
            branch_id=old_order.branch_id,
            created_by=self.actor_id,
            payment_type=old_order.payment_type,
            status=STATUS_DRAFT,
            total_amount=old_order.total_amount,
            replaces=old_order_id,
        )
        _logger.info("replacement_draft_created old=%s new=%s", old_order_id, new_order_id)

        copied = [
            {
                "order_id": new_order_id,
                "menu_item_id": line.menu_item_id,
                "qty": line.qty,
                "unit_price": line.unit_price,
                "line_total": line.line_total,
            }
            for line in old_lines
        ]
        insert_raw_order_lines(self.backend, copied)

        names = {line.menu_item_id: line.item_name for line in old_lines}
        copied_lines = [
            OrderLine(
                order_id=new_order_id,
                menu_item_id=line.menu_item_id,
                qty=line.qty,
                line_total=line.line_total,
                unit_price=line.unit_price,
                item_name=names.get(line.menu_item_id),
            )
            for line in old_lines
        ]

        self.old_order = old_order
        self.new_order_id = new_order_id
        self.lines = merge_lines(copied_lines)
        self.state = STATE_EDITING
        return new_order_id

    def increment(self, menu_item_id: str) -> None:
        self._require_editing()
        line = self._find(menu_item_id)
        if line is not None:
            line.qty += 1

    def decrement(self, menu_item_id: str) -> None:
        """Lower a quantity, never below one; use ``remove`` to drop the line."""
        self._require_editing()
        line = self._find(menu_item_id)
        if line is not None and line.qty > 1:
            line.qty -= 1

    def remove(self, menu_item_id: str) -> None:
        self._require_editing()
        self.lines = [line for line in self.lines if line.menu_item_id != menu_item_id]

    def add_item(self, item: MenuItem) -> ReplacementLine:
        self._require_editing()
        line = self._find(item.id)
        if line is not None:
            line.qty += 1
            return line
        line = ReplacementLine(menu_item_id=item.id, name=item.name, unit_price=item.price)
        self.lines.append(line)
        return line

    def save_draft(self) -> Decimal:
        """Replace every line of the draft with the in-memory lines and sync its total."""
        new_order_id = self._require_editing()
        total = self.total
        delete_order_lines(self.backend, new_order_id)
        insert_order_lines(self.backend, new_order_id, [line.to_draft() for line in self.lines])
        update_order(self.backend, new_order_id, {"total_amount": total})
        _logger.info("replacement_draft_saved new=%s lines=%d total=%s", new_order_id, len(self.lines), total)
        return total

    def validate_finalize(self, reason: str) -> str:
        cleaned = (reason or "").strip()
        if len(cleaned) < MIN_VOID_REASON_LENGTH:
            raise ValidationError(f"Void reason must be at least {MIN_VOID_REASON_LENGTH} characters.")
        if not self.lines:
            raise ValidationError("Replacement order has no items.")
        return cleaned

    def finalize(self, reason: str, *, now: datetime | None = None) -> str:
        """Save the draft, mark it PAID, then void the old order pointing at it."""
        new_order_id = self._require_editing()
        old_order = cast(Order, self.old_order)
        cleaned = self.validate_finalize(reason)

        self.save_draft()
        update_order(self.backend, new_order_id, {"status": STATUS_PAID})
        _logger.info("replacement_paid new=%s", new_order_id)

        void_order(
            self.backend,
            old_order.id,
            replacement_id=new_order_id,
            actor_id=self.actor_id,
            reason=cleaned,
            now=now,
        )
        self.state = STATE_FINALIZED
        return new_order_id

    def cancel(self) -> None:
        """Drop the editor state. The DRAFT order row is not deleted."""
        if self.new_order_id:
            _logger.info("replacement_cancelled new=%s left_as_draft=true", self.new_order_id)
        self.old_order = None
        self.new_order_id = None
        self.lines = []
        self.state = STATE_IDLE


def void_order(
    backend: Backend,
    order_id: str,
    *,
    replacement_id: str,
    actor_id: str,
    reason: str,
    now: datetime | None = None,
) -> None:
    """Mark an order VOIDED and paired with its replacement.

    Only an order that is not VOIDED yet is patched. When nothing changes the
    order is re-read: already paired with this replacement means a resumed
    call and succeeds; paired with anything else is an error.
    """
    moment = now or datetime.now(timezone.utc)
    changed = update_order(
        backend,
        order_id,
        {
            "status": STATUS_VOIDED,
            "voided_at": to_utc_iso(moment),
            "voided_by": actor_id,
            "void_reason": reason,
            "replaced_by": replacement_id,
        },
        unless_status=STATUS_VOIDED,
    )
    if changed:
        _logger.info("order_voided old=%s new=%s", order_id, replacement_id)
        return

    current = fetch_order(backend, order_id)
    if current.status == STATUS_VOIDED and current.replaced_by == replacement_id:
        _logger.info("order_void_resumed old=%s new=%s", order_id, replacement_id)
        return
    if current.status == STATUS_VOIDED:
        raise BackendError(f"Order {order_id} is already voided by replacement {current.replaced_by}")
    # Row-level security can hide the row from the update without an error.
    _logger.warning("order_void_not_applied old=%s status=%s new=%s", order_id, current.status, replacement_id)
    raise BackendError(f"Order {order_id} was not voided (status {current.status or 'unset'}); no rows updated")


def find_unpaired_replacements(backend: Backend) -> list[Order]:
    """PAID replacements whose old order is not VOIDED and paired back to them."""
    rows = (
        backend.table("orders")
        .select("id,branch_id,created_at,payment_type,total_amount,status,replaces,replaced_by")
        .eq("status", STATUS_PAID)
        .not_null("replaces")
        .execute()
        .unwrap()
    )
    replacements = [Order.from_row(row) for row in rows or []]
    if not replacements:
        return []
    originals = {order.id: order for order in fetch_orders(backend, (order.replaces for order in replacements if order.replaces))}
    unpaired = []
    for replacement in replacements:
        original = originals.get(replacement.replaces or "")
        if original is None or original.status != STATUS_VOIDED or original.replaced_by != replacement.id:
            unpaired.append(replacement)
    return unpaired
