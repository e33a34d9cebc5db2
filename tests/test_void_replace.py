from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import add_line, add_menu_item, add_order
from superbecks.errors import BackendError, ValidationError
from superbecks.models import MenuItem, OrderLine
from superbecks.void_replace import (
    STATE_EDITING,
    STATE_FINALIZED,
    STATE_IDLE,
    VoidReplaceWorkflow,
    find_unpaired_replacements,
    merge_lines,
    void_order,
)

NOW = datetime(2024, 5, 1, 4, 0, tzinfo=timezone.utc)
ITEM_Y = MenuItem(id="y", name="Spaghetti", category="meals", price=Decimal("30.00"))


@pytest.fixture
def seeded(backend):
    add_menu_item(backend, "x", "Burger Steak", "50.00")
    add_menu_item(backend, "y", "Spaghetti", "30.00")
    add_order(backend, "old", branch_id="b1", payment_type="GCASH", total="100.00")
    add_line(backend, "old", "x", 2, "50.00")
    return backend


def _started(backend) -> VoidReplaceWorkflow:
    workflow = VoidReplaceWorkflow(backend, "owner-1")
    workflow.start("old")
    return workflow


def test_start_creates_draft_copy(seeded):
    workflow = VoidReplaceWorkflow(seeded, "owner-1")
    new_id = workflow.start("old")

    draft = seeded.row("orders", id=new_id)
    assert draft["status"] == "DRAFT"
    assert draft["replaces"] == "old"
    assert draft["created_by"] == "owner-1"
    assert draft["branch_id"] == "b1"
    assert draft["payment_type"] == "GCASH"
    assert draft["total_amount"] == Decimal("100.00")

    copied = seeded.rows("order_lines", order_id=new_id)
    assert [(row["menu_item_id"], row["qty"], row["unit_price"], row["line_total"]) for row in copied] == [
        ("x", 2, Decimal("50.00"), Decimal("100.00"))
    ]

    assert workflow.state == STATE_EDITING
    assert [(line.menu_item_id, line.name, line.qty, line.unit_price) for line in workflow.lines] == [
        ("x", "Burger Steak", 2, Decimal("50.00"))
    ]
    assert workflow.total == Decimal("100.00")
    assert seeded.row("orders", id="old")["status"] == "NEW"


def test_save_without_edits_keeps_lines_and_is_idempotent(seeded):
    workflow = _started(seeded)
    before = sorted((row["menu_item_id"], row["qty"]) for row in seeded.rows("order_lines", order_id=workflow.new_order_id))

    assert workflow.save_draft() == Decimal("100.00")
    assert workflow.save_draft() == Decimal("100.00")

    after = sorted((row["menu_item_id"], row["qty"]) for row in seeded.rows("order_lines", order_id=workflow.new_order_id))
    assert after == before
    assert seeded.row("orders", id=workflow.new_order_id)["total_amount"] == Decimal("100.00")


def test_replace_item_and_finalize(seeded):
    workflow = _started(seeded)
    workflow.remove("x")
    workflow.add_item(ITEM_Y)
    workflow.increment("y")
    assert workflow.total == Decimal("60.00")

    new_id = workflow.finalize("  wrong item  ", now=NOW)

    assert workflow.state == STATE_FINALIZED
    new_order = seeded.row("orders", id=new_id)
    assert new_order["status"] == "PAID"
    assert new_order["total_amount"] == Decimal("60.00")
    lines = seeded.rows("order_lines", order_id=new_id)
    assert [(row["menu_item_id"], row["qty"], row["line_total"]) for row in lines] == [("y", 2, Decimal("60.00"))]

    old = seeded.row("orders", id="old")
    assert old["status"] == "VOIDED"
    assert old["voided_by"] == "owner-1"
    assert old["void_reason"] == "wrong item"
    assert old["replaced_by"] == new_id
    assert old["voided_at"] == "2024-05-01T04:00:00.000Z"
    assert seeded.rows("order_lines", order_id="old")[0]["qty"] == 2


def test_add_item_merges_and_decrement_stops_at_one(seeded):
    workflow = _started(seeded)
    workflow.add_item(MenuItem(id="x", name="Burger Steak", category="meals", price=Decimal("50.00")))
    assert workflow.lines[0].qty == 3

    workflow.add_item(ITEM_Y)
    workflow.decrement("y")
    assert [(line.menu_item_id, line.qty) for line in workflow.lines] == [("x", 3), ("y", 1)]
    assert workflow.total == Decimal("180.00")


@pytest.mark.parametrize("reason", ["", "  ", "ab", " a  "])
def test_short_reason_is_rejected_without_writes(seeded, reason):
    workflow = _started(seeded)
    writes = len(seeded.writes)
    with pytest.raises(ValidationError):
        workflow.finalize(reason, now=NOW)
    assert len(seeded.writes) == writes
    assert workflow.state == STATE_EDITING


def test_empty_replacement_is_rejected_without_writes(seeded):
    workflow = _started(seeded)
    workflow.remove("x")
    writes = len(seeded.writes)
    with pytest.raises(ValidationError, match="no items"):
        workflow.finalize("customer changed order", now=NOW)
    assert len(seeded.writes) == writes


def test_editing_requires_started_workflow(seeded):
    workflow = VoidReplaceWorkflow(seeded, "owner-1")
    with pytest.raises(ValidationError):
        workflow.add_item(ITEM_Y)
    with pytest.raises(ValidationError):
        workflow.save_draft()
    with pytest.raises(ValidationError):
        workflow.finalize("wrong item")


def test_start_rejects_voided_order(seeded):
    seeded.row("orders", id="old")["status"] = "VOIDED"
    workflow = VoidReplaceWorkflow(seeded, "owner-1")
    with pytest.raises(ValidationError):
        workflow.start("old")
    assert seeded.writes == []
    assert workflow.state == STATE_IDLE


def test_start_failure_stays_idle(seeded):
    seeded.fail("orders", "insert", "insert denied")
    workflow = VoidReplaceWorkflow(seeded, "owner-1")
    with pytest.raises(BackendError, match="insert denied"):
        workflow.start("old")
    assert workflow.state == STATE_IDLE
    assert workflow.new_order_id is None


def test_cancel_keeps_draft_row(seeded):
    workflow = _started(seeded)
    new_id = workflow.new_order_id
    workflow.cancel()
    assert workflow.state == STATE_IDLE
    assert workflow.lines == []
    assert seeded.row("orders", id=new_id)["status"] == "DRAFT"


def test_failed_void_update_surfaces_and_can_be_resumed(seeded):
    workflow = _started(seeded)
    new_id = workflow.new_order_id
    # The total and PAID updates succeed, the void update fails.
    original_take = seeded.take_failure
    updates = []

    def take_failure(table, op):
        if table == "orders" and op == "update":
            updates.append(op)
            if len(updates) == 3:
                return "timeout"
        return original_take(table, op)

    seeded.take_failure = take_failure
    with pytest.raises(BackendError, match="timeout"):
        workflow.finalize("wrong item", now=NOW)

    assert seeded.row("orders", id=new_id)["status"] == "PAID"
    assert seeded.row("orders", id="old")["status"] == "NEW"
    assert [order.id for order in find_unpaired_replacements(seeded)] == [new_id]

    void_order(seeded, "old", replacement_id=new_id, actor_id="owner-1", reason="wrong item", now=NOW)
    assert seeded.row("orders", id="old")["replaced_by"] == new_id
    assert find_unpaired_replacements(seeded) == []


def test_void_order_is_idempotent_for_same_replacement(seeded):
    void_order(seeded, "old", replacement_id="new-1", actor_id="owner-1", reason="wrong item", now=NOW)
    void_order(
        seeded,
        "old",
        replacement_id="new-1",
        actor_id="owner-2",
        reason="again",
        now=datetime(2024, 5, 2, tzinfo=timezone.utc),
    )
    old = seeded.row("orders", id="old")
    assert old["voided_by"] == "owner-1"
    assert old["voided_at"] == "2024-05-01T04:00:00.000Z"

    with pytest.raises(BackendError, match="Order old is already voided by replacement new-1"):
        void_order(seeded, "old", replacement_id="new-2", actor_id="owner-1", reason="other", now=NOW)


def test_void_order_reports_hidden_row_as_not_voided(seeded, monkeypatch):
    monkeypatch.setattr("superbecks.void_replace.update_order", lambda *args, **kwargs: [])

    with pytest.raises(BackendError) as excinfo:
        void_order(seeded, "old", replacement_id="new-1", actor_id="owner-1", reason="wrong item", now=NOW)

    assert excinfo.value.message == "Order old was not voided (status NEW); no rows updated"
    assert "already voided" not in excinfo.value.message
    assert seeded.row("orders", id="old")["status"] == "NEW"


def test_void_order_treats_null_status_as_not_voided(seeded):
    seeded.row("orders", id="old")["status"] = None
    void_order(seeded, "old", replacement_id="new-1", actor_id="owner-1", reason="wrong item", now=NOW)
    assert seeded.row("orders", id="old")["status"] == "VOIDED"


def test_merge_lines_collapses_duplicates_and_derives_price():
    lines = [
        OrderLine(order_id="o", menu_item_id="x", qty=1, line_total=Decimal("50.00"), item_name="Burger"),
        OrderLine(order_id="o", menu_item_id="x", qty=2, line_total=Decimal("100.00"), unit_price=Decimal("50.00")),
        OrderLine(order_id="o", menu_item_id="z", qty=1, line_total=Decimal("5.00")),
    ]
    merged = merge_lines(lines)
    assert [(line.menu_item_id, line.qty, line.unit_price, line.name) for line in merged] == [
        ("x", 3, Decimal("50.00"), "Burger"),
        ("z", 1, Decimal("5.00"), "Unknown"),
    ]
