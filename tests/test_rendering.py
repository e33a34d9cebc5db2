from datetime import date
from decimal import Decimal

import pytest
from rich.text import Text

from superbecks.cashier_screen import group_menu
from superbecks.errors import ValidationError
from superbecks.models import MenuItem
from superbecks.owner_screen import parse_range_text
from superbecks.rendering import (
    format_created_at,
    format_menu_label,
    format_money,
    mode_for_category,
    render_pointer_list,
    window_bounds,
)


def test_format_money():
    assert format_money(Decimal("120")) == "₱120.00"
    assert format_money(None) == "₱0.00"
    assert format_money(0.105) == "₱0.11"


def test_created_at_is_shown_in_business_time():
    assert format_created_at("2024-04-30T16:30:00.000Z") == "2024-05-01 00:30"
    assert format_created_at("2024-05-01T08:00:00+00:00") == "2024-05-01 16:00"
    assert format_created_at("not a date") == "not a date"


def test_menu_label_has_category_badge():
    item = MenuItem(id="i1", name="Fries", category="Add-ons", price=Decimal("20"))
    assert mode_for_category(item.category) == "A"
    assert format_menu_label(item).plain == "A Fries  ₱20.00"
    assert mode_for_category("drinks") is None


def test_window_bounds_keeps_selection_visible():
    assert window_bounds(0, 5, None) == (0, 0)
    assert window_bounds(3, 5, 2) == (0, 3)
    assert window_bounds(20, 5, 0) == (0, 5)
    assert window_bounds(20, 5, 10) == (8, 13)
    assert window_bounds(20, 5, 19) == (15, 20)


def test_pointer_list_marks_selection_and_clipping():
    rows = [Text(f"row {idx}") for idx in range(6)]
    rendered = render_pointer_list(rows, 3, 3).plain.split("\n")
    assert rendered == ["⋮", "  row 2", "➤ row 3", "  row 4", "⋮"]


def test_group_menu_by_category():
    items = [
        MenuItem(id="m1", name="Burger Steak", category="meals", price=Decimal("50")),
        MenuItem(id="a1", name="Rice", category="add-ons", price=Decimal("15")),
        MenuItem(id="x1", name="Mystery", category=None, price=Decimal("1")),
    ]
    grouped = group_menu(items)
    assert [item.id for item in grouped["M"]] == ["m1"]
    assert [item.id for item in grouped["A"]] == ["a1"]


def test_parse_range_text():
    assert parse_range_text("2024-05-01 2024-05-07") == (date(2024, 5, 1), date(2024, 5, 7))
    assert parse_range_text("2024-05-01") == (date(2024, 5, 1), date(2024, 5, 1))
    with pytest.raises(ValidationError):
        parse_range_text("2024-05-07 2024-05-01")
    with pytest.raises(ValidationError):
        parse_range_text("2024-05-01 2024-05-02 2024-05-03")
