"""Cashier screen: menu search, cart editing and order placement."""

from __future__ import annotations

from rich.text import Text
from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.reactive import reactive
from textual.screen import Screen
from textual.widgets import Header, Static

from superbecks.cart import Cart, CartLine, place_order
from superbecks.constant import MENU_CATEGORY_BY_MODE, MENU_MODE_LABELS, ROLE_CASHIER
from superbecks.errors import SuperbecksError, ValidationError
from superbecks.logs import get_logger
from superbecks.models import MenuItem, Profile
from superbecks.persistence import SavedOrder, fetch_active_menu
from superbecks.rendering import (
    badge_style,
    format_menu_label,
    format_money,
    format_qty_line,
    payment_style,
    render_pointer_list,
)
from superbecks.session import current_profile, require_role

_logger = get_logger("cashier_screen")


def group_menu(items: list[MenuItem]) -> dict[str, list[MenuItem]]:
    """Split the menu into the Meals and Add-ons search modes."""
    grouped: dict[str, list[MenuItem]] = {mode: [] for mode in MENU_CATEGORY_BY_MODE}
    for item in items:
        for mode, category in MENU_CATEGORY_BY_MODE.items():
            if (item.category or "").lower() == category:
                grouped[mode].append(item)
    return grouped


class CashierScreen(Screen):
    """Search the active menu, build a cart and place it as one order."""

    CSS = """
    CashierScreen {
        layout: vertical;
    }

    #cashier-layout {
        height: 1fr;
    }

    #cart-pane {
        width: 3fr;
        border: round $primary;
        padding: 1;
    }

    #menu-pane {
        width: 2fr;
        border: round $secondary;
        padding: 1;
    }

    #menu-bar {
        border: heavy $secondary;
        padding: 0 1;
        margin-bottom: 1;
        height: 4;
    }

    #menu-results {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #cart-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #cart-footer {
        height: 3;
        padding: 0 1;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    input_state = reactive("normal")
    mode = reactive("M")
    search_query = reactive("")
    selected_index = reactive(0)
    cart_selected_index = reactive(None)

    BINDINGS = [
        ("tab", "cycle_results(1)", "Next result"),
        ("up", "cycle_results(-1)", "Previous result"),
        ("down", "cycle_results(1)", "Next result"),
        ("enter", "add_selected", "Add item"),
        ("backspace", "backspace_query", "Delete query char"),
        Binding("ctrl+s", "place_order", "Place order", priority=True),
        ("escape", "cancel_active_mode", "Exit search"),
        ("ctrl+c", "cancel_active_mode", "Exit search"),
        ("ctrl+l", "logout", "Log out"),
    ]

    def __init__(self, profile: Profile) -> None:
        super().__init__()
        self.profile = profile
        self.cart = Cart()
        self.menu: dict[str, list[MenuItem]] = {mode: [] for mode in MENU_CATEGORY_BY_MODE}
        self.ready = False
        self.saving = False
        self.system_status = "Loading menu..."

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="cashier-layout"):
            with Vertical(id="cart-pane"):
                yield Static("Cart", classes="pane-title")
                yield Static("(cart is empty)", id="cart-list")
                yield Static(id="cart-footer")
            with Vertical(id="menu-pane"):
                yield Static(id="menu-bar")
                yield Static(id="menu-results")

    def on_mount(self) -> None:
        self._refresh_all()
        self._load_menu()

    @work(thread=True, exclusive=True, group="menu")
    def _load_menu(self) -> None:
        backend = self.app.backend
        try:
            profile = require_role(current_profile(backend), ROLE_CASHIER)
            if not profile.branch_id:
                raise ValidationError("No branch assigned to this cashier.")
            items = fetch_active_menu(backend)
        except SuperbecksError as exc:
            self.app.call_from_thread(self._menu_failed, exc.message)
            return
        self.app.call_from_thread(self._menu_loaded, profile, items)

    def _menu_loaded(self, profile: Profile, items: list[MenuItem]) -> None:
        self.profile = profile
        self.menu = group_menu(items)
        self.ready = True
        self.system_status = f"{len(items)} menu items loaded"
        _logger.info("menu_loaded branch_id=%s items=%d", profile.branch_id, len(items))
        self._refresh_all()

    def _menu_failed(self, message: str) -> None:
        self.ready = False
        self.system_status = message
        _logger.info("menu_load_failed message=%r", message)
        self._refresh_all()
        self.notify(message, severity="error")

    def on_key(self, event: Key) -> None:
        if self.app.screen is not self:
            return

        if not event.is_printable or not event.character or len(event.character) != 1:
            return

        key = event.character
        if self.input_state == "normal":
            handled = self._handle_normal_key(key.lower())
            if handled:
                event.stop()
            return

        self.search_query += key
        self.selected_index = 0
        self._refresh_search()
        event.stop()

    def _handle_normal_key(self, key: str) -> bool:
        if self.saving:
            # The cart is being written by the place-order worker.
            return True

        if key in {"j", "k"}:
            self._move_cart_selection(1 if key == "j" else -1)
            return True

        if key in {"+", "="}:
            line = self._selected_line()
            if line is not None:
                self.cart.increment(line.menu_item_id)
                self._refresh_cart()
            return True

        if key in {"-", "_"}:
            line = self._selected_line()
            if line is not None:
                self.cart.decrement(line.menu_item_id)
                self._refresh_cart()
            return True

        if key == "d":
            line = self._selected_line()
            if line is not None:
                self.cart.remove(line.menu_item_id)
                self._refresh_cart()
            return True

        if key == "p":
            payment = self.cart.toggle_payment_type()
            self.system_status = f"Payment: {payment}"
            self._refresh_all()
            return True

        if key == "x":
            self.cart.clear()
            self.cart_selected_index = None
            self.system_status = "Cart cleared"
            self._refresh_all()
            return True

        mode = key.upper()
        if mode not in MENU_CATEGORY_BY_MODE:
            return False

        if not self.ready:
            self.system_status = "Menu is not loaded"
            self._refresh_search()
            return True

        self.mode = mode
        self.input_state = "active"
        self.search_query = ""
        self.selected_index = 0
        self._refresh_search()
        return True

    def action_cancel_active_mode(self) -> None:
        if self.input_state == "normal":
            return
        self.input_state = "normal"
        self.search_query = ""
        self.selected_index = 0
        self._refresh_search()

    def action_cycle_results(self, delta: int) -> None:
        if self.input_state != "active":
            return
        results = self._filtered_results()
        if not results:
            self.selected_index = 0
            self._refresh_results(results)
            return
        self.selected_index = (self.selected_index + delta) % len(results)
        self._refresh_results(results)

    def action_add_selected(self) -> None:
        if self.input_state != "active" or self.saving:
            return
        results = self._filtered_results()
        if not results:
            return
        item = results[self.selected_index]
        self.cart.add(item)
        self.cart_selected_index = next(
            idx for idx, line in enumerate(self.cart.lines) if line.menu_item_id == item.id
        )
        self._refresh_cart()

    def action_backspace_query(self) -> None:
        if self.input_state != "active" or not self.search_query:
            return
        self.search_query = self.search_query[:-1]
        self.selected_index = 0
        self._refresh_search()

    def action_place_order(self) -> None:
        if self.saving:
            return
        if self.input_state != "normal":
            self.system_status = "Place orders in NORMAL mode (Esc to exit search)"
            self._refresh_search()
            return
        if self.cart.is_empty:
            self.system_status = "Nothing to place"
            self._refresh_search()
            return
        self.saving = True
        self.system_status = "Saving order..."
        self._refresh_search()
        self._place_order()

    @work(thread=True, exclusive=True, group="place")
    def _place_order(self) -> None:
        try:
            saved = place_order(
                self.app.backend,
                self.cart,
                branch_id=self.profile.branch_id,
                user_id=self.profile.user_id,
            )
        except SuperbecksError as exc:
            self.app.call_from_thread(self._order_failed, exc.message)
            return
        self.app.call_from_thread(self._order_placed, saved)

    def _order_placed(self, saved: SavedOrder) -> None:
        self.saving = False
        self.cart_selected_index = None
        self.system_status = f"Saved {saved.order_id[:8]} for {format_money(saved.total_amount)}"
        self._refresh_all()
        self.notify(self.system_status)

    def _order_failed(self, message: str) -> None:
        self.saving = False
        self.system_status = message
        self._refresh_all()
        self.notify(message, severity="error")

    def action_logout(self) -> None:
        self.app.request_logout()

    def _filtered_results(self) -> list[MenuItem]:
        source = self.menu.get(self.mode, [])
        if not self.search_query:
            return source
        q = self.search_query.lower()
        return [item for item in source if q in item.name.lower()]

    def _selected_line(self) -> CartLine | None:
        if self.cart_selected_index is None:
            return None
        if not (0 <= self.cart_selected_index < len(self.cart.lines)):
            return None
        return self.cart.lines[self.cart_selected_index]

    def _move_cart_selection(self, delta: int) -> None:
        if not self.cart.lines:
            return
        if self.cart_selected_index is None:
            self.cart_selected_index = 0 if delta > 0 else len(self.cart.lines) - 1
        else:
            self.cart_selected_index = (self.cart_selected_index + delta) % len(self.cart.lines)
        self._refresh_cart()

    def _visible_rows(self, widget: Static) -> int:
        height = widget.size.height
        if height <= 0:
            return 8
        return max(1, height)

    def _refresh_all(self) -> None:
        self._refresh_cart()
        self._refresh_search()

    def _refresh_cart(self) -> None:
        try:
            cart_widget = self.query_one("#cart-list", Static)
            footer = self.query_one("#cart-footer", Static)
        except NoMatches:
            return

        summary = Text()
        summary.append("Total ", style="bold")
        summary.append(format_money(self.cart.total), style="bold")
        summary.append("  ")
        summary.append(self.cart.payment_type, style=payment_style(self.cart.payment_type))
        summary.append("\nJ/K select  +/- qty  D remove  P payment  X clear  Ctrl+S place", style="dim")
        footer.update(summary)

        if not self.cart.lines:
            self.cart_selected_index = None
            cart_widget.update("(cart is empty)")
            return

        if self.cart_selected_index is not None and self.cart_selected_index >= len(self.cart.lines):
            self.cart_selected_index = len(self.cart.lines) - 1

        rows = [format_qty_line(line.name, line.price, line.qty) for line in self.cart.lines]
        cart_widget.update(render_pointer_list(rows, self.cart_selected_index, self._visible_rows(cart_widget)))

    def _refresh_search(self) -> None:
        self._refresh_search_bar()
        if self.input_state == "normal":
            self._refresh_results([])
            return
        self._refresh_results(self._filtered_results())

    def _refresh_search_bar(self) -> None:
        try:
            bar = self.query_one("#menu-bar", Static)
        except NoMatches:
            return
        if self.input_state == "normal":
            status = self.system_status or "Ready"
            bar.update(f"Press M (Meals) or A (Add-ons) to search. Ctrl+L log out.\n{status}")
            return

        text = Text()
        text.append(self.mode, style=badge_style(self.mode))
        text.append(f" {MENU_MODE_LABELS[self.mode]}: {self.search_query}")
        bar.update(text)

    def _refresh_results(self, results: list[MenuItem]) -> None:
        try:
            results_widget = self.query_one("#menu-results", Static)
        except NoMatches:
            return
        if self.input_state == "normal":
            results_widget.update("")
            return
        if not results:
            results_widget.update("No results")
            return
        if self.selected_index >= len(results):
            self.selected_index = 0
        rows = [format_menu_label(item) for item in results]
        results_widget.update(render_pointer_list(rows, self.selected_index, self._visible_rows(results_widget)))
