"""Owner dashboard screen: range reporting, drill-down, export and void/replace."""

from __future__ import annotations

from datetime import date

from rich.text import Text
from textual import work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.reactive import reactive
from textual.screen import Screen
from textual.widgets import Header, Static
from textual.worker import get_current_worker

from superbecks.config import MIN_REFRESH_SECONDS
from superbecks.constant import UNKNOWN_ITEM_NAME
from superbecks.errors import SuperbecksError, ValidationError
from superbecks.export import export_sales_csv
from superbecks.logs import get_logger
from superbecks.models import MenuItem, Order, Profile
from superbecks.persistence import fetch_active_menu
from superbecks.prompt_modal import PromptModal
from superbecks.rendering import format_money, format_order_row, render_pointer_list
from superbecks.replace_modal import ReplaceOrderModal
from superbecks.reporting import AutoRefresh, DashboardSnapshot, DashboardState, load_dashboard
from superbecks.session import current_user_id
from superbecks.timerange import business_today, parse_ymd
from superbecks.void_replace import VoidReplaceWorkflow, find_unpaired_replacements

_logger = get_logger("owner_screen")

_SUMMARY_LABELS = (("today", "Today"), ("wtd", "Week to date"), ("mtd", "Month to date"))


def parse_range_text(text: str) -> tuple[date, date]:
    """``YYYY-MM-DD`` for one day or ``YYYY-MM-DD YYYY-MM-DD`` for a range."""
    parts = text.split()
    if len(parts) not in {1, 2}:
        raise ValidationError("Enter a start date and an optional end date")
    start = parse_ymd(parts[0])
    end = parse_ymd(parts[-1])
    if end < start:
        raise ValidationError("End date is before start date")
    return start, end


def _validate_range(text: str) -> str | None:
    parse_range_text(text)
    return None


def _validate_interval(text: str) -> str | None:
    if not text.isdigit():
        return "Digits only."
    if int(text) < MIN_REFRESH_SECONDS:
        return f"Refresh interval must be at least {MIN_REFRESH_SECONDS} seconds"
    return None


class OwnerScreen(Screen):
    """Sales for a business-day range across all branches."""

    CSS = """
    OwnerScreen {
        layout: vertical;
    }

    #owner-bar {
        border: heavy $secondary;
        padding: 0 1;
        height: 4;
    }

    #summary {
        border: round $primary;
        padding: 0 1;
        height: 6;
    }

    #owner-layout {
        height: 1fr;
    }

    #breakdown-pane {
        width: 2fr;
        border: round $primary;
        padding: 0 1;
    }

    #orders-pane {
        width: 3fr;
        border: round $secondary;
        padding: 0 1;
    }

    #branch-sales {
        height: auto;
        margin-bottom: 1;
    }

    #top-items {
        height: 1fr;
    }

    #orders-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #order-detail {
        height: auto;
        max-height: 12;
        padding: 0 1;
    }

    .pane-title {
        text-style: bold;
    }
    """

    order_cursor = reactive(None)

    BINDINGS = [
        ("t", "preset('today')", "Today"),
        ("w", "preset('wtd')", "Week"),
        ("m", "preset('mtd')", "Month"),
        ("a", "apply_range", "Range"),
        ("r", "refresh", "Refresh"),
        ("e", "export", "Export CSV"),
        ("b", "cycle_branch", "Branch"),
        ("j", "move_cursor(1)", "Next"),
        ("k", "move_cursor(-1)", "Previous"),
        ("down", "move_cursor(1)", "Next"),
        ("up", "move_cursor(-1)", "Previous"),
        ("enter", "toggle_order", "Details"),
        ("v", "void_replace", "Void & replace"),
        ("f", "toggle_auto_refresh", "Auto refresh"),
        ("i", "refresh_interval", "Interval"),
        ("u", "check_unpaired", "Unpaired"),
        ("ctrl+l", "logout", "Log out"),
    ]

    def __init__(self, profile: Profile) -> None:
        super().__init__()
        self.profile = profile
        today = business_today()
        self.state = DashboardState(start_date=today, end_date=today)
        self.auto_refresh = AutoRefresh(self.set_interval, self._auto_reload)
        self.system_status = ""
        self.replacing = False

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static(id="owner-bar")
        yield Static(id="summary")
        with Horizontal(id="owner-layout"):
            with Vertical(id="breakdown-pane"):
                yield Static("Sales by branch", classes="pane-title")
                yield Static(id="branch-sales")
                yield Static("Top items", classes="pane-title")
                yield Static(id="top-items")
            with Vertical(id="orders-pane"):
                yield Static("Orders", classes="pane-title")
                yield Static(id="orders-list")
                yield Static(id="order-detail")

    def on_mount(self) -> None:
        self.auto_refresh.start()
        self._reload()

    def on_unmount(self) -> None:
        self.auto_refresh.cancel()

    def _auto_reload(self) -> None:
        _logger.info("auto_refresh_fired start=%s end=%s", self.state.start_date, self.state.end_date)
        self._reload()

    def _reload(self) -> None:
        self.state.loading = True
        self._refresh_bar()
        self._load(self.state.start_date, self.state.end_date, business_today())

    @work(thread=True, exclusive=True, group="dashboard")
    def _load(self, start: date, end: date, today: date) -> None:
        worker = get_current_worker()
        try:
            snapshot = load_dashboard(self.app.backend, self.app.branch_cache, start, end, today)
        except SuperbecksError as exc:
            if not worker.is_cancelled:
                self.app.call_from_thread(self._load_failed, exc.message)
            return
        if not worker.is_cancelled:
            self.app.call_from_thread(self._loaded, snapshot)

    def _loaded(self, snapshot: DashboardSnapshot) -> None:
        self.state.loading = False
        self.state.apply_snapshot(snapshot)
        self._sync_cursor()
        self._refresh_all()

    def _load_failed(self, message: str) -> None:
        self.state.loading = False
        self.state.error = message
        _logger.info("dashboard_load_failed message=%r", message)
        self._refresh_all()
        self.notify(message, severity="error")

    def action_preset(self, preset: str) -> None:
        today = business_today()
        if preset == "today":
            self.state.preset_today(today)
        elif preset == "wtd":
            self.state.preset_week_to_date(today)
        else:
            self.state.preset_month_to_date(today)
        self.order_cursor = None
        self._reload()

    def action_apply_range(self) -> None:
        initial = f"{self.state.start_date.isoformat()} {self.state.end_date.isoformat()}"
        self.app.push_screen(
            PromptModal(
                "Date range",
                "Start and end date (YYYY-MM-DD YYYY-MM-DD)",
                initial=initial,
                allowed="0123456789- ",
                max_length=21,
                validate=_validate_range,
            ),
            self._range_entered,
        )

    def _range_entered(self, value: str | None) -> None:
        if value is None:
            return
        start, end = parse_range_text(value)
        self.state.set_range(start, end)
        self.order_cursor = None
        self._reload()

    def action_refresh(self) -> None:
        self._reload()

    def action_export(self) -> None:
        try:
            path = export_sales_csv(
                orders=self.state.orders,
                lines=self.state.lines,
                branch_names=self.state.branch_names,
                start=self.state.start_date,
                end=self.state.end_date,
            )
        except OSError as exc:
            self.system_status = f"Export failed: {exc}"
            _logger.warning("csv_export_failed error=%r", exc)
            self._refresh_bar()
            self.notify(self.system_status, severity="error")
            return
        self.system_status = f"Exported {path}"
        self._refresh_bar()
        self.notify(self.system_status)

    def action_cycle_branch(self) -> None:
        ids = [row.branch_id for row in self.state.sales_by_branch]
        if not ids:
            return
        current = self.state.selected_branch_id
        if current not in ids:
            self.state.toggle_branch(ids[0])
        elif ids.index(current) + 1 < len(ids):
            self.state.toggle_branch(ids[ids.index(current) + 1])
        else:
            self.state.toggle_branch(current)
        self.order_cursor = None
        self._refresh_all()

    def action_move_cursor(self, delta: int) -> None:
        orders = self.state.filtered_orders
        if not orders:
            return
        if self.order_cursor is None:
            self.order_cursor = 0 if delta > 0 else len(orders) - 1
        else:
            self.order_cursor = (self.order_cursor + delta) % len(orders)
        self._refresh_orders()

    def action_toggle_order(self) -> None:
        order = self._cursor_order()
        if order is None:
            return
        self.state.toggle_order(order.id)
        self._refresh_orders()

    def action_void_replace(self) -> None:
        order = self._cursor_order()
        if order is None:
            self.system_status = "Select an order first (J/K)"
            self._refresh_bar()
            return
        if self.replacing:
            return
        self.replacing = True
        self.system_status = f"Preparing replacement for {order.id[:8]}..."
        self._refresh_bar()
        self._start_replacement(order)

    @work(thread=True, exclusive=True, group="replace")
    def _start_replacement(self, order: Order) -> None:
        backend = self.app.backend
        try:
            workflow = VoidReplaceWorkflow(backend, current_user_id(backend))
            menu = fetch_active_menu(backend)
            workflow.start(order.id)
        except SuperbecksError as exc:
            self.app.call_from_thread(self._replacement_failed, exc.message)
            return
        self.app.call_from_thread(self._open_replacement, workflow, menu)

    def _open_replacement(self, workflow: VoidReplaceWorkflow, menu: list[MenuItem]) -> None:
        self.replacing = False
        self.system_status = ""
        branch_name = self.state.branch_name(workflow.old_order.branch_id) if workflow.old_order else ""
        self.app.push_screen(ReplaceOrderModal(workflow, menu, branch_name), self._replacement_closed)

    def _replacement_failed(self, message: str) -> None:
        self.replacing = False
        self.system_status = message
        self._refresh_bar()
        self.notify(message, severity="error")

    def _replacement_closed(self, new_order_id: str | None) -> None:
        if new_order_id is None:
            self.system_status = "Replacement cancelled; the draft order was kept"
            self._refresh_bar()
            return
        self.system_status = f"Order replaced by {new_order_id[:8]}"
        self.notify(self.system_status)
        self._reload()

    def action_toggle_auto_refresh(self) -> None:
        enabled = self.auto_refresh.toggle()
        self.system_status = "Auto refresh on" if enabled else "Auto refresh off"
        self._refresh_bar()

    def action_refresh_interval(self) -> None:
        self.app.push_screen(
            PromptModal(
                "Auto refresh",
                f"Seconds between refreshes (at least {MIN_REFRESH_SECONDS})",
                initial=str(self.auto_refresh.interval_seconds),
                allowed="0123456789",
                max_length=6,
                validate=_validate_interval,
            ),
            self._interval_entered,
        )

    def _interval_entered(self, value: str | None) -> None:
        if value is None:
            return
        try:
            self.auto_refresh.configure(interval_seconds=int(value))
        except ValidationError as exc:
            self.system_status = exc.message
        else:
            self.system_status = f"Auto refresh every {self.auto_refresh.interval_seconds}s"
        self._refresh_bar()

    def action_check_unpaired(self) -> None:
        self.system_status = "Checking replacements..."
        self._refresh_bar()
        self._find_unpaired()

    @work(thread=True, exclusive=True, group="unpaired")
    def _find_unpaired(self) -> None:
        try:
            unpaired = find_unpaired_replacements(self.app.backend)
        except SuperbecksError as exc:
            self.app.call_from_thread(self._replacement_failed, exc.message)
            return
        self.app.call_from_thread(self._unpaired_found, unpaired)

    def _unpaired_found(self, unpaired: list[Order]) -> None:
        if not unpaired:
            self.system_status = "All replacements are paired with their voided orders"
        else:
            ids = ", ".join(order.id[:8] for order in unpaired)
            self.system_status = f"{len(unpaired)} unpaired replacement(s): {ids}"
            _logger.warning("unpaired_replacements ids=%s", ",".join(order.id for order in unpaired))
        self._refresh_bar()
        self.notify(self.system_status, severity="warning" if unpaired else "information")

    def action_logout(self) -> None:
        self.app.request_logout()

    def _cursor_order(self) -> Order | None:
        orders = self.state.filtered_orders
        if self.order_cursor is None or not (0 <= self.order_cursor < len(orders)):
            return None
        return orders[self.order_cursor]

    def _sync_cursor(self) -> None:
        orders = self.state.filtered_orders
        if not orders:
            self.order_cursor = None
        elif self.order_cursor is not None and self.order_cursor >= len(orders):
            self.order_cursor = len(orders) - 1

    def _visible_rows(self, widget: Static, lines_per_row: int = 1) -> int:
        height = widget.size.height
        if height <= 0:
            return 8
        return max(1, height // lines_per_row)

    def _refresh_all(self) -> None:
        self._refresh_bar()
        self._refresh_summary()
        self._refresh_breakdown()
        self._refresh_orders()

    def _refresh_bar(self) -> None:
        try:
            bar = self.query_one("#owner-bar", Static)
        except NoMatches:
            return
        text = Text()
        text.append(f"{self.state.start_date.isoformat()} → {self.state.end_date.isoformat()}", style="bold")
        if self.auto_refresh.enabled:
            text.append(f"   auto refresh every {self.auto_refresh.interval_seconds}s", style="dim")
        else:
            text.append("   auto refresh off", style="dim")
        if self.state.loading:
            text.append("   loading...", style="italic")
        text.append("\nT/W/M presets  A range  R refresh  E export  B branch  V void  F/I auto  U check  Ctrl+L log out", style="dim")
        message = self.state.error or self.system_status
        if message:
            text.append(f"\n{message}", style="#ffb3b3" if self.state.error else "")
        bar.update(text)

    def _refresh_summary(self) -> None:
        try:
            summary = self.query_one("#summary", Static)
        except NoMatches:
            return
        text = Text()
        for idx, (key, label) in enumerate(_SUMMARY_LABELS):
            card = self.state.summaries.get(key)
            if idx:
                text.append("   ")
            text.append(f"{label}: ", style="bold")
            if card is None:
                text.append("-")
            else:
                text.append(f"{format_money(card.total)} ({card.count})")
        split = self.state.payment_split
        text.append("\n\nRange sales ", style="bold")
        text.append(f"{format_money(self.state.total_sales)} from {len(self.state.sale_orders)} orders")
        text.append(f"\nCASH {format_money(split.cash)}   GCASH {format_money(split.gcash)}", style="dim")
        summary.update(text)

    def _refresh_breakdown(self) -> None:
        try:
            branches_widget = self.query_one("#branch-sales", Static)
            items_widget = self.query_one("#top-items", Static)
        except NoMatches:
            return

        branch_rows = self.state.sales_by_branch
        if not branch_rows:
            branches_widget.update("(no sales)")
        else:
            text = Text()
            for idx, row in enumerate(branch_rows):
                if idx:
                    text.append("\n")
                selected = row.branch_id == self.state.selected_branch_id
                text.append("➤ " if selected else "  ")
                text.append(row.name, style="bold" if selected else "")
                text.append(f"  {format_money(row.total)} ({row.count})", style="dim")
            branches_widget.update(text)

        item_rows = self.state.top_items
        if not item_rows:
            items_widget.update("(no items)")
            return
        text = Text()
        for idx, row in enumerate(item_rows):
            if idx:
                text.append("\n")
            text.append(f"{idx + 1:>2}. {row.name}")
            text.append(f"  ×{row.qty}  {format_money(row.amount)}", style="dim")
        items_widget.update(text)

    def _refresh_orders(self) -> None:
        try:
            orders_widget = self.query_one("#orders-list", Static)
            detail_widget = self.query_one("#order-detail", Static)
        except NoMatches:
            return

        orders = self.state.filtered_orders
        if not orders:
            orders_widget.update("(no orders in range)")
        else:
            rows = [format_order_row(order, self.state.branch_name(order.branch_id)) for order in orders]
            visible = self._visible_rows(orders_widget, lines_per_row=2)
            orders_widget.update(render_pointer_list(rows, self.order_cursor, visible))

        lines = self.state.selected_order_lines
        if not self.state.selected_order_id:
            detail_widget.update("Enter shows the lines of the selected order")
            return
        detail = Text()
        detail.append(f"Order {self.state.selected_order_id[:8]}", style="bold")
        if not lines:
            detail.append("\n  (no lines)", style="dim")
        for line in lines:
            detail.append("\n  ")
            detail.append(f"{line.item_name or UNKNOWN_ITEM_NAME} ×{line.qty}")
            detail.append(f"  {format_money(line.line_total)}", style="dim")
        detail_widget.update(detail)
