"""Owner dashboard data: range loading, aggregation and refresh scheduling."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Iterable

from superbecks.backend import Backend
from superbecks.config import DEFAULT_REFRESH_SECONDS, MIN_REFRESH_SECONDS
from superbecks.constant import (
    NON_SALE_STATUSES,
    PAYMENT_CASH,
    PAYMENT_GCASH,
    ROLE_OWNER,
    TOP_ITEMS_LIMIT,
    UNKNOWN_ITEM_NAME,
)
from superbecks.errors import ValidationError
from superbecks.logs import get_logger
from superbecks.models import Branch, Order, OrderLine
from superbecks.persistence import fetch_branches, fetch_order_lines, fetch_orders_in_range, hydrate_item_names
from superbecks.session import current_profile, require_role
from superbecks.timerange import business_day_range_to_utc, start_of_month, start_of_week

_logger = get_logger("reporting")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class RangeSummary:
    total: Decimal
    count: int


@dataclass(frozen=True)
class PaymentSplit:
    cash: Decimal
    gcash: Decimal


@dataclass(frozen=True)
class BranchSales:
    branch_id: str
    name: str
    total: Decimal
    count: int


@dataclass(frozen=True)
class ItemSales:
    menu_item_id: str
    name: str
    qty: int
    amount: Decimal


@dataclass(frozen=True)
class RangeData:
    """Orders created in a range and their name-hydrated lines."""

    orders: list[Order]
    lines: list[OrderLine]


@dataclass(frozen=True)
class DashboardSnapshot:
    branches: list[Branch]
    data: RangeData
    summaries: dict[str, RangeSummary]


class BranchCache:
    """Branch list loaded once per session."""

    def __init__(self) -> None:
        self._branches: list[Branch] | None = None

    def get(self, backend: Backend) -> list[Branch]:
        if self._branches is None:
            self._branches = fetch_branches(backend)
        return self._branches


def is_sale(order: Order) -> bool:
    return (order.status or "") not in NON_SALE_STATUSES


def sale_orders(orders: Iterable[Order]) -> list[Order]:
    return [order for order in orders if is_sale(order)]


def sale_lines(orders: Iterable[Order], lines: Iterable[OrderLine]) -> list[OrderLine]:
    sale_ids = {order.id for order in orders if is_sale(order)}
    return [line for line in lines if line.order_id in sale_ids]


def total_sales(orders: Iterable[Order]) -> Decimal:
    return sum((order.total_amount for order in orders), _ZERO)


def payment_split(orders: Iterable[Order]) -> PaymentSplit:
    cash = _ZERO
    gcash = _ZERO
    for order in orders:
        if order.payment_type == PAYMENT_CASH:
            cash += order.total_amount
        elif order.payment_type == PAYMENT_GCASH:
            gcash += order.total_amount
    return PaymentSplit(cash=cash, gcash=gcash)


def sales_by_branch(orders: Iterable[Order], branch_names: dict[str, str]) -> list[BranchSales]:
    """Per-branch subtotal and count, largest total first."""
    totals: dict[str, list[Any]] = {}
    for order in orders:
        entry = totals.setdefault(order.branch_id, [_ZERO, 0])
        entry[0] += order.total_amount
        entry[1] += 1
    rows = [
        BranchSales(branch_id=branch_id, name=branch_names.get(branch_id, branch_id), total=total, count=count)
        for branch_id, (total, count) in totals.items()
    ]
    rows.sort(key=lambda row: (-row.total, row.name, row.branch_id))
    return rows


def top_items(lines: Iterable[OrderLine], limit: int = TOP_ITEMS_LIMIT) -> list[ItemSales]:
    """Best sellers by revenue; ties go to the larger quantity, then the lower item id."""
    totals: dict[str, list[Any]] = {}
    for line in lines:
        entry = totals.setdefault(line.menu_item_id, [line.item_name or UNKNOWN_ITEM_NAME, 0, _ZERO])
        entry[1] += line.qty
        entry[2] += line.line_total
    rows = [
        ItemSales(menu_item_id=item_id, name=name, qty=qty, amount=amount)
        for item_id, (name, qty, amount) in totals.items()
    ]
    rows.sort(key=lambda row: (-row.amount, -row.qty, row.menu_item_id))
    return rows[:limit]


def orders_newest_first(orders: Iterable[Order]) -> list[Order]:
    return sorted(orders, key=lambda order: order.created_at, reverse=True)


def fetch_range_summary(backend: Backend, start: date, end: date) -> RangeSummary:
    orders = sale_orders(fetch_orders_in_range(backend, business_day_range_to_utc(start, end)))
    return RangeSummary(total=total_sales(orders), count=len(orders))


def load_range(backend: Backend, start: date, end: date) -> RangeData:
    """Orders in the range, then their lines, then item names for those lines."""
    orders = fetch_orders_in_range(backend, business_day_range_to_utc(start, end))
    if not orders:
        return RangeData(orders=[], lines=[])
    lines = fetch_order_lines(backend, (order.id for order in orders))
    return RangeData(orders=orders, lines=hydrate_item_names(backend, lines))


def summary_ranges(today: date) -> dict[str, tuple[date, date]]:
    return {
        "today": (today, today),
        "wtd": (start_of_week(today), today),
        "mtd": (start_of_month(today), today),
    }


def load_dashboard(backend: Backend, branch_cache: BranchCache, start: date, end: date, today: date) -> DashboardSnapshot:
    """Owner check, cached branches, then the range and the three summaries in parallel."""
    require_role(current_profile(backend), ROLE_OWNER)
    branches = branch_cache.get(backend)
    with ThreadPoolExecutor(max_workers=4) as pool:
        range_future = pool.submit(load_range, backend, start, end)
        summary_futures = {
            label: pool.submit(fetch_range_summary, backend, first, last)
            for label, (first, last) in summary_ranges(today).items()
        }
        data = range_future.result()
        summaries = {label: future.result() for label, future in summary_futures.items()}
    _logger.info(
        "dashboard_loaded start=%s end=%s orders=%d lines=%d",
        start.isoformat(),
        end.isoformat(),
        len(data.orders),
        len(data.lines),
    )
    return DashboardSnapshot(branches=branches, data=data, summaries=summaries)


@dataclass
class DashboardState:
    """Everything the owner screen renders, mutated only through these methods."""

    start_date: date
    end_date: date
    branches: list[Branch] = field(default_factory=list)
    orders: list[Order] = field(default_factory=list)
    lines: list[OrderLine] = field(default_factory=list)
    summaries: dict[str, RangeSummary] = field(default_factory=dict)
    selected_branch_id: str | None = None
    selected_order_id: str | None = None
    loading: bool = False
    error: str = ""

    @property
    def branch_names(self) -> dict[str, str]:
        return {branch.id: branch.name for branch in self.branches}

    def branch_name(self, branch_id: str) -> str:
        return self.branch_names.get(branch_id, branch_id)

    def _clear_selection(self) -> None:
        self.selected_branch_id = None
        self.selected_order_id = None

    def set_range(self, start: date, end: date) -> None:
        if end < start:
            raise ValidationError(f"End date {end.isoformat()} is before start date {start.isoformat()}")
        self.start_date = start
        self.end_date = end
        self._clear_selection()

    def preset_today(self, today: date) -> None:
        self.set_range(today, today)

    def preset_week_to_date(self, today: date) -> None:
        self.set_range(start_of_week(today), today)

    def preset_month_to_date(self, today: date) -> None:
        self.set_range(start_of_month(today), today)

    def apply_snapshot(self, snapshot: DashboardSnapshot) -> None:
        self.branches = snapshot.branches
        self.orders = snapshot.data.orders
        self.lines = snapshot.data.lines
        self.summaries = snapshot.summaries
        self.error = ""
        known_ids = {order.id for order in self.orders}
        if self.selected_order_id not in known_ids:
            self.selected_order_id = None

    def toggle_branch(self, branch_id: str) -> None:
        self.selected_order_id = None
        self.selected_branch_id = None if self.selected_branch_id == branch_id else branch_id

    def toggle_order(self, order_id: str) -> None:
        self.selected_order_id = None if self.selected_order_id == order_id else order_id

    @property
    def sale_orders(self) -> list[Order]:
        return sale_orders(self.orders)

    @property
    def total_sales(self) -> Decimal:
        return total_sales(self.sale_orders)

    @property
    def payment_split(self) -> PaymentSplit:
        return payment_split(self.sale_orders)

    @property
    def sales_by_branch(self) -> list[BranchSales]:
        return sales_by_branch(self.sale_orders, self.branch_names)

    @property
    def top_items(self) -> list[ItemSales]:
        return top_items(sale_lines(self.orders, self.lines))

    @property
    def filtered_orders(self) -> list[Order]:
        """All orders of the range, or of the drilled-down branch, newest first."""
        orders = self.orders
        if self.selected_branch_id:
            orders = [order for order in orders if order.branch_id == self.selected_branch_id]
        return orders_newest_first(orders)

    @property
    def selected_order_lines(self) -> list[OrderLine]:
        if not self.selected_order_id:
            return []
        return [line for line in self.lines if line.order_id == self.selected_order_id]


Scheduler = Callable[[float, Callable[[], None]], Any]


class AutoRefresh:
    """Periodic reload trigger.

    ``schedule(seconds, callback)`` must return a handle with ``stop()``. Any
    change to the interval or the enabled flag stops the current handle and
    schedules a new one.
    """

    def __init__(
        self,
        schedule: Scheduler,
        callback: Callable[[], None],
        *,
        enabled: bool = True,
        interval_seconds: int = DEFAULT_REFRESH_SECONDS,
    ) -> None:
        self._schedule = schedule
        self._callback = callback
        self.enabled = enabled
        self.interval_seconds = interval_seconds
        self._handle: Any = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        self._reset()

    def configure(self, *, enabled: bool | None = None, interval_seconds: int | None = None) -> None:
        if interval_seconds is not None:
            if interval_seconds < MIN_REFRESH_SECONDS:
                raise ValidationError(f"Refresh interval must be at least {MIN_REFRESH_SECONDS} seconds")
            self.interval_seconds = interval_seconds
        if enabled is not None:
            self.enabled = enabled
        self._reset()

    def toggle(self) -> bool:
        self.configure(enabled=not self.enabled)
        return self.enabled

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.stop()
            self._handle = None

    def _reset(self) -> None:
        self.cancel()
        if self.enabled:
            self._handle = self._schedule(self.interval_seconds, self._callback)
        _logger.info("auto_refresh enabled=%s interval=%s", self.enabled, self.interval_seconds)
