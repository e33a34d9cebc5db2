"""CSV export of the orders and lines in the selected range."""

from __future__ import annotations

import csv
import io
from datetime import date
from pathlib import Path

from superbecks.config import EXPORT_DIR
from superbecks.constant import CSV_FILENAME_TEMPLATE, CSV_HEADER, UNKNOWN_ITEM_NAME
from superbecks.logs import get_logger
from superbecks.models import Order, OrderLine, money
from superbecks.reporting import orders_newest_first

_logger = get_logger("export")


def export_filename(start: date, end: date) -> str:
    return CSV_FILENAME_TEMPLATE.format(start=start.isoformat(), end=end.isoformat())


def build_rows(orders: list[Order], lines: list[OrderLine], branch_names: dict[str, str]) -> list[list[str]]:
    """One row per order line; orders without lines get a single row with empty item columns."""
    lines_by_order: dict[str, list[OrderLine]] = {}
    for line in lines:
        lines_by_order.setdefault(line.order_id, []).append(line)

    rows: list[list[str]] = []
    for order in orders_newest_first(orders):
        head = [
            order.id,
            order.created_at,
            branch_names.get(order.branch_id, order.branch_id),
            order.payment_type,
            f"{money(order.total_amount):.2f}",
        ]
        order_lines = lines_by_order.get(order.id, [])
        if not order_lines:
            rows.append(head + ["", "", ""])
            continue
        for line in order_lines:
            rows.append(head + [line.item_name or UNKNOWN_ITEM_NAME, str(line.qty), f"{money(line.line_total):.2f}"])
    return rows


def render_csv(orders: list[Order], lines: list[OrderLine], branch_names: dict[str, str]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(CSV_HEADER)
    writer.writerows(build_rows(orders, lines, branch_names))
    return buffer.getvalue()


def export_sales_csv(
    *,
    orders: list[Order],
    lines: list[OrderLine],
    branch_names: dict[str, str],
    start: date,
    end: date,
    output_dir: str = EXPORT_DIR,
) -> Path:
    destination = Path(output_dir)
    destination.mkdir(parents=True, exist_ok=True)
    path = destination / export_filename(start, end)
    path.write_text(render_csv(orders, lines, branch_names), encoding="utf-8")
    _logger.info("csv_exported path=%s orders=%d lines=%d", path, len(orders), len(lines))
    return path
