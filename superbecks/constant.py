"""Editable static values shared by the flows and screens."""

from __future__ import annotations

PAYMENT_CASH = "CASH"
PAYMENT_GCASH = "GCASH"
PAYMENT_TYPES: tuple[str, ...] = (PAYMENT_CASH, PAYMENT_GCASH)

STATUS_NEW = "NEW"
STATUS_DRAFT = "DRAFT"
STATUS_PAID = "PAID"
STATUS_VOIDED = "VOIDED"

# Orders in these states never count towards sales figures.
NON_SALE_STATUSES: frozenset[str] = frozenset({STATUS_DRAFT, STATUS_VOIDED})

ROLE_OWNER = "owner"
ROLE_CASHIER = "cashier"

RESET_MODES: tuple[str, ...] = (ROLE_CASHIER, ROLE_OWNER)
CASHIER_USER_SETTING_KEY = "cashier_user_id"

MIN_PASSWORD_LENGTH = 8
MIN_VOID_REASON_LENGTH = 3
TOP_ITEMS_LIMIT = 10

UNKNOWN_ITEM_NAME = "Unknown"

# Menu category modes used by the cashier search, keyed by the hotkey letter.
MENU_CATEGORY_BY_MODE: dict[str, str] = {
    "M": "meals",
    "A": "add-ons",
}

MENU_MODE_LABELS: dict[str, str] = {
    "M": "Meals",
    "A": "Add-ons",
}

CSV_HEADER: tuple[str, ...] = (
    "order_id",
    "order_created_at",
    "branch",
    "payment_type",
    "order_total",
    "item_name",
    "qty",
    "line_total",
)

CSV_FILENAME_TEMPLATE = "superbecks_sales_{start}_to_{end}.csv"
