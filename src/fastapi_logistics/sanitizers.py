"""Field sanitization applied before anything is sent to a courier."""

from __future__ import annotations

import re
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

PHONE_DIGITS = 10
DEFAULT_ADDRESS = "Nepal"
COD_PAYMENT_METHODS = frozenset({"", "cod"})

_NON_DIGIT = re.compile(r"\D")
_TRACKING_ID_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")
_TRACKING_ID_MAX = 64


def clean_phone(raw: Any) -> str | None:
    """Reduce a phone number to its last 10 digits.

    Returns ``None`` when fewer than 10 digits remain, so callers can
    never accept a differently sized value.
    """
    if raw is None:
        return None
    digits = _NON_DIGIT.sub("", str(raw))[-PHONE_DIGITS:]
    if len(digits) != PHONE_DIGITS:
        return None
    return digits


def clean_secondary_phone(raw: Any) -> str:
    """Secondary phone is optional; anything invalid becomes ``""``."""
    return clean_phone(raw) or ""


def clean_name(raw: Any) -> str:
    return str(raw or "").strip()


def clean_address(raw: Any) -> str:
    return str(raw or "").strip() or DEFAULT_ADDRESS


def clean_branch(raw: Any) -> str:
    return str(raw or "").strip().upper()


def is_cod(payment_method: str | None) -> bool:
    return (payment_method or "").strip().lower() in COD_PAYMENT_METHODS


def _to_decimal(value: Any) -> Decimal:
    if value in (None, ""):
        return Decimal(0)
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return Decimal(0)
    return amount if amount.is_finite() else Decimal(0)


def cod_amount(
    payable_amount: Any,
    total_amount: Any = None,
    payment_method: str | None = None,
) -> int:
    """Cash to collect on delivery, rounded half up to whole rupees.

    Prepaid orders collect nothing. A missing payment method is
    treated as COD.
    """
    if not is_cod(payment_method):
        return 0
    amount = _to_decimal(payable_amount) or _to_decimal(total_amount)
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def sanitize_tracking_id(raw: Any) -> str:
    """Strip a tracking id down to alphanumerics and ``.``, ``_``, ``-``.

    Tracking ids arrive in unauthenticated webhook bodies, so this runs
    before any store lookup.
    """
    if raw is None:
        return ""
    return _TRACKING_ID_UNSAFE.sub("", str(raw).strip())[:_TRACKING_ID_MAX]


def _item_field(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def format_package_description(
    items: Iterable[Any] | None,
    max_length: int,
    order_number: str | None = None,
) -> str:
    """Render items as ``"Bag * 3, Wallet * 1"`` for the courier label.

    Variants and SKUs are left out. When the text exceeds
    ``max_length`` it collapses to the first item and a count.
    """
    entries = []
    for item in items or ():
        name = str(_item_field(item, "product_name") or "Item").strip()
        quantity = _item_field(item, "quantity") or 1
        entries.append(f"{name} * {quantity}")

    if not entries:
        return f"Order {order_number}" if order_number else "Order"

    text = ", ".join(entries)
    if len(text) <= max_length:
        return text

    suffix = f" +{len(entries) - 1} more items" if len(entries) > 1 else ""
    head = entries[0][: max(0, max_length - len(suffix))]
    return f"{head}{suffix}"[:max_length]


def format_instruction(order_number: str | None) -> str:
    return f"Order #{order_number}" if order_number else ""
