from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any


PAYMENT_TYPES = ("cash", "touch_n_go")

# Upper bound for a single cart line
MAX_LINE_QUANTITY = 100_000

# Largest value a Numeric(10, 2) column can hold
MAX_ORDER_TOTAL = Decimal("99999999.99")


class ValidationError(ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class CartLine:
    item_id: int
    quantity: int


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for client input.

    Rejects bools, floats, decimals in strings and scientific notation so that
    "2.5" or 1e3 never silently become a quantity.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def validate_payment_type(value: Any) -> str:
    if not isinstance(value, str) or value.strip() not in PAYMENT_TYPES:
        raise ValidationError(f"payment_type must be one of: {', '.join(PAYMENT_TYPES)}")
    return value.strip()


def validate_cart_lines(raw_lines: Any) -> list[CartLine]:
    """
    Validate + normalize a cart payload into CartLine rows.

    Accepts a list of mappings with ``item_id`` and ``quantity`` (CartLine
    instances pass through the same checks). Order of lines is preserved.
    """
    if not isinstance(raw_lines, (list, tuple)) or not raw_lines:
        raise ValidationError("At least one item is required")

    lines: list[CartLine] = []
    for index, raw in enumerate(raw_lines):
        if isinstance(raw, CartLine):
            raw = {"item_id": raw.item_id, "quantity": raw.quantity}
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")

        if raw.get("item_id") is None:
            raise ValidationError(f"items[{index}].item_id is required")
        item_id = coerce_int(raw.get("item_id"), f"items[{index}].item_id")

        if raw.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity is required")
        quantity = coerce_int(raw.get("quantity"), f"items[{index}].quantity")
        if quantity <= 0:
            raise ValidationError("Quantity must be positive")
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_LINE_QUANTITY:,}")

        lines.append(CartLine(item_id=item_id, quantity=quantity))

    return lines


def validate_order_total(total: Decimal) -> Decimal:
    if total > MAX_ORDER_TOTAL:
        raise ValidationError(f"Order total cannot exceed {MAX_ORDER_TOTAL:,}")
    return total
