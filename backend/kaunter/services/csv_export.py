"""
CSV encoder for the sales report download.

Input is the serialized order shape the report page already uses
(``Order.to_dict()`` with nested ``items``). Order-level columns are printed
on the first line of each order only, and a TOTAL row closes the file.
"""

from __future__ import annotations

import csv
import io
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from ..time_utils import parse_iso_datetime, to_business_local


CSV_HEADERS = [
    "Date",
    "Time",
    "Item Name",
    "Quantity",
    "Unit Price",
    "Item Total",
    "Payment Type",
    "Order Total",
]

CENTS = Decimal("0.01")


def _money(value: Any) -> str:
    if value is None or value == "":
        value = 0
    return f"{Decimal(str(value)).quantize(CENTS)}"


def format_local_date(local: datetime) -> str:
    """en-MY short date, e.g. 02/01/2024."""
    return local.strftime("%d/%m/%Y")


def format_local_time(local: datetime) -> str:
    """en-MY time, e.g. 12:30:05 am."""
    hour = local.hour % 12 or 12
    period = "am" if local.hour < 12 else "pm"
    return f"{hour}:{local.minute:02d}:{local.second:02d} {period}"


def _created_at(order: dict) -> datetime:
    value = order.get("created_at")
    if isinstance(value, datetime):
        return value
    return parse_iso_datetime(value)


def order_rows(order: dict, tz: ZoneInfo) -> list[list[str]]:
    """Rows for one order; order-level columns only on its first row."""
    local = to_business_local(_created_at(order), tz)
    date_str = format_local_date(local)
    time_str = format_local_time(local)
    payment_type = order.get("payment_type") or ""
    order_total = _money(order.get("total_amount"))

    items = order.get("items") or []
    if not items:
        return [[date_str, time_str, "", "", "", "", payment_type, order_total]]

    rows = []
    for index, item in enumerate(items):
        first = index == 0
        price = Decimal(str(item.get("item_price_snapshot") or 0))
        quantity = int(item.get("quantity") or 0)
        rows.append([
            date_str if first else "",
            time_str if first else "",
            item.get("item_name_snapshot") or "",
            str(quantity),
            _money(price),
            _money(price * quantity),
            payment_type if first else "",
            order_total if first else "",
        ])
    return rows


def encode_orders_csv(orders: Iterable[dict], tz: ZoneInfo) -> str:
    """
    Encode orders into CSV text.

    Every data cell is double-quoted; embedded quotes are doubled.
    Lines are separated by ``\\n`` with no trailing newline.
    """
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(CSV_HEADERS)
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")

    total = Decimal("0")
    for order in orders:
        total += Decimal(str(order.get("total_amount") or 0))
        writer.writerows(order_rows(order, tz))

    writer.writerow(["", "", "", "", "", "", "TOTAL", _money(total)])
    return buffer.getvalue()[:-1]
