# Overview: Service-layer operations for sales reporting; aggregation of paid orders into business-local windows.

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Order
from ..models.orders import ORDER_STATUS_PAID
from ..time_utils import (
    business_tz,
    local_date_key,
    local_day_bounds,
    local_midnight_days_ago,
    local_midnight_months_ago,
    local_month_key,
    local_week_key,
    parse_local_range,
    to_utc_z,
    utcnow,
)
from ..validation import coerce_int
from .csv_export import encode_orders_csv


BUCKET_KEY_FUNCS = {
    "day": local_date_key,
    "week": local_week_key,
    "month": local_month_key,
}
BUCKETINGS = ("day", "week", "month", "none")

CENTS = Decimal("0.01")


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def money(value: Decimal) -> str:
    return f"{Decimal(value).quantize(CENTS)}"


def _orders_in_window(company_id: int, utc_start: datetime, utc_end: datetime, with_items: bool = False):
    query = db.session.query(Order).filter(
        Order.company_id == company_id,
        Order.created_at >= utc_start,
        Order.created_at <= utc_end,
    )
    if with_items:
        query = query.options(selectinload(Order.items))
    return query


def reduce_orders(orders: Iterable[Any], bucketing: str, tz: ZoneInfo) -> dict:
    """
    Fold orders into revenue buckets and summary counters.

    Only paid orders count; refunded ones are skipped, not subtracted.
    Buckets are sparse (a period without paid orders has no entry) and sorted
    ascending by key.
    """
    if bucketing not in BUCKETINGS:
        raise ReportError("bucketing must be day, week, month, or none")

    key_func = BUCKET_KEY_FUNCS.get(bucketing)
    buckets: dict[str, Decimal] = defaultdict(Decimal)
    revenue = Decimal("0")
    order_count = 0
    cash_count = 0
    touch_n_go_count = 0

    for order in orders:
        if order.status != ORDER_STATUS_PAID:
            continue
        amount = Decimal(order.total_amount)
        revenue += amount
        order_count += 1
        if order.payment_type == "cash":
            cash_count += 1
        elif order.payment_type == "touch_n_go":
            touch_n_go_count += 1
        if key_func:
            buckets[key_func(order.created_at, tz)] += amount

    return {
        "buckets": [
            {"key": key, "revenue": buckets[key].quantize(CENTS)}
            for key in sorted(buckets)
        ],
        "totals": {
            "revenue": revenue.quantize(CENTS),
            "order_count": order_count,
            "cash_count": cash_count,
            "touch_n_go_count": touch_n_go_count,
        },
    }


def aggregate(
    company_id: int,
    utc_start: datetime,
    utc_end: datetime,
    bucketing: str = "none",
    tz: ZoneInfo | None = None,
) -> dict:
    """
    Revenue of a company's paid orders with ``utc_start <= created_at <= utc_end``.

    ``bucketing`` is one of day/week/month/none; bucket keys are computed in
    business-local time. Revenue values are Decimals.
    """
    if bucketing not in BUCKETINGS:
        raise ReportError("bucketing must be day, week, month, or none")

    orders = (
        _orders_in_window(company_id, utc_start, utc_end)
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )
    return reduce_orders(orders, bucketing, tz or business_tz())


# =============================================================================
# REPORT PAGE
# =============================================================================

def get_report_data(company_id: int, start: str | None, end: str | None, tz: ZoneInfo | None = None) -> dict:
    """
    Paid orders and totals for a date range typed in business-local time.

    Orders are returned newest first with their lines.
    """
    tz = tz or business_tz()
    utc_start, utc_end = parse_local_range(start, end, tz)

    orders = (
        _orders_in_window(company_id, utc_start, utc_end, with_items=True)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    paid_orders = [order for order in orders if order.status == ORDER_STATUS_PAID]
    totals = reduce_orders(paid_orders, "none", tz)["totals"]

    return {
        "start": to_utc_z(utc_start),
        "end": to_utc_z(utc_end),
        "orders": [order.to_dict() for order in paid_orders],
        "total_revenue": money(totals["revenue"]),
        "total_orders": totals["order_count"],
        "cash_count": totals["cash_count"],
        "touch_n_go_count": totals["touch_n_go_count"],
    }


def export_report_csv(company_id: int, start: str | None, end: str | None, tz: ZoneInfo | None = None) -> str:
    tz = tz or business_tz()
    report = get_report_data(company_id, start, end, tz=tz)
    return encode_orders_csv(report["orders"], tz)


# =============================================================================
# DASHBOARD
# =============================================================================

def dashboard_metrics(company_id: int, now: datetime | None = None, tz: ZoneInfo | None = None) -> dict:
    """Today's (business-local) revenue and order counts."""
    tz = tz or business_tz()
    day_start, day_end = local_day_bounds(now or utcnow(), tz)
    totals = aggregate(company_id, day_start, day_end, "none", tz=tz)["totals"]
    return {
        "today_revenue": money(totals["revenue"]),
        "orders_today": totals["order_count"],
        "cash_count": totals["cash_count"],
        "touch_n_go_count": totals["touch_n_go_count"],
    }


def _positive_window(value: Any, field: str) -> int:
    count = coerce_int(value, field)
    if count < 1:
        raise ReportError(f"{field} must be at least 1")
    return count


def _series(company_id: int, utc_start: datetime, now: datetime, bucketing: str, label: str, tz: ZoneInfo) -> list[dict]:
    _, today_end = local_day_bounds(now, tz)
    result = aggregate(company_id, utc_start, today_end, bucketing, tz=tz)
    return [{label: bucket["key"], "revenue": money(bucket["revenue"])} for bucket in result["buckets"]]


def daily_sales(company_id: int, days: Any = 30, now: datetime | None = None, tz: ZoneInfo | None = None) -> list[dict]:
    """Revenue per local day from local midnight ``days`` days ago through today."""
    days = _positive_window(days, "days")
    tz = tz or business_tz()
    now = now or utcnow()
    return _series(company_id, local_midnight_days_ago(now, tz, days), now, "day", "date", tz)


def weekly_sales(company_id: int, weeks: Any = 12, now: datetime | None = None, tz: ZoneInfo | None = None) -> list[dict]:
    weeks = _positive_window(weeks, "weeks")
    tz = tz or business_tz()
    now = now or utcnow()
    return _series(company_id, local_midnight_days_ago(now, tz, weeks * 7), now, "week", "week", tz)


def monthly_sales(company_id: int, months: Any = 12, now: datetime | None = None, tz: ZoneInfo | None = None) -> list[dict]:
    months = _positive_window(months, "months")
    tz = tz or business_tz()
    now = now or utcnow()
    return _series(company_id, local_midnight_months_ago(now, tz, months), now, "month", "month", tz)
