"""
Order Service - ring up and refund orders

WHY: An order is an immutable ledger entry. Prices are re-read from the
catalog and frozen onto each line at sale time, and the header and its lines
are written in one transaction so readers never see one without the other.

Refunds are the only mutation and happen exactly once (paid -> refunded).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Item, Order, OrderItem
from ..models.orders import ORDER_STATUS_PAID, ORDER_STATUS_REFUNDED
from ..time_utils import business_tz, local_day_bounds, to_utc_z, utcnow
from ..validation import (
    CartLine,
    coerce_int,
    validate_cart_lines,
    validate_order_total,
    validate_payment_type,
)
from .catalog_service import fetch_items_by_ids
from .concurrency import run_with_retry


CENTS = Decimal("0.01")


class OrderError(Exception):
    """Raised for order operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ItemNotFound(OrderError):
    """Cart references an item the company does not own."""


class OrderPersistenceFailed(OrderError):
    """Order header or line write failed; nothing was kept."""


class OrderNotFound(OrderError):
    """Order does not exist or belongs to another company."""


class AlreadyRefunded(OrderError):
    """Refund requested for an order that is already refunded."""


def _scoped_orders(company_id: int):
    return db.session.query(Order).filter(Order.company_id == company_id)


def _price_cart(lines: list[CartLine], items_by_id: dict[int, Item]) -> tuple[list[dict], Decimal]:
    """Freeze name/price for every cart line and total them."""
    snapshots = []
    total = Decimal("0")
    for line in lines:
        item = items_by_id[line.item_id]
        price = Decimal(item.price).quantize(CENTS)
        total += price * line.quantity
        snapshots.append({
            "item_id": item.id,
            "item_name_snapshot": item.name,
            "item_price_snapshot": price,
            "quantity": line.quantity,
        })
    return snapshots, total.quantize(CENTS)


def _insert_order_header(
    company_id: int,
    actor_id: int | None,
    total_amount: Decimal,
    payment_type: str,
    created_at: datetime,
) -> Order:
    order = Order(
        company_id=company_id,
        total_amount=total_amount,
        payment_type=payment_type,
        status=ORDER_STATUS_PAID,
        created_by=actor_id,
        created_at=created_at,
    )
    db.session.add(order)
    # Flush to get the id the lines reference
    db.session.flush()
    return order


def _insert_order_items(order: Order, snapshots: list[dict]) -> list[OrderItem]:
    rows = [OrderItem(order_id=order.id, **snapshot) for snapshot in snapshots]
    db.session.add_all(rows)
    db.session.flush()
    return rows


def create_order(
    company_id: int,
    actor_id: int | None,
    cart_lines: Iterable[Any],
    payment_type: str,
    now: datetime | None = None,
) -> Order:
    """
    Create a paid order from a cart of ``{item_id, quantity}`` lines.

    Raises:
        ValidationError: empty cart, bad quantity, payment type or an
            order total too large to store
        ItemNotFound: a cart item is not in this company's catalog
        OrderPersistenceFailed: the write failed and was rolled back
    """
    lines = validate_cart_lines(list(cart_lines) if cart_lines is not None else None)
    payment_type = validate_payment_type(payment_type)

    items = fetch_items_by_ids(company_id, [line.item_id for line in lines])
    items_by_id = {item.id: item for item in items}

    missing = []
    for line in lines:
        if line.item_id not in items_by_id and line.item_id not in missing:
            missing.append(line.item_id)
    if missing:
        raise ItemNotFound(f"Item {missing[0]} not found", details={"item_ids": missing})

    snapshots, total_amount = _price_cart(lines, items_by_id)
    validate_order_total(total_amount)
    created_at = now or utcnow()

    def _op():
        order = _insert_order_header(company_id, actor_id, total_amount, payment_type, created_at)
        _insert_order_items(order, snapshots)
        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except SQLAlchemyError as exc:
        # Header and lines share the transaction, so rollback drops both
        db.session.rollback()
        current_app.logger.warning(
            "Order write rolled back for company %s: %s", company_id, exc.__class__.__name__
        )
        raise OrderPersistenceFailed(
            "Failed to create order",
            details={"reason": exc.__class__.__name__},
        ) from exc
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Order %s created for company %s (%s lines, total %s)",
        order.id, company_id, len(snapshots), total_amount,
    )
    return order


def get_order(company_id: int, order_id: Any) -> Order:
    """Fetch one order with its lines, scoped to the company."""
    order_id = coerce_int(order_id, "order_id")
    order = (
        _scoped_orders(company_id)
        .options(selectinload(Order.items))
        .filter(Order.id == order_id)
        .first()
    )
    if not order:
        raise OrderNotFound("Order not found")
    return order


def refund_order(
    company_id: int,
    actor_id: int | None,
    order_id: Any,
    now: datetime | None = None,
) -> Order:
    """
    Mark a paid order as refunded.

    The transition is one conditional UPDATE (``WHERE status = 'paid'``), so two
    concurrent refunds cannot both succeed. Lines are never touched and no
    stock or payment reversal happens here.

    Raises:
        OrderNotFound: no such order in this company
        AlreadyRefunded: the order was refunded before; audit fields unchanged
    """
    order_id = coerce_int(order_id, "order_id")
    refunded_at = now or utcnow()

    def _op():
        updated = (
            _scoped_orders(company_id)
            .filter(Order.id == order_id, Order.status == ORDER_STATUS_PAID)
            .update(
                {
                    Order.status: ORDER_STATUS_REFUNDED,
                    Order.refunded_at: refunded_at,
                    Order.refunded_by: actor_id,
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            db.session.rollback()
            existing = _scoped_orders(company_id).filter(Order.id == order_id).first()
            if not existing:
                raise OrderNotFound("Order not found")
            raise AlreadyRefunded(
                "Order is already refunded",
                details={"refunded_at": to_utc_z(existing.refunded_at)},
            )
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Order %s refunded for company %s", order_id, company_id)
    return get_order(company_id, order_id)


def list_todays_orders(
    company_id: int,
    now: datetime | None = None,
    tz: ZoneInfo | None = None,
) -> list[Order]:
    """All orders (paid and refunded) of the current business-local day, newest first."""
    day_start, day_end = local_day_bounds(now or utcnow(), tz or business_tz())
    return (
        _scoped_orders(company_id)
        .options(selectinload(Order.items))
        .filter(Order.created_at >= day_start, Order.created_at <= day_end)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
