from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


ORDER_STATUS_PAID = "paid"
ORDER_STATUS_REFUNDED = "refunded"


class Order(db.Model):
    """
    Immutable sale record.

    WHY: total_amount is frozen at creation as the sum of the line snapshots
    and never recomputed. The only permitted change is the one-way
    paid -> refunded transition, which also stamps refunded_at/refunded_by.

    STATUS:
    - paid: counted in revenue and order counts
    - refunded: kept for audit, excluded from every report
    """
    __tablename__ = "orders"
    __table_args__ = (
        # Composite index for company-scoped report windows
        db.Index("ix_orders_company_created", "company_id", "created_at"),
        db.Index("ix_orders_company_status_created", "company_id", "status", "created_at"),
        db.CheckConstraint("status IN ('paid', 'refunded')", name="ck_orders_status"),
        db.CheckConstraint("payment_type IN ('cash', 'touch_n_go')", name="ck_orders_payment_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PAID)

    # Timestamps (UTC)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Refund audit trail
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refunded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} company_id={self.company_id} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "total_amount": f"{self.total_amount:.2f}",
            "payment_type": self.payment_type,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "refunded_at": to_utc_z(self.refunded_at) if self.refunded_at else None,
            "refunded_by": self.refunded_by,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    Line of an order with name/price frozen at sale time.

    item_id is nullable: the catalog row may disappear later, the snapshot
    stays valid forever.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id = db.Column(
        db.Integer, db.ForeignKey("items.id", ondelete="SET NULL"), nullable=True, index=True
    )

    item_name_snapshot = db.Column(db.String(255), nullable=False)
    item_price_snapshot = db.Column(db.Numeric(10, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    @property
    def line_total(self):
        return self.item_price_snapshot * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "item_id": self.item_id,
            "item_name_snapshot": self.item_name_snapshot,
            "item_price_snapshot": f"{self.item_price_snapshot:.2f}",
            "quantity": self.quantity,
            "line_total": f"{self.line_total:.2f}",
        }
