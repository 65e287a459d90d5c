# Overview: Pytest coverage for order creation (pricing, snapshots, rollback).

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from kaunter.models import Item, Order, OrderItem
from kaunter.services import concurrency, order_service
from kaunter.services.order_service import ItemNotFound, OrderPersistenceFailed, create_order
from kaunter.time_utils import utcnow
from kaunter.validation import ValidationError


class TestCreateOrder:

    def test_cart_is_priced_and_snapshotted(self, db_session, company_a, admin_a, item_a, item_b):
        """Cart [A 10.00 x2, B 5.50 x1] paid in cash totals 25.50 with two lines."""
        order = create_order(
            company_a.id,
            admin_a.id,
            [{"item_id": item_a.id, "quantity": 2}, {"item_id": item_b.id, "quantity": 1}],
            "cash",
        )

        assert order.total_amount == Decimal("25.50")
        assert order.status == "paid"
        assert order.payment_type == "cash"
        assert order.created_by == admin_a.id
        assert order.company_id == company_a.id
        assert order.refunded_at is None

        lines = db_session.query(OrderItem).filter_by(order_id=order.id).order_by(OrderItem.id).all()
        assert len(lines) == 2
        assert [(l.item_id, l.item_name_snapshot, l.item_price_snapshot, l.quantity) for l in lines] == [
            (item_a.id, "Item A", Decimal("10.00"), 2),
            (item_b.id, "Item B", Decimal("5.50"), 1),
        ]

    def test_created_at_defaults_to_now(self, db_session, company_a, admin_a, item_a):
        before = utcnow()
        order = create_order(company_a.id, admin_a.id, [{"item_id": item_a.id, "quantity": 1}], "touch_n_go")
        assert order.created_at >= before.replace(microsecond=0)

    def test_total_survives_catalog_price_change(self, db_session, company_a, admin_a, item_a, item_b):
        """Total and snapshots are frozen; later price edits do not leak in."""
        order = create_order(
            company_a.id,
            admin_a.id,
            [{"item_id": item_a.id, "quantity": 3}, {"item_id": item_b.id, "quantity": 2}],
            "cash",
        )

        item_a.price = Decimal("99.00")
        item_b.name = "Renamed"
        db_session.commit()
        db_session.expire_all()

        stored = db_session.get(Order, order.id)
        assert stored.total_amount == Decimal("41.00")
        assert stored.total_amount == sum(l.item_price_snapshot * l.quantity for l in stored.items)
        assert {l.item_name_snapshot for l in stored.items} == {"Item A", "Item B"}

    def test_duplicate_lines_are_kept_separately(self, db_session, company_a, admin_a, item_a):
        order = create_order(
            company_a.id,
            admin_a.id,
            [{"item_id": item_a.id, "quantity": 1}, {"item_id": item_a.id, "quantity": 2}],
            "cash",
        )
        assert order.total_amount == Decimal("30.00")
        assert len(order.items) == 2

    def test_inactive_item_still_sells(self, db_session, company_a, admin_a, item_a):
        """Active status is not re-checked at order time."""
        item_a.is_active = False
        db_session.commit()

        order = create_order(company_a.id, admin_a.id, [{"item_id": item_a.id, "quantity": 1}], "cash")
        assert order.total_amount == Decimal("10.00")

    def test_string_quantities_are_coerced(self, db_session, company_a, admin_a, item_a):
        order = create_order(company_a.id, admin_a.id, [{"item_id": str(item_a.id), "quantity": "4"}], "cash")
        assert order.total_amount == Decimal("40.00")


class TestCreateOrderRejections:

    @pytest.mark.parametrize("cart", [
        [],
        None,
        [{"quantity": 1}],
        ["not-a-line"],
    ])
    def test_malformed_cart(self, db_session, company_a, admin_a, cart):
        with pytest.raises(ValidationError):
            create_order(company_a.id, admin_a.id, cart, "cash")
        assert db_session.query(Order).count() == 0

    @pytest.mark.parametrize("quantity", [0, -1, 2.5, "2.5", "1e3", True, None])
    def test_bad_quantity(self, db_session, company_a, admin_a, item_a, quantity):
        with pytest.raises(ValidationError):
            create_order(company_a.id, admin_a.id, [{"item_id": item_a.id, "quantity": quantity}], "cash")
        assert db_session.query(Order).count() == 0

    @pytest.mark.parametrize("payment_type", ["card", "", None, "CASH"])
    def test_bad_payment_type(self, db_session, company_a, admin_a, item_a, payment_type):
        with pytest.raises(ValidationError):
            create_order(company_a.id, admin_a.id, [{"item_id": item_a.id, "quantity": 1}], payment_type)

    def test_unknown_item(self, db_session, company_a, admin_a, item_a):
        with pytest.raises(ItemNotFound) as exc_info:
            create_order(
                company_a.id,
                admin_a.id,
                [{"item_id": item_a.id, "quantity": 1}, {"item_id": 999999, "quantity": 1}],
                "cash",
            )
        assert exc_info.value.details["item_ids"] == [999999]
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0

    def test_item_of_another_company(self, db_session, company_a, admin_a, foreign_item):
        with pytest.raises(ItemNotFound):
            create_order(company_a.id, admin_a.id, [{"item_id": foreign_item.id, "quantity": 1}], "cash")
        assert db_session.query(Order).count() == 0


    @pytest.mark.parametrize("quantity", [100_001, 10**12, 2**63])
    def test_quantity_above_limit(self, db_session, company_a, admin_a, item_a, quantity):
        with pytest.raises(ValidationError):
            create_order(company_a.id, admin_a.id, [{"item_id": item_a.id, "quantity": quantity}], "cash")

        # Session is still usable afterwards
        db_session.commit()
        assert db_session.query(Order).count() == 0

    def test_total_too_large_to_store(self, db_session, company_a, admin_a):
        pricey = Item(company_id=company_a.id, name="Wedding Buffet", price=Decimal("60000000.00"))
        db_session.add(pricey)
        db_session.commit()

        with pytest.raises(ValidationError):
            create_order(company_a.id, admin_a.id, [{"item_id": pricey.id, "quantity": 2}], "cash")
        assert db_session.query(Order).count() == 0


class TestCreateOrderRollback:
    """A failed write leaves neither a header nor lines behind."""

    def test_line_insert_failure_removes_header(self, db_session, monkeypatch, company_a, admin_a, item_a):
        def failing_insert(order, snapshots):
            assert order.id is not None  # header already flushed
            raise SQLAlchemyError("line insert failed")

        monkeypatch.setattr(order_service, "_insert_order_items", failing_insert)

        with pytest.raises(OrderPersistenceFailed):
            create_order(company_a.id, admin_a.id, [{"item_id": item_a.id, "quantity": 1}], "cash")

        db_session.expire_all()
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0

    def test_header_insert_failure_writes_nothing(self, db_session, monkeypatch, company_a, admin_a, item_a):
        def failing_header(*args, **kwargs):
            raise SQLAlchemyError("header insert failed")

        monkeypatch.setattr(order_service, "_insert_order_header", failing_header)

        with pytest.raises(OrderPersistenceFailed):
            create_order(company_a.id, admin_a.id, [{"item_id": item_a.id, "quantity": 1}], "cash")
        assert db_session.query(Order).count() == 0

    def test_transient_lock_is_retried(self, db_session, monkeypatch, company_a, admin_a, item_a):
        original = order_service._insert_order_header
        calls = {"count": 0}

        def flaky_header(*args, **kwargs):
            calls["count"] += 1
            if calls["count"] == 1:
                raise OperationalError("INSERT INTO orders", {}, Exception("database is locked"))
            return original(*args, **kwargs)

        monkeypatch.setattr(order_service, "_insert_order_header", flaky_header)
        monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)

        order = create_order(company_a.id, admin_a.id, [{"item_id": item_a.id, "quantity": 1}], "cash")

        assert calls["count"] == 2
        assert db_session.query(Order).count() == 1
        assert len(order.items) == 1

    def test_order_succeeds_after_failed_attempt(self, db_session, monkeypatch, company_a, admin_a, item_a):
        """A retried create after a rolled-back one yields exactly one order."""
        def failing_insert(order, snapshots):
            raise SQLAlchemyError("boom")

        with monkeypatch.context() as patch:
            patch.setattr(order_service, "_insert_order_items", failing_insert)
            with pytest.raises(OrderPersistenceFailed):
                create_order(company_a.id, admin_a.id, [{"item_id": item_a.id, "quantity": 2}], "cash")

        order = create_order(company_a.id, admin_a.id, [{"item_id": item_a.id, "quantity": 2}], "cash")
        assert db_session.query(Order).count() == 1
        assert order.total_amount == Decimal("20.00")

    def test_unexpected_error_rolls_back_session(self, db_session, monkeypatch, company_a, admin_a, item_a):
        def failing_insert(order, snapshots):
            raise OverflowError("Python int too large to convert to SQLite INTEGER")

        monkeypatch.setattr(order_service, "_insert_order_items", failing_insert)

        with pytest.raises(OverflowError):
            create_order(company_a.id, admin_a.id, [{"item_id": item_a.id, "quantity": 1}], "cash")

        db_session.commit()
        assert db_session.query(Order).count() == 0
