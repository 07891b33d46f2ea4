"""
Order lifecycle tests.

Verifies:
- Line prices are snapshotted at creation
- Approval decrements stock atomically (all lines or none)
- Deletion rules and stock restoration
- Received flag rules
- Only approved orders feed the reconciliation engine
"""

from datetime import datetime, timedelta, timezone

import pytest

from stockcycle.models import Order, Product
from stockcycle.models.status import STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED
from stockcycle.services import order_service
from stockcycle.services.order_service import (
    OrderError,
    OrderPermissionError,
    OrderStateError,
    OrderNotFoundError,
)
from stockcycle.services.ledger_sources import order_to_record
from stockcycle.services.reconciliation_service import sql_engine

from conftest import CYCLE_ANCHOR, IN_INTAKE


class TestCreateOrder:
    def test_snapshots_price_and_name(self, db_session, distributor, widget):
        order = order_service.create_order(distributor.id, [(widget.id, 3)], created_at=IN_INTAKE)

        widget.price_cents = 99
        widget.name = "Renamed"
        db_session.commit()

        line = order_service.get_order(order.id).lines[0]
        assert line.unit_price_cents == 10
        assert line.product_name == "Widget"
        assert order.total_cents == 30
        assert order.status == STATUS_PENDING
        assert order.is_received is False

    def test_creation_does_not_consume_stock(self, db_session, distributor, widget):
        order_service.create_order(distributor.id, [(widget.id, 3)])
        assert db_session.get(Product, widget.id).stock == 1000

    def test_unknown_product(self, db_session, distributor):
        with pytest.raises(OrderError) as exc:
            order_service.create_order(distributor.id, [(404, 1)])
        assert exc.value.details == {"product_ids": [404]}

    def test_quantity_above_stock_is_refused(self, db_session, distributor, make_product):
        product = make_product("Scarce", stock=2)
        with pytest.raises(OrderError):
            order_service.create_order(distributor.id, [(product.id, 3)])

    def test_empty_order(self, db_session, distributor):
        with pytest.raises(OrderError):
            order_service.create_order(distributor.id, [])


class TestApproval:
    def test_approve_decrements_stock(self, db_session, admin, distributor, widget):
        order = order_service.create_order(distributor.id, [(widget.id, 30)])
        approved = order_service.approve_order(order.id, admin.id)

        assert approved.status == STATUS_APPROVED
        assert approved.reviewed_by_user_id == admin.id
        assert approved.reviewed_at is not None
        assert db_session.get(Product, widget.id).stock == 970

    def test_insufficient_stock_changes_nothing(self, db_session, admin, distributor, make_product):
        plenty = make_product("Plenty", stock=100)
        scarce = make_product("Scarce", stock=5)
        first = order_service.create_order(distributor.id, [(plenty.id, 10), (scarce.id, 5)])
        second = order_service.create_order(distributor.id, [(plenty.id, 10), (scarce.id, 5)])
        order_service.approve_order(first.id, admin.id)

        with pytest.raises(OrderError) as exc:
            order_service.approve_order(second.id, admin.id)
        assert exc.value.details["items"][0]["product_id"] == scarce.id

        db_session.expire_all()
        assert db_session.get(Product, plenty.id).stock == 90
        assert db_session.get(Product, scarce.id).stock == 0
        assert order_service.get_order(second.id).status == STATUS_PENDING

    def test_decision_is_final(self, db_session, admin, distributor, widget):
        order = order_service.create_order(distributor.id, [(widget.id, 1)])
        order_service.reject_order(order.id, admin.id)

        with pytest.raises(OrderStateError):
            order_service.approve_order(order.id, admin.id)
        with pytest.raises(OrderStateError):
            order_service.set_order_status(order.id, STATUS_REJECTED, admin.id)

    def test_set_order_status_rejects_pending(self, db_session, admin, distributor, widget):
        order = order_service.create_order(distributor.id, [(widget.id, 1)])
        with pytest.raises(OrderStateError):
            order_service.set_order_status(order.id, STATUS_PENDING, admin.id)

    def test_missing_order(self, db_session, admin):
        with pytest.raises(OrderNotFoundError):
            order_service.approve_order(12345, admin.id)


class TestDeleteOrder:
    def test_owner_deletes_pending(self, db_session, distributor, widget):
        order = order_service.create_order(distributor.id, [(widget.id, 1)])
        assert order_service.delete_order(order.id, distributor) == 0
        with pytest.raises(OrderNotFoundError):
            order_service.get_order(order.id)

    def test_owner_cannot_delete_approved(self, db_session, distributor, widget, place_order):
        order = place_order(distributor, [(widget.id, 1)])
        with pytest.raises(OrderStateError):
            order_service.delete_order(order.id, distributor)

    def test_other_distributor_cannot_delete(self, db_session, distributor, other_distributor, widget):
        order = order_service.create_order(distributor.id, [(widget.id, 1)])
        with pytest.raises(OrderPermissionError):
            order_service.delete_order(order.id, other_distributor)

    def test_admin_delete_of_approved_restores_stock(self, db_session, admin, distributor, widget, place_order):
        order = place_order(distributor, [(widget.id, 40)])
        assert db_session.get(Product, widget.id).stock == 960

        assert order_service.delete_order(order.id, admin) == 40
        assert db_session.get(Product, widget.id).stock == 1000


class TestReceivedFlag:
    def test_owner_marks_approved_order_received(self, db_session, distributor, widget, place_order):
        order = place_order(distributor, [(widget.id, 1)])
        assert order_service.set_order_received(order.id, True, distributor).is_received is True
        assert order_service.set_order_received(order.id, False, distributor).is_received is False

    def test_pending_order_cannot_be_received(self, db_session, distributor, widget):
        order = order_service.create_order(distributor.id, [(widget.id, 1)])
        with pytest.raises(OrderStateError):
            order_service.set_order_received(order.id, True, distributor)

    def test_stranger_cannot_mark_received(self, db_session, distributor, other_distributor, widget, place_order):
        order = place_order(distributor, [(widget.id, 1)])
        with pytest.raises(OrderPermissionError):
            order_service.set_order_received(order.id, True, other_distributor)


class TestOrdersFeedAvailability:
    def test_pending_order_counts_once_approved(self, db_session, admin, distributor, widget):
        order = order_service.create_order(distributor.id, [(widget.id, 50)], created_at=IN_INTAKE)
        assert sql_engine().availability(distributor.id, widget.id, CYCLE_ANCHOR).received == 0

        order_service.approve_order(order.id, admin.id)
        assert sql_engine().availability(distributor.id, widget.id, CYCLE_ANCHOR).received == 50

    def test_rejected_order_never_counts(self, db_session, admin, distributor, widget):
        order = order_service.create_order(distributor.id, [(widget.id, 50)], created_at=IN_INTAKE)
        order_service.reject_order(order.id, admin.id)
        assert sql_engine().availability(distributor.id, widget.id, CYCLE_ANCHOR).received == 0

    def test_order_outside_intake_window(self, db_session, distributor, widget, place_order):
        place_order(distributor, [(widget.id, 5)], created_at=datetime(2024, 1, 13, 0, 0))
        assert sql_engine().availability(distributor.id, widget.id, CYCLE_ANCHOR).received == 0

    def test_list_orders_filters(self, db_session, distributor, other_distributor, widget, place_order):
        place_order(distributor, [(widget.id, 1)])
        place_order(other_distributor, [(widget.id, 1)], approve=False)

        assert len(order_service.list_orders(distributor_id=distributor.id)) == 1
        assert len(order_service.list_orders(status=STATUS_PENDING)) == 1
        assert len(order_service.list_orders(created_from=datetime(2030, 1, 1))) == 0

    def test_timezone_aware_created_at_becomes_utc_naive(self, db_session, distributor):
        # PostgreSQL hands back timestamptz values with tzinfo set
        order = Order(
            id=1,
            distributor_id=distributor.id,
            status=STATUS_APPROVED,
            created_at=datetime(2024, 1, 12, 20, 0, tzinfo=timezone(timedelta(hours=-8))),
        )
        record = order_to_record(order)
        assert record.created_at == datetime(2024, 1, 13, 4, 0)
        assert record.created_at.tzinfo is None
