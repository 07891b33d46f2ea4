"""
Reconciliation engine tests.

Run entirely against in-memory sources; no database or app context needed.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from stockcycle.models.status import STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED
from stockcycle.services.cycle_service import intake_window
from stockcycle.services.ledger_sources import (
    InMemoryOrderSource,
    InMemoryReportSource,
    OrderLineRecord,
    OrderRecord,
    normalize_ref,
    normalize_timestamp,
    normalize_week_key,
)
from stockcycle.services.order_ledger import OrderLedgerView
from stockcycle.services.reconciliation_service import Availability, ReconciliationEngine
from stockcycle.services.report_finalizer import finalize_report
from stockcycle.services.report_ledger import ReportLedgerView


D = 1
OTHER = 2
P = 100
W0 = date(2024, 1, 1)
W1 = date(2024, 1, 8)


class _Product:
    def __init__(self, id, name, price_cents):
        self.id = id
        self.name = name
        self.price_cents = price_cents


def _order(id, status, created_at, quantity, product=P, distributor=D):
    return {
        "id": id,
        "distributor_id": distributor,
        "status": status,
        "created_at": created_at,
        "lines": [{"product_id": product, "quantity": quantity}],
    }


def _report(id, week, status, *, sold=0, damaged=0, remaining=0, product=P, distributor=D):
    return {
        "id": id,
        "distributor_id": distributor,
        "week_start_date": week,
        "status": status,
        "details": [{
            "product_id": product,
            "quantity_sold": sold,
            "quantity_damaged": damaged,
            "remaining_stock": remaining,
        }],
    }


def _engine(orders=(), reports=()):
    return ReconciliationEngine(
        InMemoryOrderSource.from_payloads(orders),
        InMemoryReportSource.from_payloads(reports),
    )


@pytest.fixture
def scenario():
    """Prior approved W0 report leaves 5; approved order of 20 inside W1 intake."""
    return {
        "orders": [_order(1, STATUS_APPROVED, datetime(2024, 1, 9, 12), 20)],
        "reports": [_report(10, W0, STATUS_APPROVED, sold=3, remaining=5)],
    }


class TestAvailability:
    def test_no_history_is_all_zero(self):
        assert _engine().availability(D, P, W1) == Availability(0, 0, 0, 0)

    def test_unknown_product_is_all_zero(self, scenario):
        engine = _engine(**scenario)
        assert engine.availability(D, 999, W1) == Availability(0, 0, 0, 0)
        assert engine.availability(D, None, W1) == Availability(0, 0, 0, 0)

    def test_carry_over_plus_receipts(self, scenario):
        result = _engine(**scenario).availability(D, P, W1)
        assert result == Availability(carry_over=5, received=20, already_reported=0, available=25)

    def test_partial_report_is_deducted(self, scenario):
        scenario["reports"].append(_report(11, W1, STATUS_PENDING, sold=10, damaged=2))
        result = _engine(**scenario).availability(D, P, W1)
        assert result.already_reported == 12
        assert result.available == 13

    def test_editing_report_excludes_itself(self, scenario):
        scenario["reports"].append(_report(11, W1, STATUS_PENDING, sold=10, damaged=2))
        scenario["reports"].append(_report(12, W1, STATUS_PENDING, sold=4, damaged=0))
        result = _engine(**scenario).availability(D, P, W1, excluding_report_id=12)
        assert result.already_reported == 12
        assert result.available == 13

    def test_rejected_reports_are_not_deducted(self, scenario):
        scenario["reports"].append(_report(11, W1, STATUS_REJECTED, sold=10, damaged=2))
        assert _engine(**scenario).availability(D, P, W1).available == 25

    def test_available_never_negative(self, scenario):
        scenario["reports"].append(_report(11, W1, STATUS_APPROVED, sold=40))
        result = _engine(**scenario).availability(D, P, W1)
        assert result.already_reported == 40
        assert result.available == 0

    def test_available_formula_holds(self, scenario):
        scenario["reports"].append(_report(11, W1, STATUS_PENDING, sold=7, damaged=1))
        r = _engine(**scenario).availability(D, P, W1)
        assert r.available == max(0, r.carry_over + r.received - r.already_reported)

    def test_idempotent(self, scenario):
        engine = _engine(**scenario)
        assert engine.availability(D, P, W1) == engine.availability(D, P, W1)

    def test_any_date_in_cycle_resolves_to_same_anchor(self, scenario):
        engine = _engine(**scenario)
        assert engine.availability(D, P, W1) == engine.availability(D, P, datetime(2024, 1, 14, 18))

    def test_other_distributor_history_is_invisible(self, scenario):
        scenario["orders"].append(_order(2, STATUS_APPROVED, datetime(2024, 1, 9), 50, distributor=OTHER))
        scenario["reports"].append(_report(11, W1, STATUS_PENDING, sold=10, distributor=OTHER))
        assert _engine(**scenario).availability(D, P, W1).available == 25

    def test_pending_order_counts_only_once_approved(self):
        created = datetime(2024, 1, 10, 9)
        pending = _engine(orders=[_order(1, STATUS_PENDING, created, 50)])
        assert pending.availability(D, P, W1).received == 0

        approved = _engine(orders=[_order(1, STATUS_APPROVED, created, 50)])
        assert approved.availability(D, P, W1).received == 50

    def test_availability_for_products(self, scenario):
        result = _engine(**scenario).availability_for_products(D, [P, 999], W1)
        assert result[P].available == 25
        assert result[999] == Availability()


class TestOrderLedgerView:
    def test_intake_boundaries(self):
        intake = intake_window(W1)
        orders = [
            _order(1, STATUS_APPROVED, intake.start, 1),
            _order(2, STATUS_APPROVED, intake.end - timedelta(seconds=1), 2),
            _order(3, STATUS_APPROVED, intake.end, 4),
            _order(4, STATUS_APPROVED, intake.start - timedelta(seconds=1), 8),
        ]
        view = OrderLedgerView(InMemoryOrderSource.from_payloads(orders))
        assert view.received_in_cycle(D, P, intake) == 3

    def test_rejected_and_pending_are_invisible(self):
        created = datetime(2024, 1, 9)
        orders = [
            _order(1, STATUS_REJECTED, created, 5),
            _order(2, STATUS_PENDING, created, 7),
        ]
        view = OrderLedgerView(InMemoryOrderSource.from_payloads(orders))
        assert view.received_by_product(D, intake_window(W1)) == {}

    def test_sums_lines_across_orders(self):
        created = datetime(2024, 1, 9)
        source = InMemoryOrderSource([
            OrderRecord(1, D, STATUS_APPROVED, created, (OrderLineRecord(P, 3), OrderLineRecord(7, 1))),
            OrderRecord(2, D, STATUS_APPROVED, created, (OrderLineRecord(P, 4),)),
        ])
        assert OrderLedgerView(source).received_by_product(D, intake_window(W1)) == {P: 7, 7: 1}

    def test_populated_product_references_are_normalized(self):
        payload = {
            "id": 1,
            "distributor_id": D,
            "status": STATUS_APPROVED,
            "created_at": datetime(2024, 1, 9),
            "items": [
                {"product": {"id": P, "name": "Widget"}, "quantity": 2},
                {"product_id": str(P), "quantity": 3},
            ],
        }
        view = OrderLedgerView(InMemoryOrderSource.from_payloads([payload]))
        assert view.received_in_cycle(D, P, intake_window(W1)) == 5


class TestReportLedgerView:
    def test_carry_over_picks_latest_approved(self):
        reports = [
            _report(1, date(2023, 12, 11), STATUS_APPROVED, remaining=5),
            _report(2, date(2023, 12, 18), STATUS_PENDING, remaining=9),
            _report(3, date(2023, 12, 25), STATUS_REJECTED, remaining=7),
        ]
        view = ReportLedgerView(InMemoryReportSource.from_payloads(reports))
        assert view.carry_over_for(D, P, W1) == 5

    def test_carry_over_ignores_same_and_later_cycles(self):
        reports = [
            _report(1, W0, STATUS_APPROVED, remaining=5),
            _report(2, W1, STATUS_APPROVED, remaining=11),
            _report(3, W1 + timedelta(days=7), STATUS_APPROVED, remaining=13),
        ]
        view = ReportLedgerView(InMemoryReportSource.from_payloads(reports))
        assert view.carry_over_for(D, P, W1) == 5

    def test_carry_over_tie_goes_to_last_filed(self):
        reports = [
            _report(4, W0, STATUS_APPROVED, remaining=2),
            _report(9, W0, STATUS_APPROVED, remaining=6),
        ]
        view = ReportLedgerView(InMemoryReportSource.from_payloads(reports))
        assert view.previous_approved_report(D, W1).id == 9
        assert view.carry_over_for(D, P, W1) == 6

    def test_no_prior_report_means_zero_carry_over(self):
        view = ReportLedgerView(InMemoryReportSource())
        assert view.previous_approved_report(D, W1) is None
        assert view.carry_over_for(D, P, W1) == 0

    def test_product_absent_from_prior_report(self):
        view = ReportLedgerView(InMemoryReportSource.from_payloads([_report(1, W0, STATUS_APPROVED, remaining=5)]))
        assert view.carry_over_for(D, 555, W1) == 0

    def test_already_reported_sums_sold_and_damaged(self):
        reports = [
            _report(1, W1, STATUS_PENDING, sold=3, damaged=1),
            _report(2, W1, STATUS_APPROVED, sold=2, damaged=2),
            _report(3, W1, STATUS_REJECTED, sold=50),
            _report(4, W0, STATUS_APPROVED, sold=50),
        ]
        view = ReportLedgerView(InMemoryReportSource.from_payloads(reports))
        assert view.already_reported_for(D, P, W1) == 8
        assert view.already_reported_for(D, P, W1, excluding_report_id=2) == 4


class TestScenarioFinalize:
    def test_over_reported_sales_are_clamped(self, scenario):
        engine = _engine(**scenario)
        availability = engine.availability_for_products(D, [P], W1)
        finalized = finalize_report({P: {"sold": 30, "damaged": 0}}, availability, [_Product(P, "Widget", 10)])

        detail = finalized.details[0]
        assert detail.quantity_received == 25
        assert detail.quantity_sold == 25
        assert detail.quantity_damaged == 0
        assert detail.remaining_stock == 0
        assert detail.revenue_cents == 250
        assert finalized.total_revenue_cents == 250


class TestNormalizeRef:
    @pytest.mark.parametrize("value,expected", [
        (5, 5),
        ("5", 5),
        (" 12 ", 12),
        ({"id": 3}, 3),
        ({"product_id": "4"}, 4),
        (_Product(8, "x", 0), 8),
        (None, None),
        (True, None),
        ("abc", None),
        ({}, None),
    ])
    def test_shapes(self, value, expected):
        assert normalize_ref(value) == expected


class TestTimeShapes:
    def test_datetime_cycle_keys_group_by_monday(self):
        engine = _engine(
            orders=[_order(1, STATUS_APPROVED, datetime(2024, 1, 9, 12), 20)],
            reports=[
                _report(10, datetime(2024, 1, 1, 15, 30), STATUS_APPROVED, remaining=5),
                _report(11, datetime(2024, 1, 8, 9, 0), STATUS_PENDING, sold=4),
            ],
        )
        result = engine.availability(D, P, W1)
        assert result == Availability(carry_over=5, received=20, already_reported=4, available=21)

    def test_iso_string_keys_and_timestamps(self):
        engine = _engine(
            orders=[_order(1, STATUS_APPROVED, "2024-01-09T12:00:00Z", 20)],
            reports=[
                _report(10, "2024-01-01", STATUS_APPROVED, remaining=5),
                _report(11, "2024-01-10T08:00:00+00:00", STATUS_PENDING, sold=4),
            ],
        )
        assert engine.availability(D, P, W1).available == 21

    def test_aware_order_time_is_converted_to_utc(self):
        # 2024-01-13 01:00 at +03:00 is Friday 22:00 UTC, still inside W1 intake
        late_friday = datetime(2024, 1, 13, 1, 0, tzinfo=timezone(timedelta(hours=3)))
        engine = _engine(orders=[_order(1, STATUS_APPROVED, late_friday, 7)])
        assert engine.availability(D, P, W1).received == 7

    def test_normalize_timestamp(self):
        aware = datetime(2024, 1, 9, 12, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert normalize_timestamp(aware) == datetime(2024, 1, 9, 17, 0)
        assert normalize_timestamp("2024-01-09T12:00:00Z") == datetime(2024, 1, 9, 12, 0)
        assert normalize_timestamp(datetime(2024, 1, 9)) == datetime(2024, 1, 9)

    @pytest.mark.parametrize("value", [
        date(2024, 1, 8),
        date(2024, 1, 12),
        datetime(2024, 1, 8, 23, 59),
        "2024-01-08",
        "2024-01-14T10:00:00Z",
    ])
    def test_normalize_week_key(self, value):
        assert normalize_week_key(value) == W1
