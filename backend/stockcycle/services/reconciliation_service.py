# Overview: Reconciliation engine; derives per-product availability from order and report history.

"""
Reconciliation Engine (authoritative)

For a distributor, product and cycle:

    available = max(0, carry_over + received - already_reported)

where
- carry_over:        remaining stock on the latest APPROVED report of an
                     earlier cycle (ReportLedgerView)
- received:          units on APPROVED orders created in the cycle's intake
                     window (OrderLedgerView)
- already_reported:  sold + damaged on the cycle's other non-REJECTED
                     reports (ReportLedgerView)

Invariants:
- Availability is never stored. Every call re-reads the sources, so it
  always reflects current order/report state.
- Pure with respect to the sources: identical ledger state and arguments
  yield an identical Availability.
- Unknown products are not an error; they simply have no history and
  resolve to all zeros.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from .cycle_service import anchor_for, intake_window
from .ledger_sources import OrderSource, ReportSource, SqlOrderSource, SqlReportSource
from .order_ledger import OrderLedgerView
from .report_ledger import ReportLedgerView


@dataclass(frozen=True)
class Availability:
    carry_over: int = 0
    received: int = 0
    already_reported: int = 0
    available: int = 0

    @classmethod
    def compute(cls, carry_over: int, received: int, already_reported: int) -> "Availability":
        return cls(
            carry_over=carry_over,
            received=received,
            already_reported=already_reported,
            available=max(0, carry_over + received - already_reported),
        )

    def to_dict(self) -> dict:
        return {
            "carry_over": self.carry_over,
            "received": self.received,
            "already_reported": self.already_reported,
            "available": self.available,
        }


ZERO_AVAILABILITY = Availability()


class ReconciliationEngine:
    def __init__(self, orders: OrderSource, reports: ReportSource):
        self.order_ledger = OrderLedgerView(orders)
        self.report_ledger = ReportLedgerView(reports)

    def availability(
        self,
        distributor_id: int,
        product_id: int | None,
        cycle_anchor: date | datetime,
        excluding_report_id: int | None = None,
    ) -> Availability:
        if product_id is None:
            return ZERO_AVAILABILITY
        return self.availability_for_products(
            distributor_id, [product_id], cycle_anchor, excluding_report_id=excluding_report_id
        )[product_id]

    def availability_for_products(
        self,
        distributor_id: int,
        product_ids: Iterable[int],
        cycle_anchor: date | datetime,
        excluding_report_id: int | None = None,
    ) -> dict[int, Availability]:
        """
        Availability for several products in one pass over each ledger.

        Each ledger is read once per call regardless of how many products are
        requested.
        """
        anchor = anchor_for(cycle_anchor)
        received = self.order_ledger.received_by_product(distributor_id, intake_window(anchor))
        carry = self.report_ledger.carry_over_by_product(distributor_id, anchor)
        reported = self.report_ledger.already_reported_by_product(
            distributor_id, anchor, excluding_report_id=excluding_report_id
        )

        result: dict[int, Availability] = {}
        for product_id in product_ids:
            result[product_id] = Availability.compute(
                carry_over=carry.get(product_id, 0),
                received=received.get(product_id, 0),
                already_reported=reported.get(product_id, 0),
            )
        return result


def sql_engine() -> ReconciliationEngine:
    """Engine reading the application database (requires an app context)."""
    return ReconciliationEngine(SqlOrderSource(), SqlReportSource())
