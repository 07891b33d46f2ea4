# Overview: Read-only projection of approved order receipts per cycle intake window.

from __future__ import annotations

from collections import defaultdict

from ..models.status import STATUS_APPROVED
from .cycle_service import Window
from .ledger_sources import OrderSource


class OrderLedgerView:
    """
    Units a distributor received through APPROVED orders in an intake window.

    Only APPROVED orders count. PENDING and REJECTED orders are invisible,
    whatever products they contain. The result is a plain sum, so it does
    not depend on the order in which the source returns records.
    """

    def __init__(self, source: OrderSource):
        self._source = source

    def received_by_product(self, distributor_id: int, intake: Window) -> dict[int, int]:
        orders = self._source.list_orders(
            distributor_id=distributor_id,
            status=STATUS_APPROVED,
            created_from=intake.start,
            created_before=intake.end,
        )
        totals: dict[int, int] = defaultdict(int)
        for order in orders:
            if order.distributor_id != distributor_id:
                continue
            if order.status != STATUS_APPROVED or not intake.contains(order.created_at):
                continue
            for line in order.lines:
                if line.product_id is None:
                    continue
                totals[line.product_id] += max(0, line.quantity)
        return dict(totals)

    def received_in_cycle(self, distributor_id: int, product_id: int | None, intake: Window) -> int:
        if product_id is None:
            return 0
        return self.received_by_product(distributor_id, intake).get(product_id, 0)
