# Overview: Read-only projection of report history: carry-over and already-reported stock.

"""
Report Ledger View

CARRY-OVER:
Stock inherited by cycle N is the remaining_stock on the most recent APPROVED
report whose week_start_date is strictly before N. PENDING and REJECTED
reports never carry over, even when they are more recent. If the prior
cycle has several approved (partial) reports, the last filed one (highest
id) wins.

ALREADY-REPORTED:
Within one cycle a distributor may file several reports. Units already
sold or damaged on the cycle's other non-REJECTED reports are deducted from
what the current report can claim. The report being edited is excluded so
that re-submitting it does not count its own figures twice.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date

from ..models.status import STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED
from .ledger_sources import ReportRecord, ReportSource


class ReportLedgerView:
    def __init__(self, source: ReportSource):
        self._source = source

    def previous_approved_report(self, distributor_id: int, anchor: date) -> ReportRecord | None:
        reports = self._source.list_reports(
            distributor_id=distributor_id,
            statuses=[STATUS_APPROVED],
            before_week=anchor,
        )
        candidates = [
            r for r in reports
            if r.distributor_id == distributor_id
            and r.status == STATUS_APPROVED
            and r.week_start_date < anchor
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda r: (r.week_start_date, r.id))

    def carry_over_by_product(self, distributor_id: int, anchor: date) -> dict[int, int]:
        previous = self.previous_approved_report(distributor_id, anchor)
        if previous is None:
            return {}
        carry: dict[int, int] = {}
        for line in previous.lines:
            if line.product_id is None or line.product_id in carry:
                continue
            carry[line.product_id] = max(0, line.remaining_stock)
        return carry

    def carry_over_for(self, distributor_id: int, product_id: int | None, anchor: date) -> int:
        if product_id is None:
            return 0
        return self.carry_over_by_product(distributor_id, anchor).get(product_id, 0)

    def already_reported_by_product(
        self,
        distributor_id: int,
        anchor: date,
        excluding_report_id: int | None = None,
    ) -> dict[int, int]:
        reports = self._source.list_reports(
            distributor_id=distributor_id,
            statuses=[STATUS_PENDING, STATUS_APPROVED],
            week_start_date=anchor,
        )
        totals: dict[int, int] = defaultdict(int)
        for report in reports:
            if report.distributor_id != distributor_id or report.week_start_date != anchor:
                continue
            if report.status == STATUS_REJECTED:
                continue
            if excluding_report_id is not None and report.id == excluding_report_id:
                continue
            for line in report.lines:
                if line.product_id is None:
                    continue
                totals[line.product_id] += max(0, line.quantity_sold) + max(0, line.quantity_damaged)
        return dict(totals)

    def already_reported_for(
        self,
        distributor_id: int,
        product_id: int | None,
        anchor: date,
        excluding_report_id: int | None = None,
    ) -> int:
        if product_id is None:
            return 0
        return self.already_reported_by_product(
            distributor_id, anchor, excluding_report_id=excluding_report_id
        ).get(product_id, 0)
