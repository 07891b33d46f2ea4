# Overview: Service-layer operations for weekly reports; submission runs the reconciliation engine.

"""
Weekly Report Service

LIFECYCLE:
    PENDING -> APPROVED | REJECTED   (admin, once)

SUBMISSION (create or edit):
1. Resolve the cycle: new reports use the cycle of the reference time (or an
   explicit week start); edits keep the cycle the report was filed under.
2. Lock the distributor row (per-distributor serialization point).
3. Compute availability for every catalog product, excluding the report
   being edited from already-reported stock.
4. Clamp entered quantities and build detail lines (report_finalizer).
5. Persist and commit in the same transaction as the lock.

Only the owning distributor may edit, and only while the report is PENDING.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app

from ..extensions import db
from ..models import Product, ReportDetail, User, WeeklyReport
from ..models.status import STATUS_APPROVED, STATUS_PENDING, DECISION_STATUSES
from stockcycle.time_utils import utcnow
from .concurrency import lock_distributor, run_with_retry
from .cycle_service import anchor_for, cycle_for
from .reconciliation_service import Availability, sql_engine
from .report_finalizer import FinalizedReport, finalize_report


class ReportError(Exception):
    """Raised for report validation failures."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ReportNotFoundError(Exception):
    """Raised when a report is not found."""
    pass


class ReportStateError(Exception):
    """Raised when an operation is invalid for the current report status."""
    pass


class ReportPermissionError(Exception):
    """Raised when a user acts on a report they do not own."""
    pass


def get_report(report_id: int) -> WeeklyReport:
    report = db.session.get(WeeklyReport, report_id)
    if report is None:
        raise ReportNotFoundError(f"Report {report_id} not found")
    return report


def get_availability(
    distributor_id: int,
    cycle_anchor: date | datetime,
    *,
    excluding_report_id: int | None = None,
) -> dict[int, Availability]:
    """Per catalog product availability for a distributor's cycle."""
    product_ids = [pid for (pid,) in db.session.query(Product.id).all()]
    return sql_engine().availability_for_products(
        distributor_id, product_ids, cycle_anchor, excluding_report_id=excluding_report_id
    )


def availability_overview(
    distributor_id: int,
    reference: date | datetime,
    *,
    excluding_report_id: int | None = None,
) -> dict:
    """
    Availability table for the report-drafting screen.

    When excluding_report_id is given the cycle is the one that report was
    filed under, not the reference date's.
    """
    if excluding_report_id is not None:
        report = get_report(excluding_report_id)
        if report.distributor_id != distributor_id:
            raise ReportPermissionError("Not authorized")
        anchor = report.week_start_date
    else:
        anchor = anchor_for(reference)

    cycle = cycle_for(anchor)
    availability = get_availability(distributor_id, anchor, excluding_report_id=excluding_report_id)
    products = db.session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()

    return {
        "cycle": cycle.to_dict(),
        "products": [
            {
                "product_id": p.id,
                "product_name": p.name,
                "price_cents": p.price_cents,
                **availability[p.id].to_dict(),
            }
            for p in products
        ],
    }


def _write_details(report: WeeklyReport, finalized: FinalizedReport) -> None:
    report.details.clear()
    db.session.flush()
    for d in finalized.details:
        report.details.append(
            ReportDetail(
                product_id=d.product_id,
                product_name=d.product_name,
                quantity_received=d.quantity_received,
                quantity_sold=d.quantity_sold,
                quantity_damaged=d.quantity_damaged,
                revenue_cents=d.revenue_cents,
                remaining_stock=d.remaining_stock,
            )
        )
    report.total_revenue_cents = finalized.total_revenue_cents
    report.total_sold = finalized.total_sold
    report.total_damaged = finalized.total_damaged


def _finalize_for(distributor_id: int, anchor: date, entries: dict, excluding_report_id: int | None):
    products = db.session.query(Product).order_by(Product.id.asc()).all()
    availability = sql_engine().availability_for_products(
        distributor_id, [p.id for p in products], anchor, excluding_report_id=excluding_report_id
    )
    finalized = finalize_report(entries, availability, products)
    if finalized.unknown_product_ids:
        current_app.logger.warning(
            "Distributor %s reported on products not in the catalog: %s",
            distributor_id, list(finalized.unknown_product_ids),
        )
    return finalized


def _create(distributor_id: int, anchor: date, entries: dict, notes: str | None) -> WeeklyReport:
    if lock_distributor(distributor_id) is None:
        raise ReportError(f"Distributor {distributor_id} not found")

    finalized = _finalize_for(distributor_id, anchor, entries, excluding_report_id=None)

    report = WeeklyReport(
        distributor_id=distributor_id,
        week_start_date=anchor,
        notes=notes,
        status=STATUS_PENDING,
    )
    db.session.add(report)
    _write_details(report, finalized)
    db.session.commit()

    current_app.logger.info(
        "Report %s submitted by distributor %s for week %s (sold=%s damaged=%s)",
        report.id, distributor_id, anchor, report.total_sold, report.total_damaged,
    )
    return report


def create_report(
    distributor_id: int,
    entries: dict,
    *,
    notes: str | None = None,
    reference_time: datetime | None = None,
    week_start: date | None = None,
) -> WeeklyReport:
    """
    File a new PENDING report.

    entries: {product_id: {"sold": int, "damaged": int}}
    The cycle is week_start's if given, else reference_time's (default: now).
    """
    anchor = anchor_for(week_start if week_start is not None else (reference_time or utcnow()))
    return run_with_retry(lambda: _create(distributor_id, anchor, entries, notes))


def _update(report_id: int, actor_id: int, entries: dict, notes: str | None) -> WeeklyReport:
    report = get_report(report_id)
    if report.distributor_id != actor_id:
        raise ReportPermissionError("Not authorized")

    lock_distributor(report.distributor_id)
    db.session.refresh(report)
    if report.status != STATUS_PENDING:
        raise ReportStateError("Cannot edit an approved or rejected report.")

    finalized = _finalize_for(
        report.distributor_id, report.week_start_date, entries, excluding_report_id=report.id
    )
    _write_details(report, finalized)
    report.notes = notes
    db.session.commit()

    current_app.logger.info("Report %s updated by distributor %s", report.id, actor_id)
    return report


def update_report(report_id: int, actor_id: int, entries: dict, *, notes: str | None = None) -> WeeklyReport:
    return run_with_retry(lambda: _update(report_id, actor_id, entries, notes))


def set_report_status(report_id: int, status: str, reviewer_id: int) -> WeeklyReport:
    if status not in DECISION_STATUSES:
        raise ReportStateError("status must be APPROVED or REJECTED")

    report = get_report(report_id)
    if report.status != STATUS_PENDING:
        raise ReportStateError(f"Report is already {report.status}")

    report.status = status
    report.reviewed_by_user_id = reviewer_id
    report.reviewed_at = utcnow()
    db.session.commit()

    current_app.logger.info("Report %s %s by user %s", report.id, status.lower(), reviewer_id)
    return report


def list_reports(
    *,
    distributor_id: int | None = None,
    status: str | None = None,
    week_start: date | None = None,
    group: str | None = None,
) -> list[WeeklyReport]:
    q = db.session.query(WeeklyReport)
    if distributor_id is not None:
        q = q.filter(WeeklyReport.distributor_id == distributor_id)
    if status is not None:
        q = q.filter(WeeklyReport.status == status)
    if week_start is not None:
        q = q.filter(WeeklyReport.week_start_date == anchor_for(week_start))
    if group is not None:
        q = q.join(User, User.id == WeeklyReport.distributor_id).filter(User.group == group)
    return q.order_by(WeeklyReport.week_start_date.desc(), WeeklyReport.id.desc()).all()


def approved_revenue_cents(reports: list[WeeklyReport]) -> int:
    return sum(r.total_revenue_cents for r in reports if r.status == STATUS_APPROVED)
