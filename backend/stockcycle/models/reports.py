from __future__ import annotations

from ..extensions import db
from stockcycle.time_utils import to_utc_z, to_iso_date, utcnow
from .status import STATUS_PENDING


class WeeklyReport(db.Model):
    """
    A distributor's sales/damage report for one cycle.

    CYCLE KEY:
    week_start_date is the cycle anchor (a Monday) and the only link between a
    report and its cycle. It is a Date column, so two reports filed at
    different times of the same cycle always share the key.

    A distributor may file several reports for the same cycle (partial
    reports). Their sold + damaged figures are deducted from each other's
    availability, see services/report_ledger.py.
    """
    __tablename__ = "weekly_reports"
    __table_args__ = (
        db.Index("ix_reports_distributor_week_status", "distributor_id", "week_start_date", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    distributor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    week_start_date = db.Column(db.Date, nullable=False, index=True)

    total_revenue_cents = db.Column(db.Integer, nullable=False, default=0)
    total_sold = db.Column(db.Integer, nullable=False, default=0)
    total_damaged = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    reviewed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    distributor = db.relationship("User", foreign_keys=[distributor_id])
    details = db.relationship(
        "ReportDetail",
        backref="report",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="ReportDetail.id",
    )

    def __repr__(self) -> str:
        return (
            f"<WeeklyReport id={self.id} distributor_id={self.distributor_id} "
            f"week={self.week_start_date} status={self.status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "distributor_id": self.distributor_id,
            "distributor_name": self.distributor.name if self.distributor else None,
            "distributor_group": self.distributor.group if self.distributor else None,
            "week_start_date": to_iso_date(self.week_start_date),
            "total_revenue_cents": self.total_revenue_cents,
            "total_sold": self.total_sold,
            "total_damaged": self.total_damaged,
            "notes": self.notes,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "reviewed_by_user_id": self.reviewed_by_user_id,
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
            "details": [d.to_dict() for d in self.details],
        }


class ReportDetail(db.Model):
    """
    Per-product line of a weekly report.

    quantity_received is the availability the engine computed when the report
    was last submitted (carry-over + receipts - other reports), not the raw
    order receipts.
    """
    __tablename__ = "report_details"
    __table_args__ = (
        db.UniqueConstraint("report_id", "product_id", name="uq_report_details_report_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    report_id = db.Column(
        db.Integer, db.ForeignKey("weekly_reports.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Plain reference, same reasoning as OrderLine.product_id
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity_received = db.Column(db.Integer, nullable=False, default=0)
    quantity_sold = db.Column(db.Integer, nullable=False, default=0)
    quantity_damaged = db.Column(db.Integer, nullable=False, default=0)
    revenue_cents = db.Column(db.Integer, nullable=False, default=0)
    remaining_stock = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "report_id": self.report_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity_received": self.quantity_received,
            "quantity_sold": self.quantity_sold,
            "quantity_damaged": self.quantity_damaged,
            "revenue_cents": self.revenue_cents,
            "remaining_stock": self.remaining_stock,
        }
