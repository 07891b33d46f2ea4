from __future__ import annotations

from ..extensions import db
from stockcycle.time_utils import to_utc_z, utcnow
from .status import STATUS_PENDING


class Order(db.Model):
    """
    Distributor purchase order.

    LIFECYCLE:
    - Created PENDING by the distributor.
    - An administrator moves it once to APPROVED or REJECTED.
    - is_received tracks the physical handoff and is independent of status.

    created_at is business time: it decides which cycle's intake window the
    order lands in, so it is set explicitly (python default) rather than by
    the database clock.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_distributor_status_created", "distributor_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    distributor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    total_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)
    is_received = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    reviewed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    distributor = db.relationship("User", foreign_keys=[distributor_id])
    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderLine.id",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} distributor_id={self.distributor_id} status={self.status}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "distributor_id": self.distributor_id,
            "distributor_name": self.distributor.name if self.distributor else None,
            "distributor_group": self.distributor.group if self.distributor else None,
            "total_cents": self.total_cents,
            "status": self.status,
            "is_received": self.is_received,
            "created_at": to_utc_z(self.created_at),
            "reviewed_by_user_id": self.reviewed_by_user_id,
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class OrderLine(db.Model):
    """
    Immutable line snapshot: product, name and unit price as of order creation.

    product_id is a plain reference (no FK) so catalog deletions never rewrite
    order history; the ledger treats unknown products as zero availability.
    """
    __tablename__ = "order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
        }
