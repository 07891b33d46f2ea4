# Overview: Service-layer operations for distributor orders; lifecycle and warehouse stock.

"""
Order Service

LIFECYCLE:
    PENDING -> APPROVED   (admin; consumes warehouse stock)
    PENDING -> REJECTED   (admin; no stock effect)

RULES:
1. Line price and quantity are snapshotted from the catalog at creation and
   never change afterwards.
2. Approval is atomic: every line's Product.stock is decremented and the
   status flips in one transaction, or nothing changes at all.
3. Deletion: the owning distributor may delete while PENDING; an admin may
   delete any order. Deleting an APPROVED order restores the stock its
   approval consumed.
4. is_received is the physical handoff flag; it is independent of status
   but only meaningful once the order is APPROVED.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Order, OrderLine, Product, User
from ..models.status import STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED, DECISION_STATUSES
from stockcycle.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


class OrderError(Exception):
    """Raised for order validation failures (unknown product, stock)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class OrderNotFoundError(Exception):
    """Raised when an order is not found."""
    pass


class OrderStateError(Exception):
    """Raised when an operation is invalid for the current order status."""
    pass


class OrderPermissionError(Exception):
    """Raised when the acting user may not touch the order."""
    pass


def get_order(order_id: int, *, lock: bool = False) -> Order:
    query = db.session.query(Order).filter(Order.id == order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise OrderNotFoundError(f"Order {order_id} not found")
    return order


def create_order(
    distributor_id: int,
    items: list[tuple[int, int]],
    *,
    created_at: datetime | None = None,
) -> Order:
    """
    Create a PENDING order from validated (product_id, quantity) pairs.

    Requests above the current warehouse stock are refused up front; stock
    is only consumed on approval.
    """
    if not items:
        raise OrderError("Order must contain at least one item")

    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_([pid for pid, _ in items])).all()
    }

    missing = [pid for pid, _ in items if pid not in products]
    if missing:
        raise OrderError("Product not found", details={"product_ids": missing})

    short = [
        {"product_id": pid, "requested_quantity": qty, "stock": products[pid].stock}
        for pid, qty in items
        if products[pid].stock < qty
    ]
    if short:
        raise OrderError("Not enough stock", details={"items": short})

    order = Order(
        distributor_id=distributor_id,
        status=STATUS_PENDING,
        is_received=False,
        created_at=created_at or utcnow(),
    )
    total = 0
    for pid, qty in items:
        product = products[pid]
        order.lines.append(
            OrderLine(
                product_id=product.id,
                product_name=product.name,
                unit_price_cents=product.price_cents,
                quantity=qty,
            )
        )
        total += product.price_cents * qty
    order.total_cents = total

    db.session.add(order)
    db.session.commit()

    current_app.logger.info(
        "Order %s created by distributor %s (%s lines, total %s)",
        order.id, distributor_id, len(order.lines), total,
    )
    return order


def _approve(order_id: int, reviewer_id: int) -> Order:
    order = get_order(order_id, lock=True)
    if order.status != STATUS_PENDING:
        raise OrderStateError(f"Cannot approve {order.status} order. Only PENDING orders can be approved.")

    product_ids = [line.product_id for line in order.lines]
    products = {
        p.id: p
        for p in lock_for_update(
            db.session.query(Product).filter(Product.id.in_(product_ids))
        ).all()
    }

    needed: dict[int, int] = {}
    for line in order.lines:
        needed[line.product_id] = needed.get(line.product_id, 0) + line.quantity

    insufficient = []
    for pid, qty in needed.items():
        product = products.get(pid)
        if product is None or product.stock < qty:
            insufficient.append({
                "product_id": pid,
                "requested_quantity": qty,
                "stock": product.stock if product else 0,
            })
    if insufficient:
        db.session.rollback()
        raise OrderError("Insufficient stock to approve this order", details={"items": insufficient})

    for pid, qty in needed.items():
        products[pid].stock -= qty

    order.status = STATUS_APPROVED
    order.reviewed_by_user_id = reviewer_id
    order.reviewed_at = utcnow()

    db.session.commit()
    current_app.logger.info("Order %s approved by user %s", order.id, reviewer_id)
    return order


def approve_order(order_id: int, reviewer_id: int) -> Order:
    return run_with_retry(lambda: _approve(order_id, reviewer_id))


def reject_order(order_id: int, reviewer_id: int) -> Order:
    order = get_order(order_id, lock=True)
    if order.status != STATUS_PENDING:
        raise OrderStateError(f"Cannot reject {order.status} order. Only PENDING orders can be rejected.")

    order.status = STATUS_REJECTED
    order.reviewed_by_user_id = reviewer_id
    order.reviewed_at = utcnow()
    db.session.commit()

    current_app.logger.info("Order %s rejected by user %s", order.id, reviewer_id)
    return order


def set_order_status(order_id: int, status: str, reviewer_id: int) -> Order:
    if status not in DECISION_STATUSES:
        raise OrderStateError("status must be APPROVED or REJECTED")
    if status == STATUS_APPROVED:
        return approve_order(order_id, reviewer_id)
    return reject_order(order_id, reviewer_id)


def set_order_received(order_id: int, is_received: bool, actor: User) -> Order:
    order = get_order(order_id)
    if not actor.is_admin and order.distributor_id != actor.id:
        raise OrderPermissionError("Not authorized")
    if order.status != STATUS_APPROVED:
        raise OrderStateError("Only APPROVED orders can be marked as received")

    order.is_received = bool(is_received)
    db.session.commit()
    return order


def _delete(order_id: int, actor: User) -> int:
    order = get_order(order_id, lock=True)

    if not actor.is_admin:
        if order.distributor_id != actor.id:
            raise OrderPermissionError("Not authorized")
        if order.status != STATUS_PENDING:
            raise OrderStateError("Only PENDING orders can be deleted")

    restored = 0
    if order.status == STATUS_APPROVED:
        product_ids = [line.product_id for line in order.lines]
        products = {
            p.id: p
            for p in lock_for_update(
                db.session.query(Product).filter(Product.id.in_(product_ids))
            ).all()
        }
        for line in order.lines:
            # Lines for products since removed from the catalog have nowhere to go
            product = products.get(line.product_id)
            if product is not None:
                product.stock += line.quantity
                restored += line.quantity

    db.session.delete(order)
    db.session.commit()

    current_app.logger.info(
        "Order %s deleted by user %s (restored %s units to stock)", order_id, actor.id, restored
    )
    return restored


def delete_order(order_id: int, actor: User) -> int:
    """Delete an order; returns the number of units restored to warehouse stock."""
    return run_with_retry(lambda: _delete(order_id, actor))


def list_orders(
    *,
    distributor_id: int | None = None,
    status: str | None = None,
    created_from: datetime | None = None,
    created_before: datetime | None = None,
) -> list[Order]:
    q = db.session.query(Order)
    if distributor_id is not None:
        q = q.filter(Order.distributor_id == distributor_id)
    if status is not None:
        q = q.filter(Order.status == status)
    if created_from is not None:
        q = q.filter(Order.created_at >= created_from)
    if created_before is not None:
        q = q.filter(Order.created_at < created_before)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).all()
