# Overview: Read-only summaries for the admin receiving board and the distributor dashboard.

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from ..extensions import db
from ..models import Order, Product, User, WeeklyReport
from ..models.status import STATUS_APPROVED, STATUS_REJECTED
from .cycle_service import cycle_for, intake_anchor_for
from .ledger_sources import normalize_timestamp
from .report_service import approved_revenue_cents


def receiving_summary(start: date, end: date, *, group: str | None = None) -> dict:
    """
    Physical handoff progress for APPROVED orders created between start and
    end (both inclusive calendar days).

    Per product:
    - approved:  units on approved orders in range
    - received:  units on those orders already marked is_received
    - in_warehouse: stock + approved - received, floored at 0 (units either
      still on the shelf or approved but not yet handed over)
    """
    if end < start:
        start, end = end, start

    q = db.session.query(Order).filter(
        Order.status == STATUS_APPROVED,
        Order.created_at >= datetime.combine(start, time.min),
        Order.created_at < datetime.combine(end + timedelta(days=1), time.min),
    )
    if group is not None:
        q = q.join(User, User.id == Order.distributor_id).filter(User.group == group)
    orders = q.order_by(Order.created_at.asc(), Order.id.asc()).all()

    stats: dict[int, dict] = {}
    for p in db.session.query(Product).order_by(Product.id.asc()).all():
        stats[p.id] = {
            "product_id": p.id,
            "product_name": p.name,
            "current_stock": p.stock,
            "approved": 0,
            "received": 0,
        }

    for order in orders:
        for line in order.lines:
            row = stats.setdefault(line.product_id, {
                "product_id": line.product_id,
                "product_name": line.product_name,
                "current_stock": 0,
                "approved": 0,
                "received": 0,
            })
            row["approved"] += line.quantity
            if order.is_received:
                row["received"] += line.quantity

    total_in_warehouse = 0
    for row in stats.values():
        row["in_warehouse"] = max(0, row["current_stock"] + row["approved"] - row["received"])
        total_in_warehouse += row["in_warehouse"]

    total_orders = len(orders)
    received_count = sum(1 for o in orders if o.is_received)
    progress = 0 if total_orders == 0 else round(received_count * 100 / total_orders)

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "group": group,
        "total_orders": total_orders,
        "received_orders": received_count,
        "progress_percent": progress,
        "total_in_warehouse": total_in_warehouse,
        "products": list(stats.values()),
    }


def distributor_weeks(distributor_id: int) -> list[date]:
    """
    Cycle anchors the distributor has any order or report in, newest first.

    Orders are bucketed by the intake window they fall in, so a weekend order
    lists under the cycle its units count toward.
    """
    weeks: set[date] = set()
    for (created_at,) in db.session.query(Order.created_at).filter(Order.distributor_id == distributor_id):
        weeks.add(intake_anchor_for(normalize_timestamp(created_at)))
    for (week,) in db.session.query(WeeklyReport.week_start_date).filter(
        WeeklyReport.distributor_id == distributor_id
    ):
        weeks.add(week)
    return sorted(weeks, reverse=True)


def distributor_dashboard(distributor_id: int, week_start: date | datetime) -> dict:
    """
    Per-cycle figures for one distributor.

    - total_ordered_cents: every non-rejected order created in the cycle's
      intake window
    - approved_revenue_cents: revenue on the cycle's APPROVED reports
    - items_sold: units sold on the cycle's non-rejected reports
    """
    cycle = cycle_for(week_start)

    orders = db.session.query(Order).filter(
        Order.distributor_id == distributor_id,
        Order.status != STATUS_REJECTED,
        Order.created_at >= cycle.intake.start,
        Order.created_at < cycle.intake.end,
    ).all()

    reports = db.session.query(WeeklyReport).filter(
        WeeklyReport.distributor_id == distributor_id,
        WeeklyReport.week_start_date == cycle.anchor,
    ).all()
    live_reports = [r for r in reports if r.status != STATUS_REJECTED]

    return {
        "cycle": cycle.to_dict(),
        "total_ordered_cents": sum(o.total_cents for o in orders),
        "order_count": len(orders),
        "approved_revenue_cents": approved_revenue_cents(reports),
        "items_sold": sum(r.total_sold for r in live_reports),
        "items_damaged": sum(r.total_damaged for r in live_reports),
        "report_count": len(live_reports),
        "weeks": [w.isoformat() for w in distributor_weeks(distributor_id)],
    }
