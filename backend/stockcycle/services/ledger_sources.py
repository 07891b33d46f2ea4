# Overview: Storage boundary for the reconciliation engine; materializes order/report history.

"""
Ledger sources

The ledger views never touch the ORM. They read through two narrow
interfaces:

    OrderSource.list_orders(...)    -> list[OrderRecord]
    ReportSource.list_reports(...)  -> list[ReportRecord]

Two implementations of each:
- Sql*Source: queries the database and materializes frozen records.
- InMemory*Source: wraps collections the caller already fetched.

Filters passed to a source are a pushdown optimization only. The views
re-check every predicate while folding, so a source that returns a superset
is still correct.

PRODUCT REFERENCES:
Product ids are normalized to int here, once. Upstream payloads may carry a
raw id, a numeric string, or a populated object/dict; downstream code only
ever compares ints.

TIME VALUES:
Order timestamps become UTC-naive datetimes and report cycle keys become
the Monday date of their week, whatever shape arrives (date, datetime,
timezone-aware datetime, ISO string). The cycle windows are naive UTC, so
nothing past this module compares mixed shapes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Iterable, Mapping, Protocol

from ..extensions import db
from ..models import Order, WeeklyReport
from stockcycle.time_utils import parse_iso_date, parse_iso_datetime
from .cycle_service import anchor_for


@dataclass(frozen=True)
class OrderLineRecord:
    product_id: int | None
    quantity: int
    unit_price_cents: int = 0


@dataclass(frozen=True)
class OrderRecord:
    id: int
    distributor_id: int
    status: str
    created_at: datetime
    lines: tuple[OrderLineRecord, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ReportLineRecord:
    product_id: int | None
    quantity_sold: int = 0
    quantity_damaged: int = 0
    remaining_stock: int = 0


@dataclass(frozen=True)
class ReportRecord:
    id: int
    distributor_id: int
    week_start_date: date
    status: str
    lines: tuple[ReportLineRecord, ...] = field(default_factory=tuple)


class OrderSource(Protocol):
    def list_orders(
        self,
        *,
        distributor_id: int,
        status: str | None = None,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> list[OrderRecord]:
        ...


class ReportSource(Protocol):
    def list_reports(
        self,
        *,
        distributor_id: int,
        statuses: Iterable[str] | None = None,
        week_start_date: date | None = None,
        before_week: date | None = None,
    ) -> list[ReportRecord]:
        ...


def normalize_ref(value: Any) -> int | None:
    """
    Reduce any entity reference shape (product, distributor) to an int id.

    Accepts int, numeric str, a mapping with "id"/"product_id", or an object
    exposing .id. Returns None for anything unrecognizable; callers treat
    None as an unknown product (zero availability).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        s = value.strip()
        return int(s) if s.isdigit() else None
    if isinstance(value, Mapping):
        for key in ("id", "product_id"):
            if key in value:
                return normalize_ref(value[key])
        return None
    return normalize_ref(getattr(value, "id", None))


def normalize_timestamp(value: datetime | str) -> datetime:
    """UTC-naive datetime from a naive/aware datetime or an ISO-8601 string."""
    if isinstance(value, str):
        return parse_iso_datetime(value)
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def normalize_week_key(value: date | datetime | str) -> date:
    """Monday of the week a stored cycle key falls in; time-of-day is dropped."""
    if isinstance(value, str):
        value = parse_iso_date(value)
    elif isinstance(value, datetime):
        value = normalize_timestamp(value)
    return anchor_for(value)


# =============================================================================
# SQL-backed sources
# =============================================================================

def order_to_record(order: Order) -> OrderRecord:
    return OrderRecord(
        id=order.id,
        distributor_id=order.distributor_id,
        status=order.status,
        created_at=normalize_timestamp(order.created_at),
        lines=tuple(
            OrderLineRecord(
                product_id=normalize_ref(line.product_id),
                quantity=int(line.quantity or 0),
                unit_price_cents=int(line.unit_price_cents or 0),
            )
            for line in order.lines
        ),
    )


def report_to_record(report: WeeklyReport) -> ReportRecord:
    return ReportRecord(
        id=report.id,
        distributor_id=report.distributor_id,
        week_start_date=normalize_week_key(report.week_start_date),
        status=report.status,
        lines=tuple(
            ReportLineRecord(
                product_id=normalize_ref(d.product_id),
                quantity_sold=int(d.quantity_sold or 0),
                quantity_damaged=int(d.quantity_damaged or 0),
                remaining_stock=int(d.remaining_stock or 0),
            )
            for d in report.details
        ),
    )


class SqlOrderSource:
    def list_orders(
        self,
        *,
        distributor_id: int,
        status: str | None = None,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> list[OrderRecord]:
        q = db.session.query(Order).filter(Order.distributor_id == distributor_id)
        if status is not None:
            q = q.filter(Order.status == status)
        if created_from is not None:
            q = q.filter(Order.created_at >= created_from)
        if created_before is not None:
            q = q.filter(Order.created_at < created_before)
        return [order_to_record(o) for o in q.order_by(Order.id.asc()).all()]


class SqlReportSource:
    def list_reports(
        self,
        *,
        distributor_id: int,
        statuses: Iterable[str] | None = None,
        week_start_date: date | None = None,
        before_week: date | None = None,
    ) -> list[ReportRecord]:
        q = db.session.query(WeeklyReport).filter(WeeklyReport.distributor_id == distributor_id)
        if statuses is not None:
            q = q.filter(WeeklyReport.status.in_(list(statuses)))
        if week_start_date is not None:
            q = q.filter(WeeklyReport.week_start_date == week_start_date)
        if before_week is not None:
            q = q.filter(WeeklyReport.week_start_date < before_week)
        return [report_to_record(r) for r in q.order_by(WeeklyReport.id.asc()).all()]


# =============================================================================
# In-memory sources (already-fetched collections)
# =============================================================================

class InMemoryOrderSource:
    def __init__(self, orders: Iterable[OrderRecord] = ()):
        self._orders = list(orders)

    @classmethod
    def from_payloads(cls, payloads: Iterable[Mapping[str, Any]]) -> "InMemoryOrderSource":
        """
        Build from loosely-shaped dicts (API responses, fixtures).

        Expected keys: id, distributor_id, status, created_at
        (datetime or ISO string),
        lines/items: [{product_id | product, quantity, unit_price_cents?}].
        """
        records = []
        for p in payloads:
            raw_lines = p.get("lines", p.get("items", ()))
            lines = tuple(
                OrderLineRecord(
                    product_id=normalize_ref(line.get("product_id", line.get("product"))),
                    quantity=int(line.get("quantity") or 0),
                    unit_price_cents=int(line.get("unit_price_cents") or 0),
                )
                for line in raw_lines
            )
            records.append(
                OrderRecord(
                    id=p["id"],
                    distributor_id=normalize_ref(p["distributor_id"]),
                    status=p["status"],
                    created_at=normalize_timestamp(p["created_at"]),
                    lines=lines,
                )
            )
        return cls(records)

    def list_orders(
        self,
        *,
        distributor_id: int,
        status: str | None = None,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> list[OrderRecord]:
        out = []
        for o in self._orders:
            if o.distributor_id != distributor_id:
                continue
            if status is not None and o.status != status:
                continue
            if created_from is not None and o.created_at < created_from:
                continue
            if created_before is not None and o.created_at >= created_before:
                continue
            out.append(o)
        return out


class InMemoryReportSource:
    def __init__(self, reports: Iterable[ReportRecord] = ()):
        self._reports = list(reports)

    @classmethod
    def from_payloads(cls, payloads: Iterable[Mapping[str, Any]]) -> "InMemoryReportSource":
        """
        Build from loosely-shaped dicts.

        Expected keys: id, distributor_id, week_start_date
        (date, datetime or ISO string), status,
        details: [{product_id | product, quantity_sold, quantity_damaged,
        remaining_stock}].
        """
        records = []
        for p in payloads:
            lines = tuple(
                ReportLineRecord(
                    product_id=normalize_ref(d.get("product_id", d.get("product"))),
                    quantity_sold=int(d.get("quantity_sold") or 0),
                    quantity_damaged=int(d.get("quantity_damaged") or 0),
                    remaining_stock=int(d.get("remaining_stock") or 0),
                )
                for d in p.get("details", ())
            )
            records.append(
                ReportRecord(
                    id=p["id"],
                    distributor_id=normalize_ref(p["distributor_id"]),
                    week_start_date=normalize_week_key(p["week_start_date"]),
                    status=p["status"],
                    lines=lines,
                )
            )
        return cls(records)

    def list_reports(
        self,
        *,
        distributor_id: int,
        statuses: Iterable[str] | None = None,
        week_start_date: date | None = None,
        before_week: date | None = None,
    ) -> list[ReportRecord]:
        wanted = set(statuses) if statuses is not None else None
        out = []
        for r in self._reports:
            if r.distributor_id != distributor_id:
                continue
            if wanted is not None and r.status not in wanted:
                continue
            if week_start_date is not None and r.week_start_date != week_start_date:
                continue
            if before_week is not None and not r.week_start_date < before_week:
                continue
            out.append(r)
        return out
