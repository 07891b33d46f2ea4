# Overview: Clamps entered sold/damaged quantities against availability and builds report lines.

"""
Report Finalizer

Clamp order matters: sold is bounded first, damaged gets whatever is left.

    sold'     = min(sold, available)
    damaged'  = min(damaged, available - sold')
    remaining = available - sold' - damaged'
    revenue   = sold' * unit_price

so sold' + damaged' + remaining == available, and remaining >= 0.

Every catalog product gets a detail line, including ones the distributor did
not touch. The next cycle's carry-over is read from these lines, so an
omitted product would silently lose its remaining stock.

Nothing here can fail: negative or missing inputs become zero. Entries for
products outside the catalog are dropped and listed in
FinalizedReport.unknown_product_ids so the caller can warn about them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Protocol

from .reconciliation_service import Availability, ZERO_AVAILABILITY


class PricedProduct(Protocol):
    id: int
    name: str
    price_cents: int


@dataclass(frozen=True)
class ReportEntry:
    sold: int = 0
    damaged: int = 0

    @classmethod
    def from_raw(cls, raw: Any) -> "ReportEntry":
        if isinstance(raw, ReportEntry):
            return cls(sold=non_negative(raw.sold), damaged=non_negative(raw.damaged))
        if isinstance(raw, Mapping):
            return cls(sold=non_negative(raw.get("sold")), damaged=non_negative(raw.get("damaged")))
        return cls()


@dataclass(frozen=True)
class FinalizedDetail:
    product_id: int
    product_name: str
    quantity_received: int
    quantity_sold: int
    quantity_damaged: int
    revenue_cents: int
    remaining_stock: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity_received": self.quantity_received,
            "quantity_sold": self.quantity_sold,
            "quantity_damaged": self.quantity_damaged,
            "revenue_cents": self.revenue_cents,
            "remaining_stock": self.remaining_stock,
        }


@dataclass(frozen=True)
class FinalizedReport:
    details: tuple[FinalizedDetail, ...]
    total_revenue_cents: int
    total_sold: int
    total_damaged: int
    unknown_product_ids: tuple[int, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "details": [d.to_dict() for d in self.details],
            "total_revenue_cents": self.total_revenue_cents,
            "total_sold": self.total_sold,
            "total_damaged": self.total_damaged,
            "unknown_product_ids": list(self.unknown_product_ids),
        }


def non_negative(value: Any) -> int:
    """Input-boundary normalization: None, junk and negatives become 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        n = int(value)
    except (TypeError, ValueError):
        return 0
    return n if n > 0 else 0


def clamp_quantities(sold: int, damaged: int, available: int) -> tuple[int, int, int]:
    """Returns (sold', damaged', remaining)."""
    available = non_negative(available)
    sold_c = min(non_negative(sold), available)
    damaged_c = min(non_negative(damaged), available - sold_c)
    return sold_c, damaged_c, available - sold_c - damaged_c


def finalize_report(
    entries: Mapping[int, Any],
    availabilities: Mapping[int, Availability],
    products: Iterable[PricedProduct],
) -> FinalizedReport:
    details = []
    seen: set[int] = set()

    for product in products:
        seen.add(product.id)
        entry = ReportEntry.from_raw(entries.get(product.id))
        avail = availabilities.get(product.id, ZERO_AVAILABILITY)

        sold, damaged, remaining = clamp_quantities(entry.sold, entry.damaged, avail.available)
        details.append(
            FinalizedDetail(
                product_id=product.id,
                product_name=product.name,
                quantity_received=avail.available,
                quantity_sold=sold,
                quantity_damaged=damaged,
                revenue_cents=sold * non_negative(product.price_cents),
                remaining_stock=remaining,
            )
        )

    unknown = tuple(sorted(pid for pid in entries if pid not in seen))

    return FinalizedReport(
        details=tuple(details),
        total_revenue_cents=sum(d.revenue_cents for d in details),
        total_sold=sum(d.quantity_sold for d in details),
        total_damaged=sum(d.quantity_damaged for d in details),
        unknown_product_ids=unknown,
    )
