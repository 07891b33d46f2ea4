from __future__ import annotations

from ..extensions import db
from stockcycle.time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog product with a warehouse stock counter.

    STOCK SEMANTICS:
    - stock is the central warehouse count, authoritative only at order
      approval time (approval decrements it, deleting an approved order
      restores it).
    - Distributor-side stock is never stored here; it is re-derived from the
      order and report history by the reconciliation engine.

    PRICE SEMANTICS:
    - price_cents is the current catalog price. Orders snapshot it per line at
      creation; reports price revenue from the catalog at submission time.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_name", "category", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)

    category = db.Column(db.String(64), nullable=True)
    image_url = db.Column(db.String(512), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "category": self.category,
            "image_url": self.image_url,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
