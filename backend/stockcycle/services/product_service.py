# Overview: Service-layer operations for the product catalog.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product


class ProductNotFoundError(Exception):
    """Raised when a product id does not exist."""
    pass


def list_products() -> list[Product]:
    return db.session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")
    return product


def create_product(
    *,
    name: str,
    price_cents: int,
    stock: int = 0,
    category: str | None = None,
    image_url: str | None = None,
) -> Product:
    product = Product(
        name=name,
        price_cents=price_cents,
        stock=stock,
        category=category,
        image_url=image_url,
    )
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, patch: dict) -> Product:
    """
    Apply a validated patch (see validation.validate_payload).

    Price changes never reprice existing orders or reports; lines keep the
    price they were created with.
    """
    product = get_product(product_id)
    for key, value in patch.items():
        setattr(product, key, value)
    db.session.commit()
    return product


def delete_product(product_id: int) -> None:
    """
    Remove a product from the catalog.

    Order lines and report details keep their snapshot (id and name). New
    report submissions no longer get a line for it, so entries naming it are
    dropped as zero availability.
    """
    product = get_product(product_id)
    name = product.name
    db.session.delete(product)
    db.session.commit()
    current_app.logger.info("Deleted product %s (%s)", product_id, name)
