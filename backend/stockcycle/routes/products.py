# backend/stockcycle/routes/products.py
"""
Product catalog routes.

- Any authenticated user may list and view products.
- Create / update / delete are administrator-only.
"""
from flask import Blueprint, request, jsonify, current_app

from ..models import Product
from ..models.auth import ROLE_ADMIN
from ..services import product_service
from ..services.product_service import ProductNotFoundError
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, enforce_rules_product
from ..decorators import require_auth, require_role


products_bp = Blueprint("products", __name__, url_prefix="/api/products")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "price_cents", "stock", "category", "image_url"},
    required_on_create={"name", "price_cents"},
)


@products_bp.get("/")
@require_auth
def list_products_route():
    products = product_service.list_products()
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = product_service.get_product(product_id)
    except ProductNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"product": product.to_dict()}), 200


@products_bp.post("/")
@require_auth
@require_role(ROLE_ADMIN)
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        product = product_service.create_product(**patch)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"product": product.to_dict()}), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        product = product_service.update_product(product_id, patch)
    except ProductNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"product": product.to_dict()}), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_product_route(product_id: int):
    try:
        product_service.delete_product(product_id)
    except ProductNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"success": True}), 200
