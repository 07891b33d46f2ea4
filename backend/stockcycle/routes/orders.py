# Overview: Flask API routes for distributor orders; parses input and returns JSON responses.

# backend/stockcycle/routes/orders.py
"""Order API routes with role enforcement"""

from datetime import datetime, time, timedelta

from flask import Blueprint, request, jsonify, g, current_app

from ..models.auth import ROLE_ADMIN, ROLE_DISTRIBUTOR, DISTRIBUTOR_GROUPS
from ..models.status import VALID_STATUSES
from ..services import order_service, summary_service
from ..services.order_service import (
    OrderError,
    OrderNotFoundError,
    OrderStateError,
    OrderPermissionError,
)
from ..validation import ValidationError, parse_order_items, parse_decision_status
from ..decorators import require_auth, require_role
from stockcycle.time_utils import parse_iso_date, utcnow


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _day_range(start_raw: str | None, end_raw: str | None):
    """Inclusive calendar-day filter -> half-open datetime bounds."""
    start = parse_iso_date(start_raw)
    end = parse_iso_date(end_raw)
    created_from = datetime.combine(start, time.min) if start else None
    created_before = datetime.combine(end + timedelta(days=1), time.min) if end else None
    return created_from, created_before


@orders_bp.get("/")
@require_auth
def list_orders_route():
    """
    List orders, newest first.

    Distributors only ever see their own orders. Admins may filter by
    distributor_id, status and an inclusive start/end date range.
    """
    status = request.args.get("status")
    if status is not None:
        status = status.strip().upper()
        if status not in VALID_STATUSES:
            return jsonify({"error": f"status must be one of {sorted(VALID_STATUSES)}"}), 400

    try:
        created_from, created_before = _day_range(request.args.get("start"), request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start/end must be YYYY-MM-DD"}), 400

    if g.current_user.is_admin:
        distributor_id = request.args.get("distributor_id", type=int)
    else:
        distributor_id = g.current_user.id

    orders = order_service.list_orders(
        distributor_id=distributor_id,
        status=status,
        created_from=created_from,
        created_before=created_before,
    )
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404

    if not g.current_user.is_admin and order.distributor_id != g.current_user.id:
        return jsonify({"error": "Not authorized"}), 403
    return jsonify({"order": order.to_dict()}), 200


@orders_bp.post("/")
@require_auth
@require_role(ROLE_DISTRIBUTOR)
def create_order_route():
    """
    Place a new PENDING order.

    Body: {"items": [{"product_id": 1, "quantity": 3}, ...]}
    """
    data = request.get_json(silent=True) or {}
    try:
        items = parse_order_items(data.get("items"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        order = order_service.create_order(g.current_user.id, items, created_at=utcnow())
    except OrderError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"order": order.to_dict()}), 201


@orders_bp.put("/<int:order_id>/status")
@require_auth
@require_role(ROLE_ADMIN)
def set_order_status_route(order_id: int):
    """Approve or reject a PENDING order. Approval consumes warehouse stock."""
    data = request.get_json(silent=True) or {}
    try:
        status = parse_decision_status(data.get("status"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        order = order_service.set_order_status(order_id, status, g.current_user.id)
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except OrderStateError as e:
        return jsonify({"error": str(e)}), 409
    except OrderError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"order": order.to_dict()}), 200


@orders_bp.put("/<int:order_id>/received")
@require_auth
def set_order_received_route(order_id: int):
    data = request.get_json(silent=True) or {}
    is_received = data.get("is_received")
    if not isinstance(is_received, bool):
        return jsonify({"error": "is_received must be a boolean"}), 400

    try:
        order = order_service.set_order_received(order_id, is_received, g.current_user)
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except OrderPermissionError as e:
        return jsonify({"error": str(e)}), 403
    except OrderStateError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update order received flag")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"order": order.to_dict()}), 200


@orders_bp.delete("/<int:order_id>")
@require_auth
def delete_order_route(order_id: int):
    try:
        restored = order_service.delete_order(order_id, g.current_user)
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except OrderPermissionError as e:
        return jsonify({"error": str(e)}), 403
    except OrderStateError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"success": True, "restored_units": restored}), 200


@orders_bp.get("/receiving-summary")
@require_auth
@require_role(ROLE_ADMIN)
def receiving_summary_route():
    """
    Receiving board for approved orders.

    Query: start, end (YYYY-MM-DD, inclusive; default today), group (optional)
    """
    today = utcnow().date()
    try:
        start = parse_iso_date(request.args.get("start")) or today
        end = parse_iso_date(request.args.get("end")) or today
    except ValueError:
        return jsonify({"error": "start/end must be YYYY-MM-DD"}), 400

    group = request.args.get("group")
    if group is not None:
        group = group.strip().upper()
        if group not in DISTRIBUTOR_GROUPS:
            return jsonify({"error": f"group must be one of {sorted(DISTRIBUTOR_GROUPS)}"}), 400

    summary = summary_service.receiving_summary(start, end, group=group)
    return jsonify(summary), 200
