# Overview: Flask API routes for the admin user directory; returns JSON responses.

# backend/stockcycle/routes/users.py
"""Administrator-only listing of distributor accounts."""

from flask import Blueprint, request, jsonify

from ..models.auth import ROLE_ADMIN, DISTRIBUTOR_GROUPS
from ..services import auth_service
from ..decorators import require_auth, require_role


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/distributors")
@require_auth
@require_role(ROLE_ADMIN)
def list_distributors_route():
    """
    List distributors with name and group.

    Query: group (optional, GOLD / SILVER / NEW)
    """
    group = request.args.get("group")
    if group is not None:
        group = group.strip().upper()
        if group not in DISTRIBUTOR_GROUPS:
            return jsonify({"error": f"group must be one of {sorted(DISTRIBUTOR_GROUPS)}"}), 400

    distributors = auth_service.list_distributors(group=group)
    return jsonify({"distributors": [u.to_dict() for u in distributors]}), 200
