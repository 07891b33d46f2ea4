# Overview: Flask API routes for authentication; parses input and returns JSON responses.

# backend/stockcycle/routes/auth.py
"""Registration, login/logout, current-user and impersonation routes."""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service, session_service
from ..services.auth_service import AuthError, PasswordValidationError, UserNotFoundError
from ..models.auth import ROLE_ADMIN, ROLE_DISTRIBUTOR
from ..decorators import require_auth, require_role


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Distributor self-registration.

    Administrators are created from the CLI (flask users create --role ADMIN).
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            username=data.get("username", ""),
            password=data.get("password", ""),
            name=data.get("name", ""),
            role=ROLE_DISTRIBUTOR,
            group=data.get("group") or "NEW",
        )
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict()}), 201


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.authenticate(data.get("username", ""), data.get("password", ""))
        _, token = session_service.create_session(user.id)
    except AuthError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"token": token, "user": user.to_dict()}), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.session_token)
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"success": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.post("/impersonate/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def impersonate_route(user_id: int):
    """
    Issue a session for another user so an administrator can act as them.

    The response has the same shape as login.
    """
    try:
        target = auth_service.get_user(user_id)
        _, token = session_service.create_session(target.id)
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to impersonate user")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info(
        "Admin %s started a session as user %s (%s)", g.current_user.id, target.id, target.username
    )
    return jsonify({"token": token, "user": target.to_dict()}), 200
