# Overview: Flask API routes for weekly stock reports; parses input and returns JSON responses.

# backend/stockcycle/routes/reports.py
"""
Weekly report routes.

Distributors draft against /availability, then submit or edit a PENDING
report; the server recomputes availability and clamps quantities on every
write. Admins approve or reject.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models.auth import ROLE_ADMIN, ROLE_DISTRIBUTOR, DISTRIBUTOR_GROUPS
from ..models.status import VALID_STATUSES
from ..services import report_service, summary_service
from ..services.report_service import (
    ReportError,
    ReportNotFoundError,
    ReportStateError,
    ReportPermissionError,
)
from ..validation import ValidationError, parse_report_entries, parse_decision_status
from ..decorators import require_auth, require_role
from stockcycle.time_utils import parse_iso_date, utcnow


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _notes(data: dict):
    notes = data.get("notes")
    if notes is None:
        return None
    if not isinstance(notes, str):
        raise ValidationError("notes must be a string")
    return notes.strip() or None


@reports_bp.get("/")
@require_auth
def list_reports_route():
    """
    List reports, newest cycle first.

    Query: status, week_start (any date inside the cycle), group (admin only)
    """
    status = request.args.get("status")
    if status is not None:
        status = status.strip().upper()
        if status not in VALID_STATUSES:
            return jsonify({"error": f"status must be one of {sorted(VALID_STATUSES)}"}), 400

    try:
        week_start = parse_iso_date(request.args.get("week_start"))
    except ValueError:
        return jsonify({"error": "week_start must be YYYY-MM-DD"}), 400

    if g.current_user.is_admin:
        distributor_id = request.args.get("distributor_id", type=int)
        group = request.args.get("group")
        if group is not None:
            group = group.strip().upper()
            if group not in DISTRIBUTOR_GROUPS:
                return jsonify({"error": f"group must be one of {sorted(DISTRIBUTOR_GROUPS)}"}), 400
    else:
        distributor_id = g.current_user.id
        group = None

    reports = report_service.list_reports(
        distributor_id=distributor_id,
        status=status,
        week_start=week_start,
        group=group,
    )
    return jsonify({"reports": [r.to_dict() for r in reports]}), 200


@reports_bp.get("/availability")
@require_auth
@require_role(ROLE_DISTRIBUTOR)
def availability_route():
    """
    Per-product availability for drafting a report.

    Query:
    - week_start: any date in the cycle (default: today)
    - exclude_report_id: the report being edited; its own quantities are
      not counted as already reported
    """
    try:
        reference = parse_iso_date(request.args.get("week_start")) or utcnow()
    except ValueError:
        return jsonify({"error": "week_start must be YYYY-MM-DD"}), 400

    exclude_report_id = request.args.get("exclude_report_id", type=int)

    try:
        overview = report_service.availability_overview(
            g.current_user.id, reference, excluding_report_id=exclude_report_id
        )
    except ReportNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ReportPermissionError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to compute availability")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(overview), 200


@reports_bp.get("/dashboard")
@require_auth
@require_role(ROLE_DISTRIBUTOR)
def dashboard_route():
    try:
        reference = parse_iso_date(request.args.get("week_start")) or utcnow()
    except ValueError:
        return jsonify({"error": "week_start must be YYYY-MM-DD"}), 400

    return jsonify(summary_service.distributor_dashboard(g.current_user.id, reference)), 200


@reports_bp.get("/<int:report_id>")
@require_auth
def get_report_route(report_id: int):
    try:
        report = report_service.get_report(report_id)
    except ReportNotFoundError as e:
        return jsonify({"error": str(e)}), 404

    if not g.current_user.is_admin and report.distributor_id != g.current_user.id:
        return jsonify({"error": "Not authorized"}), 403
    return jsonify({"report": report.to_dict()}), 200


@reports_bp.post("/")
@require_auth
@require_role(ROLE_DISTRIBUTOR)
def create_report_route():
    """
    Submit a weekly report.

    Body: {"entries": [{"product_id", "sold", "damaged"}], "notes", "week_start"}
    Without week_start the report is filed under the current cycle.
    """
    data = request.get_json(silent=True) or {}
    try:
        entries = parse_report_entries(data.get("entries"))
        notes = _notes(data)
        raw_week = data.get("week_start")
        if raw_week is not None and not isinstance(raw_week, str):
            raise ValidationError("week_start must be YYYY-MM-DD")
        week_start = parse_iso_date(raw_week)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValueError:
        return jsonify({"error": "week_start must be YYYY-MM-DD"}), 400

    try:
        report = report_service.create_report(
            g.current_user.id,
            entries,
            notes=notes,
            reference_time=utcnow(),
            week_start=week_start,
        )
    except ReportError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create report")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"report": report.to_dict()}), 201


@reports_bp.put("/<int:report_id>")
@require_auth
@require_role(ROLE_DISTRIBUTOR)
def update_report_route(report_id: int):
    data = request.get_json(silent=True) or {}
    try:
        entries = parse_report_entries(data.get("entries"))
        notes = _notes(data)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        report = report_service.update_report(report_id, g.current_user.id, entries, notes=notes)
    except ReportNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ReportPermissionError as e:
        return jsonify({"error": str(e)}), 403
    except ReportStateError as e:
        return jsonify({"error": str(e)}), 409
    except ReportError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to update report")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"report": report.to_dict()}), 200


@reports_bp.put("/<int:report_id>/status")
@require_auth
@require_role(ROLE_ADMIN)
def set_report_status_route(report_id: int):
    data = request.get_json(silent=True) or {}
    try:
        status = parse_decision_status(data.get("status"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        report = report_service.set_report_status(report_id, status, g.current_user.id)
    except ReportNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ReportStateError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update report status")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"report": report.to_dict()}), 200
