# Overview: Flask API routes for dues operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import ServiceError, ValidationError
from ..models.auth import ROLE_OWNER, ROLE_STAFF
from ..services import dues_service
from ..time_utils import parse_iso_datetime
from ..decorators import require_auth, require_role


dues_bp = Blueprint("dues", __name__, url_prefix="/api/dues")


def _parse_range_arg(name: str):
    value = request.args.get(name)
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


@dues_bp.get("")
@require_auth
@require_role(ROLE_OWNER, ROLE_STAFF)
def list_dues_route():
    """Query params: page, limit, search_term (customer name or phone)."""
    try:
        result = dues_service.list_dues(
            search_term=request.args.get("search_term"),
            page=request.args.get("page"),
            limit=request.args.get("limit", current_app.config["DEFAULT_PAGE_SIZE"]),
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list dues")
        return jsonify({"error": "Internal server error"}), 500


@dues_bp.get("/statistics")
@require_auth
@require_role(ROLE_OWNER, ROLE_STAFF)
def due_statistics_route():
    """Query params: start_date, end_date (ISO-8601, both optional, inclusive)."""
    try:
        stats = dues_service.due_statistics(
            start=_parse_range_arg("start_date"),
            end=_parse_range_arg("end_date"),
        )
        return jsonify(stats), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute dues statistics")
        return jsonify({"error": "Internal server error"}), 500


@dues_bp.get("/overdue")
@require_auth
@require_role(ROLE_OWNER, ROLE_STAFF)
def overdue_dues_route():
    try:
        result = dues_service.list_overdue(
            page=request.args.get("page"),
            limit=request.args.get("limit", current_app.config["DEFAULT_PAGE_SIZE"]),
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list overdue dues")
        return jsonify({"error": "Internal server error"}), 500


@dues_bp.get("/<int:transaction_id>")
@require_auth
@require_role(ROLE_OWNER, ROLE_STAFF)
def get_due_route(transaction_id: int):
    try:
        txn = dues_service.get_due(transaction_id)
        return jsonify({"due": txn.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get due")
        return jsonify({"error": "Internal server error"}), 500


@dues_bp.post("/<int:transaction_id>/collect")
@require_auth
@require_role(ROLE_OWNER, ROLE_STAFF)
def collect_due_route(transaction_id: int):
    """
    Collect a payment against an open due.

    Request body:
    { "amount_cents": 60000, "payment_method": "CASH" }   (CASH | ONLINE)

    Returns:
        200: Updated transaction
        400: Invalid amount/method, or amount above the remaining due
        404: Transaction not found
        409: Transaction has no pending dues
    """
    try:
        data = request.get_json(silent=True) or {}
        txn = dues_service.collect_payment(
            transaction_id,
            data.get("amount_cents"),
            data.get("payment_method"),
            user_id=g.current_user.id,
        )
        return jsonify({"transaction": txn.to_dict(), "message": "Due payment collected successfully"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to collect due payment")
        return jsonify({"error": "Internal server error"}), 500


@dues_bp.patch("/<int:transaction_id>/customer-details")
@require_auth
@require_role(ROLE_OWNER, ROLE_STAFF)
def update_due_details_route(transaction_id: int):
    """Request body: any of { "name", "phone_number", "due_date" }."""
    try:
        txn = dues_service.update_due_details(transaction_id, request.get_json(silent=True))
        return jsonify({"transaction": txn.to_dict(), "message": "Customer details updated successfully"}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update due details")
        return jsonify({"error": "Internal server error"}), 500
