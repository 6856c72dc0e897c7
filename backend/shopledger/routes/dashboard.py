# Overview: Flask API routes for the owner dashboard; read-only aggregates.

from flask import Blueprint, request, jsonify, current_app

from ..errors import ServiceError
from ..models.auth import ROLE_OWNER
from ..services import reporting_service
from ..decorators import require_auth, require_role


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
@require_role(ROLE_OWNER)
def stats_route():
    """Revenue, expenses, sales count and net profit. ?filter=today|week|month|all (default week)."""
    try:
        stats = reporting_service.stats_summary(request.args.get("filter", "week"))
        return jsonify(stats), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute dashboard stats")
        return jsonify({"error": "Internal server error"}), 500


@dashboard_bp.get("/sales-chart")
@require_auth
@require_role(ROLE_OWNER)
def sales_chart_route():
    """Seven entries, oldest day first, today last."""
    try:
        return jsonify(reporting_service.weekly_sales()), 200
    except Exception:
        current_app.logger.exception("Failed to compute sales chart")
        return jsonify({"error": "Internal server error"}), 500


@dashboard_bp.get("/category-chart")
@require_auth
@require_role(ROLE_OWNER)
def category_chart_route():
    """?filter=today|week|month|all (default month), ?metric=count|amount (default count)."""
    try:
        data = reporting_service.category_distribution(
            request.args.get("filter", "month"),
            metric=request.args.get("metric", "count"),
        )
        return jsonify(data), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute category chart")
        return jsonify({"error": "Internal server error"}), 500
