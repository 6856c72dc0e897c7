# Overview: Flask API routes for sales, expenses and transaction history.

# backend/shopledger/routes/transactions.py
"""
Transaction API Routes

DESIGN:
- Recording a sale is one atomic unit: ledger rows + product marked sold
- Split payments (CASH/ONLINE/DUES) via payment_methods
- Expenses are always fully paid
- History is newest first with payment records attached

SECURITY:
- OWNER or STAFF for every route
- The acting user is always taken from the session, never from the body
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import ServiceError
from ..models.auth import ROLE_OWNER, ROLE_STAFF
from ..services import ledger_service, reporting_service, sales_service
from ..decorators import require_auth, require_role


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.post("/sale")
@require_auth
@require_role(ROLE_OWNER, ROLE_STAFF)
def record_sale_route():
    """
    Record a sale.

    Single method:
    {
        "product_id": 12,
        "price_cents": 100000,           (optional, defaults to listed price)
        "amount_paid_cents": 40000,      (optional, defaults to full price)
        "payment_method": "CASH",        (CASH | ONLINE)
        "customer": {"name": "Ravi", "phone_number": "9876543210"},
        "due_date": "2026-11-01"         (required when anything is left due)
    }

    Split:
    {
        "product_id": 12,
        "price_cents": 50000,
        "payment_methods": [
            {"method": "CASH", "amount_cents": 20000},
            {"method": "DUES", "amount_cents": 30000,
             "dues_details": {"name": "Ravi", "phone_number": "9876543210", "due_date": "2026-11-01"}}
        ]
    }

    Returns:
        201: Transaction with payment records
        400: Invalid amounts, method or customer details
        404: Product not found
        409: Product already sold
        500: Ledger consistency failure
    """
    try:
        txn = sales_service.record_sale(request.get_json(silent=True), staff_id=g.current_user.id)
        return jsonify({"transaction": txn.to_dict(), "message": "Sale recorded successfully"}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/expense")
@require_auth
@require_role(ROLE_OWNER, ROLE_STAFF)
def record_expense_route():
    """
    Request body:
    { "amount_cents": 5000, "description": "Tea and snacks" }
    """
    try:
        txn = sales_service.record_expense(request.get_json(silent=True), staff_id=g.current_user.id)
        return jsonify({"transaction": txn.to_dict(), "message": "Expense recorded successfully"}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record expense")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/history")
@require_auth
@require_role(ROLE_OWNER, ROLE_STAFF)
def history_route():
    """
    Query params:
    - page, limit
    - filter: today | week | month | all (default: all)
    - type: SALE | EXPENSE (optional)
    """
    try:
        filter_name = request.args.get("filter", "all")
        since = None
        if filter_name.strip().lower() != reporting_service.FILTER_ALL:
            since = reporting_service.window_start(filter_name)

        result = ledger_service.list_transactions(
            since=since,
            txn_type=request.args.get("type"),
            page=request.args.get("page"),
            limit=request.args.get("limit", current_app.config["DEFAULT_PAGE_SIZE"]),
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to fetch transaction history")
        return jsonify({"error": "Internal server error"}), 500
