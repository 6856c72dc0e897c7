# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/shopledger/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- OWNER login with email + password, STAFF login with staff code + PIN
- Opaque bearer session tokens (hash stored server-side)
- Logout revokes the presented token
- Staff accounts are created by an owner only
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import ServiceError
from ..models.auth import ROLE_OWNER
from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth, require_role


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body (one of):
    { "email": "owner@shop.test", "password": "..." }
    { "staff_code": "S-01", "pin": "1234" }

    Token must be sent as "Authorization: Bearer <token>" on protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        staff_code = data.get("staff_code")
        secret = data.get("password") if email else data.get("pin")

        if not (email or staff_code) or not secret:
            return jsonify({"error": "email and password, or staff_code and pin, required"}), 400

        user = auth_service.authenticate(email=email, staff_code=staff_code, secret=secret)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.session_token, reason="User logout")
        return jsonify({"message": "Logout successful"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.post("/register-staff")
@require_auth
@require_role(ROLE_OWNER)
def register_staff_route():
    """
    Create a STAFF account.

    Request body:
    { "name": "Asha", "staff_code": "S-01", "pin": "1234" }

    Returns:
        201: Staff user created
        400: Invalid input or weak PIN
        409: Staff code already exists
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.register_staff(
            name=data.get("name"),
            staff_code=data.get("staff_code"),
            pin=data.get("pin"),
        )
        current_app.logger.info("Staff registered: user=%s by owner=%s", user.id, g.current_user.id)
        return jsonify({"user": user.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register staff")
        return jsonify({"error": "Internal server error"}), 500
