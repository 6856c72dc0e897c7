# Overview: Flask API route issuing signed direct-upload credentials.

from flask import Blueprint, jsonify, current_app

from ..errors import ServiceError
from ..services import image_service
from ..decorators import require_auth


images_bp = Blueprint("images", __name__, url_prefix="/api/images")


@images_bp.get("/sign-upload")
@require_auth
def sign_upload_route():
    try:
        return jsonify(image_service.sign_upload()), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to sign upload")
        return jsonify({"error": "Internal server error"}), 500
