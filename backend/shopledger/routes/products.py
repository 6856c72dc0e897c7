# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/shopledger/routes/products.py
from flask import Blueprint, request, jsonify, current_app

from ..errors import ServiceError
from ..models.auth import ROLE_OWNER, ROLE_STAFF
from ..services import products_service
from ..decorators import require_auth, require_role

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    Public catalog listing (visible products only).

    Query params: page, limit, search, category, sub_category,
    min_price_cents, max_price_cents, sort (newest|price_low|price_high|bestseller)
    """
    try:
        args = request.args
        result = products_service.list_products(
            page=args.get("page"),
            limit=args.get("limit", current_app.config["DEFAULT_PAGE_SIZE"]),
            search=args.get("search"),
            category=args.get("category"),
            sub_category=args.get("sub_category"),
            min_price_cents=args.get("min_price_cents"),
            max_price_cents=args.get("max_price_cents"),
            sort=args.get("sort", "newest"),
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id, visible_only=True)
        return jsonify({"product": product.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
@require_auth
@require_role(ROLE_OWNER, ROLE_STAFF)
def create_product_route():
    """
    Create a product.

    Request body:
    {
        "name": "Linen shirt",
        "price_cents": 149900,
        "category": "Men",
        "sub_category": "shirts",
        "images": [{"url": "https://...", "public_id": "shop-products/abc"}],
        "description": "...",        (optional)
        "is_new_arrival": true,      (optional)
        "is_best_seller": false      (optional)
    }
    """
    try:
        product = products_service.create_product(request.get_json(silent=True))
        current_app.logger.info("Product created: product=%s", product.id)
        return jsonify({"product": product.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_OWNER, ROLE_STAFF)
def delete_product_route(product_id: int):
    try:
        result = products_service.delete_product(product_id)
        current_app.logger.info(
            "Product deleted: product=%s images_deleted=%s orphaned_images=%s",
            product_id, len(result["deleted_image_ids"]), result["orphaned_image_ids"],
        )
        return jsonify(result), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
