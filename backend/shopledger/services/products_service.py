# backend/shopledger/services/products_service.py
"""
Product catalog service.

Public listing only ever shows products with is_online=True, which excludes
everything already sold. Stock state itself is not editable here; it moves
only through availability_service.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from ..models.inventory import CATEGORIES, MAX_PRODUCT_IMAGES, STOCK_IN
from ..validation import (
    coerce_cents,
    contains_pattern,
    normalize_pagination,
    optional_text,
    require_choice,
    require_text,
)
from . import image_service

SORT_OPTIONS = {
    "newest": (Product.created_at.desc(), Product.id.desc()),
    "price_low": (Product.price_cents.asc(), Product.id.asc()),
    "price_high": (Product.price_cents.desc(), Product.id.desc()),
    "bestseller": (Product.is_best_seller.desc(), Product.created_at.desc()),
}


def _validate_images(images) -> list[dict]:
    if not isinstance(images, list) or not images:
        raise ValidationError("At least one image is required")
    if len(images) > MAX_PRODUCT_IMAGES:
        raise ValidationError(f"images exceeds the limit of {MAX_PRODUCT_IMAGES} images")

    cleaned = []
    for image in images:
        if not isinstance(image, dict):
            raise ValidationError("Each image must be an object with url and public_id")
        cleaned.append({
            "url": require_text(image.get("url"), "images.url", max_length=1024),
            "public_id": require_text(image.get("public_id"), "images.public_id"),
        })
    return cleaned


def create_product(data: dict) -> Product:
    """Create an IN_STOCK, visible product from a request payload."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    category = str(data.get("category") or "").strip()
    if category not in CATEGORIES:
        raise ValidationError(
            f"Invalid category: {category or None}. Must be one of {sorted(CATEGORIES)}",
            details={"field": "category", "allowed": sorted(CATEGORIES)},
        )

    product = Product(
        name=require_text(data.get("name"), "name"),
        description=optional_text(data.get("description"), "description", max_length=4000),
        price_cents=coerce_cents(data.get("price_cents"), "price_cents"),
        category=category,
        sub_category=require_text(data.get("sub_category"), "sub_category", max_length=64).lower(),
        images=_validate_images(data.get("images")),
        stock_status=STOCK_IN,
        is_online=True,
        is_new_arrival=bool(data.get("is_new_arrival", True)),
        is_best_seller=bool(data.get("is_best_seller", False)),
    )
    db.session.add(product)
    db.session.commit()
    return product


def validate_category_filter(category: str | None) -> str | None:
    if not category:
        return None
    return require_choice(category, "category", {c.upper() for c in CATEGORIES}).title()


def get_product(product_id: int, *, visible_only: bool = False) -> Product:
    product = db.session.get(Product, product_id)
    if not product or (visible_only and not product.is_online):
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def list_products(
    *,
    page=None,
    limit=None,
    search: str | None = None,
    category: str | None = None,
    sub_category: str | None = None,
    min_price_cents=None,
    max_price_cents=None,
    sort: str = "newest",
    max_limit: int = 100,
) -> dict:
    """
    Public catalog search. Visible (is_online) products only.

    Returns {"products": [...], "pagination": {page, limit, total, has_next_page}}.
    """
    page, limit = normalize_pagination(page, limit, max_limit=max_limit)

    sort_key = (sort or "newest").strip().lower()
    if sort_key not in SORT_OPTIONS:
        raise ValidationError(f"sort must be one of {sorted(SORT_OPTIONS)}")

    query = db.session.query(Product).filter(Product.is_online.is_(True))

    if search:
        pattern = contains_pattern(search.strip())
        query = query.filter(or_(
            Product.name.ilike(pattern, escape="\\"),
            Product.description.ilike(pattern, escape="\\"),
            Product.sub_category.ilike(pattern, escape="\\"),
        ))

    if category:
        query = query.filter(Product.category == validate_category_filter(category))
    if sub_category:
        query = query.filter(Product.sub_category == sub_category.strip().lower())

    if min_price_cents is not None:
        query = query.filter(Product.price_cents >= coerce_cents(min_price_cents, "min_price_cents"))
    if max_price_cents is not None:
        query = query.filter(Product.price_cents <= coerce_cents(max_price_cents, "max_price_cents"))

    total = query.count()
    products = (
        query.order_by(*SORT_OPTIONS[sort_key])
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "products": [p.to_card_dict() for p in products],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "has_next_page": (page - 1) * limit + len(products) < total,
        },
    }


def delete_product(product_id: int) -> dict:
    """
    Delete a product. Sales history is unaffected: transactions carry their
    own snapshot and only a plain product_id reference.

    The product's images are then removed from object storage. An image the
    storage provider could not delete is reported in orphaned_image_ids; the
    product row is gone either way.
    """
    product = get_product(product_id)
    public_ids = [image.get("public_id") for image in (product.images or []) if image.get("public_id")]
    db.session.delete(product)
    db.session.commit()

    deleted, orphaned = [], []
    for public_id in public_ids:
        if image_service.delete_image(public_id):
            deleted.append(public_id)
        else:
            orphaned.append(public_id)

    return {
        "deleted_product_id": product_id,
        "deleted_image_ids": deleted,
        "orphaned_image_ids": orphaned,
    }
