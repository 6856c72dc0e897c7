# Overview: Product availability gate; the only writer of stock state.

from __future__ import annotations

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Product
from ..models.inventory import STOCK_IN, STOCK_OUT
from .concurrency import conditional_update


def ensure_available(product_id: int) -> Product:
    """
    Read-side precheck so a sale fails fast before any ledger write.

    Not a guarantee: mark_sold is what actually arbitrates between
    concurrent sales.
    """
    product = db.session.get(Product, product_id, populate_existing=True)
    if not product:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    if product.stock_status == STOCK_OUT:
        raise ConflictError("Product is already sold", details={"product_id": product_id})
    return product


def mark_sold(product_id: int) -> None:
    """
    Atomically flip a product from available to sold and hidden.

    Single conditional UPDATE guarded by stock_status = IN_STOCK; of two
    concurrent callers exactly one matches the row, the other gets
    ConflictError. Does not commit: the caller's transaction also holds the
    ledger rows, so both land together or not at all.
    """
    matched = conditional_update(
        db.session.query(Product).filter(
            Product.id == product_id,
            Product.stock_status == STOCK_IN,
        ),
        {
            Product.stock_status: STOCK_OUT,
            Product.is_online: False,
            Product.version_id: Product.version_id + 1,
        },
    )

    if matched == 1:
        return

    exists = db.session.query(Product.id).filter(Product.id == product_id).first()
    if not exists:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    raise ConflictError("Product is already sold", details={"product_id": product_id})
