from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

STOCK_IN = "IN_STOCK"
STOCK_OUT = "OUT_OF_STOCK"

CATEGORIES = {"Men", "Women", "Kids"}
MAX_PRODUCT_IMAGES = 5


class Product(db.Model):
    """
    Catalog item. Each product is a single sellable piece: it is either
    IN_STOCK or OUT_OF_STOCK, nothing in between.

    INVARIANT: stock_status == OUT_OF_STOCK implies is_online is False. Both
    columns only change together, through availability_service.mark_sold.

    Transactions keep their own snapshot of name/category/image, so deleting a
    product never rewrites sales history.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_online_category", "is_online", "category"),
        db.Index("ix_products_name", "name"),
        db.CheckConstraint("price_cents >= 0", name="price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    category = db.Column(db.String(16), nullable=False, index=True)
    sub_category = db.Column(db.String(64), nullable=False, index=True)

    # List of {"url": ..., "public_id": ...} pairs already uploaded to object storage
    images = db.Column(db.JSON, nullable=False, default=list)

    stock_status = db.Column(db.String(16), nullable=False, default=STOCK_IN)
    is_online = db.Column(db.Boolean, nullable=False, default=True)
    is_new_arrival = db.Column(db.Boolean, nullable=False, default=True)
    is_best_seller = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def primary_image_url(self) -> str:
        if self.images:
            return self.images[0].get("url") or ""
        return ""

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "category": self.category,
            "sub_category": self.sub_category,
            "images": list(self.images or []),
            "stock_status": self.stock_status,
            "is_online": self.is_online,
            "is_new_arrival": self.is_new_arrival,
            "is_best_seller": self.is_best_seller,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_card_dict(self) -> dict:
        """Fields the public catalog cards need."""
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "images": list(self.images or []),
            "category": self.category,
            "sub_category": self.sub_category,
            "is_new_arrival": self.is_new_arrival,
            "is_best_seller": self.is_best_seller,
        }
