from __future__ import annotations

from ..extensions import db
from innkeep.time_utils import to_utc_z

class CatalogItem(db.Model):
    """
    Sellable item (menu item, product, service).

    PRICING: price_cents is the *current* price. Sales never read it after
    placement; SaleLineItem keeps its own snapshot.

    STOCK: stock_quantity is only meaningful when track_stock is True.
    It changes through orders (decrement), returns and purchases (increment)
    and manual adjustments, never through a plain field update.
    """
    __tablename__ = "catalog_items"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_catalog_items_name"),
        db.Index("ix_catalog_items_active_tracked", "is_active", "track_stock"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_catalog_items_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents (display formatting happens elsewhere)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    track_stock = db.Column(db.Boolean, nullable=False, default=False)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<CatalogItem id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "track_stock": self.track_stock,
            "stock_quantity": self.stock_quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockAdjustment(db.Model):
    """Manual stock correction (count fix, breakage, spoilage). Append-only."""
    __tablename__ = "stock_adjustments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    catalog_item_id = db.Column(db.Integer, db.ForeignKey("catalog_items.id"), nullable=False, index=True)

    quantity_delta = db.Column(db.Integer, nullable=False)
    resulting_quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    catalog_item = db.relationship("CatalogItem", backref=db.backref("adjustments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "catalog_item_id": self.catalog_item_id,
            "quantity_delta": self.quantity_delta,
            "resulting_quantity": self.resulting_quantity,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }
