from __future__ import annotations

from ..extensions import db
from innkeep.time_utils import to_utc_z, to_iso_date

class SaleReturn(db.Model):
    """
    Return processed against a sale.

    Returns are completed in one step: header, lines and restock are
    written in the same transaction. The refund is metadata only; the
    payment ledger of the original sale is not modified.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "sale_returns"
    __table_args__ = (
        db.Index("ix_sale_returns_sale_created", "sale_id", "created_at"),
        db.CheckConstraint("refund_cents >= 0", name="ck_sale_returns_refund_non_negative"),
        db.CheckConstraint("refund_cents <= computed_total_cents", name="ck_sale_returns_refund_capped"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    # Business date of the return
    return_date = db.Column(db.Date, nullable=False, index=True)

    refund_method = db.Column(db.String(32), nullable=True)
    refund_cents = db.Column(db.Integer, nullable=False, default=0)
    # Sum of returned line totals at sale prices (upper bound for the refund)
    computed_total_cents = db.Column(db.Integer, nullable=False, default=0)

    note = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "return_date": to_iso_date(self.return_date),
            "refund_method": self.refund_method,
            "refund_cents": self.refund_cents,
            "computed_total_cents": self.computed_total_cents,
            "note": self.note,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class SaleReturnLine(db.Model):
    """
    Returned quantity of one sale line.

    Sum of quantity per sale_line_item_id never exceeds the sold quantity.
    unit_price_cents is copied from the sale line, not the catalog.
    """
    __tablename__ = "sale_return_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_return_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("sale_returns.id"), nullable=False, index=True)
    sale_line_item_id = db.Column(db.Integer, db.ForeignKey("sale_line_items.id"), nullable=False, index=True)
    catalog_item_id = db.Column(db.Integer, db.ForeignKey("catalog_items.id"), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    # True when the returned units went back into tracked stock
    restocked = db.Column(db.Boolean, nullable=False, default=False)
    note = db.Column(db.String(255), nullable=True)

    sale_return = db.relationship("SaleReturn", backref=db.backref("lines", lazy=True, order_by="SaleReturnLine.id"))
    sale_line_item = db.relationship("SaleLineItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "sale_line_item_id": self.sale_line_item_id,
            "catalog_item_id": self.catalog_item_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "restocked": self.restocked,
            "note": self.note,
        }
