from __future__ import annotations

from ..extensions import db
from innkeep.time_utils import to_utc_z

class Sale(db.Model):
    """
    Sale header.

    total_cents is fixed when the line items are written and never edited.
    `paid` / `paid_at` are derived by the payment ledger: paid flips once,
    when the sum of payments reaches the total, and paid_at is never
    overwritten afterwards.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_paid_paid_at", "paid", "paid_at"),
        db.Index("ix_sales_customer_created", "customer_id", "created_at"),
        db.CheckConstraint("total_cents >= 0", name="ck_sales_total_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_by = db.Column(db.Integer, nullable=True)

    total_cents = db.Column(db.Integer, nullable=False, default=0)

    paid = db.Column(db.Boolean, nullable=False, default=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    note = db.Column(db.String(255), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "total_cents": self.total_cents,
            "paid": self.paid,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "note": self.note,
            "version_id": self.version_id,
        }

class SaleLineItem(db.Model):
    """
    Line item on a sale.

    SNAPSHOT: name and unit_price_cents are copied at sale time. There is no
    relationship to CatalogItem pricing; later catalog edits never change a
    historical sale. Rows are immutable once written.
    """
    __tablename__ = "sale_line_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_line_items_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_sale_line_items_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    # Nullable: ad-hoc lines (room service, custom charge) have no catalog entry
    catalog_item_id = db.Column(db.Integer, db.ForeignKey("catalog_items.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", backref=db.backref("lines", lazy=True, order_by="SaleLineItem.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "catalog_item_id": self.catalog_item_id,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
        }

class Payment(db.Model):
    """
    Payment recorded against a sale.

    Append-only: payments are never edited or deleted. Split and partial
    payments are separate rows; their sum never exceeds the sale total.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_sale_created", "sale_id", "created_at"),
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=False, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True, order_by="Payment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "note": self.note,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
