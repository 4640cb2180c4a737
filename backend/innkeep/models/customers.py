from __future__ import annotations

from ..extensions import db
from innkeep.time_utils import to_utc_z, to_iso_date


CUSTOMER_STATUS_ACTIVE = "active"
CUSTOMER_STATUS_CHECKED_OUT = "checked_out"


class Customer(db.Model):
    """
    Customer (guest / client) record.

    LIFECYCLE:
    - active: may place orders, may hold a resource
    - checked_out: settled; resource released, no further orders

    Walk-in retail customers simply have no resource.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_status_name", "status", "name"),
        db.CheckConstraint("loyalty_points >= 0", name="ck_customers_loyalty_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=CUSTOMER_STATUS_ACTIVE, index=True)
    loyalty_points = db.Column(db.Integer, nullable=False, default=0)

    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=True, index=True)
    # Rate agreed at check-in; falls back to the resource rate when omitted
    daily_rate_cents = db.Column(db.Integer, nullable=True)

    check_in = db.Column(db.Date, nullable=False)
    check_out = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    resource = db.relationship("Resource", foreign_keys=[resource_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "status": self.status,
            "loyalty_points": self.loyalty_points,
            "resource_id": self.resource_id,
            "daily_rate_cents": self.daily_rate_cents,
            "check_in": to_iso_date(self.check_in),
            "check_out": to_iso_date(self.check_out),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class LoyaltyTransaction(db.Model):
    """
    Append-only ledger of loyalty point movements.

    TRANSACTION TYPES:
    - EARN: Points earned at settlement
    - REDEEM: Points spent
    - ADJUST: Manual correction

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "loyalty_transactions"
    __table_args__ = (
        db.Index("ix_loyalty_txns_customer_occurred", "customer_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False)  # EARN, REDEEM, ADJUST
    points = db.Column(db.Integer, nullable=False)  # Positive for earn, negative for redeem
    balance_after = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("loyalty_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "transaction_type": self.transaction_type,
            "points": self.points,
            "balance_after": self.balance_after,
            "reason": self.reason,
            "occurred_at": to_utc_z(self.occurred_at),
        }
