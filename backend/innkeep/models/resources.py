from __future__ import annotations

from ..extensions import db
from innkeep.time_utils import to_utc_z

class Resource(db.Model):
    """
    Occupiable physical unit (room, table, station).

    OCCUPANCY: `occupied` and `occupant_customer_id` always move together.
    Both are flipped with a conditional UPDATE so two check-ins cannot
    claim the same unit.

    Resources are soft-deleted (is_active=False) and only while free.
    """
    __tablename__ = "resources"
    __table_args__ = (
        db.UniqueConstraint("label", name="uq_resources_label"),
        db.Index("ix_resources_active_occupied", "is_active", "occupied"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable identifier (e.g., "101", "TABLE-4")
    label = db.Column(db.String(64), nullable=False)

    # Nightly / hourly rate in cents
    rate_cents = db.Column(db.Integer, nullable=False, default=0)

    occupied = db.Column(db.Boolean, nullable=False, default=False)
    # Plain integer (no FK) to avoid a resources <-> customers cycle
    occupant_customer_id = db.Column(db.Integer, nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Resource id={self.id} label={self.label!r} occupied={self.occupied}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "rate_cents": self.rate_cents,
            "occupied": self.occupied,
            "occupant_customer_id": self.occupant_customer_id,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
