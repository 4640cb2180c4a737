from __future__ import annotations

from sqlalchemy import text

from ..extensions import db
from innkeep.time_utils import to_utc_z, to_iso_date


SHIFT_STATUS_OPEN = "open"
SHIFT_STATUS_CLOSED = "closed"


class Shift(db.Model):
    """
    Cash drawer shift (Z-report).

    LIFECYCLE:
    - open: drawer in use, totals not yet computed
    - closed: totals, expected cash and difference frozen

    SINGLE OPEN SHIFT: the partial unique index below allows at most one
    row with status='open' in the whole store. It lives in the database so
    it holds across restarts and processes.

    IMMUTABLE: Once closed, a shift cannot be reopened or modified.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index(
            "uq_shifts_single_open",
            "status",
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
        db.Index("ix_shifts_opened_at", "opened_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    status = db.Column(db.String(16), nullable=False, default=SHIFT_STATUS_OPEN)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    opened_by = db.Column(db.Integer, nullable=False)
    closed_by = db.Column(db.Integer, nullable=True)

    # Cash tracking (all amounts in cents)
    start_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    total_sales_cents = db.Column(db.Integer, nullable=True)
    total_expenses_cents = db.Column(db.Integer, nullable=True)
    end_cash_expected_cents = db.Column(db.Integer, nullable=True)  # start + sales - expenses
    end_cash_actual_cents = db.Column(db.Integer, nullable=True)
    difference_cents = db.Column(db.Integer, nullable=True)  # actual - expected

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "opened_by": self.opened_by,
            "closed_by": self.closed_by,
            "start_cash_cents": self.start_cash_cents,
            "total_sales_cents": self.total_sales_cents,
            "total_expenses_cents": self.total_expenses_cents,
            "end_cash_expected_cents": self.end_cash_expected_cents,
            "end_cash_actual_cents": self.end_cash_actual_cents,
            "difference_cents": self.difference_cents,
            "notes": self.notes,
            "version_id": self.version_id,
        }


class Expense(db.Model):
    """
    Operating expense paid out of the business.

    expense_date is the business date the expense belongs to (reports);
    created_at is the exact time it was recorded, which is what shift
    reconciliation windows on.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_date_category", "expense_date", "category"),
        db.CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    expense_date = db.Column(db.Date, nullable=False)
    category = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_date": to_iso_date(self.expense_date),
            "category": self.category,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "created_at": to_utc_z(self.created_at),
        }
