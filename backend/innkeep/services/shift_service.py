"""
Shift Reconciler - cash drawer shifts (Z-report)

WHY: Cash accountability. A shift records the starting float; closing it
computes what the drawer should hold and the over/short difference.

DESIGN PRINCIPLES:
- One open shift in the whole store at a time (partial unique index)
- Shifts are immutable once closed
- Sales count by the moment they became fully paid (paid_at)
- Expenses count by the moment they were recorded (created_at)
- expected = start + sales - expenses; difference = actual - expected
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import InvalidAmount, NotFoundError, StateConflictError
from ..extensions import db
from ..models import Expense, Sale, Shift
from ..models.shifts import SHIFT_STATUS_CLOSED, SHIFT_STATUS_OPEN
from ..money import require_cents
from innkeep.time_utils import to_utc_z, utcnow
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_ledger_event


class ShiftNotFound(NotFoundError):
    code = "shift_not_found"


class ShiftAlreadyOpen(StateConflictError):
    code = "shift_already_open"


class ShiftAlreadyClosed(StateConflictError):
    code = "shift_already_closed"


@dataclass(frozen=True)
class ShiftSummary:
    shift_id: int
    status: str
    opened_at: datetime
    closed_at: datetime | None
    start_cash_cents: int
    total_sales_cents: int
    total_expenses_cents: int
    end_cash_expected_cents: int
    end_cash_actual_cents: int | None
    difference_cents: int | None

    def to_dict(self) -> dict:
        return {
            "shift_id": self.shift_id,
            "status": self.status,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "start_cash_cents": self.start_cash_cents,
            "total_sales_cents": self.total_sales_cents,
            "total_expenses_cents": self.total_expenses_cents,
            "end_cash_expected_cents": self.end_cash_expected_cents,
            "end_cash_actual_cents": self.end_cash_actual_cents,
            "difference_cents": self.difference_cents,
        }


def _window_totals(start: datetime, end: datetime) -> tuple[int, int]:
    """Paid sales and recorded expenses inside [start, end]."""
    total_sales = db.session.query(func.coalesce(func.sum(Sale.total_cents), 0)).filter(
        Sale.paid.is_(True),
        Sale.paid_at >= start,
        Sale.paid_at <= end,
    ).scalar()
    total_expenses = db.session.query(func.coalesce(func.sum(Expense.amount_cents), 0)).filter(
        Expense.created_at >= start,
        Expense.created_at <= end,
    ).scalar()
    return int(total_sales), int(total_expenses)


def _summary_from_closed(shift: Shift) -> ShiftSummary:
    return ShiftSummary(
        shift_id=shift.id,
        status=shift.status,
        opened_at=shift.opened_at,
        closed_at=shift.closed_at,
        start_cash_cents=shift.start_cash_cents,
        total_sales_cents=shift.total_sales_cents,
        total_expenses_cents=shift.total_expenses_cents,
        end_cash_expected_cents=shift.end_cash_expected_cents,
        end_cash_actual_cents=shift.end_cash_actual_cents,
        difference_cents=shift.difference_cents,
    )


# =============================================================================
# SHIFT LIFECYCLE
# =============================================================================

def open_shift(operator_id: int, start_cash_cents: int, notes: str | None = None) -> Shift:
    """
    Open the store's cash drawer shift.

    Raises:
        ShiftAlreadyOpen: if any shift is still open
        InvalidAmount: if start cash is not a non-negative integer
    """
    require_cents(start_cash_cents, "start_cash_cents", error=InvalidAmount)

    def _op():
        existing = db.session.query(Shift).filter_by(status=SHIFT_STATUS_OPEN).first()
        if existing:
            raise ShiftAlreadyOpen(
                f"Shift {existing.id} is already open",
                details={"shift_id": existing.id},
            )

        now = utcnow()
        shift = Shift(
            status=SHIFT_STATUS_OPEN,
            opened_at=now,
            opened_by=operator_id,
            start_cash_cents=start_cash_cents,
            notes=notes,
        )
        db.session.add(shift)
        try:
            db.session.flush()
        except IntegrityError:
            # Another writer opened a shift between the check and the insert
            raise ShiftAlreadyOpen("A shift is already open")

        append_ledger_event(
            event_type="shift.opened",
            entity_type="shift",
            entity_id=shift.id,
            actor_id=operator_id,
            occurred_at=now,
            payload={"start_cash_cents": start_cash_cents},
        )
        return shift

    shift = run_in_transaction(_op)
    current_app.logger.info("Shift %s opened by %s with %s cents", shift.id, operator_id, start_cash_cents)
    return shift


def close_shift(
    shift_id: int,
    operator_id: int,
    end_cash_actual_cents: int,
    notes: str | None = None,
) -> ShiftSummary:
    """
    Close a shift and freeze its reconciliation.

    WHY: Z-report. Window is [opened_at, now]; totals, expected cash and
    the difference are stored on the shift and never recomputed.
    """
    require_cents(end_cash_actual_cents, "end_cash_actual_cents", error=InvalidAmount)

    def _op():
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise ShiftNotFound(f"Shift {shift_id} not found", details={"shift_id": shift_id})
        if shift.status == SHIFT_STATUS_CLOSED:
            raise ShiftAlreadyClosed(f"Shift {shift_id} is already closed", details={"shift_id": shift_id})

        now = utcnow()
        total_sales, total_expenses = _window_totals(shift.opened_at, now)
        expected = shift.start_cash_cents + total_sales - total_expenses

        shift.status = SHIFT_STATUS_CLOSED
        shift.closed_at = now
        shift.closed_by = operator_id
        shift.total_sales_cents = total_sales
        shift.total_expenses_cents = total_expenses
        shift.end_cash_expected_cents = expected
        shift.end_cash_actual_cents = end_cash_actual_cents
        shift.difference_cents = end_cash_actual_cents - expected
        if notes:
            shift.notes = f"{shift.notes}\n{notes}" if shift.notes else notes
        db.session.flush()

        append_ledger_event(
            event_type="shift.closed",
            entity_type="shift",
            entity_id=shift.id,
            actor_id=operator_id,
            occurred_at=now,
            payload={
                "expected_cents": expected,
                "actual_cents": end_cash_actual_cents,
                "difference_cents": shift.difference_cents,
            },
        )
        return _summary_from_closed(shift)

    summary = run_in_transaction(_op)
    current_app.logger.info(
        "Shift %s closed: expected=%s actual=%s difference=%s",
        summary.shift_id, summary.end_cash_expected_cents,
        summary.end_cash_actual_cents, summary.difference_cents,
    )
    return summary


# =============================================================================
# QUERIES
# =============================================================================

def get_shift(shift_id: int) -> Shift:
    shift = db.session.get(Shift, shift_id)
    if not shift:
        raise ShiftNotFound(f"Shift {shift_id} not found", details={"shift_id": shift_id})
    return shift


def get_current_shift() -> Shift | None:
    return db.session.query(Shift).filter_by(status=SHIFT_STATUS_OPEN).first()


def get_shift_history(limit: int = 10) -> list[Shift]:
    return (
        db.session.query(Shift)
        .order_by(Shift.opened_at.desc(), Shift.id.desc())
        .limit(limit)
        .all()
    )


def preview_shift(shift_id: int) -> ShiftSummary:
    """Running totals for a shift; closed shifts return their frozen figures."""
    shift = get_shift(shift_id)
    if shift.status == SHIFT_STATUS_CLOSED:
        return _summary_from_closed(shift)

    total_sales, total_expenses = _window_totals(shift.opened_at, utcnow())
    return ShiftSummary(
        shift_id=shift.id,
        status=shift.status,
        opened_at=shift.opened_at,
        closed_at=None,
        start_cash_cents=shift.start_cash_cents,
        total_sales_cents=total_sales,
        total_expenses_cents=total_expenses,
        end_cash_expected_cents=shift.start_cash_cents + total_sales - total_expenses,
        end_cash_actual_cents=None,
        difference_cents=None,
    )
