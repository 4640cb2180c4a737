"""
Shift reconciliation tests.

Worked example: start 100.00, one paid sale of 50.00, one expense of 10.00
and 140.00 counted at close gives expected 140.00 and difference 0.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from innkeep.errors import InvalidAmount
from innkeep.extensions import db
from innkeep.models import Expense, Sale, Shift
from innkeep.services import expense_service, payment_service, sales_service, shift_service
from innkeep.services.shift_service import ShiftAlreadyClosed, ShiftAlreadyOpen, ShiftNotFound


def _paid_sale(amount_cents):
    sale = sales_service.place_order(None, [{"name": "Dinner", "unit_price_cents": amount_cents, "quantity": 1}])
    payment_service.record_payment(sale.id, amount_cents, "cash")
    return sale


def test_close_shift_reconciles_to_zero(db_session):
    shift = shift_service.open_shift(operator_id=1, start_cash_cents=10000)
    _paid_sale(5000)
    expense_service.add_expense("2026-03-01", "Supplies", 1000)

    summary = shift_service.close_shift(shift.id, operator_id=2, end_cash_actual_cents=14000)

    assert summary.total_sales_cents == 5000
    assert summary.total_expenses_cents == 1000
    assert summary.end_cash_expected_cents == 14000
    assert summary.difference_cents == 0
    assert summary.status == "closed"

    stored = db.session.get(Shift, shift.id)
    assert stored.closed_by == 2
    assert stored.difference_cents == 0


def test_difference_is_actual_minus_expected(db_session):
    shift = shift_service.open_shift(operator_id=1, start_cash_cents=10000)
    _paid_sale(5000)
    summary = shift_service.close_shift(shift.id, operator_id=1, end_cash_actual_cents=14500)
    assert summary.end_cash_expected_cents == 15000
    assert summary.difference_cents == -500


def test_unpaid_and_partially_paid_sales_are_excluded(db_session):
    shift = shift_service.open_shift(operator_id=1, start_cash_cents=0)
    sales_service.place_order(None, [{"name": "Tab", "unit_price_cents": 3000, "quantity": 1}])
    partial = sales_service.place_order(None, [{"name": "Dinner", "unit_price_cents": 4000, "quantity": 1}])
    payment_service.record_payment(partial.id, 1000, "cash")

    summary = shift_service.close_shift(shift.id, operator_id=1, end_cash_actual_cents=0)
    assert summary.total_sales_cents == 0


def test_activity_outside_window_is_excluded(db_session):
    early_sale = _paid_sale(7000)
    early_expense = expense_service.add_expense("2026-03-01", "Laundry", 900)

    # Push the earlier activity clearly before the shift opens
    db.session.get(Sale, early_sale.id).paid_at -= timedelta(hours=1)
    db.session.get(Expense, early_expense.id).created_at -= timedelta(hours=1)
    db.session.commit()

    shift = shift_service.open_shift(operator_id=1, start_cash_cents=2000)
    summary = shift_service.close_shift(shift.id, operator_id=1, end_cash_actual_cents=2000)

    assert summary.total_sales_cents == 0
    assert summary.total_expenses_cents == 0
    assert summary.difference_cents == 0


def test_only_one_open_shift(db_session):
    first = shift_service.open_shift(operator_id=1, start_cash_cents=0)
    with pytest.raises(ShiftAlreadyOpen):
        shift_service.open_shift(operator_id=2, start_cash_cents=0)

    shift_service.close_shift(first.id, operator_id=1, end_cash_actual_cents=0)
    second = shift_service.open_shift(operator_id=2, start_cash_cents=500)
    assert shift_service.get_current_shift().id == second.id


def test_open_shift_uniqueness_is_enforced_by_the_database(db_session):
    from innkeep.time_utils import utcnow

    db.session.add(Shift(status="open", opened_at=utcnow(), opened_by=1, start_cash_cents=0))
    db.session.commit()

    db.session.add(Shift(status="open", opened_at=utcnow(), opened_by=2, start_cash_cents=0))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()

    # Closed shifts are not constrained
    for _ in range(2):
        db.session.add(Shift(status="closed", opened_at=utcnow(), opened_by=1, start_cash_cents=0))
    db.session.commit()
    assert db.session.query(Shift).filter_by(status="closed").count() == 2


def test_closed_shift_is_frozen(db_session):
    shift = shift_service.open_shift(operator_id=1, start_cash_cents=1000)
    shift_service.close_shift(shift.id, operator_id=1, end_cash_actual_cents=1000)

    with pytest.raises(ShiftAlreadyClosed):
        shift_service.close_shift(shift.id, operator_id=1, end_cash_actual_cents=5000)

    _paid_sale(5000)
    preview = shift_service.preview_shift(shift.id)
    assert preview.total_sales_cents == 0
    assert preview.end_cash_actual_cents == 1000


def test_preview_open_shift(db_session):
    shift = shift_service.open_shift(operator_id=1, start_cash_cents=1000)
    _paid_sale(2500)
    preview = shift_service.preview_shift(shift.id)
    assert preview.status == "open"
    assert preview.end_cash_expected_cents == 3500
    assert preview.difference_cents is None


def test_invalid_inputs(db_session):
    with pytest.raises(InvalidAmount):
        shift_service.open_shift(operator_id=1, start_cash_cents=-1)
    with pytest.raises(ShiftNotFound):
        shift_service.close_shift(12345, operator_id=1, end_cash_actual_cents=0)

    shift = shift_service.open_shift(operator_id=1, start_cash_cents=0)
    with pytest.raises(InvalidAmount):
        shift_service.close_shift(shift.id, operator_id=1, end_cash_actual_cents=12.5)
    assert shift_service.get_shift(shift.id).status == "open"


def test_history_is_newest_first(db_session):
    ids = []
    for _ in range(3):
        shift = shift_service.open_shift(operator_id=1, start_cash_cents=0)
        shift_service.close_shift(shift.id, operator_id=1, end_cash_actual_cents=0)
        ids.append(shift.id)

    history = shift_service.get_shift_history(limit=2)
    assert [s.id for s in history] == [ids[2], ids[1]]
    assert shift_service.get_current_shift() is None
