# Overview: Service-layer operations for operating expenses.

from __future__ import annotations

from flask import current_app

from ..errors import InvalidAmount, NotFoundError, ValidationError
from ..extensions import db
from ..models import Expense
from ..money import require_cents
from ..validation import ModelValidationPolicy, apply_patch, require_name, validate_payload
from innkeep.time_utils import parse_business_date, utcnow
from .concurrency import run_in_transaction
from .ledger_service import append_ledger_event


class ExpenseNotFound(NotFoundError):
    code = "expense_not_found"


# created_at is the reconciliation timestamp and is never writable
EXPENSE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"expense_date", "category", "description", "amount_cents"}),
    non_negative_fields=frozenset({"amount_cents"}),
)


def get_expense(expense_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if not expense:
        raise ExpenseNotFound(f"Expense {expense_id} not found", details={"expense_id": expense_id})
    return expense


def add_expense(expense_date, category: str, amount_cents: int, description: str | None = None) -> Expense:
    business_date = parse_business_date(expense_date, field="expense_date")
    clean_category = require_name(category, field="category")
    require_cents(amount_cents, "amount_cents", allow_zero=False, error=InvalidAmount)

    def _op():
        expense = Expense(
            expense_date=business_date,
            category=clean_category,
            description=description,
            amount_cents=amount_cents,
            created_at=utcnow(),
        )
        db.session.add(expense)
        db.session.flush()
        append_ledger_event(
            event_type="expense.recorded",
            entity_type="expense",
            entity_id=expense.id,
            occurred_at=expense.created_at,
            payload={"amount_cents": amount_cents, "category": clean_category},
        )
        return expense

    expense = run_in_transaction(_op)
    current_app.logger.info("Expense %s recorded: %s cents (%s)", expense.id, amount_cents, clean_category)
    return expense


def update_expense(expense_id: int, patch: dict) -> Expense:
    clean = validate_payload(model=Expense, payload=patch, policy=EXPENSE_UPDATE_POLICY, partial=True)
    if clean.get("amount_cents") == 0:
        raise InvalidAmount("amount_cents must be > 0", details={"field": "amount_cents"})
    if "category" in clean:
        clean["category"] = require_name(clean["category"], field="category")

    def _op():
        expense = get_expense(expense_id)
        apply_patch(expense, clean)
        db.session.flush()
        return expense

    return run_in_transaction(_op)


def delete_expense(expense_id: int) -> None:
    def _op():
        expense = get_expense(expense_id)
        append_ledger_event(
            event_type="expense.deleted",
            entity_type="expense",
            entity_id=expense.id,
            payload={"amount_cents": expense.amount_cents, "category": expense.category},
        )
        db.session.delete(expense)
        db.session.flush()

    run_in_transaction(_op)
    current_app.logger.info("Expense %s deleted", expense_id)


def list_expenses(date_from=None, date_to=None, category: str | None = None) -> list[Expense]:
    """Expenses by business date (inclusive bounds)."""
    query = db.session.query(Expense)
    start = parse_business_date(date_from, field="date_from") if date_from is not None else None
    end = parse_business_date(date_to, field="date_to") if date_to is not None else None
    if start and end and start > end:
        raise ValidationError("date_from must be on or before date_to")
    if start:
        query = query.filter(Expense.expense_date >= start)
    if end:
        query = query.filter(Expense.expense_date <= end)
    if category:
        query = query.filter(Expense.category == category)
    return query.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()
