# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Ledger

WHY: Record money received against a sale and derive the sale's paid state.

DESIGN PRINCIPLES:
- Payments are separate from sales (many-to-one relationship)
- Split payments: One sale can have multiple payments
- Partial payments: Payment can be less than the balance due
- Immutable ledger: Payments are never edited or deleted
- No over-tender: Sum of payments never exceeds the sale total
- paid_at is set once, when the balance first reaches zero
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from ..errors import InvalidAmount, SaleNotFound, StateConflictError, ValidationError
from ..extensions import db
from ..models import Payment, Sale
from ..money import require_cents
from innkeep.time_utils import to_utc_z, utcnow
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_ledger_event
from .sales_service import amount_paid_cents, get_sale


class InvalidPaymentMethod(ValidationError):
    code = "invalid_payment_method"


class PaymentExceedsBalance(StateConflictError):
    code = "payment_exceeds_balance"


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_MOBILE = "mobile"
METHOD_BANK = "bank"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_CARD,
    METHOD_MOBILE,
    METHOD_BANK,
]


def normalize_method(method) -> str:
    """Lower-case a payment method and check it against the known list."""
    if not isinstance(method, str) or method.strip().lower() not in VALID_PAYMENT_METHODS:
        raise InvalidPaymentMethod(
            f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}",
            details={"method": method},
        )
    return method.strip().lower()


@dataclass(frozen=True)
class PaymentSummary:
    sale_id: int
    total_cents: int
    amount_paid_cents: int
    balance_due_cents: int
    paid: bool
    paid_at: datetime | None
    payments: list[Payment] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "total_cents": self.total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "paid": self.paid,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "payments": [p.to_dict() for p in self.payments],
        }


def _build_summary(sale: Sale) -> PaymentSummary:
    paid_cents = amount_paid_cents(sale.id)
    payments = (
        db.session.query(Payment)
        .filter_by(sale_id=sale.id)
        .order_by(Payment.id.asc())
        .all()
    )
    return PaymentSummary(
        sale_id=sale.id,
        total_cents=sale.total_cents,
        amount_paid_cents=paid_cents,
        balance_due_cents=max(sale.total_cents - paid_cents, 0),
        paid=sale.paid,
        paid_at=sale.paid_at,
        payments=payments,
    )


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def record_payment(
    sale_id: int,
    amount_cents: int,
    method: str,
    note: str | None = None,
    actor_id: int | None = None,
) -> PaymentSummary:
    """
    Record a payment against a sale.

    Args:
        sale_id: Sale being paid
        amount_cents: Amount received (positive integer cents)
        method: One of VALID_PAYMENT_METHODS
        note: Reference, card auth code, etc. (optional)
        actor_id: Operator taking the payment (optional)

    Returns:
        PaymentSummary after the payment

    Raises:
        SaleNotFound, InvalidAmount, InvalidPaymentMethod, PaymentExceedsBalance
    """
    require_cents(amount_cents, "amount_cents", allow_zero=False, error=InvalidAmount)
    clean_method = normalize_method(method)

    def _op():
        # Get sale (locked for payment updates)
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise SaleNotFound(f"Sale {sale_id} not found", details={"sale_id": sale_id})

        paid_before = amount_paid_cents(sale.id)
        balance_due = max(sale.total_cents - paid_before, 0)
        if amount_cents > balance_due:
            raise PaymentExceedsBalance(
                f"Payment of {amount_cents} exceeds balance due {balance_due}",
                details={"sale_id": sale.id, "amount_cents": amount_cents, "balance_due_cents": balance_due},
            )

        now = utcnow()
        payment = Payment(
            sale_id=sale.id,
            amount_cents=amount_cents,
            method=clean_method,
            note=note,
            created_by=actor_id,
            created_at=now,
        )
        db.session.add(payment)
        db.session.flush()  # Get payment ID

        if paid_before + amount_cents >= sale.total_cents:
            sale.paid = True
            if sale.paid_at is None:
                sale.paid_at = now

        append_ledger_event(
            event_type="payment.recorded",
            entity_type="payment",
            entity_id=payment.id,
            actor_id=actor_id,
            occurred_at=now,
            note=f"Payment on sale {sale.id}",
            payload={"sale_id": sale.id, "amount_cents": amount_cents, "method": clean_method},
        )
        db.session.flush()
        return sale.id

    paid_sale_id = run_in_transaction(_op)
    summary = _build_summary(get_sale(paid_sale_id))
    current_app.logger.info(
        "Payment of %s cents recorded on sale %s (balance %s)",
        amount_cents, summary.sale_id, summary.balance_due_cents,
    )
    return summary


# =============================================================================
# QUERIES
# =============================================================================

def get_payment_summary(sale_id: int) -> PaymentSummary:
    return _build_summary(get_sale(sale_id))


def list_payments(sale_id: int) -> list[Payment]:
    get_sale(sale_id)
    return (
        db.session.query(Payment)
        .filter_by(sale_id=sale_id)
        .order_by(Payment.id.asc())
        .all()
    )
