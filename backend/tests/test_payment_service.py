"""
Payment ledger tests: partial and split payments, paid_at stability and
over-payment rejection.
"""

import pytest

from innkeep.errors import InvalidAmount, SaleNotFound
from innkeep.extensions import db
from innkeep.models import Payment, Sale
from innkeep.services import payment_service, sales_service
from innkeep.services.payment_service import InvalidPaymentMethod, PaymentExceedsBalance


@pytest.fixture
def sale(db_session):
    return sales_service.place_order(None, [{"name": "Dinner", "unit_price_cents": 20000, "quantity": 1}])


def test_partial_then_final_payment(db_session, sale):
    summary = payment_service.record_payment(sale.id, 8000, "cash")
    assert summary.amount_paid_cents == 8000
    assert summary.balance_due_cents == 12000
    assert summary.paid is False
    assert summary.paid_at is None

    summary = payment_service.record_payment(sale.id, 12000, "card", note="auth 1234")
    assert summary.amount_paid_cents == 20000
    assert summary.balance_due_cents == 0
    assert summary.paid is True
    assert summary.paid_at is not None
    assert [p.method for p in summary.payments] == ["cash", "card"]


def test_paid_at_is_set_once(db_session, sale):
    summary = payment_service.record_payment(sale.id, 20000, "cash")
    first_paid_at = summary.paid_at

    with pytest.raises(PaymentExceedsBalance):
        payment_service.record_payment(sale.id, 1, "cash")

    assert db.session.get(Sale, sale.id).paid_at == first_paid_at


def test_overpayment_rejected_and_nothing_written(db_session, sale):
    payment_service.record_payment(sale.id, 15000, "cash")
    with pytest.raises(PaymentExceedsBalance) as exc_info:
        payment_service.record_payment(sale.id, 5001, "cash")

    assert exc_info.value.details["balance_due_cents"] == 5000
    assert db.session.query(Payment).filter_by(sale_id=sale.id).count() == 1


def test_sum_of_payments_never_exceeds_total(db_session, sale):
    for amount in (5000, 5000, 5000, 5000):
        payment_service.record_payment(sale.id, amount, "mobile")
    with pytest.raises(PaymentExceedsBalance):
        payment_service.record_payment(sale.id, 1, "mobile")

    total_paid = sum(p.amount_cents for p in payment_service.list_payments(sale.id))
    assert total_paid == 20000


@pytest.mark.parametrize("amount", [0, -100, 10.5, True, "100"])
def test_invalid_amount_rejected(db_session, sale, amount):
    with pytest.raises(InvalidAmount):
        payment_service.record_payment(sale.id, amount, "cash")


def test_invalid_method_rejected(db_session, sale):
    with pytest.raises(InvalidPaymentMethod):
        payment_service.record_payment(sale.id, 100, "bitcoin")


def test_method_is_normalized(db_session, sale):
    summary = payment_service.record_payment(sale.id, 100, " Card ")
    assert summary.payments[0].method == "card"


def test_unknown_sale(db_session):
    with pytest.raises(SaleNotFound):
        payment_service.record_payment(424242, 100, "cash")
    with pytest.raises(SaleNotFound):
        payment_service.get_payment_summary(424242)


def test_summary_to_dict(db_session, sale):
    payment_service.record_payment(sale.id, 20000, "bank")
    data = payment_service.get_payment_summary(sale.id).to_dict()
    assert data["paid"] is True
    assert data["paid_at"].endswith("Z")
    assert data["payments"][0]["amount_cents"] == 20000
