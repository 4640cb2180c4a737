"""
Procurement ledger tests: payment modes, supplier balances, stock
increments and purchase deletion.
"""

import pytest

from innkeep.errors import InvalidAmount
from innkeep.extensions import db
from innkeep.models import CatalogItem, Purchase, PurchaseLine, SupplierPayment
from innkeep.services import procurement_service, sales_service
from innkeep.services.payment_service import PaymentExceedsBalance
from innkeep.services.procurement_service import (
    InvalidPaymentMode,
    PurchaseNotFound,
    PurchaseStockConsumed,
    SupplierNotFound,
)


@pytest.fixture
def supplier(db_session):
    return procurement_service.create_supplier("Fresh Farms", phone="555-0199")


def _stock(item_id):
    return db.session.get(CatalogItem, item_id).stock_quantity


def test_pay_partial_leaves_balance(db_session, supplier):
    purchase = procurement_service.add_purchase(
        "2026-03-01",
        [{"name": "Flour", "quantity": 4, "unit_cost_cents": 5000}],
        payment_mode="pay_partial",
        payment_amount_cents=8000,
        supplier_id=supplier.id,
    )
    assert purchase.total_cents == 20000

    balance = procurement_service.get_supplier_balance(supplier.id)
    assert balance.total_purchases_cents == 20000
    assert balance.total_paid_cents == 8000
    assert balance.balance_due_cents == 12000

    details = procurement_service.get_purchase_details(purchase.id)
    assert details.amount_paid_cents == 8000
    assert details.balance_due_cents == 12000


def test_pay_now_and_pay_later(db_session, supplier):
    procurement_service.add_purchase(
        "2026-03-01", [{"name": "Rice", "quantity": 1, "unit_cost_cents": 3000}],
        payment_mode="pay_now", supplier_id=supplier.id, payment_method="bank",
    )
    procurement_service.add_purchase(
        "2026-03-02", [{"name": "Oil", "quantity": 2, "unit_cost_cents": 1500}],
        payment_mode="pay_later", supplier_id=supplier.id,
    )

    balance = procurement_service.get_supplier_balance(supplier.id)
    assert balance.total_purchases_cents == 6000
    assert balance.total_paid_cents == 3000
    assert balance.balance_due_cents == 3000
    assert db.session.query(SupplierPayment).one().method == "bank"


def test_partial_zero_records_no_payment(db_session, supplier):
    procurement_service.add_purchase(
        "2026-03-01", [{"name": "Salt", "quantity": 1, "unit_cost_cents": 200}],
        payment_mode="pay_partial", payment_amount_cents=0, supplier_id=supplier.id,
    )
    assert db.session.query(SupplierPayment).count() == 0


def test_payment_mode_validation(db_session, supplier):
    items = [{"name": "Salt", "quantity": 1, "unit_cost_cents": 200}]
    with pytest.raises(InvalidPaymentMode):
        procurement_service.add_purchase("2026-03-01", items, payment_mode="barter")
    with pytest.raises(InvalidAmount):
        procurement_service.add_purchase("2026-03-01", items, payment_mode="pay_partial")
    with pytest.raises(InvalidAmount):
        procurement_service.add_purchase(
            "2026-03-01", items, payment_mode="pay_partial", payment_amount_cents=201,
        )
    assert db.session.query(Purchase).count() == 0


def test_unknown_supplier(db_session):
    with pytest.raises(SupplierNotFound):
        procurement_service.add_purchase(
            "2026-03-01", [{"name": "Salt", "quantity": 1, "unit_cost_cents": 200}], supplier_id=404,
        )


def test_purchase_increments_tracked_stock(db_session, stocked_item, make_item):
    tea = make_item(name="Tea", price_cents=150)
    purchase = procurement_service.add_purchase(
        "2026-03-01",
        [
            {"catalog_item_id": stocked_item.id, "quantity": 10, "unit_cost_cents": 100},
            {"catalog_item_id": tea.id, "quantity": 10, "unit_cost_cents": 50},
        ],
    )
    assert _stock(stocked_item.id) == 15
    assert _stock(tea.id) == 0
    assert purchase.lines[0].name == "Soap"


def test_purchase_without_stock_update(db_session, stocked_item):
    purchase = procurement_service.add_purchase(
        "2026-03-01", [{"catalog_item_id": stocked_item.id, "quantity": 10, "unit_cost_cents": 100}],
        update_stock=False,
    )
    assert _stock(stocked_item.id) == 5

    procurement_service.delete_purchase(purchase.id)
    assert _stock(stocked_item.id) == 5


def test_delete_purchase_rolls_back_stock_and_payments(db_session, supplier, stocked_item):
    purchase = procurement_service.add_purchase(
        "2026-03-01", [{"catalog_item_id": stocked_item.id, "quantity": 10, "unit_cost_cents": 100}],
        payment_mode="pay_now", supplier_id=supplier.id,
    )
    assert _stock(stocked_item.id) == 15

    procurement_service.delete_purchase(purchase.id)

    assert _stock(stocked_item.id) == 5
    assert db.session.query(Purchase).count() == 0
    assert db.session.query(PurchaseLine).count() == 0
    assert db.session.query(SupplierPayment).count() == 0
    assert procurement_service.get_supplier_balance(supplier.id).balance_due_cents == 0


def test_delete_refused_when_units_were_sold(db_session, stocked_item):
    purchase = procurement_service.add_purchase(
        "2026-03-01", [{"catalog_item_id": stocked_item.id, "quantity": 10, "unit_cost_cents": 100}],
        payment_mode="pay_now",
    )
    sales_service.place_order(None, [{"catalog_item_id": stocked_item.id, "quantity": 12}])
    assert _stock(stocked_item.id) == 3

    with pytest.raises(PurchaseStockConsumed):
        procurement_service.delete_purchase(purchase.id)

    assert _stock(stocked_item.id) == 3
    assert db.session.get(Purchase, purchase.id) is not None
    assert db.session.query(SupplierPayment).count() == 1


def test_supplier_payment_settles_balance(db_session, supplier):
    purchase = procurement_service.add_purchase(
        "2026-03-01", [{"name": "Flour", "quantity": 1, "unit_cost_cents": 10000}],
        payment_mode="pay_later", supplier_id=supplier.id,
    )
    procurement_service.add_supplier_payment(supplier.id, 4000, "cash", paid_on="2026-03-05", purchase_id=purchase.id)

    with pytest.raises(PaymentExceedsBalance):
        procurement_service.add_supplier_payment(supplier.id, 6001, "cash")

    procurement_service.add_supplier_payment(supplier.id, 6000, "card")
    assert procurement_service.get_supplier_balance(supplier.id).balance_due_cents == 0


def test_supplier_payment_capped_by_purchase_balance(db_session, supplier):
    small = procurement_service.add_purchase(
        "2026-03-01", [{"name": "Salt", "quantity": 1, "unit_cost_cents": 1000}],
        payment_mode="pay_later", supplier_id=supplier.id,
    )
    procurement_service.add_purchase(
        "2026-03-01", [{"name": "Flour", "quantity": 1, "unit_cost_cents": 5000}],
        payment_mode="pay_later", supplier_id=supplier.id,
    )

    with pytest.raises(PaymentExceedsBalance):
        procurement_service.add_supplier_payment(supplier.id, 4000, "cash", purchase_id=small.id)
    assert db.session.query(SupplierPayment).count() == 0

    procurement_service.add_supplier_payment(supplier.id, 1000, "cash", purchase_id=small.id)
    details = procurement_service.get_purchase_details(small.id)
    assert details.amount_paid_cents == 1000
    assert details.balance_due_cents == 0

    with pytest.raises(PaymentExceedsBalance):
        procurement_service.add_supplier_payment(supplier.id, 1, "cash", purchase_id=small.id)
    # The supplier still owes on the other purchase
    procurement_service.add_supplier_payment(supplier.id, 5000, "bank")
    assert procurement_service.get_supplier_balance(supplier.id).balance_due_cents == 0


def test_unallocated_payment_becomes_credit_after_delete(db_session, supplier):
    purchase = procurement_service.add_purchase(
        "2026-03-01", [{"name": "Flour", "quantity": 1, "unit_cost_cents": 1000}],
        payment_mode="pay_later", supplier_id=supplier.id,
    )
    procurement_service.add_supplier_payment(supplier.id, 1000, "cash")

    procurement_service.delete_purchase(purchase.id)

    balance = procurement_service.get_supplier_balance(supplier.id)
    assert balance.total_purchases_cents == 0
    assert balance.total_paid_cents == 1000
    assert balance.balance_due_cents == 0
    assert balance.credit_cents == 1000
    assert balance.to_dict()["credit_cents"] == 1000


def test_supplier_payment_purchase_must_belong_to_supplier(db_session, supplier):
    other = procurement_service.create_supplier("Other Co")
    purchase = procurement_service.add_purchase(
        "2026-03-01", [{"name": "Flour", "quantity": 1, "unit_cost_cents": 10000}], supplier_id=other.id,
    )
    with pytest.raises(PurchaseNotFound):
        procurement_service.add_supplier_payment(supplier.id, 100, "cash", purchase_id=purchase.id)


def test_update_and_list_suppliers(db_session, supplier):
    procurement_service.update_supplier(supplier.id, {"notes": "Delivers Mondays"})
    procurement_service.create_supplier("Archived Co")
    archived = procurement_service.list_suppliers()[0]
    procurement_service.update_supplier(archived.id, {"is_active": False})

    names = [s.name for s in procurement_service.list_suppliers()]
    assert names == ["Fresh Farms"]
    assert procurement_service.get_supplier(supplier.id).notes == "Delivers Mondays"
    assert len(procurement_service.list_purchases(supplier_id=supplier.id)) == 0
