"""
Returns engine tests.
"""

from datetime import date

import pytest

from innkeep.errors import InvalidAmount, InvalidQuantity, SaleNotFound, ValidationError
from innkeep.extensions import db
from innkeep.models import CatalogItem, Payment, SaleReturn, SaleReturnLine
from innkeep.services import payment_service, return_service, sales_service
from innkeep.services.return_service import (
    EmptyReturn,
    RefundExceedsComputedTotal,
    ReturnExceedsRemaining,
    SaleItemNotFound,
)


@pytest.fixture
def soap_sale(db_session, stocked_item):
    """Sale of 3 units of a tracked item (stock 5 -> 2)."""
    sale = sales_service.place_order(None, [{"catalog_item_id": stocked_item.id, "quantity": 3}])
    return sale


def _stock(item_id):
    return db.session.get(CatalogItem, item_id).stock_quantity


def test_stock_round_trip_and_remaining_limit(db_session, stocked_item, soap_sale):
    line = soap_sale.lines[0]
    assert _stock(stocked_item.id) == 2

    sale_return = return_service.process_return(
        soap_sale.id, "2026-03-02", [{"sale_line_item_id": line.id, "quantity": 2}], refund_method="cash",
    )
    assert _stock(stocked_item.id) == 4
    assert sale_return.refund_cents == 600
    assert sale_return.computed_total_cents == 600
    assert sale_return.return_date == date(2026, 3, 2)
    assert sale_return.lines[0].restocked is True

    with pytest.raises(ReturnExceedsRemaining) as exc_info:
        return_service.process_return(soap_sale.id, "2026-03-02", [{"sale_line_item_id": line.id, "quantity": 2}])
    assert exc_info.value.remaining == 1
    assert exc_info.value.requested == 2
    assert _stock(stocked_item.id) == 4


def test_returnable_items(db_session, soap_sale):
    line = soap_sale.lines[0]
    return_service.process_return(soap_sale.id, date(2026, 3, 2), [{"sale_line_item_id": line.id, "quantity": 1}])

    items = return_service.get_returnable_items(soap_sale.id)
    assert len(items) == 1
    assert (items[0].sold_qty, items[0].returned_qty, items[0].remaining_qty) == (3, 1, 2)
    assert items[0].unit_price_cents == 300


def test_repeated_line_is_aggregated(db_session, soap_sale):
    line = soap_sale.lines[0]
    with pytest.raises(ReturnExceedsRemaining):
        return_service.process_return(soap_sale.id, "2026-03-02", [
            {"sale_line_item_id": line.id, "quantity": 2},
            {"sale_line_item_id": line.id, "quantity": 2},
        ])
    assert db.session.query(SaleReturn).count() == 0


def test_partial_refund_and_cap(db_session, soap_sale):
    line = soap_sale.lines[0]
    with pytest.raises(RefundExceedsComputedTotal):
        return_service.process_return(
            soap_sale.id, "2026-03-02", [{"sale_line_item_id": line.id, "quantity": 1}], refund_cents=301,
        )

    sale_return = return_service.process_return(
        soap_sale.id, "2026-03-02", [{"sale_line_item_id": line.id, "quantity": 1}], refund_cents=250,
    )
    assert sale_return.refund_cents == 250
    assert sale_return.computed_total_cents == 300


def test_negative_refund_rejected(db_session, soap_sale):
    line = soap_sale.lines[0]
    with pytest.raises(InvalidAmount):
        return_service.process_return(
            soap_sale.id, "2026-03-02", [{"sale_line_item_id": line.id, "quantity": 1}], refund_cents=-1,
        )


def test_refund_uses_sale_price_not_current_price(db_session, stocked_item, soap_sale):
    from innkeep.services import catalog_service

    catalog_service.update_item(stocked_item.id, {"price_cents": 1000})
    line = soap_sale.lines[0]
    sale_return = return_service.process_return(
        soap_sale.id, "2026-03-02", [{"sale_line_item_id": line.id, "quantity": 1}],
    )
    assert sale_return.computed_total_cents == 300


def test_line_from_another_sale_rejected(db_session, soap_sale):
    other = sales_service.place_order(None, [{"name": "Tea", "unit_price_cents": 100, "quantity": 1}])
    with pytest.raises(SaleItemNotFound):
        return_service.process_return(
            soap_sale.id, "2026-03-02", [{"sale_line_item_id": other.lines[0].id, "quantity": 1}],
        )


def test_validation_errors(db_session, soap_sale):
    line = soap_sale.lines[0]
    with pytest.raises(EmptyReturn):
        return_service.process_return(soap_sale.id, "2026-03-02", [])
    with pytest.raises(InvalidQuantity):
        return_service.process_return(soap_sale.id, "2026-03-02", [{"sale_line_item_id": line.id, "quantity": 0}])
    with pytest.raises(ValidationError):
        return_service.process_return(soap_sale.id, "02/03/2026", [{"sale_line_item_id": line.id, "quantity": 1}])
    with pytest.raises(SaleNotFound):
        return_service.process_return(99999, "2026-03-02", [{"sale_line_item_id": line.id, "quantity": 1}])


@pytest.mark.parametrize("bad_id", [[1], None, "1", 1.0, True])
def test_line_id_must_be_integer(db_session, stocked_item, soap_sale, bad_id):
    with pytest.raises(ValidationError):
        return_service.process_return(soap_sale.id, "2026-03-02", [{"sale_line_item_id": bad_id, "quantity": 1}])
    assert _stock(stocked_item.id) == 2
    assert db.session.query(SaleReturn).count() == 0


def test_payment_ledger_untouched(db_session, soap_sale):
    payment_service.record_payment(soap_sale.id, 900, "cash")
    line = soap_sale.lines[0]
    return_service.process_return(soap_sale.id, "2026-03-02", [{"sale_line_item_id": line.id, "quantity": 3}])

    summary = payment_service.get_payment_summary(soap_sale.id)
    assert summary.amount_paid_cents == 900
    assert summary.paid is True
    assert db.session.query(Payment).count() == 1


def test_untracked_item_is_not_restocked(db_session, make_item):
    tea = make_item(name="Tea", price_cents=150)
    sale = sales_service.place_order(None, [{"catalog_item_id": tea.id, "quantity": 2}])
    sale_return = return_service.process_return(
        sale.id, "2026-03-02", [{"sale_line_item_id": sale.lines[0].id, "quantity": 1, "note": "cold"}],
    )
    line = db.session.query(SaleReturnLine).filter_by(return_id=sale_return.id).one()
    assert line.restocked is False
    assert line.note == "cold"


def test_return_details_and_listing(db_session, soap_sale):
    line = soap_sale.lines[0]
    sale_return = return_service.process_return(
        soap_sale.id, "2026-03-02", [{"sale_line_item_id": line.id, "quantity": 1}], note="damaged",
    )

    details = return_service.get_return_details(sale_return.id)
    assert details.sale.id == soap_sale.id
    assert details.to_dict()["return"]["note"] == "damaged"
    assert [r.id for r in return_service.list_returns(sale_id=soap_sale.id)] == [sale_return.id]
