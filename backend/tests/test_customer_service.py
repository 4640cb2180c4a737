"""
Resource occupancy, customer lifecycle, settlement and loyalty tests.
"""

import json
from datetime import date

import pytest

from innkeep.errors import CustomerNotActive, InvalidAmount, ValidationError
from innkeep.extensions import db
from innkeep.models import Customer, LedgerEvent, LoyaltyTransaction, Resource
from innkeep.services import customer_service, payment_service, resource_service, sales_service
from innkeep.services.customer_service import InsufficientLoyaltyPoints
from innkeep.services.resource_service import ResourceNotFound, ResourceOccupied


def _resource(resource_id):
    return db.session.get(Resource, resource_id)


def test_check_in_occupies_resource(db_session, room, guest):
    resource = _resource(room.id)
    assert resource.occupied is True
    assert resource.occupant_customer_id == guest.id
    assert guest.daily_rate_cents == 5000
    assert [r.id for r in resource_service.list_resources(available_only=True)] == []


def test_occupied_resource_cannot_be_taken(db_session, room, guest):
    with pytest.raises(ResourceOccupied):
        customer_service.register_customer("Second Guest", resource_id=room.id)
    assert _resource(room.id).occupant_customer_id == guest.id


def test_occupied_resource_cannot_be_deactivated(db_session, room, guest):
    with pytest.raises(ResourceOccupied):
        resource_service.deactivate_resource(room.id)
    with pytest.raises(ResourceOccupied):
        resource_service.update_resource(room.id, {"is_active": False})


def test_inactive_resource_not_assignable(db_session):
    suite = resource_service.create_resource("201", 9000)
    resource_service.deactivate_resource(suite.id)
    with pytest.raises(ResourceNotFound):
        customer_service.register_customer("Late Guest", resource_id=suite.id)


def test_move_customer(db_session, room, guest):
    suite = resource_service.create_resource("201", 9000)
    customer_service.move_customer(guest.id, suite.id)

    assert _resource(room.id).occupied is False
    assert _resource(room.id).occupant_customer_id is None
    assert _resource(suite.id).occupant_customer_id == guest.id
    # The agreed rate stays with the customer
    assert customer_service.get_customer(guest.id).daily_rate_cents == 5000


def test_settlement_bill(db_session, room, guest):
    sale = sales_service.place_order(guest.id, [{"name": "Dinner", "unit_price_cents": 3000, "quantity": 1}])
    payment_service.record_payment(sale.id, 1000, "cash")

    summary = customer_service.settle_customer(guest.id, discount_pct=10, discount_flat_cents=500, as_of="2026-03-04")

    assert summary.stay_days == 3
    assert summary.stay_total_cents == 15000
    assert summary.unpaid_sales_cents == 2000
    assert summary.subtotal_cents == 17000
    # 10% of 170.00 = 17.00, then 5.00 flat
    assert summary.discount_cents == 2200
    assert summary.grand_total_cents == 14800
    assert summary.loyalty_points_awarded == 148

    customer = customer_service.get_customer(guest.id)
    assert customer.status == "checked_out"
    assert customer.check_out == date(2026, 3, 4)
    assert customer.loyalty_points == 148
    assert _resource(room.id).occupied is False

    txn = db.session.query(LoyaltyTransaction).filter_by(customer_id=guest.id).one()
    assert txn.transaction_type == "EARN"
    assert txn.balance_after == 148


def test_settlement_unlinks_resource_so_it_can_be_relet(db_session, room, guest):
    customer_service.settle_customer(guest.id, as_of="2026-03-03")

    assert customer_service.get_customer(guest.id).resource_id is None
    event = db.session.query(LedgerEvent).filter_by(event_type="customer.settled", entity_id=guest.id).one()
    assert json.loads(event.payload)["resource_id"] == room.id

    bob = customer_service.register_customer("Bob", resource_id=room.id)
    linked = db.session.query(Customer).filter_by(resource_id=room.id).all()
    assert [c.id for c in linked] == [bob.id]
    assert _resource(room.id).occupant_customer_id == bob.id


def test_same_day_settlement_charges_one_day(db_session, guest):
    summary = customer_service.settle_customer(guest.id, as_of="2026-03-01")
    assert summary.stay_days == 1
    assert summary.grand_total_cents == 5000


def test_discount_never_goes_below_zero(db_session, guest):
    summary = customer_service.settle_customer(guest.id, discount_flat_cents=999999, as_of="2026-03-02")
    assert summary.grand_total_cents == 0
    assert summary.discount_cents == summary.subtotal_cents
    assert summary.loyalty_points_awarded == 0


def test_settlement_validation(db_session, guest):
    with pytest.raises(InvalidAmount):
        customer_service.settle_customer(guest.id, discount_pct=101)
    with pytest.raises(InvalidAmount):
        customer_service.settle_customer(guest.id, discount_flat_cents=-5)

    customer_service.settle_customer(guest.id, as_of="2026-03-02")
    with pytest.raises(CustomerNotActive):
        customer_service.settle_customer(guest.id)


def test_walk_in_settles_only_unpaid_sales(db_session, walk_in):
    sales_service.place_order(walk_in.id, [{"name": "Coffee", "unit_price_cents": 250, "quantity": 2}])
    summary = customer_service.settle_customer(walk_in.id)
    assert summary.stay_days == 0
    assert summary.grand_total_cents == 500


def test_loyalty_adjustments(db_session, walk_in):
    customer_service.adjust_loyalty_points(walk_in.id, 30, reason="Goodwill")
    customer_service.redeem_loyalty_points(walk_in.id, 20)
    with pytest.raises(InsufficientLoyaltyPoints):
        customer_service.redeem_loyalty_points(walk_in.id, 11)
    with pytest.raises(InsufficientLoyaltyPoints):
        customer_service.adjust_loyalty_points(walk_in.id, -11)
    assert customer_service.get_customer(walk_in.id).loyalty_points == 10


def test_update_customer_allowlist(db_session, guest):
    customer_service.update_customer(guest.id, {"phone": "555-0101", "daily_rate_cents": "4500"})
    customer = customer_service.get_customer(guest.id)
    assert customer.phone == "555-0101"
    assert customer.daily_rate_cents == 4500

    with pytest.raises(ValidationError):
        customer_service.update_customer(guest.id, {"loyalty_points": 1000})
    with pytest.raises(ValidationError):
        customer_service.update_customer(guest.id, {"name": "   "})
    with pytest.raises(ValidationError):
        customer_service.update_customer(guest.id, {"check_out": "2026-02-01"})


def test_active_listing(db_session, guest, walk_in):
    customer_service.settle_customer(walk_in.id)
    assert [c.id for c in customer_service.list_active_customers()] == [guest.id]
