# Overview: Service-layer operations for customers: check-in, moves, settlement and loyalty.

"""
Customer Ledger

LIFECYCLE:
- register_customer: active, optionally holding a resource
- move_customer: releases the old resource and takes the new one
- settle_customer: computes the bill, releases the resource, awards
  loyalty points and flips the customer to checked_out

Settlement does not record payments; it reports what the customer owes.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import CustomerNotActive, CustomerNotFound, InvalidAmount, StateConflictError, ValidationError
from ..extensions import db
from ..models import Customer, LoyaltyTransaction
from ..models.customers import CUSTOMER_STATUS_ACTIVE, CUSTOMER_STATUS_CHECKED_OUT
from ..money import require_cents
from ..validation import ModelValidationPolicy, apply_patch, require_name, validate_payload
from innkeep.time_utils import parse_business_date, today, utcnow
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_ledger_event
from .resource_service import get_resource, occupy_resource, release_resource, ResourceNotFound
from .sales_service import get_unpaid_total


class InsufficientLoyaltyPoints(StateConflictError):
    code = "insufficient_loyalty_points"


LOYALTY_EARN = "EARN"
LOYALTY_REDEEM = "REDEEM"
LOYALTY_ADJUST = "ADJUST"

CUSTOMER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "phone", "daily_rate_cents", "check_out"}),
    non_negative_fields=frozenset({"daily_rate_cents"}),
)


@dataclass(frozen=True)
class SettlementSummary:
    customer_id: int
    stay_days: int
    daily_rate_cents: int
    stay_total_cents: int
    unpaid_sales_cents: int
    subtotal_cents: int
    discount_cents: int
    grand_total_cents: int
    loyalty_points_awarded: int

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "stay_days": self.stay_days,
            "daily_rate_cents": self.daily_rate_cents,
            "stay_total_cents": self.stay_total_cents,
            "unpaid_sales_cents": self.unpaid_sales_cents,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "grand_total_cents": self.grand_total_cents,
            "loyalty_points_awarded": self.loyalty_points_awarded,
        }


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise CustomerNotFound(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    return customer


def list_active_customers() -> list[Customer]:
    return (
        db.session.query(Customer)
        .filter(Customer.status == CUSTOMER_STATUS_ACTIVE)
        .order_by(Customer.check_in.desc(), Customer.name.asc())
        .all()
    )


def _locked_active_customer(customer_id: int) -> Customer:
    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
    if not customer:
        raise CustomerNotFound(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    if customer.status != CUSTOMER_STATUS_ACTIVE:
        raise CustomerNotActive(
            f"Customer {customer_id} is not active",
            details={"customer_id": customer_id, "status": customer.status},
        )
    return customer


def _post_loyalty(customer: Customer, points: int, transaction_type: str, reason: str | None) -> LoyaltyTransaction:
    new_balance = customer.loyalty_points + points
    if new_balance < 0:
        raise InsufficientLoyaltyPoints(
            f"Customer {customer.id} has {customer.loyalty_points} points, cannot apply {points}",
            details={"customer_id": customer.id, "balance": customer.loyalty_points, "points": points},
        )
    customer.loyalty_points = new_balance
    txn = LoyaltyTransaction(
        customer_id=customer.id,
        transaction_type=transaction_type,
        points=points,
        balance_after=new_balance,
        reason=reason,
        occurred_at=utcnow(),
    )
    db.session.add(txn)
    db.session.flush()
    return txn


# =============================================================================
# CHECK-IN AND MOVES
# =============================================================================

def register_customer(
    name: str,
    phone: str | None = None,
    resource_id: int | None = None,
    check_in=None,
    daily_rate_cents: int | None = None,
) -> Customer:
    """
    Create an active customer, optionally checking them into a resource.

    The daily rate defaults to the resource's rate when omitted.

    Raises:
        ResourceNotFound, ResourceOccupied, ValidationError
    """
    clean_name = require_name(name)
    check_in_date = parse_business_date(check_in, field="check_in") if check_in is not None else today()
    if daily_rate_cents is not None:
        require_cents(daily_rate_cents, "daily_rate_cents")

    def _op():
        rate = daily_rate_cents
        if resource_id is not None:
            resource = get_resource(resource_id)
            if not resource.is_active:
                raise ResourceNotFound(f"Resource {resource_id} not found", details={"resource_id": resource_id})
            if rate is None:
                rate = resource.rate_cents

        customer = Customer(
            name=clean_name,
            phone=phone,
            status=CUSTOMER_STATUS_ACTIVE,
            loyalty_points=0,
            resource_id=resource_id,
            daily_rate_cents=rate,
            check_in=check_in_date,
        )
        db.session.add(customer)
        db.session.flush()

        if resource_id is not None:
            occupy_resource(resource_id, customer.id)

        append_ledger_event(
            event_type="customer.registered",
            entity_type="customer",
            entity_id=customer.id,
            payload={"resource_id": resource_id, "daily_rate_cents": rate},
        )
        return customer

    customer = run_in_transaction(_op)
    current_app.logger.info("Customer %s registered (resource=%s)", customer.id, customer.resource_id)
    return customer


def move_customer(customer_id: int, resource_id: int) -> Customer:
    """Move an active customer to another free resource."""
    def _op():
        customer = _locked_active_customer(customer_id)
        if customer.resource_id == resource_id:
            return customer

        old_resource_id = customer.resource_id
        if old_resource_id is not None:
            release_resource(old_resource_id, customer.id)
        occupy_resource(resource_id, customer.id)

        customer.resource_id = resource_id
        if customer.daily_rate_cents is None:
            customer.daily_rate_cents = get_resource(resource_id).rate_cents
        db.session.flush()

        append_ledger_event(
            event_type="customer.moved",
            entity_type="customer",
            entity_id=customer.id,
            payload={"from_resource_id": old_resource_id, "to_resource_id": resource_id},
        )
        return customer

    customer = run_in_transaction(_op)
    current_app.logger.info("Customer %s moved to resource %s", customer.id, resource_id)
    return customer


def update_customer(customer_id: int, patch: dict) -> Customer:
    clean = validate_payload(model=Customer, payload=patch, policy=CUSTOMER_UPDATE_POLICY, partial=True)
    if "name" in clean:
        clean["name"] = require_name(clean["name"])

    def _op():
        customer = get_customer(customer_id)
        if clean.get("check_out") is not None and clean["check_out"] < customer.check_in:
            raise ValidationError("check_out cannot be before check_in", details={"field": "check_out"})
        apply_patch(customer, clean)
        db.session.flush()
        return customer

    return run_in_transaction(_op)


# =============================================================================
# SETTLEMENT
# =============================================================================

def _require_discount_pct(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0 or value > 100:
        raise InvalidAmount("discount_pct must be an integer between 0 and 100", details={"discount_pct": value})
    return value


def settle_customer(
    customer_id: int,
    discount_flat_cents: int = 0,
    discount_pct: int = 0,
    as_of=None,
) -> SettlementSummary:
    """
    Check a customer out and compute their final bill.

    stay_days = max(as_of - check_in, 1) when a resource is held
    subtotal  = stay_days * daily rate + unpaid sale balances
    discount  = percentage first, then flat; the total never goes below zero

    Raises:
        CustomerNotFound, CustomerNotActive, InvalidAmount
    """
    require_cents(discount_flat_cents, "discount_flat_cents")
    _require_discount_pct(discount_pct)
    settle_date = parse_business_date(as_of, field="as_of") if as_of is not None else today()
    cents_per_point = current_app.config.get("LOYALTY_CENTS_PER_POINT", 100)

    def _op():
        customer = _locked_active_customer(customer_id)

        stay_days = 0
        rate = 0
        if customer.resource_id is not None:
            stay_days = max((settle_date - customer.check_in).days, 1)
            rate = customer.daily_rate_cents
            if rate is None:
                rate = get_resource(customer.resource_id).rate_cents
        stay_total = stay_days * rate

        unpaid = get_unpaid_total(customer.id)
        subtotal = stay_total + unpaid

        pct_off = (subtotal * discount_pct + 50) // 100
        grand_total = max(subtotal - pct_off - discount_flat_cents, 0)
        discount = subtotal - grand_total

        points = grand_total // cents_per_point if cents_per_point > 0 else 0
        if points > 0:
            _post_loyalty(customer, points, LOYALTY_EARN, "Earned at settlement")

        released_resource_id = customer.resource_id
        if released_resource_id is not None:
            release_resource(released_resource_id, customer.id)
        customer.resource_id = None
        customer.status = CUSTOMER_STATUS_CHECKED_OUT
        customer.check_out = settle_date
        db.session.flush()

        summary = SettlementSummary(
            customer_id=customer.id,
            stay_days=stay_days,
            daily_rate_cents=rate,
            stay_total_cents=stay_total,
            unpaid_sales_cents=unpaid,
            subtotal_cents=subtotal,
            discount_cents=discount,
            grand_total_cents=grand_total,
            loyalty_points_awarded=points,
        )
        append_ledger_event(
            event_type="customer.settled",
            entity_type="customer",
            entity_id=customer.id,
            payload={**summary.to_dict(), "resource_id": released_resource_id},
        )
        return summary

    summary = run_in_transaction(_op)
    current_app.logger.info(
        "Customer %s settled: grand_total=%s cents, %s points",
        summary.customer_id, summary.grand_total_cents, summary.loyalty_points_awarded,
    )
    return summary


# =============================================================================
# LOYALTY
# =============================================================================

def adjust_loyalty_points(customer_id: int, delta: int, reason: str | None = None) -> LoyaltyTransaction:
    """Manual correction; the balance never goes negative."""
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise ValidationError("delta must be a non-zero integer", details={"field": "delta"})

    def _op():
        customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
        if not customer:
            raise CustomerNotFound(f"Customer {customer_id} not found", details={"customer_id": customer_id})
        return _post_loyalty(customer, delta, LOYALTY_ADJUST, reason)

    return run_in_transaction(_op)


def redeem_loyalty_points(customer_id: int, points: int, reason: str | None = None) -> LoyaltyTransaction:
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise ValidationError("points must be a positive integer", details={"field": "points"})

    def _op():
        customer = _locked_active_customer(customer_id)
        return _post_loyalty(customer, -points, LOYALTY_REDEEM, reason)

    return run_in_transaction(_op)
