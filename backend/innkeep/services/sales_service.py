"""
Order Engine - sale placement and sale queries

WHY: A sale is written in one step: header, snapshot line items and stock
decrements commit together or not at all. There is no draft state; totals
are fixed at placement and only the payment ledger changes paid/paid_at.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta

from flask import current_app
from sqlalchemy import func, select

from ..errors import (
    CustomerNotActive,
    CustomerNotFound,
    CatalogItemNotFound,
    InvalidAmount,
    InvalidPrice,
    InvalidQuantity,
    SaleNotFound,
    ValidationError,
)
from ..extensions import db
from ..models import CatalogItem, Customer, Payment, Sale, SaleLineItem
from ..models.customers import CUSTOMER_STATUS_ACTIVE
from ..money import MAX_AMOUNT_CENTS, require_cents
from ..validation import require_name
from innkeep.time_utils import parse_business_date, utcnow
from .catalog_service import decrement_stock
from .concurrency import run_in_transaction
from .ledger_service import append_ledger_event


class EmptyOrder(ValidationError):
    code = "empty_order"


@dataclass(frozen=True)
class SaleDetails:
    sale: Sale
    lines: list[SaleLineItem] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)
    amount_paid_cents: int = 0
    balance_due_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "lines": [line.to_dict() for line in self.lines],
            "payments": [p.to_dict() for p in self.payments],
            "amount_paid_cents": self.amount_paid_cents,
            "balance_due_cents": self.balance_due_cents,
        }


def _require_quantity(value, index: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidQuantity(
            "Quantity must be a positive integer",
            details={"line": index, "quantity": value},
        )
    return value


def _resolve_line(raw: dict, index: int) -> dict:
    """
    Normalize one requested line into a snapshot.

    Name and price default to the catalog's current values when a catalog
    item is referenced and they are omitted.
    """
    if not isinstance(raw, dict):
        raise ValidationError("Each order line must be a mapping", details={"line": index})

    quantity = _require_quantity(raw.get("quantity"), index)

    item = None
    catalog_item_id = raw.get("catalog_item_id")
    if catalog_item_id is not None:
        item = db.session.get(CatalogItem, catalog_item_id)
        if not item or not item.is_active:
            raise CatalogItemNotFound(
                f"Catalog item {catalog_item_id} not found",
                details={"line": index, "catalog_item_id": catalog_item_id},
            )

    name = raw.get("name")
    if name is None and item is not None:
        name = item.name
    name = require_name(name)

    unit_price = raw.get("unit_price_cents")
    if unit_price is None and item is not None:
        unit_price = item.price_cents
    if unit_price is None:
        raise InvalidPrice("unit_price_cents is required", details={"line": index})
    require_cents(unit_price, "unit_price_cents", error=InvalidPrice)

    return {
        "catalog_item_id": item.id if item is not None else None,
        "track_stock": bool(item is not None and item.track_stock),
        "name": name,
        "unit_price_cents": unit_price,
        "quantity": quantity,
        "line_total_cents": unit_price * quantity,
    }


def place_order(
    customer_id: int | None,
    items: list[dict],
    note: str | None = None,
    actor_id: int | None = None,
) -> Sale:
    """
    Create a sale with snapshot line items and decrement tracked stock.

    Args:
        customer_id: Optional active customer the sale is charged to
        items: [{catalog_item_id?, name?, unit_price_cents?, quantity}]
        note: Free-text note
        actor_id: Operator placing the order

    Returns:
        The committed Sale (paid=False, or paid=True for a zero total)

    Raises:
        EmptyOrder, InvalidQuantity, InvalidPrice, CustomerNotFound,
        CustomerNotActive, CatalogItemNotFound, InsufficientStock
    """
    if not items:
        raise EmptyOrder("Order must contain at least one item")

    def _op():
        if customer_id is not None:
            customer = db.session.get(Customer, customer_id)
            if not customer:
                raise CustomerNotFound(f"Customer {customer_id} not found", details={"customer_id": customer_id})
            if customer.status != CUSTOMER_STATUS_ACTIVE:
                raise CustomerNotActive(
                    f"Customer {customer_id} is not active",
                    details={"customer_id": customer_id, "status": customer.status},
                )

        lines = [_resolve_line(raw, i) for i, raw in enumerate(items)]
        total = sum(line["line_total_cents"] for line in lines)
        if total > MAX_AMOUNT_CENTS:
            raise InvalidAmount(f"Order total cannot exceed {MAX_AMOUNT_CENTS}", details={"total_cents": total})

        # Aggregate per item so two lines of the same item are checked together
        product_totals: dict[int, int] = {}
        for line in lines:
            if line["track_stock"]:
                cid = line["catalog_item_id"]
                product_totals[cid] = product_totals.get(cid, 0) + line["quantity"]

        # Fixed order keeps lock acquisition consistent across writers
        for cid in sorted(product_totals):
            decrement_stock(cid, product_totals[cid])

        now = utcnow()
        sale = Sale(
            customer_id=customer_id,
            created_at=now,
            created_by=actor_id,
            total_cents=total,
            paid=total == 0,
            paid_at=now if total == 0 else None,
            note=note,
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            db.session.add(SaleLineItem(
                sale_id=sale.id,
                catalog_item_id=line["catalog_item_id"],
                name=line["name"],
                unit_price_cents=line["unit_price_cents"],
                quantity=line["quantity"],
                line_total_cents=line["line_total_cents"],
            ))
        db.session.flush()

        append_ledger_event(
            event_type="sale.placed",
            entity_type="sale",
            entity_id=sale.id,
            actor_id=actor_id,
            occurred_at=now,
            note=f"Sale {sale.id} placed",
            payload={"total_cents": total, "lines": len(lines), "customer_id": customer_id},
        )
        return sale

    sale = run_in_transaction(_op)
    current_app.logger.info("Sale %s placed: total=%s cents", sale.id, sale.total_cents)
    return sale


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise SaleNotFound(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def amount_paid_cents(sale_id: int) -> int:
    """Sum of payments recorded against a sale."""
    return db.session.query(
        func.coalesce(func.sum(Payment.amount_cents), 0)
    ).filter(Payment.sale_id == sale_id).scalar()


def get_sale_details(sale_id: int) -> SaleDetails:
    sale = get_sale(sale_id)
    paid = amount_paid_cents(sale.id)
    return SaleDetails(
        sale=sale,
        lines=list(sale.lines),
        payments=list(sale.payments),
        amount_paid_cents=paid,
        balance_due_cents=max(sale.total_cents - paid, 0),
    )


def list_sales(
    customer_id: int | None = None,
    paid: bool | None = None,
    date_from=None,
    date_to=None,
    limit: int = 100,
) -> list[Sale]:
    """Most recent sales first; date bounds are inclusive calendar dates on created_at."""
    query = db.session.query(Sale)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if paid is not None:
        query = query.filter(Sale.paid.is_(paid))
    if date_from is not None:
        start = datetime.combine(parse_business_date(date_from, field="date_from"), time.min)
        query = query.filter(Sale.created_at >= start)
    if date_to is not None:
        end = datetime.combine(parse_business_date(date_to, field="date_to") + timedelta(days=1), time.min)
        query = query.filter(Sale.created_at < end)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()


def get_unpaid_total(customer_id: int) -> int:
    """Outstanding balance across a customer's unpaid sales."""
    paid_sub = (
        select(Payment.sale_id, func.sum(Payment.amount_cents).label("paid_cents"))
        .group_by(Payment.sale_id)
        .subquery()
    )
    total = (
        db.session.query(
            func.coalesce(func.sum(Sale.total_cents - func.coalesce(paid_sub.c.paid_cents, 0)), 0)
        )
        .outerjoin(paid_sub, paid_sub.c.sale_id == Sale.id)
        .filter(Sale.customer_id == customer_id, Sale.paid.is_(False))
        .scalar()
    )
    return int(total or 0)
