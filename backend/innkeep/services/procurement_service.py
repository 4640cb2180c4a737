# Overview: Service-layer operations for suppliers, purchases and supplier payments.

"""
Procurement Ledger

WHY: Incoming stock is the mirror image of a sale. Purchases increment
tracked stock and create a balance owed to the supplier; supplier payments
reduce it.

DESIGN PRINCIPLES:
- Supplier balance is derived: sum(purchases) - sum(payments), never stored
- Payment modes at purchase time: pay_now, pay_later, pay_partial
- Deleting a purchase reverses exactly the stock it applied; if those units
  were already sold the deletion is refused and nothing changes
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import func

from ..errors import (
    CatalogItemNotFound,
    InvalidAmount,
    InvalidPrice,
    InvalidQuantity,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from ..extensions import db
from ..models import CatalogItem, Purchase, PurchaseLine, Supplier, SupplierPayment
from ..money import MAX_AMOUNT_CENTS, require_cents
from ..validation import ModelValidationPolicy, apply_patch, require_name, validate_payload
from innkeep.time_utils import parse_business_date, today, utcnow
from .catalog_service import increment_stock, try_decrement_stock
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_ledger_event
from .payment_service import METHOD_CASH, PaymentExceedsBalance, normalize_method


class SupplierNotFound(NotFoundError):
    code = "supplier_not_found"


class PurchaseNotFound(NotFoundError):
    code = "purchase_not_found"


class InvalidPaymentMode(ValidationError):
    code = "invalid_payment_mode"


class PurchaseStockConsumed(StateConflictError):
    code = "purchase_stock_consumed"


PAY_NOW = "pay_now"
PAY_LATER = "pay_later"
PAY_PARTIAL = "pay_partial"

VALID_PAYMENT_MODES = [PAY_NOW, PAY_LATER, PAY_PARTIAL]

SUPPLIER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "phone", "notes", "is_active"}),
)


@dataclass(frozen=True)
class SupplierBalance:
    supplier_id: int
    total_purchases_cents: int
    total_paid_cents: int
    balance_due_cents: int
    credit_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "total_purchases_cents": self.total_purchases_cents,
            "total_paid_cents": self.total_paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "credit_cents": self.credit_cents,
        }


@dataclass(frozen=True)
class PurchaseDetails:
    purchase: Purchase
    lines: list[PurchaseLine] = field(default_factory=list)
    payments: list[SupplierPayment] = field(default_factory=list)
    amount_paid_cents: int = 0
    balance_due_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "purchase": self.purchase.to_dict(),
            "lines": [line.to_dict() for line in self.lines],
            "payments": [p.to_dict() for p in self.payments],
            "amount_paid_cents": self.amount_paid_cents,
            "balance_due_cents": self.balance_due_cents,
        }


# =============================================================================
# SUPPLIERS
# =============================================================================

def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise SupplierNotFound(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    return supplier


def create_supplier(name: str, phone: str | None = None, notes: str | None = None) -> Supplier:
    clean_name = require_name(name)

    def _op():
        supplier = Supplier(name=clean_name, phone=phone, notes=notes, is_active=True)
        db.session.add(supplier)
        db.session.flush()
        return supplier

    supplier = run_in_transaction(_op)
    current_app.logger.info("Supplier %s created (%s)", supplier.id, supplier.name)
    return supplier


def update_supplier(supplier_id: int, patch: dict) -> Supplier:
    clean = validate_payload(model=Supplier, payload=patch, policy=SUPPLIER_UPDATE_POLICY, partial=True)
    if "name" in clean:
        clean["name"] = require_name(clean["name"])

    def _op():
        supplier = get_supplier(supplier_id)
        apply_patch(supplier, clean)
        db.session.flush()
        return supplier

    return run_in_transaction(_op)


def list_suppliers(active_only: bool = True) -> list[Supplier]:
    query = db.session.query(Supplier)
    if active_only:
        query = query.filter(Supplier.is_active.is_(True))
    return query.order_by(Supplier.name.asc()).all()


def get_supplier_balance(supplier_id: int) -> SupplierBalance:
    get_supplier(supplier_id)
    purchased = db.session.query(func.coalesce(func.sum(Purchase.total_cents), 0)).filter(
        Purchase.supplier_id == supplier_id
    ).scalar()
    paid = db.session.query(func.coalesce(func.sum(SupplierPayment.amount_cents), 0)).filter(
        SupplierPayment.supplier_id == supplier_id
    ).scalar()
    purchased, paid = int(purchased), int(paid)
    # Payments outlive a deleted purchase; the surplus carries forward as credit
    return SupplierBalance(
        supplier_id=supplier_id,
        total_purchases_cents=purchased,
        total_paid_cents=paid,
        balance_due_cents=max(purchased - paid, 0),
        credit_cents=max(paid - purchased, 0),
    )


def _purchase_paid(purchase_id: int) -> int:
    paid = db.session.query(func.coalesce(func.sum(SupplierPayment.amount_cents), 0)).filter(
        SupplierPayment.purchase_id == purchase_id
    ).scalar()
    return int(paid)


# =============================================================================
# PURCHASES
# =============================================================================

def _resolve_purchase_line(raw: dict, index: int) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError("Each purchase line must be a mapping", details={"line": index})

    quantity = raw.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity("Quantity must be a positive integer", details={"line": index, "quantity": quantity})

    item = None
    catalog_item_id = raw.get("catalog_item_id")
    if catalog_item_id is not None:
        item = db.session.get(CatalogItem, catalog_item_id)
        if not item:
            raise CatalogItemNotFound(
                f"Catalog item {catalog_item_id} not found",
                details={"line": index, "catalog_item_id": catalog_item_id},
            )

    name = raw.get("name")
    if name is None and item is not None:
        name = item.name
    name = require_name(name)

    unit_cost = raw.get("unit_cost_cents")
    if unit_cost is None:
        raise InvalidPrice("unit_cost_cents is required", details={"line": index})
    require_cents(unit_cost, "unit_cost_cents", error=InvalidPrice)

    return {
        "catalog_item_id": item.id if item is not None else None,
        "name": name,
        "quantity": quantity,
        "unit_cost_cents": unit_cost,
        "line_total_cents": unit_cost * quantity,
    }


def add_purchase(
    purchase_date,
    items: list[dict],
    payment_mode: str = PAY_LATER,
    payment_amount_cents: int | None = None,
    payment_method: str | None = None,
    supplier_id: int | None = None,
    reference: str | None = None,
    notes: str | None = None,
    update_stock: bool = True,
) -> Purchase:
    """
    Record a purchase, its payment (per payment_mode) and the stock increment.

    Raises:
        InvalidPaymentMode, InvalidAmount, InvalidQuantity, InvalidPrice,
        SupplierNotFound, CatalogItemNotFound
    """
    business_date = parse_business_date(purchase_date, field="purchase_date")
    if payment_mode not in VALID_PAYMENT_MODES:
        raise InvalidPaymentMode(
            f"Invalid payment mode: {payment_mode}. Must be one of {VALID_PAYMENT_MODES}",
            details={"payment_mode": payment_mode},
        )
    if not items:
        raise ValidationError("Purchase must contain at least one item")
    if payment_mode == PAY_PARTIAL:
        if payment_amount_cents is None:
            raise InvalidAmount("payment_amount_cents is required for pay_partial")
        require_cents(payment_amount_cents, "payment_amount_cents", error=InvalidAmount)
    method = normalize_method(payment_method) if payment_method is not None else METHOD_CASH

    def _op():
        if supplier_id is not None:
            get_supplier(supplier_id)

        lines = [_resolve_purchase_line(raw, i) for i, raw in enumerate(items)]
        total = sum(line["line_total_cents"] for line in lines)
        if total > MAX_AMOUNT_CENTS:
            raise InvalidAmount(f"Purchase total cannot exceed {MAX_AMOUNT_CENTS}", details={"total_cents": total})

        if payment_mode == PAY_NOW:
            paid_now = total
        elif payment_mode == PAY_PARTIAL:
            if payment_amount_cents > total:
                raise InvalidAmount(
                    f"Partial payment {payment_amount_cents} exceeds purchase total {total}",
                    details={"payment_amount_cents": payment_amount_cents, "total_cents": total},
                )
            paid_now = payment_amount_cents
        else:
            paid_now = 0

        purchase = Purchase(
            supplier_id=supplier_id,
            purchase_date=business_date,
            reference=reference,
            notes=notes,
            total_cents=total,
            stock_applied=bool(update_stock),
            created_at=utcnow(),
        )
        db.session.add(purchase)
        db.session.flush()

        for line in lines:
            db.session.add(PurchaseLine(
                purchase_id=purchase.id,
                catalog_item_id=line["catalog_item_id"],
                name=line["name"],
                quantity=line["quantity"],
                unit_cost_cents=line["unit_cost_cents"],
                line_total_cents=line["line_total_cents"],
            ))
            if update_stock and line["catalog_item_id"] is not None:
                increment_stock(line["catalog_item_id"], line["quantity"])

        if paid_now > 0:
            db.session.add(SupplierPayment(
                supplier_id=supplier_id,
                purchase_id=purchase.id,
                amount_cents=paid_now,
                method=method,
                paid_on=business_date,
                note=f"{payment_mode} on purchase",
                created_at=utcnow(),
            ))
        db.session.flush()

        append_ledger_event(
            event_type="purchase.added",
            entity_type="purchase",
            entity_id=purchase.id,
            payload={
                "supplier_id": supplier_id,
                "total_cents": total,
                "paid_cents": paid_now,
                "payment_mode": payment_mode,
            },
        )
        return purchase

    purchase = run_in_transaction(_op)
    current_app.logger.info(
        "Purchase %s added: total=%s cents mode=%s", purchase.id, purchase.total_cents, payment_mode
    )
    return purchase


def add_supplier_payment(
    supplier_id: int,
    amount_cents: int,
    method: str = METHOD_CASH,
    paid_on=None,
    purchase_id: int | None = None,
    note: str | None = None,
) -> SupplierPayment:
    """Settle part of a supplier's balance. Cannot pay more than is owed."""
    require_cents(amount_cents, "amount_cents", allow_zero=False, error=InvalidAmount)
    clean_method = normalize_method(method)
    paid_date = parse_business_date(paid_on, field="paid_on") if paid_on is not None else today()

    def _op():
        supplier = lock_for_update(db.session.query(Supplier).filter_by(id=supplier_id)).first()
        if not supplier:
            raise SupplierNotFound(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})

        if purchase_id is not None:
            purchase = db.session.get(Purchase, purchase_id)
            if not purchase or purchase.supplier_id != supplier.id:
                raise PurchaseNotFound(
                    f"Purchase {purchase_id} not found for supplier {supplier.id}",
                    details={"purchase_id": purchase_id, "supplier_id": supplier.id},
                )
            purchase_due = max(purchase.total_cents - _purchase_paid(purchase.id), 0)
            if amount_cents > purchase_due:
                raise PaymentExceedsBalance(
                    f"Payment of {amount_cents} exceeds purchase balance {purchase_due}",
                    details={"purchase_id": purchase.id, "balance_due_cents": purchase_due},
                )

        balance = get_supplier_balance(supplier.id)
        if amount_cents > balance.balance_due_cents:
            raise PaymentExceedsBalance(
                f"Payment of {amount_cents} exceeds supplier balance {balance.balance_due_cents}",
                details={"supplier_id": supplier.id, "balance_due_cents": balance.balance_due_cents},
            )

        payment = SupplierPayment(
            supplier_id=supplier.id,
            purchase_id=purchase_id,
            amount_cents=amount_cents,
            method=clean_method,
            paid_on=paid_date,
            note=note,
            created_at=utcnow(),
        )
        db.session.add(payment)
        db.session.flush()
        append_ledger_event(
            event_type="supplier.paid",
            entity_type="supplier_payment",
            entity_id=payment.id,
            payload={"supplier_id": supplier.id, "amount_cents": amount_cents},
        )
        return payment

    payment = run_in_transaction(_op)
    current_app.logger.info("Supplier %s paid %s cents", supplier_id, amount_cents)
    return payment


def delete_purchase(purchase_id: int, rollback_stock: bool = True) -> None:
    """
    Delete a purchase, its lines and its payments.

    Reverses the stock increment when it was applied. If a reversal would
    drive stock below zero the whole deletion is refused.
    """
    def _op():
        purchase = lock_for_update(db.session.query(Purchase).filter_by(id=purchase_id)).first()
        if not purchase:
            raise PurchaseNotFound(f"Purchase {purchase_id} not found", details={"purchase_id": purchase_id})

        if rollback_stock and purchase.stock_applied:
            item_totals: dict[int, int] = {}
            for line in purchase.lines:
                if line.catalog_item_id is not None:
                    item_totals[line.catalog_item_id] = item_totals.get(line.catalog_item_id, 0) + line.quantity

            for item_id in sorted(item_totals):
                item = db.session.get(CatalogItem, item_id)
                if not item or not item.track_stock:
                    continue
                if not try_decrement_stock(item_id, item_totals[item_id]):
                    db.session.refresh(item)
                    raise PurchaseStockConsumed(
                        f"Units of {item.name} from purchase {purchase.id} were already sold",
                        details={
                            "purchase_id": purchase.id,
                            "catalog_item_id": item_id,
                            "quantity": item_totals[item_id],
                            "stock_quantity": item.stock_quantity,
                        },
                    )

        db.session.query(SupplierPayment).filter_by(purchase_id=purchase.id).delete(synchronize_session="fetch")
        append_ledger_event(
            event_type="purchase.deleted",
            entity_type="purchase",
            entity_id=purchase.id,
            payload={"total_cents": purchase.total_cents, "stock_rolled_back": bool(rollback_stock and purchase.stock_applied)},
        )
        db.session.delete(purchase)
        db.session.flush()

    run_in_transaction(_op)
    current_app.logger.info("Purchase %s deleted", purchase_id)


# =============================================================================
# QUERIES
# =============================================================================

def get_purchase_details(purchase_id: int) -> PurchaseDetails:
    purchase = db.session.get(Purchase, purchase_id)
    if not purchase:
        raise PurchaseNotFound(f"Purchase {purchase_id} not found", details={"purchase_id": purchase_id})
    payments = (
        db.session.query(SupplierPayment)
        .filter_by(purchase_id=purchase.id)
        .order_by(SupplierPayment.id.asc())
        .all()
    )
    paid = sum(p.amount_cents for p in payments)
    return PurchaseDetails(
        purchase=purchase,
        lines=list(purchase.lines),
        payments=payments,
        amount_paid_cents=paid,
        balance_due_cents=max(purchase.total_cents - paid, 0),
    )


def list_purchases(supplier_id: int | None = None, limit: int = 100) -> list[Purchase]:
    query = db.session.query(Purchase)
    if supplier_id is not None:
        query = query.filter(Purchase.supplier_id == supplier_id)
    return query.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).limit(limit).all()
