# Overview: Service-layer operations for returns; encapsulates business logic and database work.

"""
Returns Engine

WHY: Customers return previously sold goods. Returned units go back into
tracked stock and the refund is recorded against the return.

DESIGN PRINCIPLES:
- Returns are recorded against specific sale lines
- Returned quantity per line can never exceed what was sold
- Remaining quantity is recomputed inside the write transaction
- Refunds use the sale-time price snapshot, never the current catalog price
- The refund is metadata: the sale's payment ledger is not touched
- Immutable: returns are never edited or deleted
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import func

from ..errors import (
    InvalidAmount,
    InvalidQuantity,
    NotFoundError,
    SaleNotFound,
    StateConflictError,
    ValidationError,
)
from ..extensions import db
from ..models import Sale, SaleLineItem, SaleReturn, SaleReturnLine
from ..money import require_cents
from innkeep.time_utils import parse_business_date, utcnow
from .catalog_service import increment_stock
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_ledger_event
from .sales_service import get_sale


class EmptyReturn(ValidationError):
    code = "empty_return"


class SaleItemNotFound(NotFoundError):
    code = "sale_item_not_found"


class ReturnNotFound(NotFoundError):
    code = "return_not_found"


class ReturnExceedsRemaining(StateConflictError):
    code = "return_exceeds_remaining"

    def __init__(self, item_name: str, requested: int, remaining: int, sale_line_item_id: int | None = None):
        super().__init__(
            f"Cannot return {requested} of {item_name}: only {remaining} remaining",
            details={
                "sale_line_item_id": sale_line_item_id,
                "item": item_name,
                "requested": requested,
                "remaining": remaining,
            },
        )
        self.item = item_name
        self.requested = requested
        self.remaining = remaining


class RefundExceedsComputedTotal(StateConflictError):
    code = "refund_exceeds_computed_total"


@dataclass(frozen=True)
class ReturnableItem:
    sale_line_item_id: int
    catalog_item_id: int | None
    name: str
    unit_price_cents: int
    sold_qty: int
    returned_qty: int
    remaining_qty: int

    def to_dict(self) -> dict:
        return {
            "sale_line_item_id": self.sale_line_item_id,
            "catalog_item_id": self.catalog_item_id,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "sold_qty": self.sold_qty,
            "returned_qty": self.returned_qty,
            "remaining_qty": self.remaining_qty,
        }


@dataclass(frozen=True)
class ReturnDetails:
    sale_return: SaleReturn
    sale: Sale
    lines: list[SaleReturnLine] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "return": self.sale_return.to_dict(),
            "sale": self.sale.to_dict(),
            "lines": [line.to_dict() for line in self.lines],
        }


def _returned_quantities(sale_id: int) -> dict[int, int]:
    """Quantity already returned per sale line, across every prior return."""
    rows = (
        db.session.query(SaleReturnLine.sale_line_item_id, func.sum(SaleReturnLine.quantity))
        .join(SaleReturn, SaleReturn.id == SaleReturnLine.return_id)
        .filter(SaleReturn.sale_id == sale_id)
        .group_by(SaleReturnLine.sale_line_item_id)
        .all()
    )
    return {line_id: int(qty or 0) for line_id, qty in rows}


def get_returnable_items(sale_id: int) -> list[ReturnableItem]:
    sale = get_sale(sale_id)
    returned = _returned_quantities(sale.id)
    items = []
    for line in sale.lines:
        already = returned.get(line.id, 0)
        items.append(ReturnableItem(
            sale_line_item_id=line.id,
            catalog_item_id=line.catalog_item_id,
            name=line.name,
            unit_price_cents=line.unit_price_cents,
            sold_qty=line.quantity,
            returned_qty=already,
            remaining_qty=max(line.quantity - already, 0),
        ))
    return items


def process_return(
    sale_id: int,
    return_date,
    items: list[dict],
    refund_method: str | None = None,
    refund_cents: int | None = None,
    note: str | None = None,
    actor_id: int | None = None,
) -> SaleReturn:
    """
    Return units from a sale.

    Args:
        sale_id: Sale the goods were bought on
        return_date: Business date (date or "YYYY-MM-DD")
        items: [{sale_line_item_id, quantity, note?}]; a line may repeat
        refund_method: How the refund was paid out (metadata)
        refund_cents: Refund amount; defaults to the computed total
        note: Free-text reason
        actor_id: Operator processing the return

    Raises:
        SaleNotFound, EmptyReturn, InvalidQuantity, SaleItemNotFound,
        ReturnExceedsRemaining, RefundExceedsComputedTotal, InvalidAmount
    """
    business_date = parse_business_date(return_date, field="return_date")
    if not items:
        raise EmptyReturn("Return must contain at least one item")

    requested: dict[int, int] = {}
    line_notes: dict[int, str] = {}
    for i, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError("Each return line must be a mapping", details={"line": i})
        quantity = raw.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidQuantity(
                "Return quantity must be a positive integer",
                details={"line": i, "quantity": quantity},
            )
        line_id = raw.get("sale_line_item_id")
        if isinstance(line_id, bool) or not isinstance(line_id, int):
            raise ValidationError(
                "sale_line_item_id must be an integer",
                details={"line": i, "sale_line_item_id": line_id},
            )
        requested[line_id] = requested.get(line_id, 0) + quantity
        if raw.get("note"):
            line_notes[line_id] = raw["note"]

    if refund_cents is not None:
        require_cents(refund_cents, "refund_cents", error=InvalidAmount)

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise SaleNotFound(f"Sale {sale_id} not found", details={"sale_id": sale_id})

        sale_lines = {
            line.id: line
            for line in lock_for_update(
                db.session.query(SaleLineItem).filter_by(sale_id=sale.id)
            ).all()
        }
        for line_id in requested:
            if line_id not in sale_lines:
                raise SaleItemNotFound(
                    f"Line {line_id} does not belong to sale {sale.id}",
                    details={"sale_id": sale.id, "sale_line_item_id": line_id},
                )

        returned = _returned_quantities(sale.id)
        for line_id, qty in requested.items():
            line = sale_lines[line_id]
            remaining = max(line.quantity - returned.get(line_id, 0), 0)
            if qty > remaining:
                raise ReturnExceedsRemaining(line.name, qty, remaining, sale_line_item_id=line_id)

        computed_total = sum(sale_lines[lid].unit_price_cents * qty for lid, qty in requested.items())
        refund = computed_total if refund_cents is None else refund_cents
        if refund > computed_total:
            raise RefundExceedsComputedTotal(
                f"Refund {refund} exceeds computed total {computed_total}",
                details={"refund_cents": refund, "computed_total_cents": computed_total},
            )

        sale_return = SaleReturn(
            sale_id=sale.id,
            return_date=business_date,
            refund_method=refund_method,
            refund_cents=refund,
            computed_total_cents=computed_total,
            note=note,
            created_by=actor_id,
            created_at=utcnow(),
        )
        db.session.add(sale_return)
        db.session.flush()

        for line_id in sorted(requested):
            line = sale_lines[line_id]
            qty = requested[line_id]
            restocked = False
            if line.catalog_item_id is not None:
                restocked = increment_stock(line.catalog_item_id, qty)
            db.session.add(SaleReturnLine(
                return_id=sale_return.id,
                sale_line_item_id=line.id,
                catalog_item_id=line.catalog_item_id,
                name=line.name,
                quantity=qty,
                unit_price_cents=line.unit_price_cents,
                line_total_cents=line.unit_price_cents * qty,
                restocked=restocked,
                note=line_notes.get(line_id),
            ))
        db.session.flush()

        append_ledger_event(
            event_type="return.processed",
            entity_type="sale_return",
            entity_id=sale_return.id,
            actor_id=actor_id,
            note=f"Return against sale {sale.id}",
            payload={"sale_id": sale.id, "refund_cents": refund, "computed_total_cents": computed_total},
        )
        return sale_return

    sale_return = run_in_transaction(_op)
    current_app.logger.info(
        "Return %s processed on sale %s: refund=%s cents",
        sale_return.id, sale_return.sale_id, sale_return.refund_cents,
    )
    return sale_return


def get_return_details(return_id: int) -> ReturnDetails:
    sale_return = db.session.get(SaleReturn, return_id)
    if not sale_return:
        raise ReturnNotFound(f"Return {return_id} not found", details={"return_id": return_id})
    return ReturnDetails(
        sale_return=sale_return,
        sale=sale_return.sale,
        lines=list(sale_return.lines),
    )


def list_returns(sale_id: int | None = None, limit: int = 100) -> list[SaleReturn]:
    query = db.session.query(SaleReturn)
    if sale_id is not None:
        query = query.filter(SaleReturn.sale_id == sale_id)
    return query.order_by(SaleReturn.created_at.desc(), SaleReturn.id.desc()).limit(limit).all()
