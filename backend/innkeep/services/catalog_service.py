# Overview: Service-layer operations for catalog items and their stock levels.

"""
Catalog Service

DESIGN PRINCIPLES:
- price_cents is the current price only; sales snapshot it at placement
- stock_quantity is never edited through update_item; it moves through
  orders (decrement), returns and purchases (increment) and adjustments
- Every stock movement is a single conditional UPDATE, so the check and the
  write cannot be separated by another writer
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..errors import CatalogItemNotFound, StateConflictError, ValidationError
from ..extensions import db
from ..models import CatalogItem, StockAdjustment
from ..money import require_cents
from ..validation import ModelValidationPolicy, apply_patch, require_name, validate_payload
from innkeep.time_utils import utcnow
from .concurrency import run_in_transaction
from .ledger_service import append_ledger_event


class InsufficientStock(StateConflictError):
    code = "insufficient_stock"

    def __init__(self, item_name: str, requested: int, available: int, item_id: int | None = None):
        super().__init__(
            f"Insufficient stock for {item_name}: requested {requested}, available {available}",
            details={
                "catalog_item_id": item_id,
                "item": item_name,
                "requested": requested,
                "available": available,
            },
        )
        self.item = item_name
        self.requested = requested
        self.available = available


class StockNotTracked(StateConflictError):
    code = "stock_not_tracked"


class NegativeStock(StateConflictError):
    code = "negative_stock"


CATALOG_ITEM_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name",
        "price_cents",
        "track_stock",
        "low_stock_threshold",
        "is_active",
    }),
    non_negative_fields=frozenset({"price_cents", "low_stock_threshold"}),
)


# =============================================================================
# QUERIES
# =============================================================================

def get_item(item_id: int) -> CatalogItem:
    item = db.session.get(CatalogItem, item_id)
    if not item:
        raise CatalogItemNotFound(f"Catalog item {item_id} not found", details={"catalog_item_id": item_id})
    return item


def list_items(active_only: bool = True) -> list[CatalogItem]:
    query = db.session.query(CatalogItem)
    if active_only:
        query = query.filter(CatalogItem.is_active.is_(True))
    return query.order_by(CatalogItem.name.asc()).all()


def get_low_stock_items() -> list[CatalogItem]:
    """Tracked, active items at or below their low-stock threshold."""
    return (
        db.session.query(CatalogItem)
        .filter(
            CatalogItem.is_active.is_(True),
            CatalogItem.track_stock.is_(True),
            CatalogItem.stock_quantity <= CatalogItem.low_stock_threshold,
        )
        .order_by(CatalogItem.stock_quantity.asc(), CatalogItem.name.asc())
        .all()
    )


# =============================================================================
# ITEM MANAGEMENT
# =============================================================================

def create_item(
    name: str,
    price_cents: int,
    track_stock: bool = False,
    stock_quantity: int = 0,
    low_stock_threshold: int = 0,
) -> CatalogItem:
    clean_name = require_name(name)
    require_cents(price_cents, "price_cents")
    for field, value in (("stock_quantity", stock_quantity), ("low_stock_threshold", low_stock_threshold)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(f"{field} must be a non-negative integer", details={"field": field})

    def _op():
        item = CatalogItem(
            name=clean_name,
            price_cents=price_cents,
            track_stock=bool(track_stock),
            stock_quantity=stock_quantity if track_stock else 0,
            low_stock_threshold=low_stock_threshold,
            is_active=True,
        )
        db.session.add(item)
        db.session.flush()
        append_ledger_event(
            event_type="catalog.item_created",
            entity_type="catalog_item",
            entity_id=item.id,
            note=f"Catalog item {clean_name} created",
        )
        return item

    item = run_in_transaction(_op)
    current_app.logger.info("Catalog item %s created (%s)", item.id, item.name)
    return item


def update_item(item_id: int, patch: dict) -> CatalogItem:
    """
    Apply an allowlisted patch to a catalog item.

    Stock quantity is not writable here; see adjust_stock().
    """
    clean = validate_payload(model=CatalogItem, payload=patch, policy=CATALOG_ITEM_UPDATE_POLICY, partial=True)
    if "name" in clean:
        clean["name"] = require_name(clean["name"])

    def _op():
        item = get_item(item_id)
        apply_patch(item, clean)
        db.session.flush()
        return item

    return run_in_transaction(_op)


# =============================================================================
# STOCK MOVEMENTS
# =============================================================================

def try_decrement_stock(item_id: int, quantity: int) -> bool:
    """
    Conditionally remove `quantity` units from a tracked item.

    Returns False (and changes nothing) if fewer units are on hand.
    Must run inside a transaction.
    """
    result = db.session.execute(
        update(CatalogItem)
        .where(
            CatalogItem.id == item_id,
            CatalogItem.track_stock.is_(True),
            CatalogItem.stock_quantity >= quantity,
        )
        .values(
            stock_quantity=CatalogItem.stock_quantity - quantity,
            version_id=CatalogItem.version_id + 1,
        )
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def decrement_stock(item_id: int, quantity: int) -> None:
    """Remove stock for a sale, raising InsufficientStock when short."""
    if try_decrement_stock(item_id, quantity):
        return
    item = get_item(item_id)
    db.session.refresh(item)
    raise InsufficientStock(item.name, quantity, item.stock_quantity, item_id=item.id)


def increment_stock(item_id: int, quantity: int) -> bool:
    """
    Add units to a tracked item.

    Returns False for untracked items (nothing to restock).
    """
    result = db.session.execute(
        update(CatalogItem)
        .where(CatalogItem.id == item_id, CatalogItem.track_stock.is_(True))
        .values(
            stock_quantity=CatalogItem.stock_quantity + quantity,
            version_id=CatalogItem.version_id + 1,
        )
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def adjust_stock(item_id: int, quantity_delta: int, reason: str | None = None) -> StockAdjustment:
    """
    Manual stock correction (recount, breakage, spoilage).

    Rejects untracked items and any correction that would leave the
    on-hand quantity below zero.
    """
    if isinstance(quantity_delta, bool) or not isinstance(quantity_delta, int) or quantity_delta == 0:
        raise ValidationError("quantity_delta must be a non-zero integer", details={"field": "quantity_delta"})

    def _op():
        item = get_item(item_id)
        if not item.track_stock:
            raise StockNotTracked(
                f"Stock is not tracked for {item.name}",
                details={"catalog_item_id": item.id},
            )

        if quantity_delta < 0:
            if not try_decrement_stock(item.id, -quantity_delta):
                db.session.refresh(item)
                raise NegativeStock(
                    f"Adjustment would leave {item.name} below zero",
                    details={
                        "catalog_item_id": item.id,
                        "quantity_delta": quantity_delta,
                        "stock_quantity": item.stock_quantity,
                    },
                )
        else:
            increment_stock(item.id, quantity_delta)

        db.session.refresh(item)
        adjustment = StockAdjustment(
            catalog_item_id=item.id,
            quantity_delta=quantity_delta,
            resulting_quantity=item.stock_quantity,
            reason=reason,
            created_at=utcnow(),
        )
        db.session.add(adjustment)
        db.session.flush()

        append_ledger_event(
            event_type="catalog.stock_adjusted",
            entity_type="catalog_item",
            entity_id=item.id,
            note=reason,
            payload={"quantity_delta": quantity_delta, "resulting_quantity": item.stock_quantity},
        )
        return adjustment

    adjustment = run_in_transaction(_op)
    current_app.logger.info(
        "Stock adjusted for item %s by %s (now %s)",
        adjustment.catalog_item_id, adjustment.quantity_delta, adjustment.resulting_quantity,
    )
    return adjustment
