# Overview: Error taxonomy shared by every service; each error carries a stable code.

"""
Engine error taxonomy.

Four families, each with a stable machine-readable category:

- NotFoundError        (not_found)       sale/item/shift/supplier missing
- ValidationError      (validation)      malformed input, rejected before any write
- StateConflictError   (state_conflict)  input is well formed but the current state forbids it
- StoreIntegrityError  (integrity)       store-layer failure or uniqueness violation

Concrete errors live next to the service that raises them and set `code`.
Any of these raised inside a transaction aborts the whole transaction.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for every error surfaced by the engine."""

    category = "error"
    code = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(EngineError):
    category = "not_found"
    code = "not_found"


class ValidationError(EngineError, ValueError):
    """400-level input problem."""

    category = "validation"
    code = "validation_error"


class StateConflictError(EngineError):
    """409-level business rule conflict (insufficient stock, shift already open...)."""

    category = "state_conflict"
    code = "state_conflict"


class StoreIntegrityError(EngineError):
    """Store-layer failure. Never retried automatically; callers decide."""

    category = "integrity"
    code = "integrity_error"


# Shared concrete errors raised by more than one service

class InvalidQuantity(ValidationError):
    code = "invalid_quantity"


class InvalidPrice(ValidationError):
    code = "invalid_price"


class InvalidAmount(ValidationError):
    code = "invalid_amount"


class SaleNotFound(NotFoundError):
    code = "sale_not_found"


class CatalogItemNotFound(NotFoundError):
    code = "catalog_item_not_found"


class CustomerNotFound(NotFoundError):
    code = "customer_not_found"


class CustomerNotActive(StateConflictError):
    code = "customer_not_active"
