from datetime import date

import pytest

from innkeep.errors import InvalidAmount, ValidationError
from innkeep.models import CatalogItem, Customer
from innkeep.money import format_cents, require_cents, to_cents
from innkeep.services.customer_service import CUSTOMER_UPDATE_POLICY
from innkeep.validation import ModelValidationPolicy, validate_payload


def test_to_cents_rounds_half_up():
    assert to_cents("12.50") == 1250
    assert to_cents("0.005") == 1
    assert to_cents(3) == 300
    with pytest.raises(InvalidAmount):
        to_cents("abc")
    with pytest.raises(InvalidAmount):
        to_cents("NaN")


def test_format_cents():
    assert format_cents(123456) == "1,234.56"
    assert format_cents(-500) == "-5.00"
    assert format_cents(None) == "-"


def test_require_cents_bounds():
    assert require_cents(0, "amount") == 0
    with pytest.raises(InvalidAmount):
        require_cents(0, "amount", allow_zero=False)
    with pytest.raises(InvalidAmount):
        require_cents(1_000_000_000, "amount")


def test_validate_payload_create_requires_fields(app):
    policy = ModelValidationPolicy(
        writable_fields=frozenset({"name", "price_cents"}),
        required_on_create=frozenset({"name", "price_cents"}),
        non_negative_fields=frozenset({"price_cents"}),
    )
    with pytest.raises(ValidationError):
        validate_payload(model=CatalogItem, payload={"name": "Tea"}, policy=policy, partial=False)

    clean = validate_payload(model=CatalogItem, payload={"name": " Tea ", "price_cents": "150"}, policy=policy, partial=False)
    assert clean == {"name": "Tea", "price_cents": 150}

    with pytest.raises(ValidationError):
        validate_payload(model=CatalogItem, payload={"name": "x" * 300}, policy=policy, partial=True)


def test_validate_payload_coerces_calendar_dates(app):
    clean = validate_payload(model=Customer, payload={"check_out": "2026-03-04"}, policy=CUSTOMER_UPDATE_POLICY, partial=True)
    assert clean == {"check_out": date(2026, 3, 4)}

    with pytest.raises(ValidationError):
        validate_payload(model=Customer, payload={"check_out": "04/03/2026"}, policy=CUSTOMER_UPDATE_POLICY, partial=True)
    with pytest.raises(ValidationError):
        validate_payload(model=Customer, payload={"check_out": 20260304}, policy=CUSTOMER_UPDATE_POLICY, partial=True)
    # Timestamps are server-assigned and never writable
    with pytest.raises(ValidationError):
        validate_payload(model=Customer, payload={"created_at": "2026-03-04T10:00:00Z"}, policy=CUSTOMER_UPDATE_POLICY, partial=True)
