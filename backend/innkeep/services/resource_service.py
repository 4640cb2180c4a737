# Overview: Service-layer operations for occupiable resources (rooms, tables, stations).

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..errors import NotFoundError, StateConflictError
from ..extensions import db
from ..models import Resource
from ..money import require_cents
from ..validation import ModelValidationPolicy, apply_patch, require_name, validate_payload
from .concurrency import run_in_transaction
from .ledger_service import append_ledger_event


class ResourceNotFound(NotFoundError):
    code = "resource_not_found"


class ResourceOccupied(StateConflictError):
    code = "resource_occupied"


RESOURCE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"label", "rate_cents", "is_active"}),
    non_negative_fields=frozenset({"rate_cents"}),
)


def get_resource(resource_id: int) -> Resource:
    resource = db.session.get(Resource, resource_id)
    if not resource:
        raise ResourceNotFound(f"Resource {resource_id} not found", details={"resource_id": resource_id})
    return resource


def list_resources(available_only: bool = False) -> list[Resource]:
    query = db.session.query(Resource).filter(Resource.is_active.is_(True))
    if available_only:
        query = query.filter(Resource.occupied.is_(False))
    return query.order_by(Resource.label.asc()).all()


def create_resource(label: str, rate_cents: int) -> Resource:
    clean_label = require_name(label, field="label")
    require_cents(rate_cents, "rate_cents")

    def _op():
        resource = Resource(label=clean_label, rate_cents=rate_cents, occupied=False, is_active=True)
        db.session.add(resource)
        db.session.flush()
        append_ledger_event(
            event_type="resource.created",
            entity_type="resource",
            entity_id=resource.id,
            note=f"Resource {clean_label} created",
        )
        return resource

    resource = run_in_transaction(_op)
    current_app.logger.info("Resource %s created (%s)", resource.id, resource.label)
    return resource


def update_resource(resource_id: int, patch: dict) -> Resource:
    clean = validate_payload(model=Resource, payload=patch, policy=RESOURCE_UPDATE_POLICY, partial=True)
    if "label" in clean:
        clean["label"] = require_name(clean["label"], field="label")

    def _op():
        resource = get_resource(resource_id)
        if clean.get("is_active") is False and resource.occupied:
            raise ResourceOccupied(
                f"Resource {resource.label} is occupied and cannot be deactivated",
                details={"resource_id": resource.id, "occupant_customer_id": resource.occupant_customer_id},
            )
        apply_patch(resource, clean)
        db.session.flush()
        return resource

    return run_in_transaction(_op)


def deactivate_resource(resource_id: int) -> Resource:
    """Soft-delete a resource. Occupied resources cannot be removed."""
    def _op():
        resource = get_resource(resource_id)
        if resource.occupied:
            raise ResourceOccupied(
                f"Resource {resource.label} is occupied and cannot be deactivated",
                details={"resource_id": resource.id, "occupant_customer_id": resource.occupant_customer_id},
            )
        resource.is_active = False
        db.session.flush()
        append_ledger_event(
            event_type="resource.deactivated",
            entity_type="resource",
            entity_id=resource.id,
        )
        return resource

    resource = run_in_transaction(_op)
    current_app.logger.info("Resource %s deactivated", resource.id)
    return resource


# =============================================================================
# OCCUPANCY (called inside the caller's transaction)
# =============================================================================

def occupy_resource(resource_id: int, customer_id: int) -> None:
    """
    Mark a free, active resource as held by customer_id.

    The flag and the occupant move in one conditional UPDATE; a resource
    that is already held raises ResourceOccupied.
    """
    result = db.session.execute(
        update(Resource)
        .where(
            Resource.id == resource_id,
            Resource.is_active.is_(True),
            Resource.occupied.is_(False),
        )
        .values(
            occupied=True,
            occupant_customer_id=customer_id,
            version_id=Resource.version_id + 1,
        )
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 1:
        return

    resource = db.session.get(Resource, resource_id)
    if not resource or not resource.is_active:
        raise ResourceNotFound(f"Resource {resource_id} not found", details={"resource_id": resource_id})
    raise ResourceOccupied(
        f"Resource {resource.label} is already occupied",
        details={"resource_id": resource.id, "occupant_customer_id": resource.occupant_customer_id},
    )


def release_resource(resource_id: int, customer_id: int) -> bool:
    """Free a resource if (and only if) customer_id currently holds it."""
    result = db.session.execute(
        update(Resource)
        .where(
            Resource.id == resource_id,
            Resource.occupant_customer_id == customer_id,
        )
        .values(
            occupied=False,
            occupant_customer_id=None,
            version_id=Resource.version_id + 1,
        )
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1
