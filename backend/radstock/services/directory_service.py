# Overview: Read-only lookups against the catalog, warehouse, customer and user records.

"""
These records are owned elsewhere (CRUD is not part of this service). The
sale engine and stock service only need to know whether a referenced row
exists, so every lookup returns Found(value) or NotFound(entity, key) instead
of raising.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Customer, Radiator, User, Warehouse
from .results import Found, Lookup, NotFound


def find_radiator(radiator_id: int) -> Lookup:
    radiator = db.session.get(Radiator, radiator_id)
    if radiator is None:
        return NotFound("radiator", radiator_id)
    return Found(radiator)


def find_warehouse(*, warehouse_id: int | None = None, code: str | None = None) -> Lookup:
    """Lookup by id or by code (codes are matched case-insensitively)."""
    if warehouse_id is not None:
        warehouse = db.session.get(Warehouse, warehouse_id)
        key = warehouse_id
    elif code:
        warehouse = (
            db.session.query(Warehouse)
            .filter(db.func.upper(Warehouse.code) == code.strip().upper())
            .first()
        )
        key = code
    else:
        raise ValueError("warehouse_id or code is required")

    if warehouse is None:
        return NotFound("warehouse", key)
    return Found(warehouse)


def list_warehouses() -> list[Warehouse]:
    return db.session.query(Warehouse).order_by(Warehouse.code.asc()).all()


def customer_exists(customer_id: int) -> bool:
    return db.session.query(Customer.id).filter_by(id=customer_id).first() is not None


def find_customer(customer_id: int) -> Lookup:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return NotFound("customer", customer_id)
    return Found(customer)


def find_user(user_id: int) -> Lookup:
    user = db.session.get(User, user_id)
    if user is None:
        return NotFound("user", user_id)
    return Found(user)
