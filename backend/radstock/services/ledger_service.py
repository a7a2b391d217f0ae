# Overview: Stock ledger; sole writer of StockLevel and StockHistory.

from __future__ import annotations

from sqlalchemy import and_, func

from ..extensions import db
from ..models import ChangeType, MovementType, StockHistory, StockLevel, Warehouse
from .concurrency import lock_for_update
from .errors import InsufficientStock, ValidationError
from .unit_of_work import UnitOfWork
"""
Stock Ledger Invariants (authoritative)

- quantity >= 0 for every StockLevel, always (also a CHECK constraint).
- For each (radiator, warehouse) pair, StockLevel.quantity equals the sum of
  StockHistory.quantity_change for that pair, starting from 0.
- Every mutation writes exactly one StockHistory row through the caller's
  UnitOfWork, so the level update and its history row commit or roll back
  together.
- Mutations re-read the row under lock inside the caller's transaction. The
  check that prevents overselling happens here, at write time, not only when
  a request is first validated.
- The ledger keeps no state between calls.
"""


def get_quantities(radiator_id: int, *, session=None) -> dict[str, int]:
    """
    Quantity per warehouse code for one radiator, covering every warehouse.

    Pairs with no StockLevel row read as 0; an unknown radiator gives all zeros.
    """
    session = session if session is not None else db.session
    rows = (
        session.query(Warehouse.code, StockLevel.quantity)
        .outerjoin(
            StockLevel,
            and_(
                StockLevel.warehouse_id == Warehouse.id,
                StockLevel.radiator_id == radiator_id,
            ),
        )
        .order_by(Warehouse.code.asc())
        .all()
    )
    return {code: int(qty or 0) for code, qty in rows}


def get_quantity(radiator_id: int, warehouse_id: int, *, session=None) -> int:
    session = session if session is not None else db.session
    qty = (
        session.query(StockLevel.quantity)
        .filter_by(radiator_id=radiator_id, warehouse_id=warehouse_id)
        .scalar()
    )
    return int(qty or 0)


def sum_history(radiator_id: int, warehouse_id: int, *, session=None) -> int:
    """Replay the movement log for one pair (starting from 0)."""
    session = session if session is not None else db.session
    total = (
        session.query(func.coalesce(func.sum(StockHistory.quantity_change), 0))
        .filter(
            StockHistory.radiator_id == radiator_id,
            StockHistory.warehouse_id == warehouse_id,
        )
        .scalar()
    )
    return int(total or 0)


def _load_level(uow: UnitOfWork, radiator_id: int, warehouse_id: int) -> StockLevel | None:
    query = uow.session.query(StockLevel).filter_by(
        radiator_id=radiator_id,
        warehouse_id=warehouse_id,
    )
    # populate_existing: never trust a quantity cached in the identity map
    return lock_for_update(query).populate_existing().first()


def _load_or_create_level(uow: UnitOfWork, radiator_id: int, warehouse_id: int) -> StockLevel:
    level = _load_level(uow, radiator_id, warehouse_id)
    if level is None:
        level = StockLevel(radiator_id=radiator_id, warehouse_id=warehouse_id, quantity=0)
        uow.add(level)
    return level


def _record(
    uow: UnitOfWork,
    level: StockLevel,
    *,
    old_quantity: int,
    new_quantity: int,
    change_type: ChangeType,
    sale_id: int | None,
    note: str | None,
) -> StockHistory:
    delta = new_quantity - old_quantity
    level.quantity = new_quantity

    entry = StockHistory(
        radiator_id=level.radiator_id,
        warehouse_id=level.warehouse_id,
        old_quantity=old_quantity,
        new_quantity=new_quantity,
        quantity_change=delta,
        movement_type=MovementType.OUTGOING if delta < 0 else MovementType.INCOMING,
        change_type=change_type,
        sale_id=sale_id,
        note=note,
    )
    uow.add(entry)
    uow.flush()
    return entry


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer", details={"quantity": quantity})


def decrement(
    uow: UnitOfWork,
    *,
    radiator_id: int,
    warehouse_id: int,
    quantity: int,
    change_type: ChangeType = ChangeType.SALE,
    sale_id: int | None = None,
    note: str | None = None,
) -> StockHistory:
    """Remove `quantity` units; raises InsufficientStock if fewer are on hand."""
    _require_positive(quantity)

    level = _load_level(uow, radiator_id, warehouse_id)
    current = level.quantity if level is not None else 0
    if current < quantity:
        raise InsufficientStock(
            "Insufficient stock",
            details={
                "radiator_id": radiator_id,
                "warehouse_id": warehouse_id,
                "requested_quantity": quantity,
                "on_hand": current,
            },
        )

    return _record(
        uow,
        level,
        old_quantity=current,
        new_quantity=current - quantity,
        change_type=change_type,
        sale_id=sale_id,
        note=note,
    )


def increment(
    uow: UnitOfWork,
    *,
    radiator_id: int,
    warehouse_id: int,
    quantity: int,
    change_type: ChangeType,
    sale_id: int | None = None,
    note: str | None = None,
) -> StockHistory:
    """Add `quantity` units, creating the StockLevel row on first use."""
    _require_positive(quantity)

    level = _load_or_create_level(uow, radiator_id, warehouse_id)
    current = level.quantity or 0
    return _record(
        uow,
        level,
        old_quantity=current,
        new_quantity=current + quantity,
        change_type=change_type,
        sale_id=sale_id,
        note=note,
    )


def set_absolute(
    uow: UnitOfWork,
    *,
    radiator_id: int,
    warehouse_id: int,
    new_quantity: int,
    change_type: ChangeType = ChangeType.MANUAL,
    note: str | None = None,
) -> StockHistory:
    """
    Overwrite the quantity (manual counts and overrides, never sales).

    The history row carries delta = new - current, so replaying the log still
    lands on the new quantity.
    """
    if isinstance(new_quantity, bool) or not isinstance(new_quantity, int) or new_quantity < 0:
        raise ValidationError("quantity must be a non-negative integer", details={"quantity": new_quantity})

    level = _load_or_create_level(uow, radiator_id, warehouse_id)
    current = level.quantity or 0
    return _record(
        uow,
        level,
        old_quantity=current,
        new_quantity=new_quantity,
        change_type=change_type,
        sale_id=None,
        note=note,
    )
