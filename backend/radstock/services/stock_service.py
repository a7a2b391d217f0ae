# Overview: Stock operations exposed to the calling layer, built on the ledger.

"""
Reads here are projections over StockLevel / StockHistory; every write goes
through ledger_service inside its own UnitOfWork, wrapped in run_with_retry.

Pair semantics: stock figures cover every (radiator, warehouse) pair, and a
pair without a StockLevel row counts as quantity 0.
- low stock:    0 < quantity <= threshold
- out of stock: quantity == 0
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import and_, func, or_, true

from ..extensions import db
from ..models import ChangeType, Customer, Radiator, Sale, StockHistory, StockLevel, Warehouse
from radstock.time_utils import to_utc_z, utcnow
from . import ledger_service
from .concurrency import run_with_retry
from .directory_service import find_radiator, find_warehouse
from .errors import ServiceError, ValidationError
from .results import unwrap
from .unit_of_work import UnitOfWork
from ..validation import coerce_int


def _require_radiator(radiator_id) -> Radiator:
    if isinstance(radiator_id, bool) or not isinstance(radiator_id, int):
        raise ValidationError("radiator_id must be an integer", details={"radiator_id": radiator_id})
    return unwrap(find_radiator(radiator_id))


def _require_warehouse_code(warehouse_code) -> Warehouse:
    if not isinstance(warehouse_code, str) or not warehouse_code.strip():
        raise ValidationError("warehouse_code is required")
    return unwrap(find_warehouse(code=warehouse_code))


def _default_threshold(threshold: int | None) -> int:
    if threshold is None:
        return int(current_app.config.get("LOW_STOCK_THRESHOLD", 5))
    if threshold < 0:
        raise ValidationError("threshold must be >= 0")
    return threshold


def get_stock(radiator_id: int) -> dict[str, int]:
    """Quantity per warehouse code; EntityNotFound for an unknown radiator."""
    _require_radiator(radiator_id)
    return ledger_service.get_quantities(radiator_id)


def update_stock(
    radiator_id: int,
    warehouse_code: str,
    quantity: int,
    *,
    note: str | None = None,
) -> StockHistory:
    """Set the on-hand quantity for one warehouse (manual override)."""
    radiator = _require_radiator(radiator_id)
    warehouse = _require_warehouse_code(warehouse_code)

    def _op():
        with UnitOfWork() as uow:
            entry = ledger_service.set_absolute(
                uow,
                radiator_id=radiator.id,
                warehouse_id=warehouse.id,
                new_quantity=quantity,
                change_type=ChangeType.MANUAL,
                note=note,
            )
        return entry

    return run_with_retry(_op)


def adjust_stock(
    radiator_id: int,
    warehouse_code: str,
    quantity_delta: int,
    *,
    note: str | None = None,
) -> StockHistory:
    """
    Apply a signed correction (shrinkage, found stock, damaged goods).

    Negative deltas go through the same insufficient-stock check as sales.
    """
    radiator = _require_radiator(radiator_id)
    warehouse = _require_warehouse_code(warehouse_code)
    if isinstance(quantity_delta, bool) or not isinstance(quantity_delta, int) or quantity_delta == 0:
        raise ValidationError("quantity_delta must be a non-zero integer")

    def _op():
        with UnitOfWork() as uow:
            if quantity_delta > 0:
                entry = ledger_service.increment(
                    uow,
                    radiator_id=radiator.id,
                    warehouse_id=warehouse.id,
                    quantity=quantity_delta,
                    change_type=ChangeType.ADJUSTMENT,
                    note=note,
                )
            else:
                entry = ledger_service.decrement(
                    uow,
                    radiator_id=radiator.id,
                    warehouse_id=warehouse.id,
                    quantity=-quantity_delta,
                    change_type=ChangeType.ADJUSTMENT,
                    note=note,
                )
        return entry

    return run_with_retry(_op)


def bulk_update_stock(updates: list, reason: str | None = None) -> dict:
    """
    Apply many absolute updates. Each update commits on its own, so one bad
    row does not block the rest; failures are reported per row.

    Row values go through the same integer coercion as the single-update
    route, so {"quantity": "5"} is accepted here too.
    """
    success_count = 0
    errors = []

    for index, item in enumerate(updates):
        row = item if isinstance(item, dict) else {}
        try:
            if not isinstance(item, dict):
                raise ValidationError(f"updates[{index}] must be an object")
            update_stock(
                coerce_int("radiator_id", item.get("radiator_id")),
                item.get("warehouse_code"),
                coerce_int("quantity", item.get("quantity")),
                note=reason,
            )
        except ServiceError as exc:
            errors.append({
                "index": index,
                "radiator_id": row.get("radiator_id"),
                "warehouse_code": row.get("warehouse_code"),
                "error": str(exc),
                "code": exc.code,
            })
        else:
            success_count += 1

    return {
        "success_count": success_count,
        "error_count": len(errors),
        "has_errors": bool(errors),
        "errors": errors,
        "processed_at": to_utc_z(utcnow()),
    }


def get_stock_history(
    radiator_id: int,
    *,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    warehouse_code: str | None = None,
    limit: int = 200,
) -> list[dict]:
    """Movement log for one radiator, newest first."""
    _require_radiator(radiator_id)
    if from_date and to_date and from_date > to_date:
        raise ValidationError("from_date cannot be after to_date")

    q = (
        db.session.query(StockHistory, Warehouse, Sale, Customer)
        .join(Warehouse, StockHistory.warehouse_id == Warehouse.id)
        .outerjoin(Sale, StockHistory.sale_id == Sale.id)
        .outerjoin(Customer, Sale.customer_id == Customer.id)
        .filter(StockHistory.radiator_id == radiator_id)
    )
    if from_date is not None:
        q = q.filter(StockHistory.created_at >= from_date)
    if to_date is not None:
        q = q.filter(StockHistory.created_at <= to_date)
    if warehouse_code:
        q = q.filter(func.upper(Warehouse.code) == warehouse_code.strip().upper())

    rows = q.order_by(StockHistory.created_at.desc(), StockHistory.id.desc()).limit(limit).all()

    return [
        {
            **entry.to_dict(),
            "warehouse_code": warehouse.code,
            "warehouse_name": warehouse.name,
            "quantity": abs(entry.quantity_change),
            "sale_number": sale.sale_number if sale else None,
            "customer_name": customer.full_name if customer else None,
        }
        for entry, warehouse, sale, customer in rows
    ]


def _pair_rows():
    """Every (radiator, warehouse) pair with its StockLevel row, if any."""
    return (
        db.session.query(Radiator, Warehouse, StockLevel)
        .select_from(Radiator)
        .join(Warehouse, true())
        .outerjoin(
            StockLevel,
            and_(
                StockLevel.radiator_id == Radiator.id,
                StockLevel.warehouse_id == Warehouse.id,
            ),
        )
        .order_by(Radiator.code.asc(), Warehouse.code.asc())
        .all()
    )


def get_stock_summary(threshold: int | None = None) -> dict:
    threshold = _default_threshold(threshold)

    per_warehouse: dict[int, dict] = {}
    for warehouse in db.session.query(Warehouse).order_by(Warehouse.code.asc()).all():
        per_warehouse[warehouse.id] = {
            "code": warehouse.code,
            "name": warehouse.name,
            "total_stock": 0,
            "unique_items": 0,
            "low_stock_items": 0,
            "out_of_stock_items": 0,
        }

    total_stock = low = out = 0
    for _radiator, warehouse, level in _pair_rows():
        qty = level.quantity if level is not None else 0
        bucket = per_warehouse[warehouse.id]
        bucket["total_stock"] += qty
        total_stock += qty
        if qty == 0:
            bucket["out_of_stock_items"] += 1
            out += 1
        else:
            bucket["unique_items"] += 1
            if qty <= threshold:
                bucket["low_stock_items"] += 1
                low += 1

    return {
        "total_radiators": db.session.query(func.count(Radiator.id)).scalar() or 0,
        "total_stock_items": total_stock,
        "low_stock_items": low,
        "out_of_stock_items": out,
        "threshold": threshold,
        "warehouse_summaries": list(per_warehouse.values()),
        "generated_at": to_utc_z(utcnow()),
    }


def get_low_stock_items(threshold: int | None = None) -> list[dict]:
    threshold = _default_threshold(threshold)
    rows = (
        db.session.query(StockLevel, Radiator, Warehouse)
        .join(Radiator, StockLevel.radiator_id == Radiator.id)
        .join(Warehouse, StockLevel.warehouse_id == Warehouse.id)
        .filter(StockLevel.quantity > 0, StockLevel.quantity <= threshold)
        .order_by(StockLevel.quantity.asc(), Radiator.code.asc(), Warehouse.code.asc())
        .all()
    )
    return [
        {
            "radiator_id": radiator.id,
            "radiator_name": radiator.name,
            "radiator_code": radiator.code,
            "brand": radiator.brand,
            "warehouse_code": warehouse.code,
            "warehouse_name": warehouse.name,
            "current_stock": level.quantity,
            "threshold": threshold,
            "last_updated": to_utc_z(level.updated_at),
        }
        for level, radiator, warehouse in rows
    ]


def get_out_of_stock_items() -> list[dict]:
    items = []
    for radiator, warehouse, level in _pair_rows():
        if level is not None and level.quantity > 0:
            continue
        items.append({
            "radiator_id": radiator.id,
            "radiator_name": radiator.name,
            "radiator_code": radiator.code,
            "brand": radiator.brand,
            "warehouse_code": warehouse.code,
            "warehouse_name": warehouse.name,
            "last_stock_date": to_utc_z(level.updated_at) if level is not None else None,
        })
    return items


def _stock_status(quantity: int, threshold: int) -> str:
    if quantity == 0:
        return "OUT"
    if quantity <= threshold:
        return "LOW"
    return "GOOD"


def get_warehouse_stock(warehouse_code: str, threshold: int | None = None) -> dict:
    """
    Every radiator's quantity in one warehouse, with a GOOD / LOW / OUT status.

    Radiators that never had stock there are listed with quantity 0.
    """
    warehouse = _require_warehouse_code(warehouse_code)
    threshold = _default_threshold(threshold)

    rows = (
        db.session.query(Radiator, StockLevel)
        .outerjoin(
            StockLevel,
            and_(
                StockLevel.radiator_id == Radiator.id,
                StockLevel.warehouse_id == warehouse.id,
            ),
        )
        .order_by(Radiator.code.asc())
        .all()
    )

    items = []
    for radiator, level in rows:
        qty = level.quantity if level is not None else 0
        items.append({
            "radiator_id": radiator.id,
            "radiator_name": radiator.name,
            "radiator_code": radiator.code,
            "brand": radiator.brand,
            "quantity": qty,
            "status": _stock_status(qty, threshold),
            "last_updated": to_utc_z(level.updated_at) if level is not None else None,
        })

    return {
        "warehouse_code": warehouse.code,
        "warehouse_name": warehouse.name,
        "total_items": len(items),
        "total_stock": sum(i["quantity"] for i in items),
        "low_stock_items": sum(1 for i in items if i["status"] == "LOW"),
        "out_of_stock_items": sum(1 for i in items if i["status"] == "OUT"),
        "threshold": threshold,
        "items": items,
    }


def list_radiators_with_stock(
    search: str | None = None,
    low_stock_only: bool = False,
    warehouse_code: str | None = None,
    threshold: int | None = None,
) -> list[dict]:
    """
    Catalog listing with per-warehouse quantities.

    - search matches code, name or brand (case-insensitive substring)
    - warehouse_code narrows the stock map (and the low/out flags) to one warehouse
    - low_stock_only keeps radiators with at least one pair at 0 < qty <= threshold
    """
    threshold = _default_threshold(threshold)

    warehouse_q = db.session.query(Warehouse)
    if warehouse_code:
        warehouse_q = warehouse_q.filter(Warehouse.id == _require_warehouse_code(warehouse_code).id)
    warehouses = warehouse_q.order_by(Warehouse.code.asc()).all()

    radiator_q = db.session.query(Radiator)
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        radiator_q = radiator_q.filter(
            or_(
                func.lower(Radiator.code).like(pattern),
                func.lower(Radiator.name).like(pattern),
                func.lower(Radiator.brand).like(pattern),
            )
        )
    radiators = radiator_q.order_by(Radiator.code.asc()).all()
    if not radiators:
        return []

    levels = (
        db.session.query(StockLevel.radiator_id, StockLevel.warehouse_id, StockLevel.quantity)
        .filter(StockLevel.radiator_id.in_([r.id for r in radiators]))
        .all()
    )
    qty_by_pair = {(r, w): int(q) for r, w, q in levels}

    result = []
    for radiator in radiators:
        stock = {w.code: qty_by_pair.get((radiator.id, w.id), 0) for w in warehouses}
        has_low = any(0 < q <= threshold for q in stock.values())
        if low_stock_only and not has_low:
            continue
        result.append({
            **radiator.to_summary_dict(),
            "retail_price_cents": radiator.retail_price_cents,
            "trade_price_cents": radiator.trade_price_cents,
            "cost_price_cents": radiator.cost_price_cents,
            "is_price_overridable": radiator.is_price_overridable,
            "max_discount_percent": radiator.max_discount_percent,
            "stock": stock,
            "total_stock": sum(stock.values()),
            "has_low_stock": has_low,
            "has_out_of_stock": any(q == 0 for q in stock.values()),
        })
    return result


def reconcile_stock(radiator_id: int | None = None) -> dict:
    """
    Compare each StockLevel with the replayed sum of its history deltas.

    A non-empty `discrepancies` list means something wrote to stock_levels
    outside the ledger.
    """
    history_q = db.session.query(
        StockHistory.radiator_id,
        StockHistory.warehouse_id,
        func.sum(StockHistory.quantity_change),
    ).group_by(StockHistory.radiator_id, StockHistory.warehouse_id)
    level_q = db.session.query(StockLevel.radiator_id, StockLevel.warehouse_id, StockLevel.quantity)
    if radiator_id is not None:
        history_q = history_q.filter(StockHistory.radiator_id == radiator_id)
        level_q = level_q.filter(StockLevel.radiator_id == radiator_id)

    history_totals = {(r, w): int(total or 0) for r, w, total in history_q.all()}
    quantities = {(r, w): int(qty) for r, w, qty in level_q.all()}

    discrepancies = []
    for key in sorted(set(history_totals) | set(quantities)):
        quantity = quantities.get(key, 0)
        history_total = history_totals.get(key, 0)
        if quantity != history_total:
            discrepancies.append({
                "radiator_id": key[0],
                "warehouse_id": key[1],
                "quantity": quantity,
                "history_total": history_total,
            })

    return {
        "checked": len(set(history_totals) | set(quantities)),
        "consistent": not discrepancies,
        "discrepancies": discrepancies,
    }
