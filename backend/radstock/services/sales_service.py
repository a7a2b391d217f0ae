"""
Sales Service - sale transaction engine

Sale lifecycle:
    (none) -> COMPLETED -> CANCELLED   (administrative void, stock untouched)
                        -> REFUNDED    (every consumed unit returned to stock)
CANCELLED and REFUNDED are terminal.

CANCEL vs REFUND: a cancellation voids the paperwork only. Goods
that actually come back go through refund_sale, which restores exactly the
quantities each line consumed.

PRICING: unit prices are taken from the caller as-is; nothing here re-prices
a line against the catalog.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import ChangeType, Sale, SaleItem, SaleStatus
from radstock.time_utils import utcnow
from . import ledger_service
from .concurrency import lock_for_update, run_with_retry
from .directory_service import customer_exists, find_radiator, find_user, find_warehouse
from .errors import (
    EntityNotFound,
    InvalidCustomer,
    InvalidStateTransition,
    ValidationError,
)
from .identifier_service import next_sale_number
from .results import unwrap
from .unit_of_work import UnitOfWork


# New Zealand GST, 15% in basis points
TAX_RATE_BPS = 1500

MAX_PAYMENT_METHOD_LENGTH = 20
MAX_NOTES_LENGTH = 500


def calculate_tax_cents(subtotal_cents: int, rate_bps: int = TAX_RATE_BPS) -> int:
    """round(subtotal * rate, 2), half-up, in integer cents."""
    return (subtotal_cents * rate_bps + 5000) // 10000


def calculate_totals(items: list[dict]) -> tuple[int, int, int]:
    subtotal = sum(item["quantity"] * item["unit_price_cents"] for item in items)
    tax = calculate_tax_cents(subtotal)
    return subtotal, tax, subtotal + tax


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_items(items) -> list[dict]:
    if not items:
        raise ValidationError("A sale needs at least one item")

    cleaned = []
    for index, item in enumerate(items):
        quantity = item.get("quantity")
        unit_price_cents = item.get("unit_price_cents")
        radiator_id = item.get("radiator_id")
        warehouse_id = item.get("warehouse_id")

        if not _is_int(radiator_id) or not _is_int(warehouse_id):
            raise ValidationError(
                "radiator_id and warehouse_id must be integers",
                details={"index": index},
            )
        if not _is_int(quantity) or quantity < 1:
            raise ValidationError("quantity must be at least 1", details={"index": index})
        if not _is_int(unit_price_cents) or unit_price_cents < 1:
            raise ValidationError("unit_price_cents must be at least 1", details={"index": index})

        unwrap(find_radiator(radiator_id))
        unwrap(find_warehouse(warehouse_id=warehouse_id))

        cleaned.append({
            "radiator_id": radiator_id,
            "warehouse_id": warehouse_id,
            "quantity": quantity,
            "unit_price_cents": unit_price_cents,
        })
    return cleaned


def create_sale(
    customer_id: int,
    payment_method: str | None,
    notes: str | None,
    items: list[dict],
    acting_user_id: int,
) -> Sale:
    """
    Record a sale and consume its stock in one transaction.

    items: [{"radiator_id", "warehouse_id", "quantity", "unit_price_cents"}]

    All directory validation happens before the transaction opens. Inside it,
    every line is decremented in input order; the first InsufficientStock
    rolls back the sale and every decrement already applied.

    Raises InvalidCustomer, ValidationError, EntityNotFound, InsufficientStock,
    DuplicateIdentifier or PersistenceFailure.
    """
    if not customer_exists(customer_id):
        raise InvalidCustomer(f"Customer {customer_id} does not exist", details={"customer_id": customer_id})

    lines = _validate_items(items)
    unwrap(find_user(acting_user_id))

    payment_method = (payment_method or "Cash").strip() or "Cash"
    if len(payment_method) > MAX_PAYMENT_METHOD_LENGTH:
        raise ValidationError(f"payment_method must be at most {MAX_PAYMENT_METHOD_LENGTH} characters")
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes must be at most {MAX_NOTES_LENGTH} characters")

    subtotal, tax, total = calculate_totals(lines)
    prefix = current_app.config.get("SALE_NUMBER_PREFIX", "RS")

    def _op() -> Sale:
        now = utcnow()
        with UnitOfWork() as uow:
            sale = Sale(
                sale_number=next_sale_number(prefix, now),
                customer_id=customer_id,
                processed_by_user_id=acting_user_id,
                subtotal_cents=subtotal,
                tax_amount_cents=tax,
                total_amount_cents=total,
                payment_method=payment_method,
                notes=notes,
                status=SaleStatus.COMPLETED,
                sale_date=now,
                created_at=now,
            )
            uow.add(sale)
            for line in lines:
                uow.add(SaleItem(
                    sale=sale,
                    radiator_id=line["radiator_id"],
                    warehouse_id=line["warehouse_id"],
                    quantity=line["quantity"],
                    unit_price_cents=line["unit_price_cents"],
                    total_price_cents=line["quantity"] * line["unit_price_cents"],
                    created_at=now,
                ))
            # Sale id is needed to tag history rows; also surfaces a
            # sale-number collision before any stock moves
            uow.flush()

            for line in lines:
                ledger_service.decrement(
                    uow,
                    radiator_id=line["radiator_id"],
                    warehouse_id=line["warehouse_id"],
                    quantity=line["quantity"],
                    change_type=ChangeType.SALE,
                    sale_id=sale.id,
                    note=f"Sale {sale.sale_number}",
                )
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info(
        "Sale %s created: %d item(s), total_cents=%d", sale.sale_number, len(lines), total
    )
    return sale


_TRANSITION_REFUSALS = {
    "cancel": "Cannot cancel this sale. Only completed sales can be cancelled.",
    "refund": "Cannot refund this sale. Only completed sales can be refunded.",
}


def _load_sale_for_transition(uow: UnitOfWork, sale_id: int, action: str) -> Sale:
    sale = lock_for_update(uow.session.query(Sale).filter_by(id=sale_id)).populate_existing().first()
    if sale is None:
        raise EntityNotFound("sale", sale_id)
    if sale.status.is_terminal:
        raise InvalidStateTransition(
            _TRANSITION_REFUSALS[action],
            details={"sale_id": sale_id, "status": sale.status.value},
        )
    return sale


def cancel_sale(sale_id: int) -> Sale:
    """Void a completed sale. Stock consumed by the sale stays consumed."""
    def _op() -> Sale:
        with UnitOfWork() as uow:
            sale = _load_sale_for_transition(uow, sale_id, "cancel")
            sale.status = SaleStatus.CANCELLED
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info("Sale %s cancelled", sale.sale_number)
    return sale


def refund_sale(sale_id: int) -> Sale:
    """
    Refund a completed sale, returning each line's original quantity to the
    warehouse it came from. The status guard is re-checked inside the
    transaction, so a concurrent cancel or refund of the same sale loses.
    """
    def _op() -> Sale:
        with UnitOfWork() as uow:
            sale = _load_sale_for_transition(uow, sale_id, "refund")
            for item in sale.items:
                ledger_service.increment(
                    uow,
                    radiator_id=item.radiator_id,
                    warehouse_id=item.warehouse_id,
                    quantity=item.quantity,
                    change_type=ChangeType.REFUND,
                    sale_id=sale.id,
                    note=f"Refund {sale.sale_number}",
                )
            sale.status = SaleStatus.REFUNDED
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info("Sale %s refunded", sale.sale_number)
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise EntityNotFound("sale", sale_id)
    return sale


def list_sales(limit: int = 200) -> list[Sale]:
    return (
        db.session.query(Sale)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )


def list_sales_by_date_range(from_date: datetime, to_date: datetime) -> list[Sale]:
    """Sales with from_date <= sale_date <= to_date, newest first."""
    if from_date > to_date:
        raise ValidationError("from_date cannot be greater than to_date")
    return (
        db.session.query(Sale)
        .filter(Sale.sale_date >= from_date, Sale.sale_date <= to_date)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .all()
    )
