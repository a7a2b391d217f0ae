# Overview: Read-model projections of sales for API responses and receipts.

from __future__ import annotations

from flask import current_app

from ..models import Sale
from radstock.time_utils import to_utc_z
from .sales_service import get_sale


def sale_to_response(sale: Sale) -> dict:
    """Full sale with customer, processing user and per-line radiator/warehouse."""
    return {
        **sale.to_dict(),
        "customer": sale.customer.to_dict(),
        "processed_by": sale.processed_by.to_dict(),
        "items": [
            {
                "id": item.id,
                "radiator": item.radiator.to_summary_dict(),
                "warehouse": item.warehouse.to_dict(),
                "quantity": item.quantity,
                "unit_price_cents": item.unit_price_cents,
                "total_price_cents": item.total_price_cents,
            }
            for item in sale.items
        ],
    }


def sale_to_list_item(sale: Sale) -> dict:
    return {
        "id": sale.id,
        "sale_number": sale.sale_number,
        "customer_name": sale.customer.full_name,
        "processed_by_name": sale.processed_by.username,
        "total_amount_cents": sale.total_amount_cents,
        "payment_method": sale.payment_method,
        "status": sale.status.value,
        "sale_date": to_utc_z(sale.sale_date),
        "item_count": len(sale.items),
    }


def get_receipt(sale_id: int) -> dict:
    config = current_app.config
    return {
        "sale": sale_to_response(get_sale(sale_id)),
        "company_name": config["RECEIPT_COMPANY_NAME"],
        "company_address": config["RECEIPT_COMPANY_ADDRESS"],
        "company_phone": config["RECEIPT_COMPANY_PHONE"],
        "company_email": config["RECEIPT_COMPANY_EMAIL"],
    }
