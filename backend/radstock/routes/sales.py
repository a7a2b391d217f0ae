# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/radstock/routes/sales.py
"""
Sales API routes.

Authentication happens upstream; the acting user arrives as
processed_by_user_id in the create payload.
"""

from flask import Blueprint, request, jsonify

from radstock.time_utils import parse_iso_datetime
from ..decorators import handle_service_errors
from ..services import sales_service, sale_views
from ..services.errors import ValidationError
from ..validation import parse_sale_create


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@handle_service_errors("create sale")
def create_sale_route():
    """Create a completed sale and consume its stock."""
    header, items = parse_sale_create(request.get_json(silent=True))

    sale = sales_service.create_sale(
        customer_id=header["customer_id"],
        payment_method=header.get("payment_method"),
        notes=header.get("notes"),
        items=items,
        acting_user_id=header["processed_by_user_id"],
    )
    return jsonify({"sale": sale_views.sale_to_response(sale)}), 201


@sales_bp.get("")
@handle_service_errors("list sales")
def list_sales_route():
    limit = request.args.get("limit", default=200, type=int)
    sales = sales_service.list_sales(limit=max(1, min(limit, 1000)))
    return jsonify({"items": [sale_views.sale_to_list_item(s) for s in sales]}), 200


@sales_bp.get("/by-date")
@handle_service_errors("list sales by date")
def sales_by_date_route():
    try:
        from_date = parse_iso_datetime(request.args.get("from_date"))
        to_date = parse_iso_datetime(request.args.get("to_date"), end_of_day=True)
    except ValueError:
        raise ValidationError("from_date and to_date must be ISO-8601 datetimes")
    if from_date is None or to_date is None:
        raise ValidationError("from_date and to_date are required")

    sales = sales_service.list_sales_by_date_range(from_date, to_date)
    return jsonify({"items": [sale_views.sale_to_list_item(s) for s in sales]}), 200


@sales_bp.get("/<int:sale_id>")
@handle_service_errors("load sale")
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    return jsonify({"sale": sale_views.sale_to_response(sale)}), 200


@sales_bp.get("/<int:sale_id>/receipt")
@handle_service_errors("build receipt")
def receipt_route(sale_id: int):
    return jsonify(sale_views.get_receipt(sale_id)), 200


@sales_bp.post("/<int:sale_id>/cancel")
@handle_service_errors("cancel sale")
def cancel_sale_route(sale_id: int):
    """Cancel a completed sale. Stock is NOT restored; use refund for that."""
    sales_service.cancel_sale(sale_id)
    return jsonify({"message": "Sale cancelled successfully."}), 200


@sales_bp.post("/<int:sale_id>/refund")
@handle_service_errors("refund sale")
def refund_sale_route(sale_id: int):
    """Refund a completed sale and restore its stock."""
    sale = sales_service.refund_sale(sale_id)
    return jsonify({"sale": sale_views.sale_to_response(sale)}), 200
