# Overview: Flask API routes for stock operations; parses input and returns JSON responses.

"""
Stock routes.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- from_date/to_date filtering is inclusive; a date-only to_date covers that whole day.
"""
from flask import Blueprint, request, jsonify

from radstock.time_utils import parse_iso_datetime
from ..decorators import handle_service_errors
from ..services import stock_service
from ..services.errors import ValidationError
from ..validation import parse_stock_update, coerce_int


stock_bp = Blueprint("stock", __name__, url_prefix="/api")


def _parse_date_arg(name: str, *, end_of_day: bool = False):
    try:
        return parse_iso_datetime(request.args.get(name), end_of_day=end_of_day)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


def _parse_threshold():
    raw = request.args.get("threshold")
    return coerce_int("threshold", raw) if raw is not None else None


@stock_bp.get("/radiators/<int:radiator_id>/stock")
@handle_service_errors("load stock")
def get_stock_route(radiator_id: int):
    return jsonify({"stock": stock_service.get_stock(radiator_id)}), 200


@stock_bp.post("/radiators/<int:radiator_id>/stock")
@handle_service_errors("update stock")
def update_stock_route(radiator_id: int):
    patch = parse_stock_update(request.get_json(silent=True) or {})
    entry = stock_service.update_stock(radiator_id, patch["warehouse_code"], patch["quantity"])
    return jsonify({
        "message": f"Stock updated successfully for warehouse {patch['warehouse_code']}.",
        "radiator_id": radiator_id,
        "warehouse_code": patch["warehouse_code"],
        "quantity": entry.new_quantity,
        "history": entry.to_dict(),
    }), 200


@stock_bp.get("/radiators/<int:radiator_id>/stock/history")
@handle_service_errors("load stock history")
def stock_history_route(radiator_id: int):
    limit = request.args.get("limit", default=200, type=int)
    items = stock_service.get_stock_history(
        radiator_id,
        from_date=_parse_date_arg("from_date"),
        to_date=_parse_date_arg("to_date", end_of_day=True),
        warehouse_code=request.args.get("warehouse_code"),
        limit=max(1, min(limit, 1000)),
    )
    return jsonify({"items": items}), 200


@stock_bp.post("/stock/adjust")
@handle_service_errors("adjust stock")
def adjust_stock_route():
    payload = request.get_json(silent=True) or {}
    for field in ("radiator_id", "warehouse_code", "quantity_delta"):
        if payload.get(field) is None:
            raise ValidationError(f"{field} is required")

    entry = stock_service.adjust_stock(
        coerce_int("radiator_id", payload["radiator_id"]),
        str(payload["warehouse_code"]),
        coerce_int("quantity_delta", payload["quantity_delta"]),
        note=payload.get("note"),
    )
    return jsonify({"history": entry.to_dict()}), 201


@stock_bp.post("/stock/bulk")
@handle_service_errors("bulk update stock")
def bulk_update_route():
    payload = request.get_json(silent=True) or {}
    updates = payload.get("updates")
    if not isinstance(updates, list):
        raise ValidationError("updates must be a list")
    result = stock_service.bulk_update_stock(updates, reason=payload.get("reason"))
    return jsonify(result), 200


@stock_bp.get("/stock/summary")
@handle_service_errors("build stock summary")
def stock_summary_route():
    return jsonify(stock_service.get_stock_summary(_parse_threshold())), 200


@stock_bp.get("/stock/low")
@handle_service_errors("list low stock")
def low_stock_route():
    return jsonify({"items": stock_service.get_low_stock_items(_parse_threshold())}), 200


@stock_bp.get("/stock/out-of-stock")
@handle_service_errors("list out-of-stock items")
def out_of_stock_route():
    return jsonify({"items": stock_service.get_out_of_stock_items()}), 200


@stock_bp.get("/stock/reconcile")
@handle_service_errors("reconcile stock")
def reconcile_route():
    radiator_id = request.args.get("radiator_id", type=int)
    return jsonify(stock_service.reconcile_stock(radiator_id)), 200


@stock_bp.get("/warehouses/<string:warehouse_code>/stock")
@handle_service_errors("load warehouse stock")
def warehouse_stock_route(warehouse_code: str):
    return jsonify(stock_service.get_warehouse_stock(warehouse_code, _parse_threshold())), 200


@stock_bp.get("/radiators")
@handle_service_errors("list radiators with stock")
def radiators_with_stock_route():
    low_stock_only = request.args.get("low_stock_only", "false").strip().lower() in {"1", "true", "yes"}
    items = stock_service.list_radiators_with_stock(
        search=request.args.get("search"),
        low_stock_only=low_stock_only,
        warehouse_code=request.args.get("warehouse_code"),
        threshold=_parse_threshold(),
    )
    return jsonify({"items": items}), 200
