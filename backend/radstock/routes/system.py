# backend/radstock/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Radiator, Warehouse, Sale
from ..services.stock_service import reconcile_stock
from radstock.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        radiator_count = db.session.query(Radiator).count()
        warehouse_count = db.session.query(Warehouse).count()
        sale_count = db.session.query(Sale).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "radiators": radiator_count,
                "warehouses": warehouse_count,
                "sales": sale_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_ledger_health() -> dict:
    """
    Replay the stock history and compare it with stored quantities.

    A mismatch is reported as degraded: the service keeps serving, but
    someone wrote to stock_levels without going through the ledger.
    """
    try:
        result = reconcile_stock()
    except Exception:
        current_app.logger.exception("Ledger health check failed")
        return {"status": "unhealthy", "error": "Ledger check failed"}

    if result["consistent"]:
        return {"status": "healthy", "pairs_checked": result["checked"]}

    current_app.logger.warning(
        "Stock ledger out of balance for %d pair(s)", len(result["discrepancies"])
    )
    return {
        "status": "degraded",
        "pairs_checked": result["checked"],
        "discrepancies": len(result["discrepancies"]),
    }


@system_bp.get("/api/health")
def health():
    """
    Health check.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    if database_health["status"] == "unhealthy":
        ledger_health = {"status": "unhealthy", "error": "Skipped: database unavailable"}
    else:
        ledger_health = check_ledger_health()

    all_checks = [database_health, ledger_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "ledger": ledger_health,
        }
    }
    return response, http_status
