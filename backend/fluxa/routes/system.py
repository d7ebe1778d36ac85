# backend/fluxa/routes/system.py
"""
System health endpoint.

Reports database reachability and whether the stock cache agrees with the
ledger. Drift never makes the service unhealthy, only degraded.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..services import stock_service
from fluxa.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_stock_ledger_health() -> dict:
    try:
        drift = stock_service.find_stock_drift()
    except Exception:
        current_app.logger.exception("Stock ledger health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "error": "Stock ledger error"}

    if drift:
        return {
            "status": "degraded",
            "warning": f"{len(drift)} product(s) with stock cache drift",
            "details": {"drifted_product_ids": [row["product_id"] for row in drift]},
        }
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    database_health = check_database_health()
    if database_health["status"] == "unhealthy":
        ledger_health = {"status": "unknown"}
    else:
        ledger_health = check_stock_ledger_health()

    all_checks = [database_health, ledger_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {
            "database": database_health,
            "stock_ledger": ledger_health,
        }
    }, http_status
