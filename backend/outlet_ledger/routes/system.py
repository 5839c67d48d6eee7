# backend/outlet_ledger/routes/system.py
"""
System health endpoint.

Reports database connectivity and whether the accounts the journal poster
needs are present.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..models import Account, Outlet
from ..services.accounts_service import RECEIVABLES_CODE, SALES_REVENUE_CODE, TAXES_PAYABLE_CODE, resolve_accounts
from outlet_ledger.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        outlet_count = db.session.query(Outlet).count()
        account_count = db.session.query(Account).count()
        _, missing = resolve_accounts([RECEIVABLES_CODE, SALES_REVENUE_CODE, TAXES_PAYABLE_CODE])

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "outlets": outlet_count,
                "accounts": account_count,
                "missing_posting_accounts": missing,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "ok" if healthy else "degraded",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return jsonify(body), 200 if healthy else 503
