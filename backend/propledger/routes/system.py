# backend/propledger/routes/system.py
"""
System health endpoint.

Checks database connectivity and that every well-known ledger account
(AP, default cash, misc expense, ...) exists and is active.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Account, Transaction, User
from ..services.account_resolver import get_well_known_accounts
from propledger.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        account_count = db.session.query(Account).count()
        transaction_count = db.session.query(Transaction).count()
        user_count = db.session.query(User).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "accounts": account_count,
                "transactions": transaction_count,
                "users": user_count,
            }
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_chart_health() -> dict:
    """Degraded when a well-known account is missing or inactive."""
    start_time = time.time()
    try:
        codes = get_well_known_accounts().codes
        active = {
            a.code for a in db.session.query(Account).filter(
                Account.code.in_(list(codes.values())),
                Account.is_active.is_(True),
            ).all()
        }
        missing = sorted(role for role, code in codes.items() if code not in active)
        elapsed_ms = (time.time() - start_time) * 1000
        if missing:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": f"Missing well-known accounts: {', '.join(missing)}",
            }
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": {"well_known_accounts": codes}}
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Chart of accounts health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Chart of accounts error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    chart_health = check_chart_health()

    all_checks = [database_health, chart_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "chart_of_accounts": chart_health,
        }
    }, http_status
