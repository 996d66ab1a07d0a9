# backend/wingrow/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app

from ..extensions import db
from ..models import Claim, InventoryItem, IssueRequest, User

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "users": db.session.query(User).count(),
            "claims": db.session.query(Claim).count(),
            "items": db.session.query(InventoryItem).count(),
            "requests": db.session.query(IssueRequest).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


@system_bp.get("/health")
def health_route():
    database = check_database_health()
    status = "ok" if database["status"] == "healthy" else "degraded"
    return {"status": status, "database": database}, 200 if status == "ok" else 503
