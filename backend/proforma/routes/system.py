# backend/proforma/routes/system.py
"""
System health and version endpoints.

Health covers the two things submissions depend on: the database and the
request number counters.
"""

import sys
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Product, Request, RequestSequence
from ..time_utils import current_year, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def _timed_check(label: str, check) -> dict:
    """Run check() and wrap its details with status and latency."""
    started = time.perf_counter()
    try:
        details = check()
    except Exception:
        current_app.logger.exception("%s health check failed", label)
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "error": f"{label} error",
        }
    return {
        "status": "healthy",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "details": details,
    }


def _database_check() -> dict:
    return {
        "products": db.session.query(Product).count(),
        "requests": db.session.query(Request).count(),
    }


def _numbering_check() -> dict:
    # No row yet is normal before the first request of the year.
    year = current_year()
    seq = db.session.query(RequestSequence).filter_by(year=year).first()
    return {"year": year, "last_issued": seq.last_issued if seq else 0}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: All systems healthy
    - 503: One or more systems unhealthy
    """
    started = time.perf_counter()
    checks = {
        "database": _timed_check("Database", _database_check),
        "numbering": _timed_check("Numbering", _numbering_check),
    }
    healthy = all(c["status"] == "healthy" for c in checks.values())

    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "checks": checks,
    }, 200 if healthy else 503


@system_bp.get("/version")
def version():
    """Non-sensitive deployment info. No secrets, credentials or paths."""
    return {
        "api_version": "1.0.0",
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
        "fulfillment_tracking": bool(current_app.config.get("REQUEST_FULFILLMENT_TRACKING")),
    }
