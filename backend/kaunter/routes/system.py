# backend/kaunter/routes/system.py
"""System health endpoint."""

import time
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


@system_bp.get("/api/health")
def health():
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        database = {"status": "ok", "latency_ms": round((time.time() - start_time) * 1000, 2)}
        status_code = 200
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        database = {"status": "error"}
        status_code = 503

    return jsonify({
        "status": "ok" if status_code == 200 else "degraded",
        "time": to_utc_z(utcnow()),
        "business_timezone": current_app.config["BUSINESS_TIMEZONE"],
        "database": database,
    }), status_code
