# Overview: Flask API routes for dashboard analytics; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_company_user
from ..services import reporting_service
from ..services.reporting_service import ReportError
from ..validation import ValidationError


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/dashboard")
@require_company_user
def dashboard_route():
    try:
        return jsonify(reporting_service.dashboard_metrics(g.company_id)), 200
    except Exception:
        current_app.logger.exception("Failed to compute dashboard metrics")
        return jsonify({"error": "Internal server error"}), 500


@analytics_bp.get("/daily")
@require_company_user
def daily_sales_route():
    try:
        data = reporting_service.daily_sales(g.company_id, days=request.args.get("days", "30"))
        return jsonify({"data": data}), 200
    except (ReportError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to compute daily sales")
        return jsonify({"error": "Internal server error"}), 500


@analytics_bp.get("/weekly")
@require_company_user
def weekly_sales_route():
    try:
        data = reporting_service.weekly_sales(g.company_id, weeks=request.args.get("weeks", "12"))
        return jsonify({"data": data}), 200
    except (ReportError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to compute weekly sales")
        return jsonify({"error": "Internal server error"}), 500


@analytics_bp.get("/monthly")
@require_company_user
def monthly_sales_route():
    try:
        data = reporting_service.monthly_sales(g.company_id, months=request.args.get("months", "12"))
        return jsonify({"data": data}), 200
    except (ReportError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to compute monthly sales")
        return jsonify({"error": "Internal server error"}), 500
